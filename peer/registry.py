from dataclasses import dataclass
from threading import Lock


@dataclass(frozen=True)
class Peer:
    address: tuple  # (host, port)
    name: str

    def __str__(self):
        host, port = self.address
        return f"{self.name} @ {host}:{port}"


class PeerRegistry:
    """
    Known peers keyed by (host, port). The lock only ever guards the dict
    itself, so callers must not expect it to serialize any network I/O.
    """

    def __init__(self):
        self._lock = Lock()
        self._peers = {}

    def upsert(self, address, name):
        """Insert a peer; returns True if it was new. First-seen name wins."""
        address = tuple(address)
        with self._lock:
            if address in self._peers:
                return False
            self._peers[address] = Peer(address, name)
            return True

    def remove(self, address):
        with self._lock:
            return self._peers.pop(tuple(address), None)

    def get(self, address):
        with self._lock:
            return self._peers.get(tuple(address))

    def snapshot(self):
        with self._lock:
            peers = list(self._peers.values())
        return sorted(peers, key=lambda p: p.address)

    def __len__(self):
        with self._lock:
            return len(self._peers)

    def __contains__(self, address):
        with self._lock:
            return tuple(address) in self._peers
