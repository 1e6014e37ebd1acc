import asyncio
import time
from dataclasses import dataclass, field
from protocol.framing import encode_frame
from protocol.message import Message
from utils.helpers import get_logger

logger = get_logger(__name__)


@dataclass
class BroadcastResult:
    message: Message
    delivered: list = field(default_factory=list)
    failed: list = field(default_factory=list)  # [(Peer, reason)]


class Broadcaster:
    """
    Sends one Message to every peer in the registry, one fresh connection
    per peer, in order. A failing peer is logged and skipped.
    """

    def __init__(self, name, registry, codec, display):
        self.name = name
        self.registry = registry
        self.codec = codec
        self.display = display

    async def broadcast(self, variant):
        """
        Raises MalformedFrame before contacting anyone if the message is
        too large for a single frame.
        """
        message = Message(sender=self.name, payload=variant, timestamp=int(time.time()))
        frame = encode_frame(message, self.codec)
        result = BroadcastResult(message)

        for peer in self.registry.snapshot():
            try:
                await self._send(peer, frame)
                result.delivered.append(peer)
            except (ConnectionError, OSError) as e:
                logger.error(f"Could not deliver to {peer}: {e}")
                result.failed.append((peer, str(e) or type(e).__name__))

        logger.debug(f"Delivered to {len(result.delivered)} peer(s), {len(result.failed)} failed")
        self.display(message)
        return result

    async def _send(self, peer, frame):
        host, port = peer.address
        _, writer = await asyncio.open_connection(host, port)
        try:
            writer.write(frame)
            await writer.drain()
        finally:
            writer.close()
            try:
                await writer.wait_closed()
            except (ConnectionError, OSError):
                pass
