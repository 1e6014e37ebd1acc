import asyncio
import socket
from dataclasses import dataclass
from zeroconf import IPVersion, ServiceStateChange
from zeroconf.asyncio import AsyncServiceBrowser, AsyncServiceInfo, AsyncZeroconf
from utils.helpers import get_logger

logger = get_logger(__name__)

SERVICE_TYPE = "_cryptochat._tcp.local."
RESOLVE_TIMEOUT_MS = 3000


@dataclass(frozen=True)
class PeerFound:
    address: str
    name: str
    port: int


@dataclass(frozen=True)
class PeerLost:
    address: tuple  # (host, port) as previously reported by PeerFound


def local_ip(bind_host):
    if bind_host and bind_host not in ("0.0.0.0", ""):
        return bind_host
    return socket.gethostbyname(socket.gethostname())


class Discovery:
    """
    Advertises this process over mDNS and turns browse results into
    PeerFound / PeerLost events on `events`.
    """

    def __init__(self, instance_id, display_name, port, events,
                 service_type=SERVICE_TYPE, bind_host="0.0.0.0"):
        self.instance_id = instance_id
        self.display_name = display_name
        self.port = port
        self.events = events
        self.service_type = service_type
        self.bind_host = bind_host
        self.aiozc = None
        self.browser = None
        self.service_info = None
        self._resolved = {}  # instance name -> (host, port)
        self._tasks = set()

    async def start(self):
        self.aiozc = AsyncZeroconf(ip_version=IPVersion.V4Only)
        ip_addr = local_ip(self.bind_host)
        info = AsyncServiceInfo(
            self.service_type,
            f"{self.instance_id}.{self.service_type}",
            addresses=[socket.inet_aton(ip_addr)],
            port=self.port,
            properties={"name": self.display_name},
            server=f"{self.instance_id}.local.",
        )
        await self.aiozc.async_register_service(info)
        self.service_info = info
        logger.debug(f"Advertising {self.instance_id} at {ip_addr}:{self.port}")

        self.browser = AsyncServiceBrowser(
            self.aiozc.zeroconf, [self.service_type], handlers=[self._on_service_state_change]
        )
        logger.debug("Discovery started...")

    async def stop(self):
        for task in list(self._tasks):
            task.cancel()
        if self.browser:
            await self.browser.async_cancel()
            self.browser = None
        if self.aiozc:
            if self.service_info:
                await self.aiozc.async_unregister_service(self.service_info)
            await self.aiozc.async_close()
            self.aiozc = None
            self.service_info = None

    def is_self(self, name):
        return name.split(".")[0] == self.instance_id

    # zeroconf calls this with keyword arguments, names must not change
    def _on_service_state_change(self, zeroconf, service_type, name, state_change):
        if self.is_self(name):
            return
        if state_change in (ServiceStateChange.Added, ServiceStateChange.Updated):
            task = asyncio.ensure_future(self._resolve(zeroconf, service_type, name))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
        elif state_change is ServiceStateChange.Removed:
            self.service_removed(name)

    async def _resolve(self, zeroconf, service_type, name):
        info = AsyncServiceInfo(service_type, name)
        if not await info.async_request(zeroconf, RESOLVE_TIMEOUT_MS):
            logger.debug(f"Could not resolve {name}")
            return
        self.service_found(name, info.parsed_addresses(IPVersion.V4Only), info.port, info.properties)

    def service_found(self, name, addresses, port, properties):
        if self.is_self(name) or not addresses or not port:
            return
        label = name.split(".")[0]
        raw_name = (properties or {}).get(b"name")
        peer_name = raw_name.decode("utf-8", "replace") if raw_name else label
        self._resolved[name] = (addresses[0], port)
        logger.debug(f"Found peer: {peer_name} at {addresses[0]}:{port}")
        self.events.put_nowait(PeerFound(addresses[0], peer_name, port))

    def service_removed(self, name):
        address = self._resolved.pop(name, None)
        if address is None:
            return
        logger.debug(f"Peer left: {name}")
        self.events.put_nowait(PeerLost(address))
