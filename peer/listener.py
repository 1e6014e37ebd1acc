import asyncio
from protocol.errors import BindError, CryptoError, DecodeError, MalformedFrame
from protocol.framing import read_frame
from utils.helpers import get_logger

logger = get_logger(__name__)


class ConnectionListener:
    """
    Accepts inbound peers and feeds every decoded Message to `display`.
    Each connection gets its own task; a failure ends only that task.
    """

    def __init__(self, host, port, codec, display):
        self.host = host
        self.port = port
        self.codec = codec
        self.display = display
        self.undecodable = 0
        self._server = None
        self._connections = set()

    async def start(self):
        try:
            self._server = await asyncio.start_server(self._handle_connection, self.host, self.port)
        except OSError as e:
            raise BindError(f"Could not bind {self.host}:{self.port}: {e}") from e
        # port 0 means the OS picked one
        self.port = self._server.sockets[0].getsockname()[1]
        logger.debug(f"Listening for incoming messages on {self.host}:{self.port}")

    async def stop(self):
        if self._server is None:
            return
        self._server.close()
        for task in list(self._connections):
            task.cancel()
        await self._server.wait_closed()
        self._server = None
        logger.debug("Listener stopped")

    @property
    def open_connections(self):
        return len(self._connections)

    async def _handle_connection(self, reader, writer):
        addr = writer.get_extra_info("peername")
        task = asyncio.current_task()
        self._connections.add(task)
        logger.debug(f"Accepted connection from {addr}")
        try:
            while True:
                try:
                    message = await read_frame(reader, self.codec)
                except DecodeError as e:
                    # Verified by the AEAD tag, so the sender holds our key;
                    # most likely a newer or older peer. Keep the connection.
                    self.undecodable += 1
                    logger.warning(f"Discarded undecodable message from {addr}: {e}")
                    continue
                self._deliver(message)
        except asyncio.IncompleteReadError as e:
            if e.partial:
                logger.warning(f"Connection from {addr} closed mid-frame")
            else:
                logger.debug(f"Connection from {addr} closed")
        except MalformedFrame as e:
            logger.warning(f"Dropping connection from {addr}: {e}")
        except CryptoError:
            logger.warning(f"Dropping connection from {addr}: frame failed to decrypt")
        except (ConnectionError, OSError) as e:
            logger.error(f"Error reading from {addr}: {e}")
        finally:
            self._connections.discard(task)
            writer.close()
            try:
                await writer.wait_closed()
            except (ConnectionError, OSError):
                pass

    def _deliver(self, message):
        try:
            self.display(message)
        except Exception as e:
            logger.error(f"Display failed for message from {message.sender}: {e}", exc_info=True)
