import asyncio
import os
import queue
import threading
import uuid
from zeroconf import Error as ZeroconfError
from crypto.cipher import CipherCodec, generate_key
from peer.broadcast import Broadcaster
from peer.discovery import SERVICE_TYPE, Discovery, PeerFound, PeerLost
from peer.listener import ConnectionListener
from peer.registry import PeerRegistry
from protocol.errors import MalformedFrame
from protocol.message import Image, Text, Video
from utils.helpers import format_timestamp, get_logger, safe_filename

logger = get_logger(__name__)

HELP = """Commands:
  <text>         Send a message to every peer
  /img <path>    Send an image
  /vid <path>    Send a video
  /peers         List discovered peers
  /help          Show this help
  /quit          Quit"""

FILE_COMMANDS = {"/img": Image, "/vid": Video}


class LineReader:
    """
    Reads input lines on a daemon thread and hands them to the event loop.
    A read still pending at shutdown never blocks interpreter exit.
    """

    def __init__(self, prompt=">>> ", input_func=input):
        self.prompt = prompt
        self.input_func = input_func
        self._requests = queue.Queue()
        self._lines = None
        self._thread = None
        self._pending = False
        self._eof = False

    def _run(self, loop):
        while True:
            self._requests.get()
            try:
                line = self.input_func(self.prompt)
            except EOFError:
                line = None
            try:
                loop.call_soon_threadsafe(self._lines.put_nowait, line)
            except RuntimeError:
                return  # loop already closed
            if line is None:
                return

    async def readline(self):
        """Next line of input, or None at EOF."""
        if self._eof:
            return None
        if self._thread is None:
            self._lines = asyncio.Queue()
            self._thread = threading.Thread(
                target=self._run, args=(asyncio.get_running_loop(),), daemon=True
            )
            self._thread.start()
        # a read cancelled mid-wait keeps its request; its line arrives later
        if not self._pending:
            self._pending = True
            self._requests.put(None)
        line = await self._lines.get()
        self._pending = False
        self._eof = line is None
        return line


class ChatCore:
    """
    Owns the session key and the peer registry and wires the listener,
    the broadcaster and discovery together.
    """

    def __init__(self, name, key=None, host="0.0.0.0", port=6000,
                 download_dir=None, service_type=SERVICE_TYPE):
        self.name = name
        self.codec = CipherCodec(key if key is not None else generate_key())
        self.registry = PeerRegistry()
        self.instance_id = uuid.uuid4().hex
        self.download_dir = download_dir
        self.service_type = service_type
        self.listener = ConnectionListener(host, port, self.codec, self.show_incoming)
        self.broadcaster = Broadcaster(name, self.registry, self.codec, self.show)
        self.events = asyncio.Queue()
        self.discovery = None
        self._event_task = None
        logger.debug(f"Core '{name}' initialized ({self.instance_id})")

    @property
    def port(self):
        return self.listener.port

    async def start(self, with_discovery=True):
        """Bind the listener (BindError is fatal) and start discovery."""
        await self.listener.start()
        self._event_task = asyncio.ensure_future(self._consume_events())
        if with_discovery:
            self.discovery = Discovery(
                self.instance_id, self.name, self.port, self.events,
                service_type=self.service_type, bind_host=self.listener.host,
            )
            try:
                await self.discovery.start()
            except (OSError, ZeroconfError) as e:
                logger.error(f"Discovery unavailable: {e}")
                print("[!] Peer discovery unavailable, running without it")
                await self.discovery.stop()
                self.discovery = None
        print(f"[✓] {self.name} listening on port {self.port}")

    async def stop(self):
        if self.discovery:
            await self.discovery.stop()
            self.discovery = None
        if self._event_task:
            self._event_task.cancel()
            self._event_task = None
        await self.listener.stop()

    async def _consume_events(self):
        while True:
            event = await self.events.get()
            self.handle_event(event)

    def handle_event(self, event):
        if isinstance(event, PeerFound):
            if event.port == self.port:
                return
            if self.registry.upsert((event.address, event.port), event.name):
                print(f"[✓] New peer: {event.name} @ {event.address}:{event.port}")
        elif isinstance(event, PeerLost):
            peer = self.registry.remove(event.address)
            if peer:
                logger.info(f"Peer left: {peer}")
                print(f"[!] Peer left: {peer}")

    def show(self, message):
        print(f"[{format_timestamp(message.timestamp)}] {message.sender}: {message.payload.describe()}")

    def show_incoming(self, message):
        self.show(message)
        if self.download_dir and isinstance(message.payload, (Image, Video)):
            self.save_media(message)

    def save_media(self, message):
        filename = f"{safe_filename(message.sender)}-{message.timestamp}-{safe_filename(message.payload.filename)}"
        path = os.path.join(self.download_dir, filename)
        try:
            os.makedirs(self.download_dir, exist_ok=True)
            with open(path, "wb") as f:
                f.write(message.payload.data)
        except OSError as e:
            logger.error(f"Could not save {path}: {e}")
            print(f"[✗] Could not save {message.payload.filename}: {e}")
            return None
        print(f"[✓] Saved to {path}")
        return path

    def list_peers(self):
        peers = self.registry.snapshot()
        if not peers:
            print("No peers found.")
        for peer in peers:
            print(peer)

    async def send(self, variant):
        try:
            result = await self.broadcaster.broadcast(variant)
        except MalformedFrame as e:
            print(f"[✗] Not sent: {e}")
            return None
        except UnicodeEncodeError:
            print("[✗] Not sent: message is not valid UTF-8")
            return None
        if result.failed:
            print(f"[!] Could not reach {len(result.failed)} peer(s)")
        return result

    async def send_file(self, variant_cls, path):
        try:
            with open(path, "rb") as f:
                data = f.read()
        except OSError as e:
            print(f"[✗] Could not read {path}: {e}")
            return None
        return await self.send(variant_cls(os.path.basename(path), data))

    async def handle_command(self, line):
        """Run one line of user input. Returns False when the loop should end."""
        line = line.strip()
        if not line:
            return True
        if line == "/quit":
            return False
        if line == "/peers":
            self.list_peers()
        elif line == "/help":
            print(HELP)
        elif line.split(None, 1)[0] in FILE_COMMANDS:
            cmd, *rest = line.split(None, 1)
            if not rest:
                print(f"Usage: {cmd} <path>")
            else:
                await self.send_file(FILE_COMMANDS[cmd], rest[0].strip())
        elif line.startswith("/"):
            print("Unknown command. Type '/help'.")
        else:
            await self.send(Text(line))
        return True

    async def run_cli(self, reader=None):
        reader = reader or LineReader()
        print("Type a message and press Enter to send. Type '/help' for commands.")
        while True:
            line = await reader.readline()
            if line is None:
                print("\nExiting")
                break
            if not await self.handle_command(line):
                logger.debug("Exiting CLI")
                print("Exiting")
                break

    async def run(self):
        await self.start()
        try:
            await self.run_cli()
        finally:
            await self.stop()
