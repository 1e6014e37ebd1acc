import base64
import binascii
import json
import time
from dataclasses import dataclass, field
from protocol.errors import DecodeError
from utils.helpers import format_size


def _b64(data):
    return base64.b64encode(data).decode("ascii")


def _b64d(value):
    if not isinstance(value, str):
        raise DecodeError("Expected base64 string")
    try:
        return base64.b64decode(value.encode("ascii"), validate=True)
    except (binascii.Error, UnicodeEncodeError) as e:
        raise DecodeError(f"Bad base64 field: {e}") from None


def _str(d, key):
    value = d.get(key)
    if not isinstance(value, str):
        raise DecodeError(f"Field '{key}' must be a string")
    return value


@dataclass(frozen=True)
class Text:
    text: str
    KIND = "text"

    def to_dict(self):
        return {"text": self.text}

    @classmethod
    def from_dict(cls, d):
        return cls(_str(d, "text"))

    def describe(self):
        return self.text


@dataclass(frozen=True)
class Image:
    filename: str
    data: bytes = field(repr=False)
    KIND = "image"

    def to_dict(self):
        return {"filename": self.filename, "data": _b64(self.data)}

    @classmethod
    def from_dict(cls, d):
        return cls(_str(d, "filename"), _b64d(d.get("data")))

    def describe(self):
        return f"sent an image: {self.filename} ({format_size(len(self.data))})"


@dataclass(frozen=True)
class Video:
    filename: str
    data: bytes = field(repr=False)
    KIND = "video"

    def to_dict(self):
        return {"filename": self.filename, "data": _b64(self.data)}

    @classmethod
    def from_dict(cls, d):
        return cls(_str(d, "filename"), _b64d(d.get("data")))

    def describe(self):
        return f"sent a video: {self.filename} ({format_size(len(self.data))})"


@dataclass(frozen=True)
class KeyExchange:
    # Placeholder only. Nothing produces it and receiving one does nothing.
    public_key: bytes
    KIND = "key_exchange"

    def to_dict(self):
        return {"public_key": _b64(self.public_key)}

    @classmethod
    def from_dict(cls, d):
        return cls(_b64d(d.get("public_key")))

    def describe(self):
        return "sent a key exchange request (ignored)"


# The one place a new payload kind gets registered
VARIANTS = {cls.KIND: cls for cls in (Text, Image, Video, KeyExchange)}


@dataclass(frozen=True)
class Message:
    sender: str
    payload: object
    timestamp: int = field(default_factory=lambda: int(time.time()))


def encode_message(message):
    """Serialize a Message to UTF-8 JSON bytes."""
    kind = getattr(type(message.payload), "KIND", None)
    if VARIANTS.get(kind) is not type(message.payload):
        raise TypeError(f"Unknown payload type: {type(message.payload).__name__}")
    body = {
        "sender": message.sender,
        "timestamp": message.timestamp,
        "payload": {"kind": kind, **message.payload.to_dict()},
    }
    return json.dumps(body, ensure_ascii=False).encode("utf-8")


def decode_message(raw):
    """
    Parse bytes produced by encode_message(). Any problem with the input
    surfaces as DecodeError.
    """
    try:
        body = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as e:
        raise DecodeError(f"Payload is not JSON: {e}") from None
    except RecursionError:
        raise DecodeError("Payload is nested too deeply") from None
    if not isinstance(body, dict):
        raise DecodeError("Payload is not an object")

    timestamp = body.get("timestamp")
    if not isinstance(timestamp, int) or isinstance(timestamp, bool):
        raise DecodeError("Field 'timestamp' must be an integer")
    payload = body.get("payload")
    if not isinstance(payload, dict):
        raise DecodeError("Field 'payload' must be an object")
    kind = payload.get("kind")
    variant = VARIANTS.get(kind) if isinstance(kind, str) else None
    if variant is None:
        raise DecodeError(f"Unknown payload kind: {kind!r}")

    return Message(
        sender=_str(body, "sender"),
        payload=variant.from_dict(payload),
        timestamp=timestamp,
    )
