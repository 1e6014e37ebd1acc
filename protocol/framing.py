import struct
from protocol.errors import MalformedFrame
from protocol.message import decode_message, encode_message

MAX_FRAME_SIZE = 50 * 1024 * 1024
LENGTH_PREFIX = struct.Struct(">I")


def encode_frame(message, codec):
    """
    One wire frame: 4-byte big-endian length, then nonce || ciphertext.
    """
    body = codec.seal(encode_message(message))
    if len(body) > MAX_FRAME_SIZE:
        raise MalformedFrame(f"Frame too large: {len(body)} bytes (max {MAX_FRAME_SIZE})")
    return LENGTH_PREFIX.pack(len(body)) + body


def check_length(length):
    if length == 0:
        raise MalformedFrame("Zero-length frame")
    if length > MAX_FRAME_SIZE:
        raise MalformedFrame(f"Declared frame length {length} exceeds {MAX_FRAME_SIZE}")


async def read_frame(reader, codec):
    """
    Read and open a single frame from an asyncio StreamReader.

    Raises asyncio.IncompleteReadError on EOF, MalformedFrame on a bad
    length, CryptoError if decryption fails and DecodeError if the
    plaintext is not a Message.
    """
    header = await reader.readexactly(LENGTH_PREFIX.size)
    (length,) = LENGTH_PREFIX.unpack(header)
    check_length(length)
    body = await reader.readexactly(length)
    return decode_message(codec.open(body))

