import binascii
import os
from crypto.cipher import KEY_SIZE, generate_key
from utils.helpers import get_logger

logger = get_logger(__name__)


def load_shared_key(key_file=None):
    """
    Return the symmetric key for this process. With no key_file a fresh
    random key is generated, otherwise the file is read (32 raw bytes or
    64 hex characters). The file is never written.
    """
    if not key_file:
        logger.debug("Generated new session key")
        return generate_key()

    if not os.path.exists(key_file):
        raise FileNotFoundError(f"Key file not found: {key_file}")
    with open(key_file, "rb") as f:
        raw = f.read()

    if len(raw) == KEY_SIZE:
        logger.debug(f"Loaded raw shared key from {key_file}")
        return raw
    try:
        key = binascii.unhexlify(raw.strip())
    except (binascii.Error, ValueError):
        raise ValueError(f"Key file {key_file} is neither {KEY_SIZE} raw bytes nor hex") from None
    if len(key) != KEY_SIZE:
        raise ValueError(f"Key file {key_file} holds {len(key)} bytes, expected {KEY_SIZE}")
    logger.debug(f"Loaded hex shared key from {key_file}")
    return key
