import os
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from protocol.errors import CryptoError, MalformedFrame

KEY_SIZE = 32
NONCE_SIZE = 12
TAG_SIZE = 16


def generate_key():
    return AESGCM.generate_key(bit_length=KEY_SIZE * 8)


def encrypt(plaintext, key):
    """
    AES-256-GCM with a fresh random nonce and no associated data.
    Returns nonce || ciphertext (the tag is appended to the ciphertext).
    """
    nonce = os.urandom(NONCE_SIZE)
    return nonce + AESGCM(key).encrypt(nonce, plaintext, None)


def decrypt(body, key):
    """
    Inverse of encrypt(). Raises MalformedFrame when the body cannot even
    hold a nonce, CryptoError when the tag does not verify.
    """
    if len(body) < NONCE_SIZE:
        raise MalformedFrame(f"Frame body too short: {len(body)} bytes")
    nonce, ciphertext = body[:NONCE_SIZE], body[NONCE_SIZE:]
    try:
        return AESGCM(key).decrypt(nonce, ciphertext, None)
    except InvalidTag:
        raise CryptoError("Decryption failed") from None


class CipherCodec:
    """Binds the process key to encrypt/decrypt so callers never touch it."""

    def __init__(self, key):
        if len(key) != KEY_SIZE:
            raise ValueError(f"Key must be {KEY_SIZE} bytes, got {len(key)}")
        self._key = bytes(key)

    def seal(self, plaintext):
        return encrypt(plaintext, self._key)

    def open(self, body):
        return decrypt(body, self._key)
