class ChatError(Exception):
    """Base class for every error raised by the chat layer."""


class CryptoError(ChatError):
    """AEAD tag verification failed (wrong key, tampering or corruption)."""


class MalformedFrame(ChatError):
    """Frame length out of bounds, or body too short to hold a nonce."""


class DecodeError(ChatError):
    """Decrypted payload could not be turned back into a Message."""


class BindError(ChatError):
    """The listener could not bind its address."""
