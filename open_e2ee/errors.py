"""
Exception hierarchy for envelope encryption.

Engines translate failures from the ``cryptography`` backend into these types;
the envelope manager lets them reach the caller unchanged.
"""


class E2EEError(Exception):
    """Base exception for all envelope encryption operations."""


class NotInitialized(E2EEError):
    """Item operation attempted before ``provision()`` or ``load()``."""


class AlreadyInitialized(E2EEError):
    """``provision()`` or ``load()`` called on a manager that is already ready."""


class KeyGenerationFailure(E2EEError):
    """Asymmetric or symmetric key generation failed."""


class InvalidSerializedKey(E2EEError, ValueError):
    """Serialized key material is malformed or does not belong together."""


class WrapFailure(E2EEError):
    """Asymmetric encryption of an item key failed."""


class DecryptionError(E2EEError):
    """Base class for every rejected decryption."""


class PassphraseMismatch(DecryptionError):
    """The passphrase does not open the encrypted private key."""


class UnwrapFailure(DecryptionError):
    """A wrapped item key is foreign, tampered or structurally invalid."""


class PayloadDecryptionFailure(DecryptionError):
    """A payload ciphertext is tampered, truncated or encrypted under another key."""
