"""Open E2EE — Client-side end-to-end envelope encryption.

Security Note (Threat Model):
    Usable private keys, item keys and the passphrase live in process memory
    for the lifetime of an ``EnvelopeManager``. A memory dump of the process
    could expose them. Only passphrase-encrypted or wrapped forms are meant
    to leave the process.
"""

from .version import __version__
from .config import E2EEConfig
from .envelope import (
    EnvelopeManager,
    EncryptedItem,
    PlaintextItem,
    UnwrappedKey,
    MasterKeys,
    KeyPair,
)
from .errors import (
    E2EEError,
    NotInitialized,
    AlreadyInitialized,
    KeyGenerationFailure,
    InvalidSerializedKey,
    WrapFailure,
    DecryptionError,
    PassphraseMismatch,
    UnwrapFailure,
    PayloadDecryptionFailure,
)

__all__ = [
    "__version__",
    "E2EEConfig",
    "EnvelopeManager",
    "EncryptedItem",
    "PlaintextItem",
    "UnwrappedKey",
    "MasterKeys",
    "KeyPair",
    "E2EEError",
    "NotInitialized",
    "AlreadyInitialized",
    "KeyGenerationFailure",
    "InvalidSerializedKey",
    "WrapFailure",
    "DecryptionError",
    "PassphraseMismatch",
    "UnwrapFailure",
    "PayloadDecryptionFailure",
]
