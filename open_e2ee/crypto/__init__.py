"""Cryptographic engines consumed by the envelope manager.

- ``SymmetricEngine`` — random item keys and hex-keyed payload AEAD.
- ``AsymmetricEngine`` — passphrase-protected RSA key pairs and key wrapping.
"""

from .symmetric import SymmetricEngine, SymmetricKey
from .asymmetric import AsymmetricEngine, PrivateKey, PublicKey, SerializedKeyPair

__all__ = [
    "SymmetricEngine",
    "SymmetricKey",
    "AsymmetricEngine",
    "PrivateKey",
    "PublicKey",
    "SerializedKeyPair",
]
