"""
Symmetric Engine — Item keys and authenticated payload encryption.

Item keys are 32 random bytes. Payloads are encrypted under the hex text of the
item key:
    HKDF(hex_key, "open-e2ee-payload") → AEAD → [cipher_id 1B][nonce 12B][payload + tag]
and carried as base64 text.

Security Note:
    Never log plaintext, ciphertext or key values.
    Nonces are random 96-bit; each item key encrypts a single payload.
"""
import os
import struct
import asyncio
import logging
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF
from cryptography.hazmat.primitives.ciphers.aead import AESGCM, ChaCha20Poly1305

from ..config import E2EEConfig
from ..encoding import b64d, b64e
from ..errors import (
    InvalidSerializedKey,
    KeyGenerationFailure,
    PayloadDecryptionFailure,
)

logger = logging.getLogger("open_e2ee")

NONCE_SIZE = 12  # 96-bit nonce
TAG_SIZE = 16
KEY_LENGTH = 32  # AES-256 / ChaCha20
CIPHER_ID_SIZE = 1  # uint8

PAYLOAD_CONTEXT = "open-e2ee-payload"

# cipher id → AEAD class; ids are written into every payload.
CIPHERS: dict[int, type] = {
    1: AESGCM,
    2: ChaCha20Poly1305,
}
CIPHER_IDS = {
    "aesgcm": 1,
    "chacha20": 2,
}


def derive_key(seed: bytes, context: str) -> bytes:
    """Derive a 32-byte encryption key using HKDF-SHA256.

    Args:
        seed: Input key material.
        context: Context string for domain separation.

    Returns:
        32-byte derived key.
    """
    hkdf = HKDF(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=None,  # item keys are random and single-use
        info=context.encode("utf-8"),
    )
    return hkdf.derive(seed)


class SymmetricKey:
    """Opaque, non-exportable handle to an item key.

    Lets the caller reuse an item key (e.g. to encrypt derived data) without
    unwrapping it again. Output format: [nonce 12B][ciphertext + tag].
    """

    __slots__ = ("_cipher", "_algorithm")

    def __init__(self, key: bytes, cipher_backend: str = "aesgcm"):
        if len(key) != KEY_LENGTH:
            raise InvalidSerializedKey(
                f"Symmetric key must be {KEY_LENGTH} bytes, got {len(key)}"
            )
        self._algorithm = cipher_backend
        self._cipher = CIPHERS[CIPHER_IDS[cipher_backend]](key)

    def __repr__(self) -> str:
        return f"<SymmetricKey algorithm={self._algorithm}>"

    @property
    def algorithm(self) -> str:
        return self._algorithm

    def encrypt(self, plaintext: bytes, associated_data: Optional[bytes] = None) -> bytes:
        nonce = os.urandom(NONCE_SIZE)
        return nonce + self._cipher.encrypt(nonce, plaintext, associated_data)

    def decrypt(self, ciphertext: bytes, associated_data: Optional[bytes] = None) -> bytes:
        """Decrypt ``[nonce][ciphertext + tag]`` produced by :meth:`encrypt`.

        Raises:
            PayloadDecryptionFailure: If the data is truncated or fails authentication.
        """
        if len(ciphertext) < NONCE_SIZE + TAG_SIZE:
            raise PayloadDecryptionFailure(
                f"Ciphertext too short: {len(ciphertext)} bytes"
            )
        nonce, ct = ciphertext[:NONCE_SIZE], ciphertext[NONCE_SIZE:]
        try:
            return self._cipher.decrypt(nonce, ct, associated_data)
        except InvalidTag as err:
            raise PayloadDecryptionFailure("Ciphertext failed authentication") from err


class SymmetricEngine:
    """Random item keys and hex-keyed payload encryption."""

    def __init__(self, config: Optional[E2EEConfig] = None):
        self._config = config or E2EEConfig()
        self._cipher_id = CIPHER_IDS[self._config.cipher_backend]

    @property
    def cipher_backend(self) -> str:
        return self._config.cipher_backend

    async def create_encryption_key(self) -> tuple[bytes, SymmetricKey]:
        """Generate a random item key.

        Returns:
            Tuple of (raw key bytes, usable key handle).

        Raises:
            KeyGenerationFailure: If the OS random source is unavailable.
        """
        try:
            key = os.urandom(KEY_LENGTH)
        except (OSError, NotImplementedError) as err:
            raise KeyGenerationFailure(f"Unable to generate item key: {err}") from err
        return key, SymmetricKey(key, self.cipher_backend)

    async def import_symmetric_key(self, key: bytes) -> SymmetricKey:
        return SymmetricKey(key, self.cipher_backend)

    async def encrypt(self, hex_key: str, plaintext: str) -> str:
        """Encrypt a text payload under the hex text of an item key.

        Args:
            hex_key: Hex-encoded item key.
            plaintext: Payload to encrypt.

        Returns:
            base64 text of [cipher_id 1B][nonce 12B][payload + tag].
        """
        return await asyncio.to_thread(self._seal, hex_key, plaintext)

    async def decrypt(self, hex_key: str, ciphertext: str) -> str:
        """Decrypt a payload produced by :meth:`encrypt`.

        The cipher is taken from the payload header, not from configuration.

        Raises:
            PayloadDecryptionFailure: If the payload is malformed, tampered or
                was encrypted under a different key.
        """
        return await asyncio.to_thread(self._open, hex_key, ciphertext)

    def _seal(self, hex_key: str, plaintext: str) -> str:
        key = derive_key(hex_key.encode("utf-8"), PAYLOAD_CONTEXT)
        cipher = CIPHERS[self._cipher_id](key)
        nonce = os.urandom(NONCE_SIZE)
        ct = cipher.encrypt(nonce, plaintext.encode("utf-8"), None)
        return b64e(struct.pack("!B", self._cipher_id) + nonce + ct)

    def _open(self, hex_key: str, ciphertext: str) -> str:
        try:
            blob = b64d(ciphertext)
        except ValueError as err:
            raise PayloadDecryptionFailure(f"Malformed payload: {err}") from err
        _min = CIPHER_ID_SIZE + NONCE_SIZE + TAG_SIZE
        if len(blob) < _min:
            raise PayloadDecryptionFailure(
                f"Payload too short: {len(blob)} bytes (minimum {_min})"
            )
        cipher_id = struct.unpack("!B", blob[:CIPHER_ID_SIZE])[0]
        if cipher_id not in CIPHERS:
            raise PayloadDecryptionFailure(f"Unknown payload cipher id {cipher_id}")
        key = derive_key(hex_key.encode("utf-8"), PAYLOAD_CONTEXT)
        cipher = CIPHERS[cipher_id](key)
        nonce = blob[CIPHER_ID_SIZE:CIPHER_ID_SIZE + NONCE_SIZE]
        ct = blob[CIPHER_ID_SIZE + NONCE_SIZE:]
        try:
            data = cipher.decrypt(nonce, ct, None)
        except InvalidTag as err:
            raise PayloadDecryptionFailure("Payload failed authentication") from err
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as err:
            raise PayloadDecryptionFailure("Payload is not valid UTF-8") from err
