"""
Asymmetric Engine — User key pairs and item key wrapping.

Key pairs are RSA. The private key leaves the process only as a
``PrivateKeyDocument``:
    PBKDF2-SHA256(passphrase, salt) → AEAD(PKCS8 DER, aad=identity|fingerprint)

Wrapped text format (base64):
    [version 1B][ct_len 2B uint16 BE][RSA-OAEP ciphertext][RSA-PSS signature]
The OAEP label is the key identity; the signature covers the ciphertext.

Security Note:
    Never log passphrases, key material, plaintext or ciphertext.
    Only identities and fingerprints may be logged.
"""
import os
import struct
import asyncio
import logging
from typing import NamedTuple, Optional

from cryptography.exceptions import InvalidSignature, InvalidTag, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    NoEncryption,
    PrivateFormat,
    PublicFormat,
    load_der_private_key,
    load_der_public_key,
)

from ..config import E2EEConfig
from ..encoding import b64d, b64e
from ..errors import (
    InvalidSerializedKey,
    KeyGenerationFailure,
    PassphraseMismatch,
    UnwrapFailure,
    WrapFailure,
)
from .documents import (
    PrivateKeyDocument,
    PublicKeyDocument,
    dump_document,
    key_binding,
    load_private_document,
    load_public_document,
)
from .symmetric import CIPHERS, CIPHER_IDS, KEY_LENGTH, NONCE_SIZE

logger = logging.getLogger("open_e2ee")

PUBLIC_EXPONENT = 65537
SALT_SIZE = 16
WRAP_VERSION = 1
_WRAP_HEADER = struct.Struct("!BH")


class SerializedKeyPair(NamedTuple):
    """Persistable forms of a freshly generated key pair."""

    private_key: str  # passphrase-encrypted
    public_key: str


class PrivateKey:
    """Usable private key handle. Has no serialization method."""

    __slots__ = ("_key", "identity", "fingerprint")

    def __init__(self, key: rsa.RSAPrivateKey, identity: str, fingerprint: str):
        self._key = key
        self.identity = identity
        self.fingerprint = fingerprint

    def __repr__(self) -> str:
        return f"<PrivateKey identity={self.identity!r} fingerprint={self.fingerprint[:16]}>"


class PublicKey:
    """Usable public key handle."""

    __slots__ = ("_key", "identity", "fingerprint")

    def __init__(self, key: rsa.RSAPublicKey, identity: str, fingerprint: str):
        self._key = key
        self.identity = identity
        self.fingerprint = fingerprint

    def __repr__(self) -> str:
        return f"<PublicKey identity={self.identity!r} fingerprint={self.fingerprint[:16]}>"


def fingerprint(public_der: bytes) -> str:
    """Hex SHA-256 of a DER SubjectPublicKeyInfo."""
    digest = hashes.Hash(hashes.SHA256())
    digest.update(public_der)
    return digest.finalize().hex()


def _public_der(key: rsa.RSAPublicKey) -> bytes:
    return key.public_bytes(Encoding.DER, PublicFormat.SubjectPublicKeyInfo)


def _passphrase_key(passphrase: str, salt: bytes, iterations: int) -> bytes:
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=salt,
        iterations=iterations,
    )
    return kdf.derive(passphrase.encode("utf-8"))


def _oaep(identity: str) -> padding.OAEP:
    return padding.OAEP(
        mgf=padding.MGF1(algorithm=hashes.SHA256()),
        algorithm=hashes.SHA256(),
        label=identity.encode("utf-8"),
    )


def _pss() -> padding.PSS:
    return padding.PSS(
        mgf=padding.MGF1(hashes.SHA256()),
        salt_length=padding.PSS.MAX_LENGTH,
    )


class AsymmetricEngine:
    """RSA key pairs, passphrase protection and self-addressed key wrapping."""

    def __init__(self, config: Optional[E2EEConfig] = None):
        self._config = config or E2EEConfig()

    # ------------------------------------------------------------------
    # Key pairs
    # ------------------------------------------------------------------

    async def generate_key_pair(self, passphrase: str, identity: str) -> SerializedKeyPair:
        """Generate a key pair bound to ``identity``, protected by ``passphrase``.

        Raises:
            KeyGenerationFailure: If the backend cannot generate the key.
        """
        return await asyncio.to_thread(self._generate, passphrase, identity)

    async def decrypt_private_key(self, serialized: str, passphrase: str) -> PrivateKey:
        """Open a passphrase-encrypted private key.

        Raises:
            InvalidSerializedKey: If the document is malformed.
            PassphraseMismatch: If the passphrase does not open the key.
        """
        return await asyncio.to_thread(self._open_private, serialized, passphrase)

    async def read_public_key(self, serialized: str) -> PublicKey:
        """Import a serialized public key.

        Raises:
            InvalidSerializedKey: If the document is malformed.
        """
        return await asyncio.to_thread(self._read_public, serialized)

    def _generate(self, passphrase: str, identity: str) -> SerializedKeyPair:
        try:
            key = rsa.generate_private_key(
                public_exponent=PUBLIC_EXPONENT,
                key_size=self._config.rsa_key_size,
            )
            public_der = _public_der(key.public_key())
            private_der = key.private_bytes(
                Encoding.DER, PrivateFormat.PKCS8, NoEncryption(),
            )
        except (ValueError, UnsupportedAlgorithm) as err:
            raise KeyGenerationFailure(f"Unable to generate key pair: {err}") from err
        fp = fingerprint(public_der)
        salt = os.urandom(SALT_SIZE)
        nonce = os.urandom(NONCE_SIZE)
        iterations = self._config.kdf_iterations
        backend = self._config.cipher_backend
        cipher = CIPHERS[CIPHER_IDS[backend]](
            _passphrase_key(passphrase, salt, iterations)
        )
        sealed = cipher.encrypt(nonce, private_der, key_binding(identity, fp))
        private_doc = PrivateKeyDocument(
            identity=identity,
            fingerprint=fp,
            iterations=iterations,
            salt=b64e(salt),
            cipher=backend,
            nonce=b64e(nonce),
            key=b64e(sealed),
        )
        public_doc = PublicKeyDocument(
            identity=identity,
            fingerprint=fp,
            key=b64e(public_der),
        )
        logger.debug("Generated key pair for identity=%s fingerprint=%s", identity, fp)
        return SerializedKeyPair(dump_document(private_doc), dump_document(public_doc))

    def _open_private(self, serialized: str, passphrase: str) -> PrivateKey:
        document = load_private_document(serialized)
        try:
            salt = b64d(document.salt)
            nonce = b64d(document.nonce)
            sealed = b64d(document.key)
        except ValueError as err:
            raise InvalidSerializedKey(f"Malformed private key field: {err}") from err
        if len(nonce) != NONCE_SIZE:
            raise InvalidSerializedKey(f"Private key nonce must be {NONCE_SIZE} bytes")
        cipher = CIPHERS[CIPHER_IDS[document.cipher]](
            _passphrase_key(passphrase, salt, document.iterations)
        )
        try:
            private_der = cipher.decrypt(nonce, sealed, document.associated_data())
        except InvalidTag as err:
            raise PassphraseMismatch(
                "Passphrase does not match the encrypted private key"
            ) from err
        try:
            key = load_der_private_key(private_der, password=None)
        except (ValueError, TypeError, UnsupportedAlgorithm) as err:
            raise InvalidSerializedKey(f"Unreadable private key: {err}") from err
        if not isinstance(key, rsa.RSAPrivateKey):
            raise InvalidSerializedKey("Private key is not an RSA key")
        fp = fingerprint(_public_der(key.public_key()))
        if fp != document.fingerprint:
            raise InvalidSerializedKey("Private key fingerprint mismatch")
        return PrivateKey(key, document.identity, fp)

    def _read_public(self, serialized: str) -> PublicKey:
        document = load_public_document(serialized)
        try:
            public_der = b64d(document.key)
            key = load_der_public_key(public_der)
        except (ValueError, UnsupportedAlgorithm) as err:
            raise InvalidSerializedKey(f"Unreadable public key: {err}") from err
        if not isinstance(key, rsa.RSAPublicKey):
            raise InvalidSerializedKey("Public key is not an RSA key")
        if fingerprint(public_der) != document.fingerprint:
            raise InvalidSerializedKey("Public key fingerprint mismatch")
        return PublicKey(key, document.identity, document.fingerprint)

    # ------------------------------------------------------------------
    # Wrapping
    # ------------------------------------------------------------------

    async def encrypt_asymmetric(
        self, private_key: PrivateKey, public_key: PublicKey, text: str,
    ) -> str:
        """Encrypt ``text`` to ``public_key`` and sign it with ``private_key``.

        Raises:
            WrapFailure: If the text is too long for the key or signing fails.
        """
        return await asyncio.to_thread(self._wrap, private_key, public_key, text)

    async def decrypt_asymmetric(
        self, private_key: PrivateKey, public_key: PublicKey, ciphertext: str,
    ) -> str:
        """Verify and decrypt text produced by :meth:`encrypt_asymmetric`.

        Raises:
            UnwrapFailure: If the text is malformed, the signature does not
                verify or the ciphertext was not encrypted to this key.
        """
        return await asyncio.to_thread(self._unwrap, private_key, public_key, ciphertext)

    def _wrap(self, private_key: PrivateKey, public_key: PublicKey, text: str) -> str:
        try:
            ct = public_key._key.encrypt(text.encode("utf-8"), _oaep(public_key.identity))
            signature = private_key._key.sign(ct, _pss(), hashes.SHA256())
        except ValueError as err:
            raise WrapFailure(f"Unable to wrap key: {err}") from err
        return b64e(_WRAP_HEADER.pack(WRAP_VERSION, len(ct)) + ct + signature)

    def _unwrap(self, private_key: PrivateKey, public_key: PublicKey, ciphertext: str) -> str:
        try:
            blob = b64d(ciphertext)
        except ValueError as err:
            raise UnwrapFailure(f"Malformed wrapped key: {err}") from err
        if len(blob) < _WRAP_HEADER.size:
            raise UnwrapFailure("Wrapped key too short")
        version, ct_len = _WRAP_HEADER.unpack(blob[:_WRAP_HEADER.size])
        if version != WRAP_VERSION:
            raise UnwrapFailure(f"Unsupported wrapped key version {version}")
        ct = blob[_WRAP_HEADER.size:_WRAP_HEADER.size + ct_len]
        signature = blob[_WRAP_HEADER.size + ct_len:]
        if len(ct) != ct_len or not signature:
            raise UnwrapFailure("Wrapped key is truncated")
        try:
            public_key._key.verify(signature, ct, _pss(), hashes.SHA256())
        except InvalidSignature as err:
            raise UnwrapFailure("Wrapped key signature does not verify") from err
        try:
            text = private_key._key.decrypt(ct, _oaep(private_key.identity))
        except ValueError as err:
            raise UnwrapFailure("Wrapped key does not decrypt under this key pair") from err
        try:
            return text.decode("utf-8")
        except UnicodeDecodeError as err:
            raise UnwrapFailure("Wrapped key is not valid text") from err
