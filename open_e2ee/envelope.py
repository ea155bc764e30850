"""
EnvelopeManager — Per-user envelope encryption.

Provides the public API of the package:
- ``provision()`` — generate a passphrase-protected key pair for the identity
- ``load(private_key, public_key)`` — resume with a persisted key pair
- ``export_master_keys()`` — serialized key pair for persistence
- ``encrypt(plaintext)`` — fresh item key, wrapped, plus encrypted payload
- ``decrypt(encrypted_key, encrypted_value)`` — unwrap and decrypt an item

Security Note:
    The usable private key and the passphrase stay inside the manager.
    Never log passphrases, keys, plaintext or ciphertext values.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import NamedTuple, Optional, Union

import orjson

from .config import E2EEConfig
from .crypto import (
    AsymmetricEngine,
    PrivateKey,
    PublicKey,
    SymmetricEngine,
    SymmetricKey,
)
from .encoding import bytes_to_hex, hex_to_bytes
from .crypto.symmetric import KEY_LENGTH
from .errors import (
    AlreadyInitialized,
    InvalidSerializedKey,
    NotInitialized,
    WrapFailure,
)

logger = logging.getLogger("open_e2ee")


# ---------------------------------------------------------------------------
# Value types
# ---------------------------------------------------------------------------

class Uninitialized:
    """State of a manager before ``provision()`` or ``load()``."""

    __slots__ = ()

    def __repr__(self) -> str:
        return "<Uninitialized>"


UNINITIALIZED = Uninitialized()


@dataclass(frozen=True)
class KeyPair:
    """Ready state: usable key handles plus their persisted forms.

    The owner is both sender and recipient of every wrapped key, so wrapping
    and unwrapping always use this pair together.
    """

    private_key: PrivateKey = field(repr=False)
    public_key: PublicKey
    private_key_text: str = field(repr=False)
    public_key_text: str = field(repr=False)

    @property
    def fingerprint(self) -> str:
        return self.public_key.fingerprint

    async def wrap(self, engine: AsymmetricEngine, text: str) -> str:
        return await engine.encrypt_asymmetric(self.private_key, self.public_key, text)

    async def unwrap(self, engine: AsymmetricEngine, wrapped: str) -> str:
        return await engine.decrypt_asymmetric(self.private_key, self.public_key, wrapped)


KeyState = Union[Uninitialized, KeyPair]


@dataclass(frozen=True)
class EncryptedItem:
    """Wrapped key and payload ciphertext; persist both together."""

    encrypted_key: str
    encrypted_value: str
    key_obj: SymmetricKey = field(repr=False, compare=False)


@dataclass(frozen=True)
class PlaintextItem:
    key: str = field(repr=False)
    value: str = field(repr=False)
    key_obj: SymmetricKey = field(repr=False, compare=False)


class UnwrappedKey(NamedTuple):
    key: str
    key_obj: SymmetricKey


@dataclass(frozen=True)
class MasterKeys:
    """Serialized key pair as handed to the caller's storage."""

    private_key: str = ""
    public_key: str = ""

    def as_dict(self) -> dict[str, str]:
        return {"privateKey": self.private_key, "publicKey": self.public_key}

    def to_json(self) -> str:
        return orjson.dumps(self.as_dict()).decode("utf-8")

    @classmethod
    def from_json(cls, data: Union[str, bytes]) -> "MasterKeys":
        """Parse the output of :meth:`to_json`.

        Raises:
            InvalidSerializedKey: If ``data`` is not a master keys document.
        """
        try:
            parsed = orjson.loads(data)
        except orjson.JSONDecodeError as err:
            raise InvalidSerializedKey(f"Malformed master keys: {err}") from err
        if (
            not isinstance(parsed, dict)
            or not isinstance(parsed.get("privateKey"), str)
            or not isinstance(parsed.get("publicKey"), str)
        ):
            raise InvalidSerializedKey("Master keys need privateKey and publicKey strings")
        return cls(private_key=parsed["privateKey"], public_key=parsed["publicKey"])


# ---------------------------------------------------------------------------
# Manager
# ---------------------------------------------------------------------------

class EnvelopeManager:
    """Envelope encryption bound to one user identity and passphrase.

    Lifecycle: ``Uninitialized → KeyPair`` through exactly one call to
    ``provision()`` or ``load()``. Item operations require the ``KeyPair``
    state; after initialization the state is read-only, so ``encrypt`` and
    ``decrypt`` may run concurrently.

    Errors raised by the engines propagate unchanged.
    """

    def __init__(
        self,
        identity: str,
        passphrase: str,
        config: Optional[E2EEConfig] = None,
        symmetric: Optional[SymmetricEngine] = None,
        asymmetric: Optional[AsymmetricEngine] = None,
    ):
        if not isinstance(identity, str) or not identity:
            raise ValueError("Identity must be a non-empty string")
        if not isinstance(passphrase, str) or not passphrase:
            raise ValueError("Passphrase must be a non-empty string")
        self._identity = identity
        self._passphrase = passphrase
        self._config = config or E2EEConfig.from_env()
        self._symmetric = symmetric or SymmetricEngine(self._config)
        self._asymmetric = asymmetric or AsymmetricEngine(self._config)
        self._state: KeyState = UNINITIALIZED

    def __repr__(self) -> str:
        return f"<EnvelopeManager identity={self._identity!r} state={self._state!r}>"

    @property
    def identity(self) -> str:
        return self._identity

    @property
    def ready(self) -> bool:
        return isinstance(self._state, KeyPair)

    @property
    def fingerprint(self) -> Optional[str]:
        if isinstance(self._state, KeyPair):
            return self._state.fingerprint
        return None

    def _ready(self) -> KeyPair:
        if not isinstance(self._state, KeyPair):
            raise NotInitialized(
                "Key pair not available: call provision() or load() first"
            )
        return self._state

    def _ensure_uninitialized(self) -> None:
        if isinstance(self._state, KeyPair):
            raise AlreadyInitialized(
                f"Key pair already set for identity {self._identity!r}"
            )

    # ------------------------------------------------------------------
    # Key-pair lifecycle
    # ------------------------------------------------------------------

    async def provision(self) -> "EnvelopeManager":
        """Generate a new key pair for this identity and passphrase.

        The fresh private key is opened with the passphrase before it is
        accepted, so a pair that cannot be reloaded is never stored.

        Returns:
            This manager, ready for item operations.

        Raises:
            AlreadyInitialized: If the manager already holds a key pair.
            KeyGenerationFailure: If key generation fails.
        """
        self._ensure_uninitialized()
        serialized = await self._asymmetric.generate_key_pair(
            self._passphrase, self._identity,
        )
        private_key, public_key = await asyncio.gather(
            self._asymmetric.decrypt_private_key(serialized.private_key, self._passphrase),
            self._asymmetric.read_public_key(serialized.public_key),
        )
        self._set_key_pair(
            private_key, public_key, serialized.private_key, serialized.public_key,
        )
        logger.info(
            "Key pair provisioned: identity=%s fingerprint=%s",
            self._identity, public_key.fingerprint,
        )
        return self

    async def load(self, encrypted_private_key: str, public_key: str) -> "EnvelopeManager":
        """Load a persisted key pair, opening the private key with the passphrase.

        The serialized forms are kept verbatim for ``export_master_keys()``.

        Args:
            encrypted_private_key: Passphrase-encrypted private key text.
            public_key: Public key text.

        Returns:
            This manager, ready for item operations.

        Raises:
            AlreadyInitialized: If the manager already holds a key pair.
            PassphraseMismatch: If the passphrase does not open the private key.
            InvalidSerializedKey: If either form is malformed, the two keys do
                not belong together, or they are bound to another identity.

        A pair generated for a different identity is refused even when the
        passphrase opens it: the identity given to this manager must be the
        one bound into the key pair at generation time.
        """
        self._ensure_uninitialized()
        private_obj, public_obj = await asyncio.gather(
            self._asymmetric.decrypt_private_key(encrypted_private_key, self._passphrase),
            self._asymmetric.read_public_key(public_key),
        )
        if private_obj.fingerprint != public_obj.fingerprint:
            raise InvalidSerializedKey("Private and public key do not form a pair")
        if private_obj.identity != self._identity or public_obj.identity != self._identity:
            raise InvalidSerializedKey(
                f"Key pair is bound to identity {public_obj.identity!r}, "
                f"not {self._identity!r}"
            )
        self._set_key_pair(private_obj, public_obj, encrypted_private_key, public_key)
        logger.info(
            "Key pair loaded: identity=%s fingerprint=%s",
            self._identity, public_obj.fingerprint,
        )
        return self

    def _set_key_pair(
        self,
        private_key: PrivateKey,
        public_key: PublicKey,
        private_key_text: str,
        public_key_text: str,
    ) -> None:
        # a concurrent provision()/load() may have finished first
        self._ensure_uninitialized()
        self._state = KeyPair(
            private_key=private_key,
            public_key=public_key,
            private_key_text=private_key_text,
            public_key_text=public_key_text,
        )

    def export_master_keys(self) -> MasterKeys:
        """Return the serialized key pair; empty strings before initialization."""
        if isinstance(self._state, KeyPair):
            return MasterKeys(
                private_key=self._state.private_key_text,
                public_key=self._state.public_key_text,
            )
        return MasterKeys()

    # ------------------------------------------------------------------
    # Item keys
    # ------------------------------------------------------------------

    async def encrypt_key(self, key: bytes) -> str:
        """Wrap raw item key bytes under this manager's key pair.

        Raises:
            NotInitialized: Before ``provision()``/``load()``.
            WrapFailure: If ``key`` is not a 32-byte item key.
        """
        pair = self._ready()
        if len(key) != KEY_LENGTH:
            raise WrapFailure(
                f"Item key must be {KEY_LENGTH} bytes, got {len(key)}"
            )
        return await pair.wrap(self._asymmetric, bytes_to_hex(key))

    async def decrypt_key(self, encrypted_key: str) -> UnwrappedKey:
        """Unwrap an item key.

        Returns:
            The hex key text and a usable key handle.

        Raises:
            NotInitialized: Before ``provision()``/``load()``.
            UnwrapFailure: If the wrapped key is foreign, tampered or malformed.
        """
        pair = self._ready()
        key = await pair.unwrap(self._asymmetric, encrypted_key)
        key_obj = await self._symmetric.import_symmetric_key(hex_to_bytes(key))
        return UnwrappedKey(key, key_obj)

    # ------------------------------------------------------------------
    # Items
    # ------------------------------------------------------------------

    async def encrypt(self, plaintext: str) -> EncryptedItem:
        """Encrypt an item under a fresh key and wrap that key.

        Args:
            plaintext: Value to encrypt.

        Returns:
            EncryptedItem with the wrapped key, the payload ciphertext and the
            usable key handle.
        """
        if not isinstance(plaintext, str):
            raise TypeError(f"plaintext must be str, not {type(plaintext).__name__}")
        self._ready()
        key, key_obj = await self._symmetric.create_encryption_key()
        encrypted_key, encrypted_value = await asyncio.gather(
            self.encrypt_key(key),
            self._symmetric.encrypt(bytes_to_hex(key), plaintext),
        )
        logger.debug("Item encrypted: identity=%s", self._identity)
        return EncryptedItem(
            encrypted_key=encrypted_key,
            encrypted_value=encrypted_value,
            key_obj=key_obj,
        )

    async def decrypt(self, encrypted_key: str, encrypted_value: str) -> PlaintextItem:
        """Unwrap the item key and decrypt the payload with it.

        Raises:
            NotInitialized: Before ``provision()``/``load()``.
            UnwrapFailure: If the wrapped key is rejected.
            PayloadDecryptionFailure: If the payload is rejected.
        """
        self._ready()
        key, key_obj = await self.decrypt_key(encrypted_key)
        value = await self._symmetric.decrypt(key, encrypted_value)
        logger.debug("Item decrypted: identity=%s", self._identity)
        return PlaintextItem(key=key, value=value, key_obj=key_obj)

    # ------------------------------------------------------------------
    # Factory
    # ------------------------------------------------------------------

    @classmethod
    async def from_master_keys(
        cls,
        identity: str,
        passphrase: str,
        master_keys: MasterKeys,
        config: Optional[E2EEConfig] = None,
        symmetric: Optional[SymmetricEngine] = None,
        asymmetric: Optional[AsymmetricEngine] = None,
    ) -> "EnvelopeManager":
        """Build a manager and load a persisted key pair into it.

        This is the constructor used when an existing user resumes a session.
        """
        manager = cls(
            identity, passphrase,
            config=config, symmetric=symmetric, asymmetric=asymmetric,
        )
        return await manager.load(master_keys.private_key, master_keys.public_key)
