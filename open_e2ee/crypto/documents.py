"""
Serialized key documents.

Both halves of a key pair leave the process as base64 text wrapping an orjson
document. The public document carries the DER public key; the private document
carries the PKCS8 private key sealed under a passphrase-derived key.
"""
from typing import Literal, Union

import orjson
from pydantic import BaseModel, Field, ValidationError

from ..config import MIN_KDF_ITERATIONS, MAX_KDF_ITERATIONS, CIPHER_BACKENDS
from ..encoding import b64d, b64e
from ..errors import InvalidSerializedKey

DOCUMENT_VERSION = 1
KEY_ALGORITHM = "rsa"
KDF_ALGORITHM = "pbkdf2-sha256"


def key_binding(identity: str, fingerprint: str) -> bytes:
    """Associated data binding a sealed private key to its identity and fingerprint."""
    return f"{identity}|{fingerprint}".encode("utf-8")


class PublicKeyDocument(BaseModel):
    """Serialized public key, safe to persist and share."""

    v: Literal[1] = DOCUMENT_VERSION
    kind: Literal["public"] = "public"
    identity: str = Field(min_length=1)
    fingerprint: str = Field(pattern=r"^[0-9a-f]{64}$")
    algorithm: Literal["rsa"] = KEY_ALGORITHM
    key: str = Field(min_length=1)  # base64 DER SubjectPublicKeyInfo

    model_config = {"frozen": True, "extra": "forbid"}


class PrivateKeyDocument(BaseModel):
    """Passphrase-encrypted private key, safe to persist."""

    v: Literal[1] = DOCUMENT_VERSION
    kind: Literal["private"] = "private"
    identity: str = Field(min_length=1)
    fingerprint: str = Field(pattern=r"^[0-9a-f]{64}$")
    algorithm: Literal["rsa"] = KEY_ALGORITHM
    kdf: Literal["pbkdf2-sha256"] = KDF_ALGORITHM
    iterations: int = Field(ge=MIN_KDF_ITERATIONS, le=MAX_KDF_ITERATIONS)
    salt: str = Field(min_length=1)
    cipher: str
    nonce: str = Field(min_length=1)
    key: str = Field(min_length=1)  # base64 AEAD(PKCS8 DER)

    model_config = {"frozen": True, "extra": "forbid"}

    def associated_data(self) -> bytes:
        return key_binding(self.identity, self.fingerprint)


KeyDocument = Union[PublicKeyDocument, PrivateKeyDocument]


def dump_document(document: KeyDocument) -> str:
    return b64e(orjson.dumps(document.model_dump()))


def _load(text: str, model: type) -> KeyDocument:
    if not isinstance(text, str) or not text:
        raise InvalidSerializedKey("Serialized key must be a non-empty string")
    try:
        payload = orjson.loads(b64d(text))
    except ValueError as err:  # orjson.JSONDecodeError is a ValueError
        raise InvalidSerializedKey(f"Malformed serialized key: {err}") from err
    if not isinstance(payload, dict):
        raise InvalidSerializedKey("Serialized key is not a key document")
    try:
        return model.model_validate(payload)
    except ValidationError as err:
        raise InvalidSerializedKey(
            f"Invalid {model.__name__}: {err.error_count()} error(s)"
        ) from err


def load_public_document(text: str) -> PublicKeyDocument:
    """Parse a serialized public key.

    Raises:
        InvalidSerializedKey: If the text is not a valid public key document.
    """
    return _load(text, PublicKeyDocument)


def load_private_document(text: str) -> PrivateKeyDocument:
    """Parse a serialized, passphrase-encrypted private key.

    Raises:
        InvalidSerializedKey: If the text is not a valid private key document.
    """
    document = _load(text, PrivateKeyDocument)
    if document.cipher not in CIPHER_BACKENDS:
        raise InvalidSerializedKey(f"Unsupported key cipher: {document.cipher}")
    return document
