"""Hex and base64 helpers used to move key bytes across text-only interfaces."""
import base64
import binascii

from .errors import InvalidSerializedKey


def bytes_to_hex(data: bytes) -> str:
    return binascii.hexlify(data).decode("ascii")


def hex_to_bytes(text: str) -> bytes:
    """Decode hex text back into raw bytes.

    Raises:
        InvalidSerializedKey: If ``text`` is not valid hex.
    """
    try:
        return binascii.unhexlify(text.strip())
    except (binascii.Error, ValueError) as err:
        raise InvalidSerializedKey(f"Invalid hex key text: {err}") from err


def b64e(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def b64d(text: str) -> bytes:
    """Strict base64 decode.

    Rejects characters outside the alphabet and non-canonical encodings
    (padding bits set), so every accepted text maps to exactly one byte string.

    Raises:
        ValueError: If ``text`` is not canonical base64.
    """
    try:
        raw = text.encode("ascii")
        data = base64.b64decode(raw, validate=True)
    except (binascii.Error, UnicodeEncodeError) as err:
        raise ValueError(f"Invalid base64 text: {err}") from err
    if base64.b64encode(data) != raw:
        raise ValueError("Non-canonical base64 text")
    return data
