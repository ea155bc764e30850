"""
E2EE Configuration — Validated engine settings.

Reads optional overrides from environment variables:
    E2EE_CIPHER_BACKEND = aesgcm | chacha20
    E2EE_RSA_KEY_SIZE = 2048 | 3072 | 4096
    E2EE_KDF_ITERATIONS = <integer>

Security Note:
    Passphrases and keys are never part of the configuration.
"""
import os
import logging

from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger("open_e2ee")

DEFAULT_CIPHER_BACKEND = "aesgcm"
DEFAULT_RSA_KEY_SIZE = 3072
DEFAULT_KDF_ITERATIONS = 600_000

MIN_KDF_ITERATIONS = 1_000
MAX_KDF_ITERATIONS = 10_000_000

CIPHER_BACKENDS = ("aesgcm", "chacha20")
RSA_KEY_SIZES = (2048, 3072, 4096)


class E2EEConfig(BaseModel):
    """Validated envelope encryption configuration."""

    cipher_backend: str = Field(default=DEFAULT_CIPHER_BACKEND)
    rsa_key_size: int = Field(default=DEFAULT_RSA_KEY_SIZE)
    kdf_iterations: int = Field(
        default=DEFAULT_KDF_ITERATIONS,
        ge=MIN_KDF_ITERATIONS,
        le=MAX_KDF_ITERATIONS,
    )

    model_config = {"frozen": True}

    @field_validator("cipher_backend")
    @classmethod
    def validate_cipher(cls, v: str) -> str:
        """Validate cipher backend is supported."""
        v = v.lower()
        if v not in CIPHER_BACKENDS:
            raise ValueError(f"Unsupported cipher backend: {v}")
        return v

    @field_validator("rsa_key_size")
    @classmethod
    def validate_key_size(cls, v: int) -> int:
        """Validate RSA modulus size."""
        if v not in RSA_KEY_SIZES:
            raise ValueError(
                f"Unsupported RSA key size: {v} (allowed: {RSA_KEY_SIZES})"
            )
        return v

    @classmethod
    def from_env(cls) -> "E2EEConfig":
        """Create E2EEConfig from environment, falling back to defaults.

        Returns:
            Populated E2EEConfig instance.

        Raises:
            pydantic.ValidationError: If an environment value is invalid.
        """
        config = cls(
            cipher_backend=os.environ.get(
                "E2EE_CIPHER_BACKEND", DEFAULT_CIPHER_BACKEND
            ),
            rsa_key_size=os.environ.get(
                "E2EE_RSA_KEY_SIZE", DEFAULT_RSA_KEY_SIZE
            ),
            kdf_iterations=os.environ.get(
                "E2EE_KDF_ITERATIONS", DEFAULT_KDF_ITERATIONS
            ),
        )
        logger.debug(
            "E2EE config: cipher=%s rsa=%d kdf_iterations=%d",
            config.cipher_backend, config.rsa_key_size, config.kdf_iterations,
        )
        return config
