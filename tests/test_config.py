"""Tests for E2EEConfig."""
import pytest
from pydantic import ValidationError

from open_e2ee import E2EEConfig


@pytest.fixture
def clean_env(monkeypatch):
    for name in ("E2EE_CIPHER_BACKEND", "E2EE_RSA_KEY_SIZE", "E2EE_KDF_ITERATIONS"):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestE2EEConfig:

    def test_defaults(self):
        config = E2EEConfig()
        assert config.cipher_backend == "aesgcm"
        assert config.rsa_key_size == 3072
        assert config.kdf_iterations == 600_000

    def test_backend_is_normalized(self):
        assert E2EEConfig(cipher_backend="ChaCha20").cipher_backend == "chacha20"

    def test_invalid_backend(self):
        with pytest.raises(ValidationError):
            E2EEConfig(cipher_backend="des")

    @pytest.mark.parametrize("size", [512, 1024, 2000, 8192])
    def test_invalid_key_size(self, size):
        with pytest.raises(ValidationError):
            E2EEConfig(rsa_key_size=size)

    @pytest.mark.parametrize("iterations", [0, 999, 10_000_001])
    def test_invalid_iterations(self, iterations):
        with pytest.raises(ValidationError):
            E2EEConfig(kdf_iterations=iterations)

    def test_frozen(self):
        config = E2EEConfig()
        with pytest.raises(ValidationError):
            config.cipher_backend = "chacha20"


class TestFromEnv:

    def test_defaults_without_env(self, clean_env):
        assert E2EEConfig.from_env() == E2EEConfig()

    def test_reads_env(self, clean_env):
        clean_env.setenv("E2EE_CIPHER_BACKEND", "chacha20")
        clean_env.setenv("E2EE_RSA_KEY_SIZE", "4096")
        clean_env.setenv("E2EE_KDF_ITERATIONS", "200000")
        config = E2EEConfig.from_env()
        assert config.cipher_backend == "chacha20"
        assert config.rsa_key_size == 4096
        assert config.kdf_iterations == 200_000

    def test_invalid_env(self, clean_env):
        clean_env.setenv("E2EE_RSA_KEY_SIZE", "big")
        with pytest.raises(ValidationError):
            E2EEConfig.from_env()
