import pytest
import pytest_asyncio

from open_e2ee import E2EEConfig, EnvelopeManager
from open_e2ee.crypto import AsymmetricEngine, SymmetricEngine


IDENTITY = "user-1"
PASSPHRASE = "correct-horse"


def flip(text: str, index: int) -> str:
    """Replace one character of ``text`` with a different base64 character."""
    replacement = "A" if text[index] != "A" else "B"
    return text[:index] + replacement + text[index + 1:]


@pytest.fixture
def config():
    """Fast configuration for tests."""
    return E2EEConfig(rsa_key_size=2048, kdf_iterations=1000)


@pytest.fixture
def symmetric(config):
    return SymmetricEngine(config)


@pytest.fixture
def asymmetric(config):
    return AsymmetricEngine(config)


@pytest_asyncio.fixture
async def manager(config):
    """A provisioned manager for user-1."""
    return await EnvelopeManager(IDENTITY, PASSPHRASE, config=config).provision()
