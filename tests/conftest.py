"""Shared fixtures for vault tests."""
import pytest

from offpass.config import VaultConfig
from offpass.service import VaultService
from offpass.storage import MemoryStore

# Low round count keeps the suite fast; protocol tests use the real default.
FAST_ITERATIONS = 1000


@pytest.fixture
def config():
    return VaultConfig(pbkdf2_iterations=FAST_ITERATIONS)


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def service(store, config):
    return VaultService(store, config)
