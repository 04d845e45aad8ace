"""Pytest configuration and fixtures."""

import os

import pytest
from bip_utils import Bip32Secp256k1, Bip39SeedGenerator, EthAddrEncoder

# Set test environment
os.environ["HWKEYRING_DEVICE_SEED_PHRASE"] = ""
os.environ["HWKEYRING_DEVICE_LOCK_TIMEOUT"] = "5"

from hwkeyring.bridge.software import SoftwareBridge
from hwkeyring.config import Settings, get_settings
from hwkeyring.keyring import HardwareKeyring

from _keyring_test_helpers import TEST_MNEMONIC


@pytest.fixture(autouse=True)
def clear_settings_cache():
    """Reload settings for every test."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(scope="session")
def master_key():
    """Master BIP32 key for the test mnemonic."""
    return Bip32Secp256k1.FromSeed(Bip39SeedGenerator(TEST_MNEMONIC).Generate())


@pytest.fixture(scope="session")
def address_at(master_key):
    """Derive the address at a full path, independently of the keyring."""
    def _address_at(path: str) -> str:
        pubkey = master_key.DerivePath(path).PublicKey().RawUncompressed().ToBytes()
        return EthAddrEncoder.EncodeKey(pubkey)

    return _address_at


@pytest.fixture
def settings() -> Settings:
    """Settings with a short scan bound to keep fallback scans fast."""
    return Settings(max_index=50, device_lock_timeout=5)


@pytest.fixture
def bridge() -> SoftwareBridge:
    """Software bridge with one connected device."""
    bridge = SoftwareBridge(mnemonic=TEST_MNEMONIC)
    bridge.connect()
    return bridge


@pytest.fixture
def keyring(bridge: SoftwareBridge, settings: Settings) -> HardwareKeyring:
    """Keyring with a fresh session on BIP44."""
    return HardwareKeyring(bridge, settings=settings)
