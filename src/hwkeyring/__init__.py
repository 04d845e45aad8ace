"""Hardware wallet keyring for EVM accounts.

Maps checksummed addresses to HD derivation paths on a hardware signing
device and routes signing requests through a bridge so keys never leave
the device.
"""

from hwkeyring.exceptions import (
    AddressNotFoundError,
    DeviceError,
    KeyNotUnlockedError,
    KeyringError,
    NotSupportedError,
    SignatureAddressMismatchError,
    UnknownAddressError,
    UnsupportedPathError,
)
from hwkeyring.keyring import HardwareKeyring, UnlockResult
from hwkeyring.paths import HD_PATH_BASE, PathType

__version__ = "0.1.0"

__all__ = [
    "HardwareKeyring",
    "UnlockResult",
    "PathType",
    "HD_PATH_BASE",
    "KeyringError",
    "UnsupportedPathError",
    "DeviceError",
    "KeyNotUnlockedError",
    "SignatureAddressMismatchError",
    "UnknownAddressError",
    "AddressNotFoundError",
    "NotSupportedError",
]
