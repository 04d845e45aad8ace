"""Keyring error taxonomy.

Device failures are surfaced as-is and never retried internally.
"""


class KeyringError(Exception):
    """Base class for keyring errors."""
    pass


class UnsupportedPathError(KeyringError):
    """Raised when setting an HD base path outside the allow-list."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"The set_hd_path method does not support setting HD Path to {path}")


class DeviceError(KeyringError):
    """Raised when the signing bridge reports a failure or raises."""

    def __init__(self, message: str = ""):
        super().__init__(message or "Unknown error")


class KeyNotUnlockedError(KeyringError):
    """Raised when deriving from a public key that has not been fetched."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Public key for {path} is not unlocked")


class SignatureAddressMismatchError(KeyringError):
    """Raised when a signature recovers to a different address."""

    def __init__(self, expected: str, actual: str):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"signature doesn't match the right address: expected {expected}, got {actual}"
        )


class UnknownAddressError(KeyringError):
    """Raised when an address cannot be resolved to a derivation index."""

    def __init__(self, address: str):
        self.address = address
        super().__init__(f"Unknown address {address}")


class AddressNotFoundError(KeyringError):
    """Raised when removing an address the keyring does not hold."""

    def __init__(self, address: str):
        self.address = address
        super().__init__(f"Address {address} not found in this keyring")


class NotSupportedError(KeyringError):
    """Raised for operations hardware devices refuse by design."""
    pass
