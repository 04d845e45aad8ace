"""Utility modules."""

from hwkeyring.utils.locks import DeviceLock, LockTimeoutError

__all__ = ["DeviceLock", "LockTimeoutError"]
