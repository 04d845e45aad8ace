"""Concurrency control for device requests.

A hardware device processes one interactive request at a time, so every
bridge call made by a keyring is serialized through its DeviceLock.
"""

import asyncio
import logging
from typing import Optional

from hwkeyring.exceptions import KeyringError

logger = logging.getLogger(__name__)


class LockTimeoutError(KeyringError):
    """Raised when the device lock cannot be acquired within the timeout period."""

    pass


class DeviceLock:
    """Async context manager granting exclusive access to the device.

    Example:
        lock = DeviceLock(timeout=30.0)
        async with lock.hold("sign_transaction"):
            response = await bridge.ethereum_sign_transaction(...)
    """

    def __init__(self, timeout: Optional[float] = None):
        """Initialize the lock.

        Args:
            timeout: Maximum time to wait for the device (None = wait forever)
        """
        self.timeout = timeout
        self._lock = asyncio.Lock()

    def locked(self) -> bool:
        return self._lock.locked()

    def hold(self, operation: str = "device_request") -> "_DeviceLockContext":
        return _DeviceLockContext(self, operation)


class _DeviceLockContext:
    def __init__(self, device_lock: DeviceLock, operation: str):
        self._device_lock = device_lock
        self.operation = operation
        self._acquired = False

    async def __aenter__(self) -> "_DeviceLockContext":
        lock = self._device_lock._lock
        timeout = self._device_lock.timeout

        try:
            if timeout:
                self._acquired = await asyncio.wait_for(lock.acquire(), timeout=timeout)
            else:
                await lock.acquire()
                self._acquired = True

            logger.debug(f"Device lock acquired: {self.operation}")
            return self

        except asyncio.TimeoutError:
            logger.warning(f"Device lock timeout after {timeout}s: {self.operation}")
            raise LockTimeoutError(
                f"Could not acquire device lock within {timeout}s for {self.operation}"
            )

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self._acquired:
            self._device_lock._lock.release()
            self._acquired = False
            logger.debug(f"Device lock released: {self.operation}")
        return False
