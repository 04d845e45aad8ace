"""Base interface for signing bridges.

Signing flow:
1. Keyring resolves the derivation path for the requested address
2. Bridge forwards the request to the device, which may prompt the user
3. Device returns a signature (never key material)
4. Keyring recovers the signer and checks it against the address
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from hwkeyring.exceptions import DeviceError, KeyringError
from hwkeyring.utils.locks import DeviceLock

logger = logging.getLogger(__name__)

CleanUpCallback = Callable[[bool], None]


@dataclass
class BridgeResponse:
    """Result of a bridge call.

    Attributes:
        success: Whether the device completed the request
        payload: Request-specific result (see SigningBridge methods)
        error: Error message if the request failed
    """
    success: bool
    payload: Any = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, payload: Any) -> "BridgeResponse":
        return cls(success=True, payload=payload)

    @classmethod
    def fail(cls, error: Optional[str] = None) -> "BridgeResponse":
        return cls(success=False, error=error)


class SigningBridge(ABC):
    """Abstract base class for device bridges.

    Implementations must never expose private keys. Device connect and
    disconnect events are reported to subscribers as clean-up requests.

    Attributes:
        model: Device model, empty until the device reports its features
        connected_devices: Ids of devices currently attached
    """

    def __init__(self):
        self.model: str = ""
        self.connected_devices: set[str] = set()
        self._subscribers: list[CleanUpCallback] = []

    def subscribe(self, callback: CleanUpCallback) -> None:
        """Register a clean-up callback, called with force=True on device events."""
        self._subscribers.append(callback)

    def unsubscribe(self, callback: CleanUpCallback) -> None:
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    def emit_clean_up(self, force: bool = True) -> None:
        for callback in list(self._subscribers):
            callback(force)

    @abstractmethod
    async def init(self, config: dict) -> None:
        """Set up the device session. Calling it twice must be harmless."""
        pass

    @abstractmethod
    async def dispose(self) -> None:
        """Tear down session resources."""
        pass

    @abstractmethod
    async def get_public_key(self, bundle: list[dict]) -> BridgeResponse:
        """Fetch extended public keys.

        Args:
            bundle: [{"path": str, "coin": "ETH"}, ...], fetched atomically

        Returns:
            BridgeResponse with payload [{"path", "public_key", "chain_code"}, ...]
        """
        pass

    @abstractmethod
    async def ethereum_sign_transaction(self, path: str, transaction: dict) -> BridgeResponse:
        """Sign a transaction record.

        Args:
            path: Derivation path of the signing key
            transaction: Hex-quantity transaction record with integer chainId

        Returns:
            BridgeResponse with payload {"v", "r", "s"} as hex strings
        """
        pass

    @abstractmethod
    async def ethereum_sign_message(self, path: str, message: str, hex: bool = True) -> BridgeResponse:
        """Sign an EIP-191 personal message.

        Returns:
            BridgeResponse with payload {"address", "signature"}
        """
        pass

    @abstractmethod
    async def ethereum_sign_typed_data(
        self,
        path: str,
        data: dict,
        metamask_v4_compat: bool,
        domain_separator_hash: Optional[str] = None,
        message_hash: Optional[str] = None,
    ) -> BridgeResponse:
        """Sign EIP-712 typed data.

        Devices that cannot parse structured data sign the two hashes.

        Returns:
            BridgeResponse with payload {"address", "signature"}
        """
        pass

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(model={self.model or 'unknown'})"


async def call_device(
    device_lock: DeviceLock,
    operation: str,
    call: Callable[[], Awaitable[BridgeResponse]],
) -> Any:
    """Run one bridge request under the device lock and unwrap its payload.

    Args:
        device_lock: Lock serializing requests to the device
        operation: Operation name for logging
        call: Zero-argument coroutine function performing the bridge call

    Returns:
        The response payload

    Raises:
        DeviceError: If the bridge raised or reported failure
    """
    async with device_lock.hold(operation):
        try:
            response = await call()
        except KeyringError:
            raise
        except Exception as e:
            logger.error(f"Bridge {operation} failed: {e}")
            raise DeviceError(str(e))

    if not response.success:
        logger.error(f"Device rejected {operation}: {response.error or 'Unknown error'}")
        raise DeviceError(response.error or "Unknown error")

    return response.payload
