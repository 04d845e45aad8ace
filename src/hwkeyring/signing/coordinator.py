"""Signing coordinator.

Every operation follows the same flow:
1. Resolve the derivation path of the requested address
2. Send the request to the bridge under the device lock
3. Recover the signer from the returned signature
4. Reject the result unless it matches the requested address

Step 4 guards against a confused device state or a stale cached path.
"""

import logging
from typing import Awaitable, Callable

from eth_account import Account
from eth_account.messages import encode_defunct
from eth_utils import add_0x_prefix, remove_0x_prefix, to_checksum_address

from hwkeyring.bridge.base import SigningBridge, call_device
from hwkeyring.exceptions import SignatureAddressMismatchError
from hwkeyring.signing.transactions import (
    LegacyTxRecord,
    ModernTxRecord,
    TxRecord,
    parse_signature_part,
    recover_sender,
)
from hwkeyring.signing.typed_data import transform_typed_data
from hwkeyring.utils.locks import DeviceLock

logger = logging.getLogger(__name__)

PathResolver = Callable[[str], Awaitable[str]]


def _check_signer(expected: str, actual: str) -> None:
    expected_checksum = to_checksum_address(expected)
    actual_checksum = to_checksum_address(actual)
    if expected_checksum.lower() != actual_checksum.lower():
        logger.error(f"Signature recovered {actual_checksum}, expected {expected_checksum}")
        raise SignatureAddressMismatchError(expected_checksum, actual_checksum)


class SigningCoordinator:
    """Routes signing requests for keyring accounts to the bridge."""

    def __init__(self, bridge: SigningBridge, device_lock: DeviceLock, resolve_path: PathResolver):
        """Initialize coordinator.

        Args:
            bridge: Device bridge performing the signatures
            device_lock: Lock shared with every other request to the device
            resolve_path: Coroutine mapping an address to its derivation path
        """
        self.bridge = bridge
        self.device_lock = device_lock
        self.resolve_path = resolve_path

    async def sign_transaction(self, address: str, tx: TxRecord) -> TxRecord:
        """Sign a transaction, returning a record of the same shape.

        LegacyTxRecord is signed in place; ModernTxRecord is immutable, so
        a new signed record is returned.

        Raises:
            DeviceError: If the device rejects the request
            SignatureAddressMismatchError: If the signer is not `address`
        """
        if isinstance(tx, LegacyTxRecord):
            shape = "legacy"
        elif isinstance(tx, ModernTxRecord):
            shape = f"type-{tx.tx_type}"
        else:
            raise TypeError(f"Unsupported transaction record {type(tx).__name__}")

        record = tx.to_bridge_record()
        path = await self.resolve_path(address)
        logger.info(f"Signing {shape} transaction for {address} at {path} (chain {record['chainId']})")

        payload = await call_device(
            self.device_lock,
            "sign_transaction",
            lambda: self.bridge.ethereum_sign_transaction(path, record),
        )

        signed = tx.with_signature(
            parse_signature_part(payload["v"]),
            parse_signature_part(payload["r"]),
            parse_signature_part(payload["s"]),
        )
        _check_signer(address, recover_sender(signed))
        return signed

    async def sign_personal_message(self, address: str, message: str) -> str:
        """Sign an EIP-191 personal message given as hex.

        Returns:
            0x-prefixed signature
        """
        message_hex = remove_0x_prefix(message)
        path = await self.resolve_path(address)
        logger.info(f"Signing personal message for {address} at {path}")

        payload = await call_device(
            self.device_lock,
            "sign_personal_message",
            lambda: self.bridge.ethereum_sign_message(path, message_hex, hex=True),
        )

        signature = add_0x_prefix(payload["signature"])
        recovered = Account.recover_message(encode_defunct(hexstr=message_hex), signature=signature)
        _check_signer(address, recovered)
        return signature

    async def sign_typed_data(self, address: str, data: dict, version: str = "V4") -> str:
        """Sign EIP-712 typed data.

        Args:
            address: Signing account
            data: Typed data (types, primaryType, domain, message)
            version: "V3" or "V4"

        Returns:
            0x-prefixed signature
        """
        request = transform_typed_data(data, version)
        path = await self.resolve_path(address)
        logger.info(f"Signing typed data ({version}, {request.data['primaryType']}) for {address} at {path}")

        payload = await call_device(
            self.device_lock,
            "sign_typed_data",
            lambda: self.bridge.ethereum_sign_typed_data(
                path,
                request.data,
                metamask_v4_compat=request.metamask_v4_compat,
                domain_separator_hash=request.domain_separator_hash,
                message_hash=request.message_hash,
            ),
        )

        signature = add_0x_prefix(payload["signature"])
        recovered = Account.recover_message(request.signable, signature=signature)
        _check_signer(address, recovered)
        return signature
