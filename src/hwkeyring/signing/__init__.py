"""Signing coordination.

Builds device-agnostic requests for transactions, personal messages and
EIP-712 typed data, delegates them to the bridge and checks that every
returned signature recovers to the requested address.
"""

from hwkeyring.signing.coordinator import SigningCoordinator
from hwkeyring.signing.transactions import LegacyTxRecord, ModernTxRecord, TxRecord, recover_sender
from hwkeyring.signing.typed_data import TypedDataRequest, transform_typed_data

__all__ = [
    "SigningCoordinator",
    "LegacyTxRecord",
    "ModernTxRecord",
    "TxRecord",
    "recover_sender",
    "TypedDataRequest",
    "transform_typed_data",
]
