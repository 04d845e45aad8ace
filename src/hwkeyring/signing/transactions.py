"""Transaction records exchanged with the signing coordinator.

Two shapes are accepted, mirroring the two generations of transaction
objects wallets hand to a keyring:

- LegacyTxRecord: mutable, pre-EIP-2718. The chain id travels on the
  record itself and the signature is written back onto the same object.
- ModernTxRecord: immutable, typed (0 legacy, 1 access list, 2 dynamic fee).
  Signing returns a new record of the same type.

Both normalize to the bridge record: hex quantities plus an integer chainId.
"""

from dataclasses import dataclass, field, replace
from typing import Optional, Union

import rlp
from eth_account import Account
from eth_utils import add_0x_prefix, to_bytes, to_checksum_address, to_hex, to_int

ACCESS_LIST_TX_TYPE = 1
DYNAMIC_FEE_TX_TYPE = 2


def _normalize(value: Union[int, bytes, str, None]) -> str:
    """Hex-encode a quantity or byte string ("0x" for empty)."""
    if value is None:
        return "0x"
    if isinstance(value, str):
        return add_0x_prefix(value)
    return to_hex(value)


def _normalize_to(to: Optional[str]) -> str:
    if not to or to == "0x":
        return "0x"
    return add_0x_prefix(to).lower()


def parse_signature_part(value: Union[int, str]) -> int:
    """Parse a v/r/s component as reported by the device (hex, prefix optional)."""
    if isinstance(value, int):
        return value
    return to_int(hexstr=add_0x_prefix(value))


@dataclass
class LegacyTxRecord:
    """Old-style mutable transaction with an explicit chain id."""
    nonce: int = 0
    gas_price: int = 0
    gas_limit: int = 21000
    to: Optional[str] = None
    value: int = 0
    data: bytes = b""
    chain_id: int = 1
    v: Optional[int] = None
    r: Optional[int] = None
    s: Optional[int] = None

    def to_bridge_record(self) -> dict:
        return {
            "to": _normalize_to(self.to),
            "value": _normalize(self.value),
            "data": _normalize(self.data),
            "chainId": self.chain_id,
            "nonce": _normalize(self.nonce),
            "gasLimit": _normalize(self.gas_limit),
            "gasPrice": _normalize(self.gas_price),
        }

    def with_signature(self, v: int, r: int, s: int) -> "LegacyTxRecord":
        """Write the signature onto this record and return it."""
        self.v, self.r, self.s = v, r, s
        return self

    @property
    def is_signed(self) -> bool:
        return self.v is not None and self.r is not None and self.s is not None


@dataclass(frozen=True)
class ModernTxRecord:
    """Immutable typed transaction."""
    tx_type: int = DYNAMIC_FEE_TX_TYPE
    chain_id: int = 1
    nonce: int = 0
    gas_limit: int = 21000
    to: Optional[str] = None
    value: int = 0
    data: bytes = b""
    gas_price: Optional[int] = None
    max_fee_per_gas: Optional[int] = None
    max_priority_fee_per_gas: Optional[int] = None
    access_list: tuple = field(default_factory=tuple)
    v: Optional[int] = None
    r: Optional[int] = None
    s: Optional[int] = None

    def to_json(self) -> dict:
        """Hex-quantity view of the unsigned fields."""
        data = {
            "nonce": _normalize(self.nonce),
            "gasLimit": _normalize(self.gas_limit),
            "to": _normalize_to(self.to),
            "value": _normalize(self.value),
            "data": _normalize(self.data),
        }
        if self.tx_type == DYNAMIC_FEE_TX_TYPE:
            data["maxFeePerGas"] = _normalize(self.max_fee_per_gas or 0)
            data["maxPriorityFeePerGas"] = _normalize(self.max_priority_fee_per_gas or 0)
        else:
            data["gasPrice"] = _normalize(self.gas_price or 0)
        if self.tx_type in (ACCESS_LIST_TX_TYPE, DYNAMIC_FEE_TX_TYPE):
            data["type"] = _normalize(self.tx_type)
            data["accessList"] = [
                {
                    "address": item["address"],
                    "storageKeys": list(item.get("storageKeys", [])),
                }
                for item in self.access_list
            ]
        return data

    def to_bridge_record(self) -> dict:
        return {**self.to_json(), "chainId": self.chain_id}

    def with_signature(self, v: int, r: int, s: int) -> "ModernTxRecord":
        """Return a signed copy of this record."""
        return replace(self, v=v, r=r, s=s)

    @property
    def is_signed(self) -> bool:
        return self.v is not None and self.r is not None and self.s is not None


TxRecord = Union[LegacyTxRecord, ModernTxRecord]


def bridge_record_to_transaction_dict(record: dict) -> dict:
    """Convert a bridge record into the dict eth-account serializes.

    Args:
        record: Bridge transaction record (hex quantities, integer chainId)

    Returns:
        Transaction dict with integer quantities and checksummed `to`
    """
    to = record.get("to")
    tx = {
        "nonce": to_int(hexstr=record["nonce"]),
        "gas": to_int(hexstr=record["gasLimit"]),
        "to": to_checksum_address(to) if to and to != "0x" else "",
        "value": to_int(hexstr=record["value"]),
        "data": record.get("data") or "0x",
        "chainId": int(record["chainId"]),
    }

    if "maxFeePerGas" in record:
        tx["maxFeePerGas"] = to_int(hexstr=record["maxFeePerGas"])
        tx["maxPriorityFeePerGas"] = to_int(hexstr=record["maxPriorityFeePerGas"])
    else:
        tx["gasPrice"] = to_int(hexstr=record["gasPrice"])

    if "accessList" in record:
        tx["type"] = to_int(hexstr=record["type"]) if "type" in record else ACCESS_LIST_TX_TYPE
        tx["accessList"] = [
            {
                "address": to_checksum_address(item["address"]),
                "storageKeys": list(item.get("storageKeys", [])),
            }
            for item in record["accessList"]
        ]

    return tx


def encode_signed_transaction(tx: TxRecord) -> bytes:
    """Serialize a signed record into raw transaction bytes.

    Legacy records encode as an RLP list with v/r/s appended. Typed records
    (EIP-2718) are the type byte followed by the RLP payload with y-parity.

    Raises:
        ValueError: If the record carries no signature
    """
    if not tx.is_signed:
        raise ValueError("Transaction is not signed")

    tx_dict = bridge_record_to_transaction_dict(tx.to_bridge_record())
    to = to_bytes(hexstr=tx_dict["to"]) if tx_dict["to"] else b""
    data = to_bytes(hexstr=tx_dict["data"])
    tx_type = tx_dict.get("type")

    if tx_type is None:
        return rlp.encode([
            tx_dict["nonce"], tx_dict["gasPrice"], tx_dict["gas"], to, tx_dict["value"], data,
            tx.v, tx.r, tx.s,
        ])

    access_list = [
        [to_bytes(hexstr=item["address"]), [to_bytes(hexstr=key) for key in item["storageKeys"]]]
        for item in tx_dict["accessList"]
    ]
    if tx_type == DYNAMIC_FEE_TX_TYPE:
        fees = [tx_dict["maxPriorityFeePerGas"], tx_dict["maxFeePerGas"]]
    else:
        fees = [tx_dict["gasPrice"]]

    payload = rlp.encode([
        tx_dict["chainId"], tx_dict["nonce"], *fees, tx_dict["gas"], to, tx_dict["value"], data,
        access_list, tx.v, tx.r, tx.s,
    ])
    return bytes([tx_type]) + payload


def recover_sender(tx: TxRecord) -> str:
    """Recover the checksum address that signed `tx`.

    Raises:
        ValueError: If the record carries no signature
    """
    return Account.recover_transaction(encode_signed_transaction(tx))
