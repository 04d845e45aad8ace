"""EIP-712 typed data preparation.

Devices with a screen sign the structured data; constrained devices only
sign the domain separator hash and message hash. Both are always sent.

V4 is the current encoding. V3 is the same encoding without array support,
so V3 requests that declare array fields are rejected.
"""

from dataclasses import dataclass
from typing import Optional

from eth_account.messages import SignableMessage, encode_typed_data
from eth_utils import encode_hex
from hexbytes import HexBytes

SUPPORTED_VERSIONS = ("V3", "V4")

DOMAIN_TYPE = "EIP712Domain"

# Stand-in primary type for domain-only requests; the header depends only on the domain
_EMPTY_MESSAGE_TYPE = "EmptyMessage"


@dataclass
class TypedDataRequest:
    """Structured payload plus precomputed hashes for the device."""
    data: dict
    version: str
    domain_separator_hash: str
    message_hash: Optional[str]
    signable: SignableMessage
    metamask_v4_compat: bool = True


def normalize_typed_data(data: dict) -> dict:
    """Fill the defaults devices require: empty domain type, message and domain."""
    types = dict(data.get("types") or {})
    domain_fields = types.pop(DOMAIN_TYPE, None) or []
    return {
        "types": {DOMAIN_TYPE: domain_fields, **types},
        "message": data.get("message") or {},
        "domain": data.get("domain") or {},
        "primaryType": data.get("primaryType"),
    }


def _check_v3_types(types: dict) -> None:
    for type_name, fields in types.items():
        for item in fields:
            if item["type"].endswith("]"):
                raise ValueError(
                    f"Arrays are unsupported in V3 typed data: {type_name}.{item['name']} is {item['type']}"
                )


def signable_typed_data(data: dict) -> SignableMessage:
    """EIP-191 version 0x01 signable message for normalized typed data."""
    if data["primaryType"] == DOMAIN_TYPE:
        domain_only = encode_typed_data(
            domain_data=data["domain"],
            message_types={_EMPTY_MESSAGE_TYPE: []},
            message_data={},
        )
        return SignableMessage(HexBytes(b"\x01"), domain_only.header, HexBytes(b""))

    full_message = dict(data)
    types = dict(data["types"])
    if not types.get(DOMAIN_TYPE):
        # eth-account infers domain fields itself and rejects a declared empty list
        types.pop(DOMAIN_TYPE, None)
    full_message["types"] = types
    return encode_typed_data(full_message=full_message)


def transform_typed_data(data: dict, version: str) -> TypedDataRequest:
    """Prepare typed data for the device.

    Args:
        data: EIP-712 typed data (types, primaryType, domain, message)
        version: "V3" or "V4"

    Returns:
        TypedDataRequest with the normalized data and its hashes

    Raises:
        ValueError: If the version is unsupported, primaryType is missing,
            or a V3 request declares array fields
    """
    if version not in SUPPORTED_VERSIONS:
        raise ValueError(f"Unsupported typed data version {version}, expected one of {SUPPORTED_VERSIONS}")

    normalized = normalize_typed_data(data)
    if not normalized["primaryType"]:
        raise ValueError("Typed data is missing primaryType")

    if version == "V3":
        _check_v3_types(normalized["types"])

    signable = signable_typed_data(normalized)
    message_hash = encode_hex(signable.body) if normalized["primaryType"] != DOMAIN_TYPE else None

    return TypedDataRequest(
        data=normalized,
        version=version,
        domain_separator_hash=encode_hex(signable.header),
        message_hash=message_hash,
        signable=signable,
    )
