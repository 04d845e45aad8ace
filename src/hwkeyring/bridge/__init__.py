"""Signing bridge interface and implementations.

The bridge owns the device session: transport, confirmation prompts and
the signing primitives. The keyring only ever talks to it through
SigningBridge.
"""

from hwkeyring.bridge.base import BridgeResponse, SigningBridge
from hwkeyring.bridge.software import SoftwareBridge

__all__ = [
    "BridgeResponse",
    "SigningBridge",
    "SoftwareBridge",
]
