"""Extended public key cache and local address derivation."""

from hwkeyring.hdwallet.keycache import ExtendedPublicKey, KeyCache, public_key_to_address

__all__ = [
    "ExtendedPublicKey",
    "KeyCache",
    "public_key_to_address",
]
