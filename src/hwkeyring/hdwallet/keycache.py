"""Key cache for unlocked extended public keys.

Entries are keyed by the concrete derivation path the device reported.
Fixed-base conventions (BIP44, Legacy) only ever need the base entry:
child addresses are derived locally with non-hardened BIP32 derivation.
LedgerLive paths harden the account index, so every index needs its own
entry fetched from the device.

Only public keys and chain codes are cached - never private material.
"""

import logging
from dataclasses import dataclass
from typing import Iterator, Optional

from bip_utils import Bip32KeyData, Bip32Secp256k1, EthAddrEncoder
from eth_utils import remove_0x_prefix

from hwkeyring.exceptions import KeyNotUnlockedError

logger = logging.getLogger(__name__)


def public_key_to_address(public_key: bytes) -> str:
    """Hash a secp256k1 public key (compressed or not) into a checksum address."""
    return EthAddrEncoder.EncodeKey(public_key)


@dataclass(frozen=True)
class ExtendedPublicKey:
    """Public key plus chain code, as returned by the device.

    Attributes:
        path: Derivation path the key was fetched at
        public_key: Compressed secp256k1 public key (33 bytes)
        chain_code: BIP32 chain code (32 bytes)
    """
    path: str
    public_key: bytes
    chain_code: bytes

    @classmethod
    def from_hex(cls, path: str, public_key: str, chain_code: str) -> "ExtendedPublicKey":
        return cls(
            path=path,
            public_key=bytes.fromhex(remove_0x_prefix(public_key)),
            chain_code=bytes.fromhex(remove_0x_prefix(chain_code)),
        )

    @property
    def fingerprint(self) -> str:
        """Hex public key, used to tell which base key an account came from."""
        return self.public_key.hex()

    @property
    def address(self) -> str:
        """Checksum address of this key itself."""
        return public_key_to_address(self.public_key)

    def derive_child_address(self, index: int) -> str:
        """Derive the address of non-hardened child `index`.

        Args:
            index: Child index (0, 1, 2, ...)

        Returns:
            Checksum address of the child key
        """
        ctx = Bip32Secp256k1.FromPublicKey(
            self.public_key,
            Bip32KeyData(chain_code=self.chain_code),
        )
        child = ctx.ChildKey(index)
        pubkey = child.PublicKey().RawUncompressed().ToBytes()
        return public_key_to_address(pubkey)


class KeyCache:
    """Unlocked extended public keys keyed by derivation path."""

    def __init__(self):
        self._entries: dict[str, ExtendedPublicKey] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, path: str) -> bool:
        return path in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def get(self, path: str) -> Optional[ExtendedPublicKey]:
        return self._entries.get(path)

    def require(self, path: str) -> ExtendedPublicKey:
        """Get the entry for `path` or raise KeyNotUnlockedError."""
        entry = self._entries.get(path)
        if entry is None:
            raise KeyNotUnlockedError(path)
        return entry

    def put(self, entry: ExtendedPublicKey) -> None:
        self._entries[entry.path] = entry
        logger.debug(f"Cached public key for {entry.path}")

    def clear(self) -> None:
        if self._entries:
            logger.debug(f"Clearing {len(self._entries)} cached public keys")
        self._entries.clear()
