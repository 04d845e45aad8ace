"""Session state and its persisted snapshot.

The keyring owns exactly one SessionState. Callers persist it through
SessionSnapshot, a plain structure. Addresses are held in checksum form, so
a restored snapshot serializes back in that canonical form and a canonical
snapshot round-trips unchanged.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from eth_utils import is_hex_address, to_checksum_address
from pydantic import BaseModel, Field

from hwkeyring.hdwallet.keycache import KeyCache
from hwkeyring.ledger import AccountDetail, AccountLedger
from hwkeyring.paths import HD_PATH_BASE, PathType, type_for

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 5

# Fields where a falsy value means "not set"
_FALSY_AS_MISSING = frozenset(["per_page"])


def provided_fields(data: Optional[dict[str, Any]]) -> dict[str, Any]:
    """Fields a stored snapshot actually sets.

    Null fields, and a zero page size, count as missing so the defaults apply.
    """
    return {
        k: v
        for k, v in (data or {}).items()
        if v is not None and not (k in _FALSY_AS_MISSING and not v)
    }


def canonical_address(address: str) -> str:
    """Checksum form of `address`; malformed entries are kept as stored."""
    return to_checksum_address(address) if is_hex_address(address) else address


class SessionSnapshot(BaseModel):
    """Serialized session, as read and written by the caller's store."""

    hd_path: str = Field(default=HD_PATH_BASE[PathType.BIP44], description="Active base path")
    accounts: list[str] = Field(default_factory=list, description="Added account addresses")
    page: int = Field(default=0, ge=0, description="Current page (1-based once paging starts)")
    per_page: int = Field(default=DEFAULT_PAGE_SIZE, ge=1, description="Accounts per page")
    unlocked_account: int = Field(default=0, ge=0, description="Next index add_accounts starts at")
    paths: dict[str, int] = Field(
        default_factory=dict, description="Address to 0-based index for listed addresses"
    )
    account_details: dict[str, AccountDetail] = Field(
        default_factory=dict, description="Derivation metadata per added address"
    )

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> "SessionSnapshot":
        """Build a snapshot, treating null fields and a zero page size as missing."""
        return cls.model_validate(provided_fields(data))


@dataclass
class SessionState:
    """Everything the keyring knows about the current device session."""

    active_base_path: str = HD_PATH_BASE[PathType.BIP44]
    accounts: list[str] = field(default_factory=list)
    page: int = 0
    page_size: int = DEFAULT_PAGE_SIZE
    selected_unlock_index: int = 0
    key_cache: KeyCache = field(default_factory=KeyCache)
    ledger: AccountLedger = field(default_factory=AccountLedger)

    @property
    def active_path_type(self) -> Optional[PathType]:
        return type_for(self.active_base_path)

    @classmethod
    def from_snapshot(cls, snapshot: SessionSnapshot) -> "SessionState":
        return cls(
            active_base_path=snapshot.hd_path,
            accounts=[canonical_address(a) for a in snapshot.accounts],
            page=snapshot.page,
            page_size=snapshot.per_page,
            selected_unlock_index=snapshot.unlocked_account,
            ledger=AccountLedger(
                details={a: d.model_copy() for a, d in snapshot.account_details.items()},
                paths=snapshot.paths,
            ),
        )

    def to_snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            hd_path=self.active_base_path,
            accounts=list(self.accounts),
            page=self.page,
            per_page=self.page_size,
            unlocked_account=self.selected_unlock_index,
            paths=self.ledger.paths(),
            account_details={a: d.model_copy() for a, d in self.ledger.details().items()},
        )

    def switch_base_path(self, base_path: str, page_size: int = DEFAULT_PAGE_SIZE) -> None:
        """Point the session at a new base path, dropping unrelated keys."""
        logger.info(f"Switching HD path {self.active_base_path} -> {base_path}")
        self.key_cache.clear()
        self.page = 0
        self.page_size = page_size
        self.selected_unlock_index = 0
        self.active_base_path = base_path

    def forget_device(self) -> None:
        """Reset everything except account detail history."""
        self.accounts = []
        self.key_cache.clear()
        self.page = 0
        self.selected_unlock_index = 0
        self.ledger.clear_paths()
