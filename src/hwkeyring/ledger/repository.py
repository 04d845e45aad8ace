"""Repository for account ledger operations.

All lookups are keyed by checksum address, whatever casing the caller
passes in.
"""

import logging
from typing import Iterator, Optional

from eth_utils import to_checksum_address

from hwkeyring.ledger.models import AccountDetail

logger = logging.getLogger(__name__)


class AccountLedger:
    """Account details plus the transient address-to-index path map.

    The path map records every address shown to the caller (pages, ranges)
    whether or not it was added, and also carries index entries restored
    from sessions that predate AccountDetail.
    """

    def __init__(
        self,
        details: Optional[dict[str, AccountDetail]] = None,
        paths: Optional[dict[str, int]] = None,
    ):
        self._details: dict[str, AccountDetail] = {}
        self._paths: dict[str, int] = {}

        for address, detail in (details or {}).items():
            self._details[to_checksum_address(address)] = detail
        for address, index in (paths or {}).items():
            self._paths[to_checksum_address(address)] = index

    # Account detail operations
    def get_detail(self, address: str) -> Optional[AccountDetail]:
        return self._details.get(to_checksum_address(address))

    def set_detail(self, address: str, detail: AccountDetail) -> None:
        checksummed = to_checksum_address(address)
        self._details[checksummed] = detail
        logger.debug(f"Recorded {checksummed} at {detail.derivation_path or detail.index}")

    def delete_detail(self, address: str) -> None:
        self._details.pop(to_checksum_address(address), None)

    def details(self) -> dict[str, AccountDetail]:
        """Copy of all account details."""
        return dict(self._details)

    # Path map operations
    def get_path_index(self, address: str) -> Optional[int]:
        return self._paths.get(to_checksum_address(address))

    def set_path_index(self, address: str, index: int) -> None:
        self._paths[to_checksum_address(address)] = index

    def delete_path_index(self, address: str) -> None:
        self._paths.pop(to_checksum_address(address), None)

    def clear_paths(self) -> None:
        self._paths.clear()

    def paths(self) -> dict[str, int]:
        """Copy of the path map."""
        return dict(self._paths)

    # Combined operations
    def forget(self, address: str) -> None:
        """Remove every trace of an address."""
        self.delete_detail(address)
        self.delete_path_index(address)

    def __iter__(self) -> Iterator[str]:
        return iter(self._details)

    def __len__(self) -> int:
        return len(self._details)
