"""Hardware keyring.

Keeps the mapping between checksummed addresses and HD derivation paths for
one hardware device, and reconciles previously added accounts when the
active path convention changes.

Public keys are fetched lazily from the device and cached by path. The
session (accounts, paging, ledger) is owned by the keyring and persisted by
the caller through serialize()/deserialize().
"""

import logging
from enum import Enum
from typing import Any, Optional, Union

from eth_utils import is_same_address, to_checksum_address

from hwkeyring.bridge.base import SigningBridge, call_device
from hwkeyring.config import Settings, get_settings
from hwkeyring.exceptions import (
    AddressNotFoundError,
    KeyNotUnlockedError,
    KeyringError,
    NotSupportedError,
    UnknownAddressError,
    UnsupportedPathError,
)
from hwkeyring.hdwallet.keycache import ExtendedPublicKey
from hwkeyring.ledger import AccountDetail
from hwkeyring.paths import (
    HD_PATH_BASE,
    PathType,
    is_allowed,
    is_ledger_live,
    path_for_index,
)
from hwkeyring.session import SessionSnapshot, SessionState, provided_fields
from hwkeyring.signing.coordinator import SigningCoordinator
from hwkeyring.signing.transactions import TxRecord
from hwkeyring.utils.locks import DeviceLock

logger = logging.getLogger(__name__)

KEYRING_TYPE = "Trezor Hardware"


class UnlockResult(str, Enum):
    """Outcome of a successful unlock."""
    ALREADY_UNLOCKED = "already unlocked"
    JUST_UNLOCKED = "just unlocked"


class HardwareKeyring:
    """Keyring for accounts held on a hardware signing device.

    Example:
        keyring = HardwareKeyring(bridge, snapshot)
        await keyring.add_accounts(2)
        signed = await keyring.sign_transaction(address, tx)
        snapshot = keyring.serialize()
    """

    type = KEYRING_TYPE

    def __init__(
        self,
        bridge: SigningBridge,
        snapshot: Optional[dict[str, Any]] = None,
        settings: Optional[Settings] = None,
    ):
        """Initialize keyring.

        Args:
            bridge: Device bridge (required)
            snapshot: Previously serialized session to restore
            settings: Settings override (defaults to get_settings())
        """
        if bridge is None:
            raise ValueError("Bridge is required")

        self.bridge = bridge
        self.settings = settings or get_settings()
        self.max_index = self.settings.max_index
        self.device_lock = DeviceLock(timeout=self.settings.device_lock_timeout)
        self.state = SessionState()
        self._bridge_ready = False
        logger.debug(f"Keyring settings: {self.settings.get_safe_dict()}")

        self.deserialize(snapshot)

        self.signer = SigningCoordinator(bridge, self.device_lock, self.get_hd_path)
        self.bridge.subscribe(self.clean_up)

    # ======================
    # Bridge lifecycle
    # ======================

    async def init(self) -> None:
        """Initialize the bridge session once."""
        if self._bridge_ready:
            return
        await self.bridge.init({"manifest": self.settings.manifest, "lazyLoad": self.settings.lazy_load})
        self._bridge_ready = True

    def get_model(self) -> Optional[str]:
        """Device model, or None until the device has reported it."""
        return self.bridge.model or None

    async def dispose(self) -> None:
        """Tear down the bridge session."""
        self.bridge.unsubscribe(self.clean_up)
        await self.bridge.dispose()
        self._bridge_ready = False

    def clean_up(self, force: bool = False) -> None:
        """Drop cached keys when the target device is ambiguous.

        Called by the bridge with force=True on connect/disconnect.
        """
        if not len(self.state.key_cache):
            return
        if force or len(self.bridge.connected_devices) > 1:
            logger.info("Clearing cached public keys after device change")
            self.state.key_cache.clear()

    # ======================
    # Persistence
    # ======================

    def serialize(self) -> dict[str, Any]:
        return self.state.to_snapshot().model_dump(mode="json")

    def deserialize(self, snapshot: Optional[dict[str, Any]] = None) -> None:
        """Replace the session with a snapshot. Key cache starts empty.

        Fields missing from the snapshot fall back to the configured
        default path type and page size.
        """
        data = {
            "hd_path": self.settings.default_hd_path,
            "per_page": self.settings.default_page_size,
            **provided_fields(snapshot),
        }
        self.state = SessionState.from_snapshot(SessionSnapshot.from_dict(data))

    # ======================
    # HD paths
    # ======================

    @property
    def hd_path(self) -> str:
        return self.state.active_base_path

    def set_hd_path(self, hd_path: str) -> None:
        """Set the active base path.

        Switching to a different path resets the cached keys and paging,
        since keys under different conventions are unrelated.

        Raises:
            UnsupportedPathError: If the path is not an allowed base path
        """
        if not is_allowed(hd_path):
            raise UnsupportedPathError(hd_path)

        if self.state.active_base_path != hd_path:
            self.state.switch_base_path(hd_path, page_size=self.settings.default_page_size)

    def set_hd_path_type(self, path_type: PathType) -> None:
        self.set_hd_path(HD_PATH_BASE[PathType(path_type)])

    def get_current_hd_path_type(self) -> Optional[PathType]:
        return self.state.active_path_type

    def _is_ledger_live(self) -> bool:
        return is_ledger_live(self.state.active_base_path)

    def _path_for_index(self, index: int) -> str:
        return path_for_index(self.state.active_base_path, index)

    # ======================
    # Unlock
    # ======================

    def is_unlocked(self, start: Optional[int] = None, length: int = 1) -> bool:
        """Check whether the keys needed for `[start, start+length)` are cached."""
        cache = self.state.key_cache

        if not self._is_ledger_live():
            return self.state.active_base_path in cache

        if start is None:
            return len(cache) > 0

        return all(self._path_for_index(i) in cache for i in range(start, start + length))

    async def unlock(self, start: Optional[int] = None, length: Optional[int] = None) -> UnlockResult:
        """Fetch public keys from the device.

        The base path is always requested. LedgerLive hardens the index, so
        with an explicit range each indexed path is requested as well.

        Raises:
            DeviceError: If the device fails or rejects the request
        """
        if self.is_unlocked(start, 1 if length is None else length):
            return UnlockResult.ALREADY_UNLOCKED

        hd_paths = [self.state.active_base_path]
        if isinstance(start, int) and isinstance(length, int) and self._is_ledger_live():
            hd_paths.extend(self._path_for_index(i) for i in range(start, start + length))

        bundle = [{"path": path, "coin": "ETH"} for path in hd_paths]

        await self.init()
        payload = await call_device(
            self.device_lock,
            "get_public_key",
            lambda: self.bridge.get_public_key(bundle),
        )

        for item in payload:
            self.state.key_cache.put(
                ExtendedPublicKey.from_hex(item["path"], item["public_key"], item["chain_code"])
            )

        logger.info(f"Unlocked {len(payload)} public keys under {self.state.active_base_path}")
        return UnlockResult.JUST_UNLOCKED

    def set_account_to_unlock(self, index: Union[int, str]) -> None:
        self.state.selected_unlock_index = int(index)

    # ======================
    # Derivation
    # ======================

    def derive_address(self, index: int) -> str:
        """Derive the checksum address at `index` under the active path.

        Raises:
            KeyNotUnlockedError: If the required public key is not cached
        """
        cache = self.state.key_cache
        if self._is_ledger_live():
            return cache.require(self._path_for_index(index)).address
        return cache.require(self.state.active_base_path).derive_child_address(index)

    def get_path_base_public_key(self) -> str:
        """Fingerprint of the active base key (LedgerLive: the index 0 key)."""
        cache = self.state.key_cache
        if self._is_ledger_live():
            return cache.require(self._path_for_index(0)).fingerprint
        return cache.require(self.state.active_base_path).fingerprint

    # ======================
    # Enumeration
    # ======================

    async def add_accounts(self, n: int = 1) -> list[str]:
        """Add `n` accounts starting at the selected unlock index.

        Returns:
            Copy of the account list
        """
        start = self.state.selected_unlock_index
        await self.unlock(start, n)

        path_type = self.get_current_hd_path_type()
        base_public_key = self.get_path_base_public_key()

        for i in range(start, start + n):
            address = self.derive_address(i)
            if address not in self.state.accounts:
                self.state.accounts.append(address)
                self.state.ledger.set_detail(
                    address,
                    AccountDetail(
                        derivation_path=self._path_for_index(i),
                        path_type=path_type or PathType.BIP44,
                        base_public_key=base_public_key,
                        index=i,
                    ),
                )
                logger.info(f"Added account {address} at index {i}")

        self.state.page = 0
        return list(self.state.accounts)

    async def get_first_page(self) -> list[dict]:
        self.state.page = 0
        return await self._get_page(1)

    async def get_next_page(self) -> list[dict]:
        return await self._get_page(1)

    async def get_previous_page(self) -> list[dict]:
        return await self._get_page(-1)

    async def _get_page(self, increment: int) -> list[dict]:
        self.state.page += increment
        if self.state.page <= 0:
            self.state.page = 1

        await self.unlock()

        start = (self.state.page - 1) * self.state.page_size
        return self._list_accounts(start, start + self.state.page_size)

    async def get_addresses(self, start: int, end: int) -> list[dict]:
        """List accounts for indices `start` up to, not including, `end`."""
        await self.unlock(start, end - start + 1)
        return self._list_accounts(start, end)

    def _list_accounts(self, start: int, end: int) -> list[dict]:
        accounts = []
        for i in range(start, end):
            address = self.derive_address(i)
            accounts.append({"address": address, "balance": None, "index": i + 1})
            self.state.ledger.set_path_index(address, i)
        return accounts

    def get_accounts(self) -> list[str]:
        return list(self.state.accounts)

    # ======================
    # Index resolution & reconciliation
    # ======================

    def index_from_address(self, address: str) -> int:
        """Resolve an address to its 0-based derivation index.

        Tries the path map, then the account detail, then scans indices
        below max_index under the active path.

        Raises:
            UnknownAddressError: If no source resolves the address
        """
        checksummed = to_checksum_address(address)
        ledger = self.state.ledger

        index = ledger.get_path_index(checksummed)
        if index is None:
            detail = ledger.get_detail(checksummed)
            if detail is not None:
                index = detail.index

        if index is None:
            index = self._scan_for_index(checksummed)

        if index is None:
            raise UnknownAddressError(checksummed)
        return index

    def _scan_for_index(self, checksummed: str) -> Optional[int]:
        for i in range(self.max_index):
            try:
                candidate = self.derive_address(i)
            except KeyNotUnlockedError:
                # LedgerLive keys beyond the unlocked range are unreachable offline
                return None
            if candidate == checksummed:
                return i
        return None

    def get_account_info(self, address: str) -> Optional[dict]:
        detail = self.state.ledger.get_detail(address)
        if detail is None:
            return None
        return {
            "address": address,
            "index": self.index_from_address(address) + 1,
            "balance": None,
            "path_type": detail.path_type,
            "base_public_key": detail.base_public_key,
        }

    def _fix_account_detail(self, address: str) -> bool:
        """Complete a detail written before its base key was known.

        The detail is only rewritten if the address re-derives at its
        resolved index under the active path.

        Returns:
            False if the address does not belong to the active path
        """
        ledger = self.state.ledger
        detail = ledger.get_detail(address)

        if detail is not None and detail.is_fixed:
            return True

        try:
            index = self.index_from_address(address)
            address_in_device = self.derive_address(index)
        except (UnknownAddressError, KeyNotUnlockedError) as e:
            logger.warning(f"Cannot repair account detail for {address}: {e}")
            return False

        if not is_same_address(address, address_in_device):
            logger.warning(f"Account {address} does not derive at index {index} under {self.hd_path}")
            return False

        ledger.set_detail(
            address,
            AccountDetail(
                derivation_path=self._path_for_index(index),
                path_type=self.get_current_hd_path_type() or PathType.BIP44,
                base_public_key=self.get_path_base_public_key(),
                index=index,
            ),
        )
        logger.info(f"Repaired account detail for {address} at index {index}")
        return True

    async def get_current_accounts(self) -> list[dict]:
        """Return added accounts that are valid under the active path.

        Each entry is {"address", "index"} with a 1-based index. Accounts
        that cannot be resolved are logged and left out.
        """
        await self.unlock(0, self.settings.current_accounts_unlock_range)
        current_public_key = self.get_path_base_public_key()
        current_type = self.get_current_hd_path_type()

        accounts = []
        for address in self.get_accounts():
            try:
                if not self._fix_account_detail(address):
                    continue
                detail = self.state.ledger.get_detail(address)

                if detail is not None and detail.base_public_key == current_public_key:
                    accounts.append({"address": address, "index": self.index_from_address(address) + 1})
                    continue

                # BIP44 and LedgerLive share the key at index 0
                if (
                    detail is not None
                    and current_type != PathType.LEGACY
                    and detail.path_type in (PathType.LEDGER_LIVE, PathType.BIP44)
                ):
                    info = self.get_account_info(address)
                    if info and info["index"] == 1 and is_same_address(self.derive_address(0), address):
                        accounts.append({"address": address, "index": info["index"]})

            except (KeyringError, ValueError) as e:
                logger.warning(f"Skipping account {address}: {e}")

        return accounts

    async def get_hd_path(self, address: str) -> str:
        """Resolve the derivation path used to sign for `address`.

        Old accounts with neither a detail nor a path map entry only ever
        existed under BIP44, so the keyring switches to it to find them.
        """
        ledger = self.state.ledger

        detail = ledger.get_detail(address)
        if detail is not None and detail.derivation_path:
            return detail.derivation_path

        index = ledger.get_path_index(address)
        if index is not None:
            return self._path_for_index(index)

        self.set_hd_path(HD_PATH_BASE[PathType.BIP44])
        await self.unlock()
        return f"{self.state.active_base_path}/{self.index_from_address(address)}"

    # ======================
    # Account lifecycle
    # ======================

    def remove_account(self, address: str) -> None:
        """Remove an added account and its recorded metadata.

        Raises:
            AddressNotFoundError: If the account is not in this keyring
        """
        if not any(is_same_address(a, address) for a in self.state.accounts):
            raise AddressNotFoundError(address)

        self.state.accounts = [a for a in self.state.accounts if not is_same_address(a, address)]
        self.state.ledger.forget(address)
        logger.info(f"Removed account {to_checksum_address(address)}")

    def forget_device(self) -> None:
        """Reset the session, keeping account detail history."""
        self.state.forget_device()
        logger.info("Device forgotten")

    def export_account(self, address: str) -> None:
        raise NotSupportedError("Not supported on this device")

    # ======================
    # Signing
    # ======================

    async def sign_transaction(self, address: str, tx: TxRecord) -> TxRecord:
        await self.init()
        return await self.signer.sign_transaction(address, tx)

    async def sign_message(self, address: str, data: str) -> str:
        return await self.sign_personal_message(address, data)

    async def sign_personal_message(self, address: str, message: str) -> str:
        await self.init()
        return await self.signer.sign_personal_message(address, message)

    async def sign_typed_data(self, address: str, data: dict, version: str = "V4") -> str:
        await self.init()
        return await self.signer.sign_typed_data(address, data, version)
