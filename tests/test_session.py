"""Tests for session snapshots and the account ledger."""

import pytest
from pydantic import ValidationError

from hwkeyring.ledger import AccountDetail, AccountLedger
from hwkeyring.paths import PathType
from hwkeyring.session import SessionSnapshot, SessionState

from _keyring_test_helpers import BIP44_ADDRESS_0, BIP44_ADDRESS_1, BIP44_BASE, LEGACY_BASE


def make_snapshot_dict() -> dict:
    return {
        "hd_path": LEGACY_BASE,
        "accounts": [BIP44_ADDRESS_0, BIP44_ADDRESS_1],
        "page": 2,
        "per_page": 10,
        "unlocked_account": 3,
        "paths": {BIP44_ADDRESS_1: 1},
        "account_details": {
            BIP44_ADDRESS_0: {
                "derivation_path": "m/44'/60'/0'/0/0",
                "path_type": "BIP44",
                "base_public_key": "02abcdef",
                "index": 0,
            },
        },
    }


class TestSessionSnapshot:
    """Tests for snapshot defaults and round trips."""

    def test_defaults_for_missing_fields(self):
        """Test an empty snapshot gets BIP44, page 0 and page size 5."""
        snapshot = SessionSnapshot.from_dict({})

        assert snapshot.hd_path == BIP44_BASE
        assert snapshot.page == 0
        assert snapshot.per_page == 5
        assert snapshot.accounts == []
        assert snapshot.account_details == {}

    def test_null_fields_are_treated_as_missing(self):
        """Test null values fall back to defaults."""
        snapshot = SessionSnapshot.from_dict({"hd_path": None, "accounts": None})

        assert snapshot.hd_path == BIP44_BASE
        assert snapshot.accounts == []

    def test_zero_page_size_is_treated_as_missing(self):
        """Test a falsy page size falls back to the default."""
        snapshot = SessionSnapshot.from_dict({"per_page": 0})

        assert snapshot.per_page == 5

    def test_none_snapshot(self):
        """Test from_dict(None) gives the default snapshot."""
        assert SessionSnapshot.from_dict(None) == SessionSnapshot()

    def test_round_trip_through_state(self):
        """Test deserializing then serializing reproduces the same structure."""
        data = make_snapshot_dict()

        state = SessionState.from_snapshot(SessionSnapshot.from_dict(data))
        dumped = state.to_snapshot().model_dump(mode="json")

        assert dumped == data

    def test_detail_path_type_is_parsed(self):
        """Test path types are restored as enum members."""
        state = SessionState.from_snapshot(SessionSnapshot.from_dict(make_snapshot_dict()))
        detail = state.ledger.get_detail(BIP44_ADDRESS_0)

        assert detail.path_type is PathType.BIP44
        assert detail.is_fixed
        assert detail.display_index == 1

    def test_invalid_detail_rejected(self):
        """Test a negative index fails validation."""
        data = make_snapshot_dict()
        data["account_details"][BIP44_ADDRESS_0]["index"] = -1

        with pytest.raises(ValidationError):
            SessionSnapshot.from_dict(data)


class TestSessionState:
    """Tests for session resets."""

    def test_accounts_restored_in_checksum_form(self):
        """Test stored addresses are normalized; malformed ones are kept as stored."""
        snapshot = SessionSnapshot.from_dict({"accounts": [BIP44_ADDRESS_1.lower(), "0xdeadbeef"]})

        state = SessionState.from_snapshot(snapshot)

        assert state.accounts == [BIP44_ADDRESS_1, "0xdeadbeef"]

    def test_switch_base_path_resets_paging(self):
        """Test switching path resets page, page size and unlock index."""
        state = SessionState(page=3, page_size=9, selected_unlock_index=4)

        state.switch_base_path(LEGACY_BASE)

        assert state.active_base_path == LEGACY_BASE
        assert state.active_path_type is PathType.LEGACY
        assert (state.page, state.page_size, state.selected_unlock_index) == (0, 5, 0)

    def test_forget_device_keeps_details(self):
        """Test forget_device clears the session but keeps account details."""
        state = SessionState.from_snapshot(SessionSnapshot.from_dict(make_snapshot_dict()))

        state.forget_device()

        assert state.accounts == []
        assert state.page == 0
        assert state.selected_unlock_index == 0
        assert state.ledger.paths() == {}
        assert state.ledger.get_detail(BIP44_ADDRESS_0) is not None


class TestAccountLedger:
    """Tests for checksum-keyed ledger access."""

    def test_lookups_ignore_case(self):
        """Test details and path entries are found whatever the casing."""
        ledger = AccountLedger()
        ledger.set_detail(BIP44_ADDRESS_0.lower(), AccountDetail(index=0))
        ledger.set_path_index(BIP44_ADDRESS_1.lower(), 1)

        assert ledger.get_detail(BIP44_ADDRESS_0.upper().replace("0X", "0x")) is not None
        assert ledger.get_path_index(BIP44_ADDRESS_1) == 1
        assert list(ledger) == [BIP44_ADDRESS_0]

    def test_unfixed_detail(self):
        """Test a detail without a fingerprint is not fixed."""
        detail = AccountDetail(derivation_path="m/44'/60'/0'/0/0", index=0)

        assert not detail.is_fixed

    def test_forget_removes_both_maps(self):
        """Test forget drops the detail and the path entry."""
        ledger = AccountLedger()
        ledger.set_detail(BIP44_ADDRESS_0, AccountDetail(index=0))
        ledger.set_path_index(BIP44_ADDRESS_0, 0)

        ledger.forget(BIP44_ADDRESS_0)

        assert ledger.get_detail(BIP44_ADDRESS_0) is None
        assert ledger.get_path_index(BIP44_ADDRESS_0) is None
