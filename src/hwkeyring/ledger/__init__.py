"""Account ledger: per-address derivation metadata that survives sessions."""

from hwkeyring.ledger.models import AccountDetail
from hwkeyring.ledger.repository import AccountLedger

__all__ = [
    "AccountDetail",
    "AccountLedger",
]
