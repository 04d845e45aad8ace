"""Ledger models."""

from typing import Optional

from pydantic import BaseModel, Field

from hwkeyring.paths import PathType


class AccountDetail(BaseModel):
    """Derivation metadata recorded for an added account.

    An entry with both `base_public_key` and `derivation_path` set is
    fixed: reconciliation never rewrites it. Entries written before the
    base key was known carry no fingerprint and may be repaired.
    """

    derivation_path: str = Field(default="", description="Concrete HD path of the account")
    path_type: PathType = Field(default=PathType.BIP44, description="Convention the path belongs to")
    base_public_key: Optional[str] = Field(
        default=None, description="Hex public key of the base path the account was derived from"
    )
    index: int = Field(..., ge=0, description="0-based derivation index")

    @property
    def is_fixed(self) -> bool:
        return bool(self.base_public_key and self.derivation_path)

    @property
    def display_index(self) -> int:
        return self.index + 1
