"""HD path registry.

Three mutually incompatible conventions are in use for Ethereum accounts on
hardware devices:

- BIP44:       m/44'/60'/0'/0/index   (base m/44'/60'/0'/0)
- Legacy:      m/44'/60'/0'/index     (base m/44'/60'/0', MEW/MyCrypto)
- LedgerLive:  m/44'/60'/index'/0/0   (one hardened account per index)

BIP44 and LedgerLive resolve to the same key at index 0.
"""

from enum import Enum
from typing import Optional


class PathType(str, Enum):
    """HD path convention."""
    LEDGER_LIVE = "LedgerLive"
    LEGACY = "Legacy"
    BIP44 = "BIP44"


SLIP0044_TESTNET_PATH = "m/44'/1'/0'/0"

HD_PATH_BASE: dict[PathType, str] = {
    PathType.BIP44: "m/44'/60'/0'/0",
    PathType.LEGACY: "m/44'/60'/0'",
    PathType.LEDGER_LIVE: "m/44'/60'/0'/0/0",
}

HD_PATH_TYPE: dict[str, PathType] = {path: path_type for path_type, path in HD_PATH_BASE.items()}

ALLOWED_HD_PATHS = frozenset([*HD_PATH_BASE.values(), SLIP0044_TESTNET_PATH])


def base_for(path_type: PathType) -> str:
    """Get the base derivation path for a path type."""
    return HD_PATH_BASE[PathType(path_type)]


def type_for(base_path: str) -> Optional[PathType]:
    """Get the path type for a base path, or None if it has none."""
    return HD_PATH_TYPE.get(base_path)


def is_allowed(path: str) -> bool:
    """Check whether a base path may be set as the active path."""
    return path in ALLOWED_HD_PATHS


def is_ledger_live(base_path: str) -> bool:
    return base_path == HD_PATH_BASE[PathType.LEDGER_LIVE]


def path_for_index(base_path: str, index: int) -> str:
    """Get the concrete derivation path for an account index.

    LedgerLive embeds the index as the hardened account level; every
    other convention appends it as a non-hardened child of the base.
    """
    if is_ledger_live(base_path):
        return f"m/44'/60'/{index}'/0/0"
    return f"{base_path}/{index}"
