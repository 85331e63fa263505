"""Share Ledger — mint/burn shares против PoolState."""

from .share_ledger import (
    BurnResult,
    DegeneratePolicy,
    LedgerConfig,
    MintResult,
    ShareLedger,
)

__all__ = [
    "BurnResult",
    "DegeneratePolicy",
    "LedgerConfig",
    "MintResult",
    "ShareLedger",
]
