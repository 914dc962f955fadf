"""Ledger Layer - Cash and holdings with margin and short-sale invariants."""

from quantcore.ledger.ledger import (
    FillResult,
    FillStatus,
    Holding,
    Ledger,
    LedgerSnapshot,
    RejectReason,
)

__all__ = [
    "Ledger",
    "LedgerSnapshot",
    "Holding",
    "FillResult",
    "FillStatus",
    "RejectReason",
]
