"""
Domain Models Package
Export all domain entities
"""

from .portfolio import (
    # Enums
    ImportStatus,
    ImportStep,
    MutationFailure,
    MutationKind,
    MutationState,

    # Entities
    AllocationSlice,
    HistoryEntry,
    Holding,
    Identity,
    ImportResult,
    MutationOutcome,
    PollResult,
    PortfolioState,
    Snapshot,
)

__all__ = [
    # Enums
    "ImportStatus",
    "ImportStep",
    "MutationFailure",
    "MutationKind",
    "MutationState",

    # Entities
    "AllocationSlice",
    "HistoryEntry",
    "Holding",
    "Identity",
    "ImportResult",
    "MutationOutcome",
    "PollResult",
    "PortfolioState",
    "Snapshot",
]
