"""
DOMAIN MODELS: PORTFOLIO, SNAPSHOTS & OUTCOMES

Immutable structures describing holdings, price snapshots, history entries
and the results of polls, mutations and imports.
No database access. No market data fetching.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Tuple


@dataclass(frozen=True)
class Holding:
    """
    One equity position. `id` is None until the store has assigned one.
    """
    symbol: str
    shares: float
    id: Optional[int] = None

    def __post_init__(self):
        if not self.symbol:
            raise ValueError("Holding symbol cannot be empty")
        if self.shares < 0:
            raise ValueError("Holding shares cannot be negative")

    def with_shares(self, shares: float) -> "Holding":
        return Holding(symbol=self.symbol, shares=shares, id=self.id)


@dataclass(frozen=True)
class PortfolioState:
    """Point-in-time read of a portfolio's holdings and cash."""
    holdings: Tuple[Holding, ...]
    buying_power: float

    @property
    def symbols(self) -> Tuple[str, ...]:
        return tuple(h.symbol for h in self.holdings)


@dataclass(frozen=True)
class Snapshot:
    """
    One poll cycle: epoch-millis timestamp plus the prices that applied.
    """
    timestamp: int
    prices: Dict[str, float]


@dataclass(frozen=True)
class HistoryEntry:
    timestamp: int
    total_value: float


@dataclass(frozen=True)
class PollResult:
    """
    Outcome of one poll cycle.

    `snapshot` is None when nothing was emitted (empty symbol set, missing
    API key, overlapping or superseded poll).
    """
    snapshot: Optional[Snapshot]
    requested: Tuple[str, ...] = ()
    succeeded: Tuple[str, ...] = ()
    failed: Dict[str, str] = field(default_factory=dict)
    degraded: bool = False
    skipped: bool = False
    advisory: Optional[str] = None

    @property
    def partial(self) -> bool:
        return bool(self.failed) and bool(self.succeeded)


@dataclass(frozen=True)
class AllocationSlice:
    name: str
    value: float
    percent: float


class MutationKind(str, Enum):
    ADD = "add"
    UPDATE = "update"
    REMOVE = "remove"
    BUYING_POWER = "buying_power"


class MutationState(str, Enum):
    """Lifecycle of a holdings mutation."""
    REQUESTED = "requested"
    VALIDATING = "validating"
    PERSISTING = "persisting"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


class MutationFailure(str, Enum):
    """Why a mutation ended in ROLLED_BACK."""
    INVALID_INPUT = "invalid_input"
    INVALID_SYMBOL = "invalid_symbol"
    NOT_FOUND = "not_found"
    PERSISTENCE = "persistence"


@dataclass(frozen=True)
class MutationOutcome:
    kind: MutationKind
    symbol: Optional[str]
    state: MutationState
    holding: Optional[Holding] = None
    buying_power: Optional[float] = None
    failure: Optional[MutationFailure] = None
    error: Optional[str] = None

    @property
    def committed(self) -> bool:
        return self.state == MutationState.COMMITTED


class ImportStatus(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"


class ImportStep(str, Enum):
    DELETE_HOLDINGS = "delete_holdings"
    INSERT_HOLDINGS = "insert_holdings"
    UPSERT_BUYING_POWER = "upsert_buying_power"
    RELOAD = "reload"


@dataclass(frozen=True)
class ImportResult:
    status: ImportStatus
    completed_steps: Tuple[ImportStep, ...] = ()
    failed_step: Optional[ImportStep] = None
    error: Optional[str] = None
    holdings_count: int = 0

    @property
    def succeeded(self) -> bool:
        return self.status == ImportStatus.COMPLETED


@dataclass(frozen=True)
class Identity:
    """Authenticated owner of a portfolio, as reported by the identity provider."""
    user_id: str
    email: Optional[str] = None
