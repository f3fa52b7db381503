"""
History recorder: append-only net-worth series.

Snapshots are accepted only when their timestamp is strictly greater than
the last accepted one; replays and out-of-order snapshots are ignored.
"""

from __future__ import annotations

import logging
from typing import Callable, List, Optional

from app.domain.models import HistoryEntry, PortfolioState, Snapshot
from app.domain.services.valuation_engine import is_recordable, portfolio_value, round_currency

logger = logging.getLogger(__name__)


class HistoryRecorder:
    def __init__(self, state_reader: Callable[[], PortfolioState]):
        # Holdings and cash are read when the snapshot is applied, not when it was fetched
        self._state_reader = state_reader
        self._entries: List[HistoryEntry] = []
        self._last_timestamp: Optional[int] = None

    @property
    def last_timestamp(self) -> Optional[int]:
        return self._last_timestamp

    def record(self, snapshot: Optional[Snapshot]) -> Optional[HistoryEntry]:
        if snapshot is None:
            return None
        if self._last_timestamp is not None and snapshot.timestamp <= self._last_timestamp:
            logger.debug(
                "Ignoring snapshot %s (last accepted %s)", snapshot.timestamp, self._last_timestamp
            )
            return None

        state = self._state_reader()
        total = portfolio_value(state.holdings, snapshot.prices, state.buying_power)
        if not is_recordable(total):
            logger.warning("Skipping non-finite portfolio value at %s", snapshot.timestamp)
            return None

        entry = HistoryEntry(timestamp=snapshot.timestamp, total_value=round_currency(total))
        self._entries.append(entry)
        self._last_timestamp = snapshot.timestamp
        return entry

    def entries(self) -> List[HistoryEntry]:
        return list(self._entries)

    def clear(self) -> None:
        self._entries = []
        self._last_timestamp = None

    def __len__(self) -> int:
        return len(self._entries)
