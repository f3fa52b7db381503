"""
BULK TRANSFER: EXPORT / IMPORT

Document format (UTF-8 JSON, 2-space indent on export):

    {"buyingPower": 500.0, "holdings": [{"symbol": "AAPL", "shares": 10}]}

Import is wipe-and-replace and NOT atomic: delete all holdings, insert the
document's holdings, upsert the cash balance. A failure part-way can leave
the store partly wiped, so the portfolio is always re-read afterwards.
"""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from app.domain.exceptions import ImportFormatError, StoreError
from app.domain.models import ImportResult, ImportStatus, ImportStep, PortfolioState
from app.domain.services.holdings_reconciler import HoldingsReconciler
from app.domain.services.normalization import canonical_symbol, normalize_amount, normalize_cash
from app.infrastructure.db.portfolio_store import PortfolioStore
from app.utils.time import today_stamp

logger = logging.getLogger(__name__)

EXPORT_FILENAME_PREFIX = "asset-dashboard-export"


@dataclass(frozen=True)
class PortfolioDocument:
    buying_power: float
    holdings: Tuple[Tuple[str, float], ...]


# ----------------------------------------------------------------------
# EXPORT
# ----------------------------------------------------------------------

def export_document(state: PortfolioState) -> Dict[str, Any]:
    return {
        "buyingPower": state.buying_power,
        "holdings": [{"symbol": h.symbol, "shares": h.shares} for h in state.holdings],
    }


def dumps_document(document: Mapping[str, Any]) -> str:
    return json.dumps(document, indent=2)


def export_filename(today: Optional[date] = None) -> str:
    return f"{EXPORT_FILENAME_PREFIX}-{today_stamp(today)}.json"


# ----------------------------------------------------------------------
# PARSE
# ----------------------------------------------------------------------

def _is_json_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def parse_document(raw: Union[str, bytes, Mapping[str, Any]]) -> PortfolioDocument:
    """
    Validate and normalize an import document.

    Raises ImportFormatError when `holdings` is not a list of objects with a
    symbol, or `buyingPower` is not a finite number. Duplicate symbols are
    merged by adding their shares.
    """
    if isinstance(raw, (str, bytes)):
        try:
            data = json.loads(raw)
        except (ValueError, UnicodeDecodeError) as exc:
            raise ImportFormatError("Document is not valid JSON") from exc
    else:
        data = raw

    if not isinstance(data, Mapping):
        raise ImportFormatError("Document must be a JSON object")
    holdings = data.get("holdings")
    buying_power = data.get("buyingPower")
    if not isinstance(holdings, list):
        raise ImportFormatError("'holdings' must be an array")
    if not _is_json_number(buying_power):
        raise ImportFormatError("'buyingPower' must be a number")

    merged: Dict[str, float] = {}
    for index, entry in enumerate(holdings):
        if not isinstance(entry, Mapping):
            raise ImportFormatError(f"holdings[{index}] must be an object")
        symbol = canonical_symbol(entry.get("symbol"))
        if not symbol:
            raise ImportFormatError(f"holdings[{index}] has no symbol")
        merged[symbol] = merged.get(symbol, 0.0) + normalize_amount(entry.get("shares"))

    return PortfolioDocument(
        buying_power=normalize_cash(buying_power),
        holdings=tuple(merged.items()),
    )


# ----------------------------------------------------------------------
# WIPE AND REPLACE
# ----------------------------------------------------------------------

class BulkTransfer:
    def __init__(self, reconciler: HoldingsReconciler, store: PortfolioStore):
        self._reconciler = reconciler
        self._store = store

    def export(self) -> Dict[str, Any]:
        return export_document(self._reconciler.state())

    async def import_document(self, raw: Union[str, bytes, Mapping[str, Any]]) -> ImportResult:
        document = parse_document(raw)
        owner = self._reconciler.owner

        completed: List[ImportStep] = []
        failed_step: Optional[ImportStep] = None
        error: Optional[str] = None

        async with self._reconciler.lock:
            logger.info("Importing %d holdings for %s (wipe and replace)", len(document.holdings), owner)
            try:
                failed_step = ImportStep.DELETE_HOLDINGS
                await self._store.delete_all_holdings(owner)
                completed.append(ImportStep.DELETE_HOLDINGS)

                failed_step = ImportStep.INSERT_HOLDINGS
                if document.holdings:
                    await self._store.insert_holdings(owner, document.holdings)
                completed.append(ImportStep.INSERT_HOLDINGS)

                failed_step = ImportStep.UPSERT_BUYING_POWER
                await self._store.upsert_buying_power(owner, document.buying_power)
                completed.append(ImportStep.UPSERT_BUYING_POWER)
                failed_step = None
            except StoreError as exc:
                error = str(exc)
                logger.error(
                    "Import for %s failed at %s after %s: %s",
                    owner, failed_step.value, [s.value for s in completed], exc,
                )

            # Rebuilt from the store whatever happened above, before any queued mutation runs
            try:
                await self._reconciler.load_locked()
                completed.append(ImportStep.RELOAD)
            except StoreError as exc:
                logger.error("Re-read after import failed for %s: %s", owner, exc)
                if failed_step is None:
                    failed_step = ImportStep.RELOAD
                    error = str(exc)

        status = ImportStatus.COMPLETED if failed_step is None else ImportStatus.FAILED
        return ImportResult(
            status=status,
            completed_steps=tuple(completed),
            failed_step=failed_step,
            error=error,
            holdings_count=len(document.holdings),
        )
