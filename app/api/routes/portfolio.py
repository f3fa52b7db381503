"""
Portfolio API Routes
Holdings, cash, live valuation, history and import/export
"""

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request, Response
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from typing import Optional, Union
import logging

from app.api.dependencies import get_engine, get_portfolio_session
from app.domain.exceptions import ImportFormatError
from app.domain.models import MutationFailure, MutationOutcome
from app.domain.services.bulk_transfer import dumps_document, export_filename
from app.realtime.runtime import PortfolioSession, ValuationEngine
from app.utils.time import epoch_ms_to_iso

logger = logging.getLogger(__name__)
router = APIRouter()

_FAILURE_STATUS = {
    MutationFailure.INVALID_INPUT: 400,
    MutationFailure.NOT_FOUND: 404,
    MutationFailure.INVALID_SYMBOL: 422,
    MutationFailure.PERSISTENCE: 502,
}

NumberInput = Optional[Union[float, str]]


class AddHoldingRequest(BaseModel):
    symbol: str
    shares: NumberInput = None
    validate_symbol: bool = True


class UpdateSharesRequest(BaseModel):
    shares: NumberInput = None


class BuyingPowerRequest(BaseModel):
    buying_power: NumberInput = None


def _outcome_response(outcome: MutationOutcome) -> dict:
    if not outcome.committed:
        status = _FAILURE_STATUS.get(outcome.failure, 400)
        raise HTTPException(status_code=status, detail=outcome.error or "Mutation failed")

    body = {
        "kind": outcome.kind.value,
        "state": outcome.state.value,
        "symbol": outcome.symbol,
    }
    if outcome.holding is not None:
        body["holding"] = {
            "id": outcome.holding.id,
            "symbol": outcome.holding.symbol,
            "shares": outcome.holding.shares,
        }
    if outcome.buying_power is not None:
        body["buying_power"] = outcome.buying_power
    return body


# ============================================================
# VIEW
# ============================================================

@router.get("")
async def get_portfolio(
    session: PortfolioSession = Depends(get_portfolio_session),
    engine: ValuationEngine = Depends(get_engine),
):
    """Holdings with cached prices, totals and stocks-vs-cash allocation"""
    view = engine.portfolio_view(session)
    view["email"] = session.identity.email
    return view


@router.get("/history")
async def get_history(session: PortfolioSession = Depends(get_portfolio_session)):
    return [
        {
            "timestamp": entry.timestamp,
            "time": epoch_ms_to_iso(entry.timestamp),
            "total_value": entry.total_value,
        }
        for entry in session.history.entries()
    ]


@router.post("/refresh")
async def refresh_prices(
    session: PortfolioSession = Depends(get_portfolio_session),
    engine: ValuationEngine = Depends(get_engine),
):
    """On-demand poll; a no-op while a scheduled poll is in flight"""
    result = await engine.refresh()
    view = engine.portfolio_view(session)
    view["poll"] = {
        "skipped": result.skipped,
        "degraded": result.degraded,
        "partial": result.partial,
        "advisory": result.advisory,
        "succeeded": list(result.succeeded),
        "failed": dict(result.failed),
    }
    return view


# ============================================================
# MUTATIONS
# ============================================================

@router.post("/holdings", status_code=201)
async def add_holding(
    payload: AddHoldingRequest,
    background_tasks: BackgroundTasks,
    session: PortfolioSession = Depends(get_portfolio_session),
    engine: ValuationEngine = Depends(get_engine),
):
    known = set(session.reconciler.symbols())
    outcome = await session.reconciler.add(
        payload.symbol, payload.shares, validate=payload.validate_symbol
    )
    body = _outcome_response(outcome)
    if outcome.symbol not in known:
        # New symbol: price it now instead of waiting for the next tick
        background_tasks.add_task(engine.refresh)
    return body


@router.patch("/holdings/{symbol}")
async def update_holding(
    symbol: str,
    payload: UpdateSharesRequest,
    session: PortfolioSession = Depends(get_portfolio_session),
):
    outcome = await session.reconciler.update(symbol, payload.shares)
    return _outcome_response(outcome)


@router.delete("/holdings/{symbol}")
async def remove_holding(
    symbol: str,
    session: PortfolioSession = Depends(get_portfolio_session),
):
    outcome = await session.reconciler.remove(symbol)
    return _outcome_response(outcome)


@router.put("/buying-power")
async def set_buying_power(
    payload: BuyingPowerRequest,
    session: PortfolioSession = Depends(get_portfolio_session),
):
    outcome = await session.reconciler.set_buying_power(payload.buying_power)
    return _outcome_response(outcome)


# ============================================================
# IMPORT / EXPORT
# ============================================================

@router.get("/export")
async def export_portfolio(session: PortfolioSession = Depends(get_portfolio_session)):
    filename = export_filename()
    return Response(
        content=dumps_document(session.transfer.export()),
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/import")
async def import_portfolio(
    request: Request,
    background_tasks: BackgroundTasks,
    session: PortfolioSession = Depends(get_portfolio_session),
    engine: ValuationEngine = Depends(get_engine),
):
    """Wipe all holdings and cash, then replace them with the uploaded document"""
    raw = await request.body()
    try:
        result = await session.transfer.import_document(raw)
    except ImportFormatError as exc:
        raise HTTPException(status_code=400, detail=f"Import failed: {exc}")

    background_tasks.add_task(engine.refresh)
    body = {
        "status": result.status.value,
        "completed_steps": [step.value for step in result.completed_steps],
        "failed_step": result.failed_step.value if result.failed_step else None,
        "error": result.error,
        "holdings_count": result.holdings_count,
        "portfolio": engine.portfolio_view(session),
    }
    if not result.succeeded:
        logger.error("Import for %s ended degraded: %s", session.user_id, result.error)
        return JSONResponse(status_code=502, content=body)
    return body
