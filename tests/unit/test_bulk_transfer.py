import asyncio
import json
from datetime import date

import pytest

from app.domain.exceptions import ImportFormatError
from app.domain.models import ImportStatus, ImportStep
from app.domain.services.bulk_transfer import (
    BulkTransfer,
    dumps_document,
    export_filename,
    parse_document,
)
from app.domain.services.holdings_reconciler import HoldingsReconciler


OWNER = "user-1"


async def _transfer(store):
    reconciler = HoldingsReconciler(OWNER, store)
    await reconciler.load()
    return BulkTransfer(reconciler, store), reconciler


def test_export_filename_embeds_date():
    assert export_filename(date(2026, 10, 18)) == "asset-dashboard-export-2026-10-18.json"


def test_dumps_uses_two_space_indent():
    text = dumps_document({"buyingPower": 1, "holdings": []})
    assert text.splitlines()[1].startswith('  "buyingPower"')


@pytest.mark.parametrize(
    "document",
    [
        {"buyingPower": 100},
        {"holdings": []},
        {"holdings": {}, "buyingPower": 1},
        {"holdings": [], "buyingPower": "100"},
        {"holdings": [], "buyingPower": True},
        {"holdings": [], "buyingPower": None},
        {"holdings": [{"shares": 1}], "buyingPower": 1},
        {"holdings": ["AAPL"], "buyingPower": 1},
        [],
    ],
)
def test_parse_rejects_malformed_documents(document):
    with pytest.raises(ImportFormatError):
        parse_document(document)


def test_parse_rejects_invalid_json_and_nan():
    with pytest.raises(ImportFormatError):
        parse_document("{not json")
    with pytest.raises(ImportFormatError):
        parse_document('{"holdings": [], "buyingPower": NaN}')


def test_parse_normalizes_entries():
    document = parse_document(
        {
            "buyingPower": -5,
            "holdings": [
                {"symbol": " aapl", "shares": 10},
                {"symbol": "AAPL", "shares": "5"},
                {"symbol": "msft", "shares": -2},
            ],
        }
    )
    assert document.buying_power == 0.0
    assert document.holdings == (("AAPL", 15.0), ("MSFT", 0.0))


@pytest.mark.asyncio
async def test_malformed_import_makes_no_remote_calls(memory_store):
    transfer, _ = await _transfer(memory_store)
    memory_store.calls.clear()

    with pytest.raises(ImportFormatError):
        await transfer.import_document(json.dumps({"buyingPower": 10}))
    with pytest.raises(ImportFormatError):
        await transfer.import_document(json.dumps({"holdings": [], "buyingPower": "lots"}))

    assert memory_store.calls == []


@pytest.mark.asyncio
async def test_import_wipes_then_replaces_in_order(memory_store):
    memory_store.seed(OWNER, [("OLD", 1.0)], buying_power=5)
    transfer, reconciler = await _transfer(memory_store)
    memory_store.calls.clear()

    result = await transfer.import_document(
        {"buyingPower": 900, "holdings": [{"symbol": "AAPL", "shares": 3}, {"symbol": "MSFT", "shares": 1}]}
    )

    assert result.status == ImportStatus.COMPLETED
    assert result.completed_steps == (
        ImportStep.DELETE_HOLDINGS,
        ImportStep.INSERT_HOLDINGS,
        ImportStep.UPSERT_BUYING_POWER,
        ImportStep.RELOAD,
    )
    assert memory_store.calls[:3] == ["delete_all_holdings", "insert_holdings", "upsert_buying_power"]
    assert reconciler.symbols() == ("AAPL", "MSFT")
    assert reconciler.buying_power == 900.0


@pytest.mark.asyncio
async def test_import_with_no_holdings_skips_bulk_insert(memory_store):
    memory_store.seed(OWNER, [("OLD", 1.0)])
    transfer, reconciler = await _transfer(memory_store)
    memory_store.calls.clear()

    result = await transfer.import_document({"buyingPower": 10, "holdings": []})

    assert result.succeeded
    assert "insert_holdings" not in memory_store.calls
    assert reconciler.holdings == ()


@pytest.mark.asyncio
async def test_failure_mid_import_is_reported_and_state_is_reread(memory_store):
    memory_store.seed(OWNER, [("OLD", 1.0)], buying_power=5)
    transfer, reconciler = await _transfer(memory_store)
    memory_store.failing.add("insert_holdings")

    result = await transfer.import_document(
        {"buyingPower": 900, "holdings": [{"symbol": "AAPL", "shares": 3}]}
    )

    assert result.status == ImportStatus.FAILED
    assert result.failed_step == ImportStep.INSERT_HOLDINGS
    assert ImportStep.DELETE_HOLDINGS in result.completed_steps
    assert ImportStep.UPSERT_BUYING_POWER not in result.completed_steps
    # Local state mirrors the partly wiped store, not the document
    assert reconciler.holdings == ()
    assert reconciler.buying_power == 5.0


@pytest.mark.asyncio
async def test_failed_reread_marks_import_failed(memory_store):
    transfer, _ = await _transfer(memory_store)
    memory_store.failing.add("select_holdings")

    result = await transfer.import_document({"buyingPower": 1, "holdings": []})

    assert result.status == ImportStatus.FAILED
    assert result.failed_step == ImportStep.RELOAD


@pytest.mark.asyncio
async def test_export_then_import_round_trips(memory_store):
    memory_store.seed(OWNER, [("AAPL", 10.0), ("MSFT", 2.5)], buying_power=1234.56)
    transfer, reconciler = await _transfer(memory_store)
    before = {(h.symbol, h.shares) for h in reconciler.holdings}

    exported = dumps_document(transfer.export())
    result = await transfer.import_document(exported)

    assert result.succeeded
    assert {(h.symbol, h.shares) for h in reconciler.holdings} == before
    assert reconciler.buying_power == 1234.56


@pytest.mark.asyncio
async def test_add_queued_behind_import_sees_the_imported_portfolio(memory_store):
    memory_store.seed(OWNER, [("AAPL", 10.0)])
    transfer, reconciler = await _transfer(memory_store)

    gate = asyncio.Event()
    delete_all = memory_store.delete_all_holdings

    async def slow_delete_all(owner):
        await gate.wait()
        await delete_all(owner)

    memory_store.delete_all_holdings = slow_delete_all

    importing = asyncio.create_task(
        transfer.import_document({"buyingPower": 0, "holdings": [{"symbol": "MSFT", "shares": 5}]})
    )
    await asyncio.sleep(0)
    adding = asyncio.create_task(reconciler.add("AAPL", 5, validate=False))
    await asyncio.sleep(0)
    gate.set()

    result = await importing
    outcome = await adding

    assert result.succeeded
    assert outcome.committed
    # The add lands on the imported portfolio, not on the wiped AAPL row
    assert outcome.holding.shares == 5.0
    stored = {s: h.shares for s, h in memory_store.holdings[OWNER].items()}
    local = {h.symbol: h.shares for h in reconciler.holdings}
    assert stored == local == {"MSFT": 5.0, "AAPL": 5.0}
