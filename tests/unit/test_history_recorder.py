from app.domain.models import Holding, PortfolioState, Snapshot
from app.domain.services.history_recorder import HistoryRecorder


def _recorder(holdings=(), buying_power=0.0):
    state = {"value": PortfolioState(holdings=tuple(holdings), buying_power=buying_power)}
    recorder = HistoryRecorder(lambda: state["value"])
    return recorder, state


def test_records_rounded_total():
    recorder, _ = _recorder([Holding(symbol="AAPL", shares=3)], buying_power=0.005)
    entry = recorder.record(Snapshot(timestamp=1000, prices={"AAPL": 33.333}))
    assert entry is not None
    assert entry.total_value == 100.0
    assert entry.timestamp == 1000


def test_duplicate_and_out_of_order_snapshots_are_ignored():
    recorder, _ = _recorder([Holding(symbol="AAPL", shares=1)])
    timestamps = [100, 100, 200, 200, 200, 150, 300, 300]
    for ts in timestamps:
        recorder.record(Snapshot(timestamp=ts, prices={"AAPL": 10.0}))

    entries = recorder.entries()
    assert [e.timestamp for e in entries] == [100, 200, 300]
    assert recorder.last_timestamp == 300


def test_monotonic_series_length_matches_distinct_timestamps():
    recorder, _ = _recorder()
    timestamps = [1, 1, 2, 3, 3, 3, 4, 5, 5]
    for ts in timestamps:
        recorder.record(Snapshot(timestamp=ts, prices={}))
    assert len(recorder) == len(set(timestamps))


def test_uses_holdings_current_when_snapshot_applies():
    recorder, state = _recorder([Holding(symbol="AAPL", shares=1)], buying_power=0)
    recorder.record(Snapshot(timestamp=1, prices={"AAPL": 100.0}))

    state["value"] = PortfolioState(holdings=(Holding(symbol="AAPL", shares=2),), buying_power=50)
    entry = recorder.record(Snapshot(timestamp=2, prices={"AAPL": 100.0}))
    assert entry.total_value == 250.0


def test_non_finite_total_is_skipped_without_advancing():
    recorder, state = _recorder([Holding(symbol="BIG", shares=1e308)])
    assert recorder.record(Snapshot(timestamp=10, prices={"BIG": 1e308})) is None
    assert recorder.entries() == []
    assert recorder.last_timestamp is None

    state["value"] = PortfolioState(holdings=(), buying_power=5)
    entry = recorder.record(Snapshot(timestamp=10, prices={}))
    assert entry is not None
    assert entry.total_value == 5.0


def test_clear_resets_series():
    recorder, _ = _recorder()
    recorder.record(Snapshot(timestamp=5, prices={}))
    recorder.clear()
    assert recorder.entries() == []
    assert recorder.record(Snapshot(timestamp=1, prices={})) is not None
