"""Unit tests for the sync service pipeline and health monitor."""
import threading
import time
from unittest.mock import Mock

import pytest
from openpyxl import Workbook, load_workbook

from processor.errors import ConfigurationUnresolved, IndexReloadFailed, StoreStructureMissing
from processor.models import CanonicalEvent, EventFilters, FetchOutcome, SourceResult
from scheduler.config import SyncConfig
from scheduler.sync_service import SyncService
from storage.xlsx_writer import XlsxSheetWriter


class FakeAdapter:
    """Adapter double returning canned events, failing, or raising."""

    def __init__(self, name, dates=(), error=None, raises=None, delay=0.0, unstable=False):
        self.name = name
        self.dates = list(dates)
        self.error = error
        self.raises = raises
        self.delay = delay
        self.KNOWN_UNSTABLE = unstable
        self.calls = 0

    def fetch(self):
        self.calls += 1
        if self.delay:
            time.sleep(self.delay)
        if self.raises is not None:
            raise self.raises
        if self.error is not None:
            return FetchOutcome(source=self.name, error=self.error)
        return FetchOutcome(source=self.name, results=[
            SourceResult(
                source=self.name,
                event=CanonicalEvent(date=date, location="Gaza", source=self.name)
            )
            for date in self.dates
        ])


@pytest.fixture
def store_path(tmp_path):
    path = tmp_path / "data" / "timemap.xlsx"
    path.parent.mkdir()
    workbook = Workbook()
    workbook.active.title = "EXPORT_EVENTS"
    workbook.active.append(['id', 'date', 'source'])
    workbook.save(path)
    return path


@pytest.fixture
def config(store_path):
    return SyncConfig(store_path=str(store_path), sheet_name="EXPORT_EVENTS")


def make_service(adapters, config, reload_index=None, writer=None):
    return SyncService(
        adapters=adapters,
        writer=writer or XlsxSheetWriter(),
        config=config,
        reload_index=reload_index or Mock()
    )


class TestFetchAll:
    """Test cases for the concurrent fan-out."""

    def test_outcomes_in_registration_order(self, config):
        """Outcome order follows registration, not completion timing."""
        slow = FakeAdapter("Slow", dates=["2024-01-01"], delay=0.2)
        fast = FakeAdapter("Fast", dates=["2024-01-02"])
        service = make_service([slow, fast], config)

        outcomes = service.fetch_all()

        assert [outcome.source for outcome in outcomes] == ["Slow", "Fast"]

    def test_raising_adapter_captured(self, config):
        """An adapter that raises becomes a failure outcome."""
        service = make_service([
            FakeAdapter("Good", dates=["2024-01-01"]),
            FakeAdapter("Broken", raises=RuntimeError("boom")),
        ], config)

        outcomes = service.fetch_all()

        assert outcomes[0].succeeded
        assert not outcomes[1].succeeded
        assert outcomes[1].error == "boom"


class TestRunSyncProcess:
    """Test cases for the full sync process."""

    def test_partial_failure_tolerated(self, config, store_path):
        """One throwing adapter does not stop the union of the others being written."""
        reload_index = Mock()
        service = make_service([
            FakeAdapter("TechForPalestine", dates=["2024-05-01"]),
            FakeAdapter("TechForPalestine-Daily", dates=["2024-05-03", "2024-05-02"]),
            FakeAdapter("ReliefWeb", raises=ConnectionError("unreachable")),
            FakeAdapter("ACLED", dates=[None]),
        ], config, reload_index=reload_index)

        result = service.run_sync_process("on_demand")

        assert result.trigger == "on_demand"
        assert result.events_written == 4
        assert result.failed_sources == ["ReliefWeb"]
        assert result.source_counts == {
            "TechForPalestine": 1,
            "TechForPalestine-Daily": 2,
            "ReliefWeb": 0,
            "ACLED": 1,
        }
        reload_index.assert_called_once_with()

        rows = list(load_workbook(store_path)["EXPORT_EVENTS"].iter_rows(values_only=True))
        assert [row[1] or "" for row in rows[1:]] == ["05/03/2024", "05/02/2024", "05/01/2024", ""]
        assert [row[2] for row in rows[1:]] == [
            "TechForPalestine-Daily", "TechForPalestine-Daily", "TechForPalestine", "ACLED"
        ]

    def test_write_failure_propagates(self, config):
        """A structural store error aborts the run and skips the reload."""
        config.sheet_name = "MISSING"
        reload_index = Mock()
        service = make_service([FakeAdapter("A", dates=["2024-01-01"])], config, reload_index)

        with pytest.raises(StoreStructureMissing):
            service.run_sync_process("on_demand")

        reload_index.assert_not_called()
        assert not service.in_progress

    def test_unresolved_store_propagates(self, tmp_path):
        config = SyncConfig(store_path=str(tmp_path / "missing.xlsx"))
        service = make_service([FakeAdapter("A")], config)

        with pytest.raises(ConfigurationUnresolved):
            service.run_sync_process("on_demand")

    def test_reload_failure_fails_run(self, config):
        reload_index = Mock(side_effect=IndexReloadFailed("index down"))
        service = make_service([FakeAdapter("A", dates=["2024-01-01"])], config, reload_index)

        with pytest.raises(IndexReloadFailed):
            service.run_sync_process("on_demand")

    def test_try_run_skips_while_in_flight(self, config):
        """A non-blocking run is skipped while another run holds the lock."""
        started = threading.Event()
        release = threading.Event()

        def blocking_sync(store_path, sheet_name, events):
            started.set()
            release.wait(5)
            return len(events)

        writer = Mock()
        writer.sync.side_effect = blocking_sync
        service = make_service([FakeAdapter("A", dates=["2024-01-01"])], config, writer=writer)

        worker = threading.Thread(target=service.run_sync_process, args=("on_demand",))
        worker.start()
        assert started.wait(5)

        try:
            assert service.in_progress
            assert service.try_run_sync_process("periodic") is None
        finally:
            release.set()
            worker.join(5)

        assert writer.sync.call_count == 1
        assert service.try_run_sync_process("periodic").events_written == 1


class TestAggregatedEvents:
    """Test cases for the read-only aggregated view."""

    def test_filters_forwarded_without_writing(self, config):
        writer = Mock()
        service = make_service([
            FakeAdapter("ReliefWeb", dates=["2024-01-02", "2024-01-05"]),
            FakeAdapter("ACLED", dates=["2024-01-03"]),
        ], config, writer=writer)

        events = service.aggregated_events(
            EventFilters(source="ReliefWeb", date_from="2024-01-01", date_to="2024-01-04")
        )

        assert [(event.source, event.date) for event in events] == [("ReliefWeb", "2024-01-02")]
        writer.sync.assert_not_called()


class TestHealth:
    """Test cases for the health monitor."""

    def test_health_statuses(self, config):
        """ok with results; degraded for unstable sources; unknown otherwise."""
        service = make_service([
            FakeAdapter("TechForPalestine", dates=["2024-01-01"]),
            FakeAdapter("TechForPalestine-Daily"),
            FakeAdapter("ReliefWeb", error="403", unstable=True),
            FakeAdapter("ACLED", raises=RuntimeError("boom")),
        ], config)

        assert service.health() == {
            "TechForPalestine": "ok",
            "TechForPalestine-Daily": "unknown",
            "ReliefWeb": "degraded",
            "ACLED": "unknown",
        }

    def test_health_does_not_touch_store(self, config):
        writer = Mock()
        reload_index = Mock()
        service = make_service([FakeAdapter("A", dates=["2024-01-01"])], config, reload_index, writer)

        service.health()

        writer.sync.assert_not_called()
        reload_index.assert_not_called()
