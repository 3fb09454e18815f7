"""Sync process orchestration: fetch, aggregate, write, reload."""
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence

from processor.aggregator import aggregate, flatten
from processor.models import CanonicalEvent, EventFilters, FetchOutcome, SyncResult
from scheduler.config import SyncConfig, resolve_store_path
from sources.base import SourceAdapter
from storage.xlsx_writer import XlsxSheetWriter

logger = logging.getLogger(__name__)

STATUS_OK = "ok"
STATUS_DEGRADED = "degraded"
STATUS_UNKNOWN = "unknown"


class SyncService:
    """
    Runs sync processes over a fixed, ordered set of source adapters.

    The service owns the single-flight lock guarding the store; callers
    that must not wait (the periodic scheduler) acquire it non-blocking
    through ``try_run_sync_process``.
    """

    def __init__(
        self,
        adapters: Sequence[SourceAdapter],
        writer: XlsxSheetWriter,
        config: SyncConfig,
        reload_index: Callable[[], None],
        base_dir: Optional[Path] = None
    ):
        """
        Initialize the service.

        Args:
            adapters: Source adapters in registration order
            writer: Sheet writer for the store
            config: Pipeline configuration
            reload_index: Callable signalling the read index to reload
            base_dir: Directory relative store paths resolve against
        """
        self.adapters = list(adapters)
        self.writer = writer
        self.config = config
        self.reload_index = reload_index
        self.base_dir = base_dir
        self.lock = threading.Lock()

    @property
    def in_progress(self) -> bool:
        return self.lock.locked()

    def fetch_all(self) -> List[FetchOutcome]:
        """
        Invoke every adapter concurrently and wait for all of them.

        Returns:
            One FetchOutcome per adapter, in registration order
        """
        if not self.adapters:
            return []

        with ThreadPoolExecutor(
            max_workers=len(self.adapters),
            thread_name_prefix="source-fetch"
        ) as executor:
            futures = [executor.submit(adapter.fetch) for adapter in self.adapters]

        outcomes = []
        for adapter, future in zip(self.adapters, futures):
            try:
                outcomes.append(future.result())
            except Exception as e:
                logger.error(
                    f"Adapter {adapter.name} raised unexpectedly: {e}",
                    extra={'error_type': type(e).__name__},
                    exc_info=True
                )
                outcomes.append(FetchOutcome(source=adapter.name, error=str(e)))

        return outcomes

    def run_sync_process(self, trigger: str) -> SyncResult:
        """
        Run one full sync, waiting for any in-flight run to finish first.

        Args:
            trigger: Tag naming what initiated the run (e.g. "periodic")

        Returns:
            SyncResult describing the run

        Raises:
            SyncError: If resolving, writing or reloading the store fails
        """
        with self.lock:
            return self._run(trigger)

    def try_run_sync_process(self, trigger: str) -> Optional[SyncResult]:
        """Run a sync only if none is in flight; returns None when skipped."""
        if not self.lock.acquire(blocking=False):
            logger.warning(f"Sync already in progress, skipping {trigger} run")
            return None
        try:
            return self._run(trigger)
        finally:
            self.lock.release()

    def _run(self, trigger: str) -> SyncResult:
        start_time = time.time()
        logger.info(f"Sync process started", extra={'trigger': trigger})

        outcomes = self.fetch_all()
        failed_sources = [outcome.source for outcome in outcomes if not outcome.succeeded]
        source_counts = {outcome.source: len(outcome.results) for outcome in outcomes}

        # Persist the full dataset; filters only apply to read views
        events = aggregate(flatten(outcomes))
        logger.info(f"Aggregated {len(events)} events from {len(outcomes)} sources")

        store_path = resolve_store_path(self.config, self.base_dir)
        written = self.writer.sync(store_path, self.config.sheet_name, events)

        self.reload_index()

        duration = round(time.time() - start_time, 2)
        logger.info(
            f"Sync process completed",
            extra={
                'trigger': trigger,
                'events_written': written,
                'failed_sources': failed_sources,
                'duration_seconds': duration
            }
        )

        return SyncResult(
            trigger=trigger,
            events_written=written,
            source_counts=source_counts,
            failed_sources=failed_sources,
            duration_seconds=duration
        )

    def aggregated_events(self, filters: Optional[EventFilters] = None) -> List[CanonicalEvent]:
        """Fetch every source and return the filtered, ordered dataset without writing."""
        return aggregate(flatten(self.fetch_all()), filters)

    def health(self) -> Dict[str, str]:
        """
        Check each adapter once, independently.

        Returns:
            Mapping of source name to "ok", "degraded" or "unknown"
        """
        report = {}
        for adapter in self.adapters:
            try:
                outcome = adapter.fetch()
            except Exception as e:
                logger.error(f"Health check for {adapter.name} raised: {e}")
                outcome = FetchOutcome(source=adapter.name, error=str(e))

            if outcome.results:
                status = STATUS_OK
            elif adapter.KNOWN_UNSTABLE:
                status = STATUS_DEGRADED
            else:
                status = STATUS_UNKNOWN

            if not outcome.succeeded:
                logger.warning(f"Health check for {adapter.name} failed: {outcome.error}")

            report[adapter.name] = status

        return report

    def find_adapter(self, name: str) -> Optional[SourceAdapter]:
        """Look up a registered adapter by source name (case-insensitive)."""
        for adapter in self.adapters:
            if adapter.name.lower() == (name or '').lower():
                return adapter
        return None
