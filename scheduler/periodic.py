"""Fixed-interval trigger for sync processes."""
import logging
import threading
from typing import Optional

from processor.models import SyncResult
from scheduler.config import DEFAULT_INTERVAL_SECONDS
from scheduler.sync_service import SyncService

logger = logging.getLogger(__name__)


class PeriodicScheduler:
    """
    Drives a SyncService on a fixed interval and on demand.

    Periodic ticks never overlap a running sync: a tick that finds the
    service busy is skipped. Tick failures are logged and the scheduler
    stays armed for the next interval.
    """

    def __init__(self, service: SyncService, interval_seconds: int = DEFAULT_INTERVAL_SECONDS):
        if interval_seconds <= 0:
            raise ValueError(f"interval_seconds must be positive, got {interval_seconds}")
        self.service = service
        self.interval_seconds = interval_seconds
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def tick(self) -> Optional[SyncResult]:
        """
        Run one periodic sync.

        Returns:
            SyncResult, or None if the tick was skipped or failed
        """
        try:
            result = self.service.try_run_sync_process("periodic")
        except Exception as e:
            logger.error(
                f"Periodic sync failed: {e}",
                extra={'error_type': type(e).__name__},
                exc_info=True
            )
            return None

        if result is None:
            logger.info("Periodic tick skipped, previous sync still running")
        return result

    def trigger_now(self, trigger: str = "manual") -> SyncResult:
        """Run a sync on demand, waiting for any in-flight run; errors propagate."""
        return self.service.run_sync_process(trigger)

    def start(self) -> None:
        """Start the background scheduler thread."""
        if self.running:
            logger.warning("Scheduler already running")
            return

        self._stop_event.clear()

        def scheduler_loop():
            # First run happens one full interval after start
            while not self._stop_event.wait(self.interval_seconds):
                self.tick()

        self._thread = threading.Thread(
            target=scheduler_loop,
            name="PeriodicSyncScheduler",
            daemon=True
        )
        self._thread.start()
        logger.info(f"Sync scheduler started with {self.interval_seconds}s interval")

    def stop(self, timeout: Optional[float] = 1.0) -> None:
        """Stop the background scheduler thread; an in-flight sync finishes on its own."""
        if self._thread and self._thread.is_alive():
            self._stop_event.set()
            self._thread.join(timeout=timeout)
            logger.info("Sync scheduler stopped")
        self._thread = None
