"""Entry points for the Timemap event sync: on-demand handlers and the periodic runner."""
import argparse
import json
import logging
import time
from dataclasses import asdict
from typing import Any, Dict, List, Optional

from processor.models import EventFilters
from scheduler.config import SyncConfig, load_config, resolve_store_path
from scheduler.periodic import PeriodicScheduler
from scheduler.sync_service import SyncService
from sources.acled import AcledConflictEvents
from sources.reliefweb import ReliefWebReports
from sources.techforpalestine import TechForPalestineDaily, TechForPalestineSummary
from storage.index_reload import HttpIndexReloader, NullIndexReloader
from storage.xlsx_writer import XlsxSheetWriter

_service: Optional[SyncService] = None

# Attributes every LogRecord carries; anything else arrived through extra=
STANDARD_RECORD_ATTRS = frozenset(
    logging.LogRecord('', logging.INFO, '', 0, '', None, None).__dict__
) | {'message', 'asctime'}


# Configure JSON logging
class JsonFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            'timestamp': self.formatTime(record),
            'level': record.levelname,
            'message': record.getMessage(),
            'logger': record.name
        }

        for key, value in record.__dict__.items():
            if key not in STANDARD_RECORD_ATTRS and key not in log_data:
                log_data[key] = value

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logging(log_level: str = 'INFO') -> None:
    """
    Configure logging with JSON formatter.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    root_logger = logging.getLogger()

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root_logger.addHandler(handler)

    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))


def build_service(config: SyncConfig) -> SyncService:
    """
    Wire adapters, writer and index reloader for a configuration.

    Adapters are registered in the order their events are concatenated:
    summary, daily, humanitarian, conflict.
    """
    timeout = config.timeout_seconds
    adapters = [
        TechForPalestineSummary(timeout=timeout),
        TechForPalestineDaily(timeout=timeout, window=config.daily_window),
        ReliefWebReports(
            appname=config.reliefweb_appname,
            timeout=timeout,
            limit=config.reliefweb_limit
        ),
        AcledConflictEvents(
            username=config.acled_username,
            password=config.acled_password,
            timeout=timeout,
            country=config.acled_country,
            limit=config.acled_limit
        ),
    ]

    if config.index_reload_url:
        reload_index = HttpIndexReloader(config.index_reload_url, timeout=timeout)
    else:
        reload_index = NullIndexReloader()

    return SyncService(
        adapters=adapters,
        writer=XlsxSheetWriter(),
        config=config,
        reload_index=reload_index
    )


def get_service() -> SyncService:
    """Return the process-wide service so every trigger shares one single-flight lock."""
    global _service
    if _service is None:
        config = load_config()
        setup_logging(config.log_level)
        _service = build_service(config)
    return _service


def _response(status_code: int, body: Dict[str, Any]) -> Dict[str, Any]:
    return {'statusCode': status_code, 'body': json.dumps(body)}


def _query_params(event: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    return (event or {}).get('queryStringParameters') or {}


def sync_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    On-demand sync trigger.

    Args:
        event: Request payload (unused; sync always writes the full dataset)
        context: Invocation context

    Returns:
        Response dict with statusCode and sync statistics or error detail
    """
    logger = logging.getLogger(__name__)
    start_time = time.time()

    try:
        service = get_service()
        logger.info("On-demand sync requested")
        result = service.run_sync_process("on_demand")
    except Exception as e:
        duration = time.time() - start_time
        logger.error(
            f"On-demand sync failed: {str(e)}",
            extra={'error_type': type(e).__name__},
            exc_info=True
        )
        return _response(500, {
            'message': 'Sync failed',
            'error': str(e),
            'error_type': type(e).__name__,
            'duration_seconds': round(duration, 2)
        })

    return _response(200, {
        'message': 'Sync completed successfully',
        'statistics': {
            'events_written': result.events_written,
            'source_counts': result.source_counts,
            'duration_seconds': result.duration_seconds
        },
        'failed_sources': result.failed_sources
    })


def events_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Aggregated, read-only events view.

    Query parameters ``source``, ``from`` and ``to`` are forwarded to the
    aggregator's filter stage. Nothing is written to the store.
    """
    params = _query_params(event)
    filters = EventFilters(
        source=params.get('source'),
        date_from=params.get('from'),
        date_to=params.get('to')
    )

    events = get_service().aggregated_events(filters)
    return _response(200, {
        'count': len(events),
        'events': [asdict(item) for item in events]
    })


def health_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """Per-source liveness report; always succeeds."""
    return _response(200, {'sources': get_service().health()})


def source_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """Raw results of a single source adapter, selected by path parameter."""
    name = ((event or {}).get('pathParameters') or {}).get('source', '')
    service = get_service()

    adapter = service.find_adapter(name)
    if adapter is None:
        return _response(404, {'error': f"Unknown source: {name}"})

    outcome = adapter.fetch()
    if not outcome.succeeded:
        return _response(502, {
            'error': f"Failed to fetch {adapter.name} data",
            'details': outcome.error
        })

    return _response(200, {
        'source': adapter.name,
        'results': [asdict(result) for result in outcome.results]
    })


def main(argv: Optional[List[str]] = None) -> int:
    """Run the periodic sync scheduler, or a single sync with --once."""
    parser = argparse.ArgumentParser(description="Sync external events into the Timemap store")
    parser.add_argument('--once', action='store_true', help="run a single sync and exit")
    parser.add_argument(
        '--seed-associations',
        action='store_true',
        help="write the association categories sheet and exit"
    )
    parser.add_argument(
        '--sync-on-start',
        action='store_true',
        help="run a sync immediately before the first interval elapses"
    )
    args = parser.parse_args(argv)

    config = load_config()
    setup_logging(config.log_level)
    logger = logging.getLogger(__name__)
    service = build_service(config)

    if args.seed_associations:
        service.writer.seed_associations(resolve_store_path(config))
        return 0

    scheduler = PeriodicScheduler(service, interval_seconds=config.interval_seconds)

    if args.once:
        result = scheduler.trigger_now("cli")
        logger.info(f"Wrote {result.events_written} events")
        return 0

    if args.sync_on_start:
        scheduler.tick()

    scheduler.start()
    try:
        while scheduler.running:
            time.sleep(1)
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
    finally:
        scheduler.stop()

    return 0


if __name__ == '__main__':
    raise SystemExit(main())
