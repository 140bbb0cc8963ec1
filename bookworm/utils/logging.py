"""
Logging for Bookworm Sync.

Everything goes through structlog on top of stdlib logging, so events from
third-party libraries and from our own key/value calls share one console
format. INFO and above can also be mirrored into the sync_log table.
"""

import logging
import os
import sys
from functools import partialmethod
from typing import Any, List, Optional

import structlog
from structlog.types import Processor

# Loggers that are chatty at INFO
NOISY_LOGGERS = ("urllib3", "requests", "apscheduler", "waitress")


def _pre_chain() -> List[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.ExtraAdder(),
    ]


def _formatter(colors: bool) -> structlog.stdlib.ProcessorFormatter:
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=_pre_chain(),
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.dev.ConsoleRenderer(colors=colors),
        ],
    )


def setup_logging(level: Optional[str] = None) -> None:
    """
    Route structlog through stdlib logging and log to stdout.

    Args:
        level: Level name, LOG_LEVEL from the environment if omitted
    """
    structlog.configure(
        processors=_pre_chain() + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(_formatter(colors=sys.stdout.isatty()))

    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    root = logging.getLogger()
    root.addHandler(handler)
    root.setLevel(getattr(logging, level_name, logging.INFO))

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


class DatabaseLogHandler(logging.Handler):
    """
    Writes records to the sync_log table for the /api/logs route.

    Only the newest `max_logs` rows are kept.
    """

    def __init__(self, max_logs: int = 1000):
        super().__init__()
        self.max_logs = max_logs

    def emit(self, record: logging.LogRecord) -> None:
        # imported here so that the sync modules can log without a database
        from bookworm.db.database import get_db_session
        from bookworm.db.models import SyncLog

        # structlog hands over its event dict as the record message
        event = record.msg if isinstance(record.msg, dict) else {}

        try:
            with get_db_session() as session:
                session.add(SyncLog(
                    level=record.levelname,
                    message=self.format(record),
                    sync_run_id=event.get("sync_run_id"),
                ))
                session.flush()

                cutoff = session.query(SyncLog.id)\
                    .order_by(SyncLog.id.desc())\
                    .offset(self.max_logs)\
                    .limit(1)\
                    .scalar()
                if cutoff is not None:
                    session.query(SyncLog)\
                        .filter(SyncLog.id <= cutoff)\
                        .delete(synchronize_session=False)
        except Exception:
            self.handleError(record)


def init_db_logging(max_logs: int = 1000) -> DatabaseLogHandler:
    """Mirror INFO and above into the database. Call after init_db()."""
    handler = DatabaseLogHandler(max_logs=max_logs)
    handler.setLevel(logging.INFO)
    handler.setFormatter(_formatter(colors=False))
    logging.getLogger().addHandler(handler)
    return handler


def get_logger(name: str = __name__) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


class SyncLogger:
    """
    Logger for one sync run.

    Events logged through it carry the run ID. Used as a context manager it
    also binds the run ID for every other logger until the block exits, so
    push and pull events land in the same run in sync_log.
    """

    def __init__(self, sync_run_id: str):
        self.sync_run_id = sync_run_id
        self.logger = get_logger("bookworm.sync.run")
        self._bound = None

    def __enter__(self) -> "SyncLogger":
        self._bound = structlog.contextvars.bound_contextvars(sync_run_id=self.sync_run_id)
        self._bound.__enter__()
        return self

    def __exit__(self, *exc_info) -> None:
        self._bound.__exit__(*exc_info)
        self._bound = None

    def _log(self, level: str, message: str, **kwargs: Any) -> None:
        getattr(self.logger, level)(message, sync_run_id=self.sync_run_id, **kwargs)

    debug = partialmethod(_log, "debug")
    info = partialmethod(_log, "info")
    warning = partialmethod(_log, "warning")
    error = partialmethod(_log, "error")
