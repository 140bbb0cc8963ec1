"""
Sync run history.
"""

from bookworm.db.database import get_db_session
from bookworm.db.models import SyncRun
from bookworm.sync.models import SyncRunResult
from bookworm.utils.logging import get_logger

logger = get_logger(__name__)


def record_sync_run(result: SyncRunResult) -> None:
    """
    Save the result of a sync run.

    History is informational; a failure to save it is logged only.
    """
    try:
        with get_db_session() as session:
            session.add(SyncRun(
                run_id=result.run_id,
                started_at=result.started_at,
                completed_at=result.completed_at,
                status="completed" if result.success else "failed",
                books_pushed=result.books_pushed,
                books_skipped=result.books_skipped,
                books_failed=result.books_failed,
                books_pulled=result.books_pulled,
                error_message=result.error_message,
            ))
    except Exception as e:
        logger.error("Failed to save sync run", run_id=result.run_id, error=str(e))
