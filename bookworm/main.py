"""
Main entry point for Bookworm Sync.

Starts the Flask API and, if an interval is configured, the background
sync scheduler.
"""

import asyncio
import atexit
from datetime import datetime, timezone
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from flask import Flask

from bookworm.config import SyncConfig, get_config_from_env, owner_from_config
from bookworm.db.database import init_db, close_db
from bookworm.sync.history import record_sync_run
from bookworm.sync.library import BookLibrary, create_library_from_config
from bookworm.utils.logging import get_logger, setup_logging, init_db_logging

logger = get_logger(__name__)

# Global scheduler
scheduler = BackgroundScheduler()


def create_app(
    config: Optional[SyncConfig] = None,
    library: Optional[BookLibrary] = None,
) -> Flask:
    """
    Create and configure the Flask application.

    Args:
        config: Configuration, loaded from the environment if omitted
        library: Book library, built from the configuration if omitted

    Returns:
        Configured Flask app
    """
    config = config or get_config_from_env()

    app = Flask(__name__)
    app.secret_key = config.secret_key

    init_db(config.database_url)

    app.extensions["bookworm.config"] = config
    app.extensions["bookworm.library"] = library or create_library_from_config(config)

    # Register blueprints
    from bookworm.web.routes.api import api_bp
    app.register_blueprint(api_bp)

    # Health check
    @app.route('/health')
    def health():
        return {'status': 'ok', 'timestamp': datetime.now(timezone.utc).isoformat()}

    return app


def run_sync(library: BookLibrary, config: SyncConfig):
    """Run a scheduled sync for the configured owner."""
    owner = owner_from_config(config)
    if owner is None:
        logger.warning("No ID token configured, skipping sync")
        return

    logger.info("Starting scheduled sync")

    try:
        result = asyncio.run(library.engine.sync(owner))
        record_sync_run(result)
        logger.info(
            "Sync completed",
            run_id=result.run_id,
            pushed=result.books_pushed,
            failed=result.books_failed,
            pulled=result.books_pulled,
        )
    except Exception as e:
        logger.exception("Sync failed", error=str(e))


def start_scheduler(library: BookLibrary, config: SyncConfig):
    """
    Start the background sync scheduler.

    Args:
        library: Book library to sync
        config: Configuration with the sync interval and owner
    """
    scheduler.add_job(
        run_sync,
        trigger=IntervalTrigger(minutes=config.sync_interval_minutes),
        args=[library, config],
        id='sync_job',
        name='Bookworm Sync',
        replace_existing=True,
    )

    scheduler.start()
    logger.info(f"Scheduler started with {config.sync_interval_minutes} minute interval")


def shutdown_scheduler():
    """Shutdown the scheduler gracefully."""
    if scheduler.running:
        scheduler.shutdown()
        logger.info("Scheduler shutdown")


def main():
    """Main entry point."""
    config = get_config_from_env()

    setup_logging(config.log_level)

    app = create_app(config)

    # Database logging needs the tables created by create_app
    init_db_logging()

    logger.info(
        "Starting Bookworm Sync",
        version="0.1.0",
        sync_interval=config.sync_interval_minutes,
    )

    library = app.extensions["bookworm.library"]

    if config.sync_interval_minutes > 0:
        start_scheduler(library, config)

    # atexit runs these last-registered first
    atexit.register(close_db)
    atexit.register(library.close)
    atexit.register(shutdown_scheduler)

    # Run Flask app with waitress
    from waitress import serve
    serve(app, host="0.0.0.0", port=config.port)


if __name__ == "__main__":
    main()
