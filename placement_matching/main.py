"""
Placement Matching Main Entry Point

Starts logging, checks the database and runs the recomputation queue
processor in the foreground until interrupted.
"""

import signal
import sys
import threading


def main() -> int:
    """
    Run the matching queue processor.

    Returns:
        Exit code (0 for success, non-zero for errors)
    """
    try:
        from placement_matching.utils.logger import setup_logging, log

        setup_logging()
        log.info("Starting placement matching engine...")

        from placement_matching.utils.config import get_settings

        settings = get_settings()
        log.info(f"Environment: {settings.environment}")
        log.info(f"Queue backend: {settings.queue.backend}")

        if settings.queue.backend == "mongodb":
            from placement_matching.data.database import get_database_manager

            db_manager = get_database_manager()
            if not db_manager.check_connection():
                log.error("Could not connect to MongoDB. Run 'placement-matching init-db' first.")
                return 1
            db_manager.ensure_indexes()
            log.info("Database connection established")

        from placement_matching.core.service import build_matching_service

        service = build_matching_service(settings)

        shutdown = threading.Event()

        def _handle_signal(signum, frame):
            log.info("Shutdown signal received")
            shutdown.set()

        signal.signal(signal.SIGINT, _handle_signal)
        signal.signal(signal.SIGTERM, _handle_signal)

        service.start()
        # Event.wait with a timeout keeps the main thread responsive to signals
        while not shutdown.wait(1.0):
            pass

        service.stop(timeout=settings.queue.task_timeout_seconds)
        log.info("Placement matching engine stopped")
        return 0

    except KeyboardInterrupt:
        print("\nInterrupted by user.")
        return 130
    except Exception as e:
        print(f"Fatal error: {e}")
        import traceback

        traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
