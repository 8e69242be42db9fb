"""Dramatiq mail worker process entrypoint."""

import logging
import signal
import threading

from relaymail.logging import configure_logging
from relaymail.worker.config import settings

logger = logging.getLogger(__name__)


def _safe_import_actors() -> bool:
    """Import actors and mailer modules while surfacing startup errors clearly."""
    try:
        from relaymail.worker.actors import configure_worker

        configure_worker()
        return True
    except Exception:
        logger.exception("Failed to import actor module during worker startup")
        return False


def run() -> None:
    """Start the Dramatiq worker and consume the configured mail queues."""
    import dramatiq
    from dramatiq import Worker

    queue_set: set[str] = set()
    worker: Worker | None = None
    stop_requested = threading.Event()

    if not _safe_import_actors():
        raise RuntimeError("Worker startup aborted due to actor import failure.")

    configure_logging(settings.log_level)

    def _handle_shutdown_signal(signal_number: int, _frame: object) -> None:
        logger.info(
            "Received shutdown signal=%s for worker=%s",
            signal_number,
            settings.worker_name,
        )
        stop_requested.set()

    for signal_name in ("SIGINT", "SIGTERM", "SIGHUP"):
        if hasattr(signal, signal_name):
            signal.signal(getattr(signal, signal_name), _handle_shutdown_signal)

    try:
        queue_set = set(settings.queue_names)
        broker = dramatiq.get_broker()
        logger.debug("Resolved dramatiq broker=%s", type(broker).__name__)

        worker = Worker(
            broker, queues=queue_set, worker_threads=settings.worker_threads
        )
        logger.info(
            "Starting mail worker name=%s queues=%s threads=%s",
            settings.worker_name,
            sorted(queue_set),
            settings.worker_threads,
        )
        worker.start()
        stop_requested.wait()
    except Exception:
        logger.exception(
            "Mail worker failed name=%s queues=%s",
            settings.worker_name,
            sorted(queue_set),
        )
        raise
    finally:
        if worker is not None:
            try:
                logger.info("Stopping mail worker name=%s", settings.worker_name)
                worker.stop(timeout=settings.worker_stop_timeout_seconds * 1000)
            except Exception:
                logger.exception("Worker stop failed name=%s", settings.worker_name)


if __name__ == "__main__":
    run()
