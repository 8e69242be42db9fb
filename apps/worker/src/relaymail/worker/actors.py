"""Dramatiq actor definitions for queued mailer jobs."""

from __future__ import annotations

import importlib
import logging
from typing import Any

import dramatiq
from dramatiq.brokers.redis import RedisBroker

from relaymail.delivery import build_delivery_method
from relaymail.executor import JobExecutor
from relaymail.logging import configure_logging
from relaymail.mailer import Mailer
from relaymail.references import ModelReferenceCodec, models
from relaymail.worker.config import WorkerSettings, settings

logger = logging.getLogger(__name__)
configure_logging(settings.log_level)

DRAMATIQ_BROKER = RedisBroker(url=settings.redis_url)
dramatiq.set_broker(DRAMATIQ_BROKER)


def load_mailer_modules(module_names: list[str]) -> list[str]:
    """Import modules that register mailers and models in this process."""
    loaded: list[str] = []
    for module_name in module_names:
        importlib.import_module(module_name)
        loaded.append(module_name)
    if loaded:
        logger.info("Loaded mailer modules=%s", loaded)
    return loaded


def configure_worker(worker_settings: WorkerSettings = settings) -> None:
    """Load mailer modules and wire worker-side delivery for this process."""
    load_mailer_modules(worker_settings.mailer_module_names)
    Mailer.configure(
        delivery_method=build_delivery_method(worker_settings),
        default_sender=worker_settings.default_sender,
    )


_EXECUTOR = JobExecutor(ModelReferenceCodec(models))


def _extract_call_args(args: Any) -> tuple[Any, ...]:
    """Convert the transported argument list back into call-site args."""
    if not isinstance(args, list):
        raise TypeError("Mail job args must be a list.")
    return tuple(args)


@dramatiq.actor(
    queue_name=settings.mail_queue_name, max_retries=settings.job_max_retries
)
def perform_mail_job(mailer_name: str, command: str, args: list[Any]) -> None:
    """Entry-point actor for all queued mailer deliveries."""
    call_args = _extract_call_args(args)
    try:
        _EXECUTOR.perform(mailer_name, command, *call_args)
    except Exception:
        logger.exception("Mail job failed mailer=%s command=%s", mailer_name, command)
        raise
    logger.info("Completed mail job mailer=%s command=%s", mailer_name, command)
