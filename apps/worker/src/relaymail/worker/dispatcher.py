"""Queue dispatcher adapters for deferred mailer deliveries."""

from __future__ import annotations

from typing import Any

import dramatiq

from relaymail.delivery import build_delivery_method
from relaymail.mailer import DeferredDispatcher, Mailer
from relaymail.queue import QueueClient, receiver_name
from relaymail.references import ModelReferenceCodec, models
from relaymail.settings import MailerSettings
from relaymail.worker.actors import perform_mail_job
from relaymail.worker.config import settings as worker_settings


class DramatiqQueueClient:
    """Queue adapter that sends mailer jobs to the Dramatiq broker."""

    def enqueue(
        self, receiver: Any, method_name: str, *args: Any
    ) -> dramatiq.Message:
        """Send the job and return the Dramatiq message as its handle."""
        return perform_mail_job.send(receiver_name(receiver), method_name, list(args))


def build_queue_client() -> QueueClient:
    """Factory for the default production queue adapter."""
    return DramatiqQueueClient()


def build_dispatcher(settings: MailerSettings | None = None) -> DeferredDispatcher:
    """Dispatcher wired to the broker, the model registry and the environment."""
    settings = settings or worker_settings
    return DeferredDispatcher.from_settings(
        settings, build_queue_client(), ModelReferenceCodec(models)
    )


def configure_mailers(settings: MailerSettings | None = None) -> None:
    """Wire every mailer in this process to the queue and delivery method."""
    settings = settings or worker_settings
    Mailer.configure(
        dispatcher=build_dispatcher(settings),
        delivery_method=build_delivery_method(settings),
        default_sender=settings.default_sender,
    )
