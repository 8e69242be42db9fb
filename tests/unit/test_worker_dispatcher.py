"""Unit tests for the Dramatiq queue adapter."""

from unittest.mock import patch

from conftest import ExampleMailer

from relaymail.delivery import TestDelivery
from relaymail.mailer import Mailer
from relaymail.worker.config import WorkerSettings
from relaymail.worker.dispatcher import (
    DramatiqQueueClient,
    build_dispatcher,
    build_queue_client,
    configure_mailers,
)


def test_enqueue_sends_job_to_actor() -> None:
    """Queue adapter should hand mailer name, command and args to Dramatiq."""
    with patch("relaymail.worker.dispatcher.perform_mail_job") as actor:
        handle = DramatiqQueueClient().enqueue(
            ExampleMailer, "deliver_test_mail!", {"to": "a@example.org"}, "extra"
        )

    actor.send.assert_called_once_with(
        "ExampleMailer", "deliver_test_mail!", [{"to": "a@example.org"}, "extra"]
    )
    assert handle is actor.send.return_value


def test_build_dispatcher_reads_environment_from_settings() -> None:
    settings = WorkerSettings(
        runtime_env="ci", excluded_environments="ci", delivery_method="test"
    )

    dispatcher = build_dispatcher(settings)

    assert isinstance(dispatcher.queue, DramatiqQueueClient)
    assert isinstance(build_queue_client(), DramatiqQueueClient)
    assert dispatcher.environment_excluded() is True


def test_configure_mailers_wires_every_mailer() -> None:
    settings = WorkerSettings(delivery_method="test", default_sender="app@example.org")

    with (
        patch.object(Mailer, "dispatcher", None),
        patch.object(Mailer, "delivery_method", None),
        patch.object(Mailer, "default_sender", None),
    ):
        configure_mailers(settings)

        assert isinstance(ExampleMailer.get_dispatcher().queue, DramatiqQueueClient)
        assert isinstance(ExampleMailer.get_delivery_method(), TestDelivery)
        assert ExampleMailer.default_sender == "app@example.org"


def test_deferred_delivery_reaches_dramatiq() -> None:
    settings = WorkerSettings(delivery_method="test")

    with (
        patch.object(Mailer, "dispatcher", None),
        patch.object(Mailer, "delivery_method", None),
        patch.object(Mailer, "default_sender", None),
        patch("relaymail.worker.dispatcher.perform_mail_job") as actor,
    ):
        configure_mailers(settings)
        ExampleMailer.deliver_test_mail(ExampleMailer.MAIL_PARAMS)

    actor.send.assert_called_once_with(
        "ExampleMailer", "deliver_test_mail!", [ExampleMailer.MAIL_PARAMS]
    )
