"""Unit tests for queued mailer job execution."""

from unittest.mock import patch

import pytest
from conftest import ExampleMailer, User

from relaymail.executor import JobExecutor, UnknownCommandError, UnknownMailerError
from relaymail.mailer import DeferredDispatcher
from relaymail.queue import InMemoryQueueClient


def test_perform_delivers_queued_job(mailer, delivery) -> None:
    """Performing a queued command should deliver exactly one message."""
    before = len(delivery.deliveries)

    mailer.perform("deliver_test_mail!", ExampleMailer.MAIL_PARAMS)

    assert len(delivery.deliveries) == before + 1


def test_perform_decodes_model_references(mailer, codec, delivery) -> None:
    user = User(1971)
    executor = JobExecutor(codec)
    args = {"to": "misio@example.org", "user": {"model": "User", "id": 1971}}

    with patch.object(User, "find", return_value=user) as find:
        message = executor.perform("ExampleMailer", "deliver_welcome!", args)

    find.assert_called_once_with(1971)
    assert message["Subject"] == "Welcome user 1971"
    assert delivery.deliveries == [message]


def test_perform_rejects_unknown_mailer(codec) -> None:
    with pytest.raises(UnknownMailerError, match="NoSuchMailer"):
        JobExecutor(codec).perform("NoSuchMailer", "deliver_test_mail!", {})


@pytest.mark.parametrize("command", ["deliver_test_mail", "mail", "configure"])
def test_perform_rejects_commands_that_are_not_immediate(
    mailer, codec, command
) -> None:
    with pytest.raises(UnknownCommandError):
        JobExecutor(codec).perform("ExampleMailer", command, {})


def test_in_memory_queue_round_trip(codec, delivery) -> None:
    """A deferred delivery should survive the queue and resolve its models."""
    queue = InMemoryQueueClient()
    ExampleMailer.configure(
        dispatcher=DeferredDispatcher(queue, codec, environment="test"),
        delivery_method=delivery,
    )
    try:
        job = ExampleMailer.deliver_welcome(
            {"to": "misio@example.org", "user": User(1971)}
        )

        assert delivery.deliveries == []
        assert job.target == "ExampleMailer"
        assert job.method == "deliver_welcome!"
        assert job.args == (
            {"to": "misio@example.org", "user": {"model": "User", "id": 1971}},
        )

        with patch.object(User, "find", side_effect=User):
            results = queue.drain(JobExecutor(codec))
    finally:
        del ExampleMailer.dispatcher
        del ExampleMailer.delivery_method

    assert len(queue) == 0
    assert [message["Subject"] for message in results] == ["Welcome user 1971"]
    assert delivery.deliveries == results
