"""Shared fixtures for mailer tests."""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any
from unittest.mock import Mock

import pytest

from relaymail.delivery import TestDelivery
from relaymail.mailer import DeferredDispatcher, Mailer, mail_method
from relaymail.references import ModelReferenceCodec, ModelRegistry


class User:
    def __init__(self, id: int | None = None) -> None:
        self.id = id

    @classmethod
    def find(cls, id: Any) -> User | None:
        raise NotImplementedError("patched per test")


class Deal:
    def __init__(self, id: int | None = None) -> None:
        self.id = id

    @classmethod
    def find(cls, id: Any) -> Deal | None:
        raise NotImplementedError("patched per test")


class ExampleMailer(Mailer):
    MAIL_PARAMS = {"to": "misio@example.org"}

    @mail_method
    def test_mail(self, opts: dict[str, Any] | None = None) -> Any:
        opts = opts or {}
        return self.mail(
            to=opts["to"],
            subject="subject",
            body="mail body",
            sender="from@example.org",
        )

    @mail_method
    def welcome(self, opts: dict[str, Any]) -> Any:
        user = opts.get("user")
        return self.mail(
            to=opts["to"],
            subject=f"Welcome user {getattr(user, 'id', 'unknown')}",
        )


_MAILER_ATTRIBUTES = ("dispatcher", "delivery_method", "default_sender")


@pytest.fixture
def model_registry() -> ModelRegistry:
    registry = ModelRegistry()
    registry.register(User)
    registry.register(Deal)
    return registry


@pytest.fixture
def codec(model_registry: ModelRegistry) -> ModelReferenceCodec:
    return ModelReferenceCodec(model_registry)


@pytest.fixture
def queue() -> Mock:
    queue = Mock()
    queue.enqueue.return_value = "job-handle"
    return queue


@pytest.fixture
def delivery() -> TestDelivery:
    return TestDelivery()


@pytest.fixture
def mailer(
    queue: Mock, codec: ModelReferenceCodec, delivery: TestDelivery
) -> Iterator[type[ExampleMailer]]:
    """ExampleMailer wired to a mock queue and in-memory delivery."""
    ExampleMailer.configure(
        dispatcher=DeferredDispatcher(queue, codec, environment="test"),
        delivery_method=delivery,
    )
    yield ExampleMailer
    for attribute in _MAILER_ATTRIBUTES:
        if attribute in vars(ExampleMailer):
            delattr(ExampleMailer, attribute)
