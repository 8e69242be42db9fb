"""Mailer base class with queue-deferred deliveries.

Composition methods marked with `@mail_method` get two delivery entry points
when the subclass is defined:

    WelcomeMailer.deliver_welcome(params)            # queued
    getattr(WelcomeMailer, "deliver_welcome!")(...)  # sent now

The queued variant encodes model values of mapping arguments and enqueues
`deliver_welcome!` for the worker, which decodes them and sends the mail.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Collection, Iterator, Sequence
from email.message import EmailMessage
from enum import StrEnum
from typing import Any, ClassVar, TypeVar

from relaymail.delivery import DeliveryMethod, build_delivery_method
from relaymail.queue import QueueClient
from relaymail.references import ModelReferenceCodec
from relaymail.settings import MailerSettings

logger = logging.getLogger(__name__)

DELIVER_PREFIX = "deliver_"
IMMEDIATE_MARKER = "!"

F = TypeVar("F", bound=Callable[..., Any])


class DispatchKind(StrEnum):
    """How an intercepted mailer call is handled."""

    IMMEDIATE = "immediate"
    DEFERRED = "deferred"
    PASSTHROUGH = "passthrough"


def deferred_name(mail_name: str) -> str:
    return f"{DELIVER_PREFIX}{mail_name}"


def immediate_name(mail_name: str) -> str:
    return f"{DELIVER_PREFIX}{mail_name}{IMMEDIATE_MARKER}"


def mail_method(fn: F) -> F:
    """Mark a composition method as deliverable through the queue."""
    fn.__mail_method__ = True  # type: ignore[attr-defined]
    return fn


class MailerRegistry:
    """Mailer classes the worker may resolve from job payloads."""

    def __init__(self) -> None:
        self._mailers: dict[str, type[Mailer]] = {}

    def register(self, mailer_cls: type[Mailer]) -> type[Mailer]:
        existing = self._mailers.get(mailer_cls.mailer_name)
        if existing is not None and existing is not mailer_cls:
            logger.warning(
                "Replacing mailer name=%s %s -> %s",
                mailer_cls.mailer_name,
                existing.__qualname__,
                mailer_cls.__qualname__,
            )
        self._mailers[mailer_cls.mailer_name] = mailer_cls
        return mailer_cls

    def unregister(self, name: str) -> None:
        self._mailers.pop(name, None)

    def get(self, name: str) -> type[Mailer] | None:
        return self._mailers.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._mailers

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._mailers))


mailers = MailerRegistry()


class DeferredDispatcher:
    """Route mailer calls to the queue, to immediate delivery, or through."""

    def __init__(
        self,
        queue: QueueClient,
        codec: ModelReferenceCodec | None = None,
        *,
        environment: str,
        excluded_environments: Collection[str] = (),
        logger: logging.Logger | None = None,
    ) -> None:
        self.queue = queue
        self.codec = codec or ModelReferenceCodec()
        self.environment = environment
        self.excluded_environments = frozenset(excluded_environments)
        self.logger = logger or logging.getLogger(__name__)

    @classmethod
    def from_settings(
        cls,
        settings: MailerSettings,
        queue: QueueClient,
        codec: ModelReferenceCodec | None = None,
    ) -> DeferredDispatcher:
        return cls(
            queue,
            codec,
            environment=settings.runtime_env,
            excluded_environments=settings.excluded_environment_names,
        )

    def environment_excluded(self) -> bool:
        return self.environment in self.excluded_environments

    def dispatch(self, receiver: type[Mailer], method_name: str, *args: Any) -> Any:
        """Handle one mailer call and return the job handle or call result."""
        if self.environment_excluded():
            self.logger.debug(
                "Environment %s excluded; running %s.%s synchronously",
                self.environment,
                receiver.mailer_name,
                method_name,
            )
            return receiver.default_dispatch(method_name, *args)

        kind, _ = receiver.classify(method_name)
        if kind is not DispatchKind.DEFERRED:
            return receiver.default_dispatch(method_name, *args)

        command = method_name + IMMEDIATE_MARKER
        encoded = self.codec.encode(*args)
        handle = self.queue.enqueue(receiver, command, *encoded)
        self.logger.info("Queued %s.%s", receiver.mailer_name, command)
        return handle


def _trigger(method_name: str) -> classmethod:
    def trigger(cls: type[Mailer], *args: Any) -> Any:
        return cls.dispatch(method_name, *args)

    trigger.__name__ = method_name
    return classmethod(trigger)


class Mailer:
    """Base class for mailers whose deliveries can be deferred to a queue."""

    mailer_name: ClassVar[str] = "Mailer"
    dispatch_table: ClassVar[dict[str, tuple[DispatchKind, str]]] = {}
    dispatcher: ClassVar[DeferredDispatcher | None] = None
    delivery_method: ClassVar[DeliveryMethod | None] = None
    default_sender: ClassVar[str | None] = None

    def __init_subclass__(cls, register: bool = True, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        if "mailer_name" not in cls.__dict__:
            cls.mailer_name = cls.__name__

        table = dict(cls.dispatch_table)
        for name, attr in list(vars(cls).items()):
            if not getattr(attr, "__mail_method__", False):
                continue
            for method_name, kind in (
                (deferred_name(name), DispatchKind.DEFERRED),
                (immediate_name(name), DispatchKind.IMMEDIATE),
            ):
                if method_name in vars(Mailer):
                    raise TypeError(
                        f"{cls.__name__}.{name} would replace Mailer.{method_name}; "
                        "rename the mail method"
                    )
                table[method_name] = (kind, name)
                setattr(cls, method_name, _trigger(method_name))
        cls.dispatch_table = table

        if register:
            mailers.register(cls)

    @classmethod
    def configure(
        cls,
        *,
        dispatcher: DeferredDispatcher | None = None,
        delivery_method: DeliveryMethod | None = None,
        default_sender: str | None = None,
    ) -> None:
        """Install collaborators on this mailer and its subclasses."""
        if dispatcher is not None:
            cls.dispatcher = dispatcher
        if delivery_method is not None:
            cls.delivery_method = delivery_method
        if default_sender is not None:
            cls.default_sender = default_sender

    @classmethod
    def get_dispatcher(cls) -> DeferredDispatcher:
        if cls.dispatcher is None:
            raise RuntimeError(
                f"No dispatcher configured for {cls.mailer_name}; "
                "call Mailer.configure(dispatcher=...) at startup."
            )
        return cls.dispatcher

    @classmethod
    def get_delivery_method(cls) -> DeliveryMethod:
        if cls.delivery_method is None:
            Mailer.delivery_method = build_delivery_method(MailerSettings())
        assert cls.delivery_method is not None
        return cls.delivery_method

    @classmethod
    def classify(cls, method_name: str) -> tuple[DispatchKind, str | None]:
        """Return the dispatch kind and mail method name for `method_name`."""
        entry = cls.dispatch_table.get(method_name)
        if entry is None:
            return DispatchKind.PASSTHROUGH, None
        return entry

    @classmethod
    def dispatch(cls, method_name: str, *args: Any) -> Any:
        kind, _ = cls.classify(method_name)
        if cls.dispatcher is None and kind is DispatchKind.IMMEDIATE:
            # Immediate deliveries never touch the queue.
            return cls.default_dispatch(method_name, *args)
        return cls.get_dispatcher().dispatch(cls, method_name, *args)

    @classmethod
    def default_dispatch(cls, method_name: str, *args: Any) -> Any:
        """Run a call synchronously, without the queue."""
        kind, mail_name = cls.classify(method_name)
        if kind is DispatchKind.PASSTHROUGH or mail_name is None:
            return getattr(cls, method_name)(*args)
        return cls.deliver_now(mail_name, *args)

    @classmethod
    def compose(cls, mail_name: str, *args: Any) -> EmailMessage:
        """Build the message for `mail_name` without delivering it."""
        if immediate_name(mail_name) not in cls.dispatch_table:
            raise AttributeError(f"{cls.__name__} has no mail method {mail_name!r}")
        message = getattr(cls(), mail_name)(*args)
        if not isinstance(message, EmailMessage):
            raise TypeError(
                f"{cls.__name__}.{mail_name} must return an EmailMessage, "
                f"got {type(message).__name__}"
            )
        return message

    @classmethod
    def deliver_now(cls, mail_name: str, *args: Any) -> EmailMessage:
        """Compose and deliver `mail_name` synchronously."""
        message = cls.compose(mail_name, *args)
        cls.get_delivery_method().deliver(message)
        logger.info(
            "Delivered %s.%s to=%s", cls.mailer_name, mail_name, message["To"]
        )
        return message

    @classmethod
    def perform(cls, command: str, *args: Any) -> Any:
        """Run a queued `deliver_<name>!` command on this mailer."""
        from relaymail.executor import JobExecutor

        codec = cls.dispatcher.codec if cls.dispatcher else ModelReferenceCodec()
        executor = JobExecutor(codec)
        return executor.run(cls, command, *args)

    def mail(
        self,
        *,
        to: str | Sequence[str],
        subject: str,
        body: str = "",
        sender: str | None = None,
        cc: str | Sequence[str] | None = None,
        reply_to: str | None = None,
        headers: dict[str, str] | None = None,
    ) -> EmailMessage:
        """Build a plain-text message."""
        message = EmailMessage()
        message["From"] = (
            sender or self.default_sender or MailerSettings().default_sender
        )
        message["To"] = _address_list(to)
        if cc:
            message["Cc"] = _address_list(cc)
        if reply_to:
            message["Reply-To"] = reply_to
        message["Subject"] = subject
        for name, value in (headers or {}).items():
            message[name] = value
        message.set_content(body)
        return message


def _address_list(value: str | Sequence[str]) -> str:
    if isinstance(value, str):
        return value
    return ", ".join(value)
