"""Worker-side execution of queued mailer jobs."""

from __future__ import annotations

import logging
from typing import Any

from relaymail.mailer import DispatchKind, Mailer, MailerRegistry, mailers
from relaymail.references import ModelReferenceCodec

logger = logging.getLogger(__name__)


class UnknownMailerError(LookupError):
    """Job payload names a mailer that is not registered in this process."""


class UnknownCommandError(LookupError):
    """Job payload names a command the mailer does not deliver immediately."""


class JobExecutor:
    """Decode queued arguments and invoke the immediate delivery command."""

    def __init__(
        self,
        codec: ModelReferenceCodec | None = None,
        *,
        mailer_registry: MailerRegistry | None = None,
    ) -> None:
        self.codec = codec or ModelReferenceCodec()
        self.mailers = mailer_registry if mailer_registry is not None else mailers

    def perform(self, mailer_name: str, command: str, *args: Any) -> Any:
        """Entry point for the queue worker."""
        mailer_cls = self.mailers.get(mailer_name)
        if mailer_cls is None:
            raise UnknownMailerError(f"Unknown mailer: {mailer_name}")
        return self.run(mailer_cls, command, *args)

    def run(self, mailer_cls: type[Mailer], command: str, *args: Any) -> Any:
        # Only registered `deliver_<name>!` commands; never a free attribute lookup.
        kind, mail_name = mailer_cls.classify(command)
        if kind is not DispatchKind.IMMEDIATE or mail_name is None:
            raise UnknownCommandError(
                f"{mailer_cls.mailer_name} has no immediate command {command!r}"
            )

        decoded = self.codec.decode(*args)
        logger.info("Running %s.%s", mailer_cls.mailer_name, command)
        return mailer_cls.deliver_now(mail_name, *decoded)
