"""Delivery methods that hand composed messages to a transport."""

from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage
from typing import Protocol

from relaymail.settings import MailerSettings

logger = logging.getLogger(__name__)


class DeliveryMethod(Protocol):
    """Sends one composed message."""

    def deliver(self, message: EmailMessage) -> None:
        """Deliver message or raise."""


class TestDelivery:
    """Keep delivered messages in memory instead of sending them."""

    __test__ = False

    def __init__(self) -> None:
        self.deliveries: list[EmailMessage] = []

    def deliver(self, message: EmailMessage) -> None:
        self.deliveries.append(message)

    def clear(self) -> None:
        self.deliveries.clear()


class SMTPDelivery:
    """Send messages through an SMTP relay."""

    def __init__(self, settings: MailerSettings) -> None:
        self.host = settings.smtp_host or "localhost"
        self.port = settings.smtp_port
        self.username = settings.smtp_username
        self.password = settings.smtp_password
        self.use_tls = settings.smtp_use_tls
        self.timeout = settings.smtp_timeout_seconds

    def deliver(self, message: EmailMessage) -> None:
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as client:
            if self.use_tls:
                client.starttls()
            if self.username:
                client.login(self.username, self.password or "")
            client.send_message(message)
        logger.info(
            "Delivered message subject=%r to=%s via %s:%s",
            message["Subject"],
            message["To"],
            self.host,
            self.port,
        )


def build_delivery_method(settings: MailerSettings) -> DeliveryMethod:
    """Factory for the configured delivery method."""
    if settings.delivery_method == "test":
        return TestDelivery()
    return SMTPDelivery(settings)
