"""Shared configuration settings for mailers and the mail worker."""

import os

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_LOCAL_ENVIRONMENTS = {"local", "dev", "development", "test"}
_DELIVERY_METHODS = {"smtp", "test"}


def parse_csv(raw_value: str) -> list[str]:
    """Normalize comma-separated setting values."""
    items = [item.strip() for item in raw_value.split(",")]
    return [item for item in items if item]


class MailerSettings(BaseSettings):
    """Base settings shared by mailers and the worker process."""

    runtime_env: str = "local"
    log_level: str = "INFO"

    # Environments where deferred deliveries run synchronously instead.
    excluded_environments: str = ""

    redis_url: str = "redis://redis:6379/0"  # Docker Compose default; set REDIS_URL when running outside Compose.
    mail_queue_name: str = "mailer"
    job_max_retries: int = 8

    delivery_method: str = "smtp"
    default_sender: str = "no-reply@localhost"
    smtp_host: str | None = None
    smtp_port: int = 587
    smtp_username: str | None = None
    smtp_password: str | None = None
    smtp_use_tls: bool = True
    smtp_timeout_seconds: float = 10.0

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @model_validator(mode="after")
    def validate_delivery_method(self) -> "MailerSettings":
        """Normalize and validate the configured delivery method."""
        normalized = self.delivery_method.strip().lower()
        if normalized not in _DELIVERY_METHODS:
            raise ValueError("DELIVERY_METHOD must be one of: smtp, test")
        self.delivery_method = normalized
        return self

    @model_validator(mode="after")
    def validate_smtp_settings(self) -> "MailerSettings":
        """Require an SMTP host in non-local runtime environments."""
        if self.runtime_env.strip().lower() in _LOCAL_ENVIRONMENTS:
            return self
        if self.delivery_method != "smtp":
            return self

        if not (self.smtp_host or "").strip():
            raise ValueError("SMTP_HOST must be set when RUNTIME_ENV is non-local.")
        if self.smtp_username and not (
            self.smtp_password or os.getenv("SMTP_PASSWORD")
        ):
            raise ValueError("SMTP_PASSWORD must be set when SMTP_USERNAME is set.")
        return self

    @property
    def excluded_environment_names(self) -> set[str]:
        """Environments where deferred deliveries are sent synchronously."""
        return set(parse_csv(self.excluded_environments))
