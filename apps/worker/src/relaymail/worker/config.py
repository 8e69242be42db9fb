"""Configuration for the mail worker service."""

from pydantic import field_validator

from relaymail.settings import MailerSettings, parse_csv


class WorkerSettings(MailerSettings):
    """Worker-specific settings layered on top of shared mailer settings."""

    worker_name: str = "mail-worker"
    worker_queue_names: str = "mailer"
    worker_threads: int = 4
    worker_stop_timeout_seconds: int = 600

    # Modules defining mailers and registered models, imported at startup.
    mailer_modules: str = ""

    @field_validator("worker_threads")
    @classmethod
    def _validate_worker_threads(cls, value: int) -> int:
        if value < 1:
            raise ValueError("WORKER_THREADS must be at least 1")
        return value

    @property
    def mailer_module_names(self) -> list[str]:
        """Configured mailer modules in import order."""
        return parse_csv(self.mailer_modules)

    @property
    def queue_names(self) -> list[str]:
        """Queues consumed by this worker, falling back to the mail queue."""
        return parse_csv(self.worker_queue_names) or [self.mail_queue_name]


settings = WorkerSettings()
