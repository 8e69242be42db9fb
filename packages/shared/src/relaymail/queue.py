"""Queue interfaces and job descriptors for deferred mail deliveries."""

from __future__ import annotations

import json
import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Protocol
from uuid import uuid4

if TYPE_CHECKING:
    from relaymail.executor import JobExecutor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class JobDescriptor:
    """One queued mailer invocation."""

    target: str
    method: str
    args: tuple[Any, ...]
    id: str = field(default_factory=lambda: str(uuid4()))
    enqueued_at: datetime = field(
        default_factory=lambda: datetime.now(tz=timezone.utc)
    )


class QueueClient(Protocol):
    """Single operation the mail dispatcher depends on."""

    def enqueue(self, receiver: Any, method_name: str, *args: Any) -> Any:
        """Schedule `method_name` on `receiver` and return a job handle."""


def receiver_name(receiver: Any) -> str:
    """Name a receiver the way the worker resolves it."""
    name = getattr(receiver, "mailer_name", None)
    if isinstance(name, str) and name:
        return name
    return getattr(receiver, "__name__", type(receiver).__name__)


class InMemoryQueueClient:
    """Process-local FIFO queue used for local runs and tests.

    With `serialize=True` every payload goes through a JSON round-trip, the
    same way the broker transport turns mapping keys into strings.
    """

    def __init__(self, *, serialize: bool = True) -> None:
        self.serialize = serialize
        self.jobs: deque[JobDescriptor] = deque()

    def enqueue(self, receiver: Any, method_name: str, *args: Any) -> JobDescriptor:
        payload = args
        if self.serialize:
            payload = tuple(json.loads(json.dumps(list(args))))
        job = JobDescriptor(
            target=receiver_name(receiver), method=method_name, args=payload
        )
        self.jobs.append(job)
        logger.debug("Queued job_id=%s %s.%s", job.id, job.target, job.method)
        return job

    def __len__(self) -> int:
        return len(self.jobs)

    def drain(self, executor: JobExecutor) -> list[Any]:
        """Run queued jobs in FIFO order and return their results."""
        results: list[Any] = []
        while self.jobs:
            job = self.jobs[0]
            logger.info("Performing job_id=%s %s.%s", job.id, job.target, job.method)
            # A failing job stays at the head of the queue.
            results.append(executor.perform(job.target, job.method, *job.args))
            self.jobs.popleft()
        return results
