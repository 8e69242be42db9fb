"""Unit tests for the mail worker process entrypoint."""

import sys
from unittest.mock import patch

import pytest

from relaymail.worker import consumer


def test_safe_import_actors_reports_import_failures() -> None:
    with patch.dict(sys.modules, {"relaymail.worker.actors": None}):
        assert consumer._safe_import_actors() is False


def test_run_aborts_when_actors_fail_to_import() -> None:
    with patch.object(consumer, "_safe_import_actors", return_value=False):
        with pytest.raises(RuntimeError, match="actor import failure"):
            consumer.run()
