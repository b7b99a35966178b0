"""Tests for environment-driven settings."""

import pytest

from jellystreaming.config import Settings
from jellystreaming.config.settings import ReconciliationSettings


class TestReconciliationSettings:
    def test_defaults(self) -> None:
        settings = ReconciliationSettings()
        assert settings.poll_interval_seconds == 5.0
        assert settings.grace_window_seconds == 30.0

    def test_reads_reconcile_prefix(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("RECONCILE_POLL_INTERVAL_SECONDS", "2.5")
        monkeypatch.setenv("RECONCILE_GRACE_WINDOW_SECONDS", "45")

        settings = Settings()

        assert settings.reconciliation.poll_interval_seconds == 2.5
        assert settings.reconciliation.grace_window_seconds == 45.0

    def test_nested_delimiter_names_are_not_read(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("RECONCILIATION__POLL_INTERVAL_SECONDS", "2.5")
        assert Settings().reconciliation.poll_interval_seconds == 5.0
