"""Shared fixtures."""

import pytest

from chimpsub import CancellationToken


@pytest.fixture
def waits(monkeypatch):
    """Record backoff waits instead of sleeping."""
    recorded = []

    def fake_wait(self, seconds):
        recorded.append(seconds)
        return False

    monkeypatch.setattr(CancellationToken, "wait", fake_wait)
    return recorded
