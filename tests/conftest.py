"""Shared fixtures for the koro_i18n test-suite."""

from __future__ import annotations

import pytest


class ManualClock:
    """Clock whose time only moves when a test says so."""

    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture()
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture()
def clock() -> ManualClock:
    return ManualClock()
