"""Test configuration and fixtures."""

from __future__ import annotations

import pytest

from taskchain.config import Settings
from taskchain.core import Chain, ChainEvent


class EventRecorder:
    """Collects every event emitted by a chain."""

    def __init__(self, chain: Chain):
        self.events: list[ChainEvent] = []
        for name in ("run", "complete", "cancel", "error"):
            chain.on(name, self.events.append)

    @property
    def names(self) -> list[str]:
        return [e.event.value for e in self.events]

    def of(self, name: str) -> list[ChainEvent]:
        return [e for e in self.events if e.event.value == name]


@pytest.fixture
def settings() -> Settings:
    """Provide default settings."""
    return Settings()


@pytest.fixture
def chain(settings: Settings) -> Chain:
    """Provide an empty chain."""
    return Chain(name="test", settings=settings)


@pytest.fixture
def recorder(chain: Chain) -> EventRecorder:
    """Record the events of the ``chain`` fixture."""
    return EventRecorder(chain)
