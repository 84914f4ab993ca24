"""Chain lifecycle events and a small synchronous event emitter."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable

if TYPE_CHECKING:
    from taskchain.core.chain import Chain

logger = logging.getLogger(__name__)


class ChainEventType(str, Enum):
    """Events emitted by a chain."""

    RUN = "run"
    COMPLETE = "complete"
    CANCEL = "cancel"
    ERROR = "error"

    @classmethod
    def parse(cls, value: ChainEventType | str) -> ChainEventType:
        try:
            return cls(value)
        except ValueError:
            names = ", ".join(e.value for e in cls)
            raise ValueError(f"Unknown chain event {value!r} (expected one of: {names})") from None


@dataclass(frozen=True)
class ChainEvent:
    """Payload passed to chain listeners."""

    event: ChainEventType
    chain: Chain
    last_step_index: int = -1
    error: BaseException | None = None


Listener = Callable[[ChainEvent], Any]


class EventEmitter:
    """
    Synchronous publish/subscribe notifier.

    Listeners run in registration order. A listener raising an exception is
    logged and does not prevent the remaining listeners from running.
    """

    def __init__(self) -> None:
        self._listeners: dict[str, list[Callable[..., Any]]] = {}

    def on(self, event: str, listener: Callable[..., Any]) -> Callable[[], None]:
        """
        Subscribe ``listener`` to ``event``.

        Returns:
            Unsubscribe function (safe to call more than once)
        """
        self._listeners.setdefault(event, []).append(listener)

        def unsubscribe() -> None:
            listeners = self._listeners.get(event, [])
            if listener in listeners:
                listeners.remove(listener)

        return unsubscribe

    def emit(self, event: str, *args: Any) -> int:
        """
        Call every listener of ``event`` with ``args``.

        Returns:
            Number of listeners that ran without raising
        """
        delivered = 0
        # Snapshot so listeners may (un)subscribe while being notified.
        for listener in list(self._listeners.get(event, [])):
            try:
                listener(*args)
            except Exception:
                logger.exception(f"Listener for '{event}' failed")
            else:
                delivered += 1
        return delivered

    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(event, []))

    def clear(self, event: str | None = None) -> None:
        """Remove listeners of ``event``, or all listeners."""
        if event is None:
            self._listeners.clear()
        else:
            self._listeners.pop(event, None)
