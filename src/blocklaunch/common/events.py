from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Union


log = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProgressChanged:
    percent: float


@dataclass(frozen=True)
class StateChanged:
    state: str


@dataclass(frozen=True)
class WarningRaised:
    message: str


@dataclass(frozen=True)
class GameStarted:
    pid: int


@dataclass(frozen=True)
class GameClosed:
    exit_code: int


LaunchEvent = Union[ProgressChanged, StateChanged, WarningRaised, GameStarted, GameClosed]
Listener = Callable[[LaunchEvent], None]


class EventBus:
    """Fan-out of launch events to subscribers.

    Publishing may happen from asset worker threads, so listeners must accept
    concurrent, unordered calls. A failing listener is logged and skipped.
    """

    def __init__(self) -> None:
        self._listeners: list[Listener] = []
        self._lock = threading.Lock()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def publish(self, event: LaunchEvent) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(event)
            except Exception:
                log.exception("Launch event listener failed.")


class ProgressTracker:
    """Maps a phase-local 0..1 fraction onto a fixed slice of 0..100.

    The published value never goes down, whatever order workers report in.
    """

    def __init__(self, bus: EventBus):
        self.bus = bus
        self._lock = threading.Lock()
        self._current = 0.0

    @property
    def current(self) -> float:
        return self._current

    def report(self, percent: float) -> None:
        value = max(0.0, min(100.0, float(percent)))
        with self._lock:
            if value < self._current:
                return
            self._current = value
        self.bus.publish(ProgressChanged(value))

    def phase(self, start: float, end: float) -> Callable[[float], None]:
        span = end - start

        def update(fraction: float) -> None:
            fraction = max(0.0, min(1.0, float(fraction)))
            self.report(start + span * fraction)

        return update
