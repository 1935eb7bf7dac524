from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Union


@dataclass(frozen=True)
class Entered:
    player: str
    value: int


@dataclass(frozen=True)
class DrawRequested:
    request_id: int


@dataclass(frozen=True)
class WinnerPicked:
    winner: str
    amount: int


RaffleEvent = Union[Entered, DrawRequested, WinnerPicked]
Listener = Callable[[RaffleEvent], None]


class EventBus:
    """Synchronous observer list for round notifications.

    Listeners run after the transition is committed. A failing listener is
    logged and does not affect the round or the remaining listeners.
    """

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self._listeners: List[Listener] = []
        self._logger = logger or logging.getLogger("raffle.events")

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def publish(self, event: RaffleEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                self._logger.exception("Listener %r failed on %s", listener, type(event).__name__)
