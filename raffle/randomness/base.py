from __future__ import annotations

import abc
from typing import Callable, List, Sequence

FulfillmentCallback = Callable[[int, Sequence[int]], object]


class RandomnessClient(abc.ABC):
    """Abstract randomness provider.

    ``request_random`` returns a request id synchronously; the random values
    arrive later, exactly once per request, through the callbacks registered
    with ``on_fulfilled``.
    """

    def __init__(self) -> None:
        self._callbacks: List[FulfillmentCallback] = []

    def on_fulfilled(self, callback: FulfillmentCallback) -> None:
        self._callbacks.append(callback)

    @abc.abstractmethod
    def request_random(self, count: int) -> int:
        """Submit a request for ``count`` random values and return its id.

        Implementations should raise ``RandomnessRequestFailed`` when the
        provider does not acknowledge the request.
        """

    def _deliver(self, request_id: int, values: Sequence[int]) -> None:
        # Errors raised by subscribers propagate to whoever delivered the fulfillment.
        words = tuple(values)
        for callback in list(self._callbacks):
            callback(request_id, words)

    def close(self) -> None:
        """Optional hook for clients that hold connections."""
        return None
