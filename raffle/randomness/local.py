from __future__ import annotations

import logging
import secrets
import threading
from typing import Dict, Optional, Sequence, Tuple

from .base import RandomnessClient


class LocalRandomnessCoordinator(RandomnessClient):
    """In-process coordinator for development networks and tests.

    Requests are numbered from 1 and stay pending until ``fulfill`` is called.
    Each request can be fulfilled once; the request is consumed even when a
    subscriber rejects the values.
    """

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        super().__init__()
        self._lock = threading.Lock()
        self._next_request_id = 1
        self._pending: Dict[int, int] = {}
        self._logger = logger or logging.getLogger("raffle.randomness")

    def request_random(self, count: int) -> int:
        if count < 1:
            raise ValueError("count must be at least 1")
        with self._lock:
            request_id = self._next_request_id
            self._next_request_id += 1
            self._pending[request_id] = count
        self._logger.info("Local randomness request %s for %s word(s)", request_id, count)
        return request_id

    def pending_requests(self) -> Tuple[int, ...]:
        with self._lock:
            return tuple(sorted(self._pending))

    def fulfill(self, request_id: int, words: Optional[Sequence[int]] = None) -> Tuple[int, ...]:
        """Deliver random words for ``request_id``.

        ``words`` overrides the generated values; it must hold at least as many
        values as were requested.
        """

        with self._lock:
            count = self._pending.get(request_id)
            if count is None:
                raise ValueError(f"nonexistent request: {request_id}")
            if words is None:
                values = tuple(secrets.randbits(256) for _ in range(count))
            else:
                values = tuple(int(w) for w in words)
                if len(values) < count:
                    raise ValueError(f"expected at least {count} word(s), got {len(values)}")
            del self._pending[request_id]

        self._logger.info("Fulfilling local randomness request %s", request_id)
        self._deliver(request_id, values)
        return values
