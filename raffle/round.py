from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional, Sequence, Tuple

from .eligibility import check_upkeep
from .errors import InsufficientEntry, RaffleError, RandomnessRequestFailed, RoundNotOpen, UpkeepNotNeeded
from .events import DrawRequested, Entered, EventBus
from .ledger import Ledger
from .randomness.base import RandomnessClient
from .settlement import PersistHook, SettlementExecutor
from .types import RaffleSnapshot, RoundRecord, RoundState, UpkeepStatus

NUM_WORDS = 1


class Raffle:
    """Round state machine for a single raffle.

    Every operation that reads or mutates the round holds one re-entrant lock
    for its full duration, including the randomness request issued by
    ``start_draw`` and the payout performed by ``settle``. Fulfillments
    delivered by the randomness client on another thread serialise on the
    same lock.

    ``persist`` is called with the new snapshot after every transition, still
    under the lock. Its errors propagate to the caller and the transition is
    undone, except once a payout is confirmed.
    """

    def __init__(
        self,
        entrance_fee: int,
        interval_seconds: int,
        randomness: RandomnessClient,
        ledger: Ledger,
        *,
        events: Optional[EventBus] = None,
        clock: Callable[[], float] = time.time,
        snapshot: Optional[RaffleSnapshot] = None,
        persist: Optional[PersistHook] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        if entrance_fee < 0:
            raise ValueError("entrance_fee must not be negative")
        if interval_seconds < 0:
            raise ValueError("interval_seconds must not be negative")

        self._lock = threading.RLock()
        self._clock = clock
        self._randomness = randomness
        self._events = events or EventBus()
        self._logger = logger or logging.getLogger("raffle.round")
        self._persist = persist
        self._settlement = SettlementExecutor(ledger, persist)

        if snapshot is None:
            self._record = RoundRecord(
                entrance_fee=entrance_fee,
                interval_seconds=interval_seconds,
                last_draw_timestamp=clock(),
            )
        else:
            if snapshot.entrance_fee != entrance_fee or snapshot.interval_seconds != interval_seconds:
                raise ValueError(
                    "Persisted round was created with entrance_fee=%s interval=%s; configured %s/%s"
                    % (snapshot.entrance_fee, snapshot.interval_seconds, entrance_fee, interval_seconds)
                )
            self._record = RoundRecord.from_snapshot(snapshot)
            self._logger.info(
                "Restored round: state=%s participants=%s balance=%s",
                self._record.state.name,
                len(self._record.participants),
                self._record.pooled_balance,
            )

        randomness.on_fulfilled(self.settle)

    @property
    def events(self) -> EventBus:
        return self._events

    # ------------------------------------------------------------------ #
    # Read accessors
    # ------------------------------------------------------------------ #

    @property
    def state(self) -> RoundState:
        with self._lock:
            return self._record.state

    @property
    def participant_count(self) -> int:
        with self._lock:
            return len(self._record.participants)

    def get_participant(self, index: int) -> str:
        with self._lock:
            if index < 0 or index >= len(self._record.participants):
                raise IndexError(f"participant index {index} out of range")
            return self._record.participants[index]

    @property
    def pooled_balance(self) -> int:
        with self._lock:
            return self._record.pooled_balance

    @property
    def recent_winner(self) -> Optional[str]:
        with self._lock:
            return self._record.recent_winner

    @property
    def last_draw_timestamp(self) -> float:
        with self._lock:
            return self._record.last_draw_timestamp

    @property
    def pending_request_id(self) -> Optional[int]:
        with self._lock:
            return self._record.pending_request_id

    @property
    def fulfilled_values(self) -> Optional[Tuple[int, ...]]:
        with self._lock:
            return self._record.fulfilled_values

    @property
    def payout_tx(self) -> Optional[str]:
        with self._lock:
            return self._record.payout_tx

    @property
    def entrance_fee(self) -> int:
        return self._record.entrance_fee

    @property
    def interval_seconds(self) -> int:
        return self._record.interval_seconds

    def snapshot(self) -> RaffleSnapshot:
        with self._lock:
            return self._record.snapshot()

    # ------------------------------------------------------------------ #
    # Operations
    # ------------------------------------------------------------------ #

    def enter(self, player: str, value: int) -> None:
        if not player:
            raise ValueError("player must not be empty")
        with self._lock:
            record = self._record
            if value < record.entrance_fee:
                raise InsufficientEntry(value, record.entrance_fee)
            if record.state != RoundState.OPEN:
                raise RoundNotOpen(record.state)
            before = record.snapshot()
            record.participants.append(player)
            record.pooled_balance += value
            self._commit(before)
            self._logger.info("%s entered with %s (participants=%s)", player, value, len(record.participants))
            self._events.publish(Entered(player=player, value=value))

    def check_upkeep(self) -> UpkeepStatus:
        with self._lock:
            return check_upkeep(self._record.snapshot(), self._clock())

    def start_draw(self) -> int:
        """Move the round to DRAWING and request randomness for the winner.

        Returns the randomness request id. Eligibility is re-checked under the
        lock, so a stale positive check by the caller is harmless.
        """

        with self._lock:
            record = self._record
            status = check_upkeep(record.snapshot(), self._clock())
            if not status.upkeep_needed:
                self._logger.info("Upkeep not needed: %s", status)
                raise UpkeepNotNeeded(record.pooled_balance, len(record.participants), record.state)

            before = record.snapshot()
            record.state = RoundState.DRAWING
            try:
                request_id = self._randomness.request_random(NUM_WORDS)
            except Exception as exc:
                record.state = RoundState.OPEN
                self._logger.exception("Randomness request failed; round reopened")
                if isinstance(exc, RaffleError):
                    raise
                raise RandomnessRequestFailed(f"Randomness request failed: {exc}") from exc

            record.pending_request_id = request_id
            try:
                self._commit(before)
            except Exception:
                self._logger.error("Request %s is orphaned; its fulfillment will be rejected", request_id)
                raise
            self._logger.info(
                "Draw started: request=%s participants=%s balance=%s",
                request_id,
                len(record.participants),
                record.pooled_balance,
            )
            self._events.publish(DrawRequested(request_id=request_id))
            return request_id

    def settle(self, request_id: int, random_values: Sequence[int]) -> str:
        """Apply a randomness fulfillment and return the winner."""

        with self._lock:
            event = self._settlement.settle(self._record, request_id, random_values, self._clock)
            self._events.publish(event)
            return event.winner

    def retry_payout(self, request_id: int) -> str:
        """Pay the winner of an already fulfilled request whose payout failed."""

        with self._lock:
            event = self._settlement.retry(self._record, request_id, self._clock)
            self._events.publish(event)
            return event.winner

    def _commit(self, before: RaffleSnapshot) -> None:
        if self._persist is None:
            return
        try:
            self._persist(self._record.snapshot())
        except Exception:
            self._record.restore(before)
            self._logger.exception("Could not persist round; change undone")
            raise
