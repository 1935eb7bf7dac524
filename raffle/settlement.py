"""Winner selection, payout and round reset."""

from __future__ import annotations

import logging
from typing import Callable, Optional, Sequence

from .errors import EmptyFulfillment, PayoutTransferFailed, SettlementNotPending
from .events import WinnerPicked
from .ledger import Ledger, TransferUnconfirmed
from .types import RaffleSnapshot, RoundRecord, RoundState

PersistHook = Callable[[RaffleSnapshot], None]


def select_winner_index(random_value: int, participant_count: int) -> int:
    """Map a random value onto the participant index space.

    Plain modulo: not perfectly uniform when ``participant_count`` does not
    divide the value range. Kept as is so results stay reproducible.
    """

    if participant_count <= 0:
        raise ValueError("participant_count must be positive")
    return random_value % participant_count


class SettlementExecutor:
    """Applies fulfillments to a round record.

    The accepted random values are saved through ``persist`` before any money
    moves, so a restarted process sees the request as consumed and only
    ``retry`` can attempt the payout again.
    """

    def __init__(
        self,
        ledger: Ledger,
        persist: Optional[PersistHook] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._ledger = ledger
        self._persist = persist
        self._logger = logger or logging.getLogger("raffle.settlement")

    def settle(
        self,
        record: RoundRecord,
        request_id: int,
        random_values: Sequence[int],
        clock: Callable[[], float],
    ) -> WinnerPicked:
        """Accept a fulfillment, pay the pool to the selected participant and reset ``record``.

        The caller must hold the round lock.

        Raises
        ------
        SettlementNotPending
            If the round is not drawing, ``request_id`` is not the pending one,
            or the request was already fulfilled.
        EmptyFulfillment
            If ``random_values`` is empty.
        PayoutTransferFailed
            If the ledger raises or does not confirm the transfer. The values
            stay on the record for ``retry``.
        """

        if (
            record.state != RoundState.DRAWING
            or record.pending_request_id != request_id
            or record.fulfilled_values is not None
        ):
            self._logger.info(
                "Ignoring fulfillment %s (pending=%s, state=%s, fulfilled=%s)",
                request_id,
                record.pending_request_id,
                record.state.name,
                record.fulfilled_values is not None,
            )
            raise SettlementNotPending(request_id, record.pending_request_id, record.state)
        if not random_values:
            raise EmptyFulfillment(request_id)

        before = record.snapshot()
        record.fulfilled_values = tuple(int(value) for value in random_values)
        try:
            self._save(record)
        except Exception:
            record.restore(before)
            self._logger.exception("Could not record fulfillment %s; nothing was paid", request_id)
            raise
        return self._pay(record, clock)

    def retry(self, record: RoundRecord, request_id: int, clock: Callable[[], float]) -> WinnerPicked:
        """Pay again with the values already accepted for ``request_id``."""

        if (
            record.state != RoundState.DRAWING
            or record.pending_request_id != request_id
            or record.fulfilled_values is None
        ):
            raise SettlementNotPending(request_id, record.pending_request_id, record.state)
        self._logger.info("Retrying payout for request %s (previous tx=%s)", request_id, record.payout_tx)
        return self._pay(record, clock)

    def _pay(self, record: RoundRecord, clock: Callable[[], float]) -> WinnerPicked:
        request_id = record.pending_request_id
        index = select_winner_index(record.fulfilled_values[0], len(record.participants))
        winner = record.participants[index]
        amount = record.pooled_balance

        try:
            confirmed = self._ledger.transfer(winner, amount, previous_tx=record.payout_tx)
        except TransferUnconfirmed as exc:
            record.payout_tx = exc.tx_ref
            self._save(record)
            self._logger.error("Payout of %s to %s pending in %s; round stays DRAWING", amount, winner, exc.tx_ref)
            raise PayoutTransferFailed(winner, amount, exc.tx_ref) from exc
        except Exception as exc:
            self._logger.exception("Payout of %s to %s raised; round stays DRAWING", amount, winner)
            raise PayoutTransferFailed(winner, amount, record.payout_tx) from exc
        if not confirmed:
            record.payout_tx = None
            self._save(record)
            self._logger.error("Payout of %s to %s not confirmed; round stays DRAWING", amount, winner)
            raise PayoutTransferFailed(winner, amount)

        record.recent_winner = winner
        record.participants = []
        record.pooled_balance = 0
        record.last_draw_timestamp = clock()
        record.pending_request_id = None
        record.fulfilled_values = None
        record.payout_tx = None
        record.state = RoundState.OPEN
        self._logger.info("Request %s settled: winner=%s index=%s amount=%s", request_id, winner, index, amount)
        try:
            self._save(record)
        except Exception:
            self._logger.critical("Paid %s to %s but could not save the reset round", amount, winner)
            raise
        return WinnerPicked(winner=winner, amount=amount)

    def _save(self, record: RoundRecord) -> None:
        if self._persist is not None:
            self._persist(record.snapshot())
