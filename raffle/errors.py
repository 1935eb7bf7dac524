"""Errors raised by the raffle round and its collaborators."""

from __future__ import annotations

from typing import Any, Dict, Optional

from .types import RoundState


class RaffleError(Exception):
    """Base class; ``code`` and ``status_code`` are used by the HTTP layer."""

    code = "raffle_error"
    status_code = 400

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class InsufficientEntry(RaffleError):
    code = "insufficient_entry"
    status_code = 400

    def __init__(self, value: int, entrance_fee: int) -> None:
        super().__init__(
            f"Entry value {value} is below the entrance fee {entrance_fee}",
            {"value": str(value), "entrance_fee": str(entrance_fee)},
        )
        self.value = value
        self.entrance_fee = entrance_fee


class RoundNotOpen(RaffleError):
    code = "round_not_open"
    status_code = 409

    def __init__(self, state: RoundState) -> None:
        super().__init__(f"Raffle is not open (state={state.name})", {"state": state.name})
        self.state = state


class UpkeepNotNeeded(RaffleError):
    code = "upkeep_not_needed"
    status_code = 409

    def __init__(self, balance: int, participant_count: int, state: RoundState) -> None:
        super().__init__(
            "Draw is not eligible to start",
            {
                "balance": str(balance),
                "participant_count": participant_count,
                "state": state.name,
            },
        )
        self.balance = balance
        self.participant_count = participant_count
        self.state = state


class SettlementNotPending(RaffleError):
    code = "settlement_not_pending"
    status_code = 409

    def __init__(self, request_id: Any, pending_request_id: Optional[int], state: RoundState) -> None:
        super().__init__(
            f"No pending settlement for request {request_id}",
            {
                "request_id": request_id,
                "pending_request_id": pending_request_id,
                "state": state.name,
            },
        )
        self.request_id = request_id
        self.pending_request_id = pending_request_id
        self.state = state


class EmptyFulfillment(RaffleError):
    code = "empty_fulfillment"
    status_code = 400

    def __init__(self, request_id: Any) -> None:
        super().__init__(f"Fulfillment for request {request_id} carried no random values",
                         {"request_id": request_id})
        self.request_id = request_id


class PayoutTransferFailed(RaffleError):
    code = "payout_transfer_failed"
    status_code = 502

    def __init__(self, winner: str, amount: int, tx_ref: Optional[str] = None) -> None:
        super().__init__(
            f"Transfer of {amount} to {winner} was not confirmed; round stays in DRAWING",
            {"winner": winner, "amount": str(amount), "tx_ref": tx_ref},
        )
        self.winner = winner
        self.amount = amount
        self.tx_ref = tx_ref


class RandomnessRequestFailed(RaffleError):
    code = "randomness_request_failed"
    status_code = 502
