from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import List, Optional, Sequence, Tuple


class RoundState(IntEnum):
    OPEN = 0
    DRAWING = 1


@dataclass(frozen=True)
class RaffleSnapshot:
    """Point-in-time copy of the round, safe to hand out of the lock."""

    state: RoundState
    participants: Sequence[str]
    pooled_balance: int
    entrance_fee: int
    interval_seconds: int
    last_draw_timestamp: float
    recent_winner: Optional[str] = None
    pending_request_id: Optional[int] = None
    # Set once a fulfillment is accepted; kept while its payout is unconfirmed.
    fulfilled_values: Optional[Tuple[int, ...]] = None
    payout_tx: Optional[str] = None

    @property
    def participant_count(self) -> int:
        return len(self.participants)


@dataclass(frozen=True)
class UpkeepStatus:
    upkeep_needed: bool
    is_open: bool
    time_passed: bool
    has_players: bool
    has_balance: bool

    def to_dict(self) -> dict:
        return {
            "upkeep_needed": self.upkeep_needed,
            "is_open": self.is_open,
            "time_passed": self.time_passed,
            "has_players": self.has_players,
            "has_balance": self.has_balance,
        }


@dataclass
class RoundRecord:
    """Mutable round data. Only the owning ``Raffle`` touches it, under its lock."""

    entrance_fee: int
    interval_seconds: int
    last_draw_timestamp: float
    state: RoundState = RoundState.OPEN
    participants: List[str] = field(default_factory=list)
    pooled_balance: int = 0
    recent_winner: Optional[str] = None
    pending_request_id: Optional[int] = None
    fulfilled_values: Optional[Tuple[int, ...]] = None
    payout_tx: Optional[str] = None

    @classmethod
    def from_snapshot(cls, snapshot: RaffleSnapshot) -> "RoundRecord":
        return cls(
            entrance_fee=snapshot.entrance_fee,
            interval_seconds=snapshot.interval_seconds,
            last_draw_timestamp=snapshot.last_draw_timestamp,
            state=snapshot.state,
            participants=list(snapshot.participants),
            pooled_balance=snapshot.pooled_balance,
            recent_winner=snapshot.recent_winner,
            pending_request_id=snapshot.pending_request_id,
            fulfilled_values=snapshot.fulfilled_values,
            payout_tx=snapshot.payout_tx,
        )

    def restore(self, snapshot: RaffleSnapshot) -> None:
        """Put every field back to ``snapshot``; used to undo an uncommitted change."""
        self.state = snapshot.state
        self.participants = list(snapshot.participants)
        self.pooled_balance = snapshot.pooled_balance
        self.last_draw_timestamp = snapshot.last_draw_timestamp
        self.recent_winner = snapshot.recent_winner
        self.pending_request_id = snapshot.pending_request_id
        self.fulfilled_values = snapshot.fulfilled_values
        self.payout_tx = snapshot.payout_tx

    def snapshot(self) -> RaffleSnapshot:
        return RaffleSnapshot(
            state=self.state,
            participants=tuple(self.participants),
            pooled_balance=self.pooled_balance,
            entrance_fee=self.entrance_fee,
            interval_seconds=self.interval_seconds,
            last_draw_timestamp=self.last_draw_timestamp,
            recent_winner=self.recent_winner,
            pending_request_id=self.pending_request_id,
            fulfilled_values=self.fulfilled_values,
            payout_tx=self.payout_tx,
        )
