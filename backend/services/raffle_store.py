from __future__ import annotations

import datetime as dt
from typing import Optional

from raffle.types import RaffleSnapshot, RoundState

from ..db import session_scope
from ..models import RaffleStateRecord


class RaffleStateRepository:
    """Persists the current round so a restart resumes it."""

    def load(self) -> Optional[RaffleSnapshot]:
        with session_scope() as session:
            record = session.get(RaffleStateRecord, 1)
            if record is None:
                return None
            values = record.get_fulfilled_values()
            return RaffleSnapshot(
                state=RoundState[record.state],
                participants=tuple(record.get_participants()),
                pooled_balance=int(record.pooled_balance),
                entrance_fee=int(record.entrance_fee),
                interval_seconds=int(record.interval_seconds),
                last_draw_timestamp=float(record.last_draw_timestamp),
                recent_winner=record.recent_winner,
                pending_request_id=(
                    int(record.pending_request_id) if record.pending_request_id is not None else None
                ),
                fulfilled_values=tuple(values) if values is not None else None,
                payout_tx=record.payout_tx,
            )

    def save(self, snapshot: RaffleSnapshot) -> None:
        with session_scope() as session:
            record = session.get(RaffleStateRecord, 1)
            if record is None:
                record = RaffleStateRecord(id=1)
                session.add(record)
            record.state = snapshot.state.name
            record.set_participants(list(snapshot.participants))
            record.pooled_balance = str(snapshot.pooled_balance)
            record.entrance_fee = str(snapshot.entrance_fee)
            record.interval_seconds = snapshot.interval_seconds
            record.last_draw_timestamp = snapshot.last_draw_timestamp
            record.recent_winner = snapshot.recent_winner
            record.pending_request_id = (
                str(snapshot.pending_request_id) if snapshot.pending_request_id is not None else None
            )
            record.set_fulfilled_values(snapshot.fulfilled_values)
            record.payout_tx = snapshot.payout_tx
            record.updated_at = dt.datetime.now(dt.timezone.utc)
