from __future__ import annotations

import datetime as dt
import json
from typing import List, Optional, Sequence

from sqlalchemy import Column, DateTime, Float, Integer, String, Text
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class RaffleStateRecord(Base):
    """The current round, kept in a single row (id=1)."""

    __tablename__ = "raffle_state"

    id = Column(Integer, primary_key=True, default=1)
    state = Column(String(16), nullable=False, default="OPEN")
    participants = Column(Text, nullable=False, default="[]")
    # Amounts are stored as decimal strings; wei values overflow 64-bit columns.
    pooled_balance = Column(String(78), nullable=False, default="0")
    entrance_fee = Column(String(78), nullable=False)
    interval_seconds = Column(Integer, nullable=False)
    last_draw_timestamp = Column(Float, nullable=False)
    recent_winner = Column(String(128), nullable=True)
    pending_request_id = Column(String(78), nullable=True)
    # Random words accepted for the pending request, kept until its payout is confirmed.
    fulfilled_values = Column(Text, nullable=True)
    payout_tx = Column(String(130), nullable=True)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)

    def set_participants(self, participants: List[str]) -> None:
        self.participants = json.dumps(list(participants))

    def get_participants(self) -> List[str]:
        return json.loads(self.participants)

    def set_fulfilled_values(self, values: Optional[Sequence[int]]) -> None:
        self.fulfilled_values = None if values is None else json.dumps([str(value) for value in values])

    def get_fulfilled_values(self) -> Optional[List[int]]:
        if self.fulfilled_values is None:
            return None
        return [int(value) for value in json.loads(self.fulfilled_values)]
