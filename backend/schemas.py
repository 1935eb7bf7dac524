from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class EntryRequest(BaseModel):
    player: str = Field(..., min_length=1, max_length=128, description="Participant identifier.")
    value: int = Field(..., ge=0, description="Amount deposited with the entry.")

    @field_validator("player")
    @classmethod
    def validate_player(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("player must not be blank.")
        return value


class EntryResponse(BaseModel):
    player: str
    participant_count: int
    pooled_balance: str


class RaffleStateResponse(BaseModel):
    state: str
    participant_count: int
    pooled_balance: str
    entrance_fee: str
    interval_seconds: int
    last_draw_timestamp: float
    recent_winner: Optional[str] = None
    pending_request_id: Optional[int] = None
    payout_pending: bool = False
    payout_tx: Optional[str] = None


class ParticipantResponse(BaseModel):
    index: int
    player: str


class UpkeepResponse(BaseModel):
    upkeep_needed: bool
    is_open: bool
    time_passed: bool
    has_players: bool
    has_balance: bool


class DrawStartedResponse(BaseModel):
    request_id: int
    state: str


class PayoutRetryRequest(BaseModel):
    """Retry a failed payout. The winner comes from the stored fulfillment only."""

    model_config = ConfigDict(extra="forbid")

    request_id: int


class LocalFulfillmentRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    random_words: Optional[List[int]] = None

    @field_validator("random_words")
    @classmethod
    def validate_words(cls, value: Optional[List[int]]) -> Optional[List[int]]:
        if value is not None and any(word < 0 for word in value):
            raise ValueError("random_words must be non-negative.")
        return value


class SettlementResponse(BaseModel):
    request_id: int
    winner: Optional[str] = None
    state: str
