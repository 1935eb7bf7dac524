"""Draw eligibility predicate consulted by the keeper and by ``start_draw``."""

from __future__ import annotations

from .types import RaffleSnapshot, RoundState, UpkeepStatus


def check_upkeep(snapshot: RaffleSnapshot, now: float) -> UpkeepStatus:
    """Return whether a draw may start for ``snapshot`` at time ``now``.

    A draw is due only when the round is open, strictly more than
    ``interval_seconds`` have elapsed since the last draw, and the round holds
    at least one participant and a positive balance.
    """

    is_open = snapshot.state == RoundState.OPEN
    time_passed = (now - snapshot.last_draw_timestamp) > snapshot.interval_seconds
    has_players = snapshot.participant_count > 0
    has_balance = snapshot.pooled_balance > 0
    return UpkeepStatus(
        upkeep_needed=is_open and time_passed and has_players and has_balance,
        is_open=is_open,
        time_passed=time_passed,
        has_players=has_players,
        has_balance=has_balance,
    )
