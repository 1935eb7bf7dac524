from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from raffle.round import Raffle

from ..schemas import EntryRequest, EntryResponse, ParticipantResponse, RaffleStateResponse, UpkeepResponse

bp = Blueprint("raffle", __name__)


def get_raffle() -> Raffle:
    return current_app.extensions["raffle"]


@bp.get("")
def get_state():
    snapshot = get_raffle().snapshot()
    response = RaffleStateResponse(
        state=snapshot.state.name,
        participant_count=snapshot.participant_count,
        pooled_balance=str(snapshot.pooled_balance),
        entrance_fee=str(snapshot.entrance_fee),
        interval_seconds=snapshot.interval_seconds,
        last_draw_timestamp=snapshot.last_draw_timestamp,
        recent_winner=snapshot.recent_winner,
        pending_request_id=snapshot.pending_request_id,
        payout_pending=snapshot.fulfilled_values is not None,
        payout_tx=snapshot.payout_tx,
    )
    return jsonify(response.model_dump())


@bp.get("/participants/<int:index>")
def get_participant(index: int):
    try:
        player = get_raffle().get_participant(index)
    except IndexError:
        return jsonify({"error": "participant not found"}), 404
    return jsonify(ParticipantResponse(index=index, player=player).model_dump())


@bp.post("/entries")
def enter():
    payload = request.get_json(force=True, silent=True) or {}
    data = EntryRequest(**payload)

    raffle = get_raffle()
    raffle.enter(data.player, data.value)
    snapshot = raffle.snapshot()

    response = EntryResponse(
        player=data.player,
        participant_count=snapshot.participant_count,
        pooled_balance=str(snapshot.pooled_balance),
    )
    return jsonify(response.model_dump()), 201


@bp.get("/upkeep")
def check_upkeep():
    status = get_raffle().check_upkeep()
    return jsonify(UpkeepResponse(**status.to_dict()).model_dump())
