from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from raffle.randomness import HttpRandomnessClient

from ..schemas import SettlementResponse
from .raffle import get_raffle

bp = Blueprint("randomness", __name__)


@bp.post("/callback")
def fulfillment_callback():
    randomness = current_app.extensions["raffle_randomness"]
    if not isinstance(randomness, HttpRandomnessClient):
        return jsonify({"error": "http randomness provider not configured"}), 404

    token = request.headers.get("X-Randomness-Token")
    if not randomness.verify_token(token):
        return jsonify({"error": "unauthorized"}), 401

    payload = request.get_json(force=True, silent=True) or {}
    try:
        request_id, _ = randomness.handle_callback(payload, token)
    except ValueError as exc:
        return jsonify({"error": "invalid fulfillment", "message": str(exc)}), 400

    raffle = get_raffle()
    response = SettlementResponse(request_id=request_id, winner=raffle.recent_winner, state=raffle.state.name)
    return jsonify(response.model_dump())
