from __future__ import annotations

import hmac

from flask import Blueprint, current_app, jsonify, request

from raffle.randomness import LocalRandomnessCoordinator

from ..config import load_settings
from ..schemas import DrawStartedResponse, LocalFulfillmentRequest, PayoutRetryRequest, SettlementResponse
from .raffle import get_raffle

bp = Blueprint("admin", __name__)


def _require_admin() -> bool:
    settings = load_settings()
    api_key = settings.admin_api_key
    if not api_key:
        # Without a key the admin API is only open in debug mode.
        return current_app.debug
    provided = request.headers.get("X-Admin-Token", "")
    return hmac.compare_digest(provided.encode("utf-8"), api_key.encode("utf-8"))


@bp.before_request
def verify_admin():
    if not _require_admin():
        return jsonify({"error": "unauthorized"}), 401
    return None


@bp.post("/upkeep")
def perform_upkeep():
    raffle = get_raffle()
    request_id = raffle.start_draw()
    current_app.logger.info("Draw started via admin API: request=%s", request_id)
    response = DrawStartedResponse(request_id=request_id, state=raffle.state.name)
    return jsonify(response.model_dump()), 202


@bp.post("/settlements")
def retry_payout():
    """Retry the payout of a fulfilled request, reusing the stored random values."""
    payload = request.get_json(force=True, silent=True) or {}
    data = PayoutRetryRequest(**payload)

    raffle = get_raffle()
    winner = raffle.retry_payout(data.request_id)
    current_app.logger.info("Payout retry for request %s paid %s", data.request_id, winner)
    response = SettlementResponse(request_id=data.request_id, winner=winner, state=raffle.state.name)
    return jsonify(response.model_dump())


@bp.post("/randomness/<int:request_id>/fulfill")
def fulfill_local_request(request_id: int):
    randomness = current_app.extensions["raffle_randomness"]
    if not isinstance(randomness, LocalRandomnessCoordinator):
        return jsonify({"error": "local randomness provider not configured"}), 404

    payload = request.get_json(force=True, silent=True) or {}
    data = LocalFulfillmentRequest(**payload)
    if data.random_words is not None and not (current_app.debug or current_app.testing):
        return jsonify({"error": "forbidden", "message": "random_words overrides need debug or testing mode"}), 403
    if request_id not in randomness.pending_requests():
        return jsonify({"error": f"nonexistent request: {request_id}"}), 404

    try:
        randomness.fulfill(request_id, data.random_words)
    except ValueError as exc:
        return jsonify({"error": "invalid fulfillment", "message": str(exc)}), 400
    raffle = get_raffle()
    response = SettlementResponse(request_id=request_id, winner=raffle.recent_winner, state=raffle.state.name)
    return jsonify(response.model_dump())
