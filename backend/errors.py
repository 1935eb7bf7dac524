from __future__ import annotations

import logging

from flask import Flask, jsonify
from pydantic import ValidationError
from werkzeug.exceptions import HTTPException

from raffle.errors import RaffleError

logger = logging.getLogger(__name__)


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(RaffleError)
    def _handle_raffle_error(exc: RaffleError):
        if exc.status_code >= 500:
            logger.warning("Raffle operation failed: %s", exc.message)
        return jsonify({"error": exc.code, "message": exc.message, "details": exc.details}), exc.status_code

    @app.errorhandler(ValidationError)
    def _handle_validation_error(exc: ValidationError):
        details = [
            {"loc": list(err["loc"]), "msg": err["msg"]}
            for err in exc.errors()
        ]
        return jsonify({"error": "validation_error", "message": "Invalid request", "details": details}), 400

    @app.errorhandler(Exception)
    def _handle_unexpected(exc: Exception):
        if isinstance(exc, HTTPException):
            return exc
        logger.exception("Unhandled error: %s", exc)
        return jsonify({"error": "internal error"}), 500
