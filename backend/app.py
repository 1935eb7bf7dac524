from __future__ import annotations

from typing import Callable, Optional

from flask import Flask

from raffle.ledger import Ledger
from raffle.randomness import RandomnessClient

from .config import load_settings
from .db import engine
from .errors import register_error_handlers
from .models import Base
from .routes.admin import bp as admin_bp
from .routes.health import bp as health_bp
from .routes.raffle import bp as raffle_bp
from .routes.randomness import bp as randomness_bp
from .services.raffle_factory import build_raffle, build_randomness_client


def create_app(
    randomness: Optional[RandomnessClient] = None,
    ledger: Optional[Ledger] = None,
    clock: Optional[Callable[[], float]] = None,
) -> Flask:
    settings = load_settings()
    app = Flask(__name__)
    app.config["SECRET_KEY"] = settings.flask.secret_key
    app.config["DEBUG"] = settings.flask.debug
    Base.metadata.create_all(engine)

    randomness = randomness or build_randomness_client(settings.raffle.randomness)
    raffle = build_raffle(settings.raffle, randomness=randomness, ledger=ledger, clock=clock)
    app.extensions["raffle"] = raffle
    app.extensions["raffle_randomness"] = randomness

    register_error_handlers(app)
    app.register_blueprint(health_bp)
    app.register_blueprint(raffle_bp, url_prefix="/raffle")
    app.register_blueprint(admin_bp, url_prefix="/admin/api")
    app.register_blueprint(randomness_bp, url_prefix="/randomness")

    return app
