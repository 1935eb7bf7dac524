from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from raffle.config import LedgerSettings, RaffleSettings, RandomnessSettings
from raffle.ledger import InMemoryLedger, Ledger, Web3Ledger
from raffle.randomness import (
    HttpRandomnessClient,
    HttpRandomnessClientConfig,
    LocalRandomnessCoordinator,
    RandomnessClient,
)
from raffle.round import Raffle

from .raffle_store import RaffleStateRepository

logger = logging.getLogger("raffle.backend")


def build_randomness_client(settings: RandomnessSettings) -> RandomnessClient:
    if settings.provider == "http":
        return HttpRandomnessClient(
            HttpRandomnessClientConfig(
                url=settings.url,
                callback_url=settings.callback_url,
                callback_token=settings.callback_token,
                key_hash=settings.key_hash,
                subscription_id=settings.subscription_id,
                callback_gas_limit=settings.callback_gas_limit,
                request_confirmations=settings.request_confirmations,
                timeout_seconds=settings.timeout_seconds,
            )
        )
    return LocalRandomnessCoordinator()


def build_ledger(settings: LedgerSettings) -> Ledger:
    if settings.backend == "web3":
        return Web3Ledger.from_settings(settings)
    return InMemoryLedger()


def build_raffle(
    settings: RaffleSettings,
    store: Optional[RaffleStateRepository] = None,
    *,
    randomness: Optional[RandomnessClient] = None,
    ledger: Optional[Ledger] = None,
    clock: Optional[Callable[[], float]] = None,
) -> Raffle:
    """Create the raffle, resuming the round persisted in ``store`` if any.

    Every transition is written to ``store`` under the round lock before it
    takes effect; a failing save propagates to the caller.
    """

    store = store or RaffleStateRepository()
    snapshot = store.load()

    raffle = Raffle(
        settings.entrance_fee,
        settings.interval_seconds,
        randomness or build_randomness_client(settings.randomness),
        ledger or build_ledger(settings.ledger),
        clock=clock or time.time,
        snapshot=snapshot,
        persist=store.save,
    )
    if snapshot is None:
        store.save(raffle.snapshot())
    logger.info(
        "Raffle ready: fee=%s interval=%ss state=%s",
        settings.entrance_fee,
        settings.interval_seconds,
        raffle.state.name,
    )
    return raffle
