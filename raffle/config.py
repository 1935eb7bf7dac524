from __future__ import annotations

import os
import pathlib
from dataclasses import dataclass, replace
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv

DEFAULT_ENTRANCE_FEE = 10**16
DEFAULT_INTERVAL_SECONDS = 30


def _bool_from_env(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _int_from_env(value: Optional[str], default: int) -> int:
    if value is None or value == "":
        return default
    return int(value)


def _non_negative(key: str, value: int) -> int:
    if value < 0:
        raise RuntimeError(f"{key} must not be negative (got {value})")
    return value


@dataclass(frozen=True)
class RandomnessSettings:
    provider: str = "local"
    url: str = ""
    key_hash: str = ""
    subscription_id: int = 0
    callback_gas_limit: int = 500000
    request_confirmations: int = 3
    callback_url: str = ""
    callback_token: str = ""
    timeout_seconds: int = 10


@dataclass(frozen=True)
class LedgerSettings:
    backend: str = "memory"
    rpc_url: str = ""
    private_key: str = ""
    chain_id: Optional[int] = None
    gas_limit: int = 21000
    confirmations: int = 1


@dataclass(frozen=True)
class KeeperSettings:
    raffle_url: str = "http://localhost:5000"
    poll_interval_seconds: int = 30
    run_once: bool = False
    admin_api_key: Optional[str] = None
    timeout_seconds: int = 10


@dataclass(frozen=True)
class RaffleSettings:
    entrance_fee: int = DEFAULT_ENTRANCE_FEE
    interval_seconds: int = DEFAULT_INTERVAL_SECONDS
    randomness: RandomnessSettings = RandomnessSettings()
    ledger: LedgerSettings = LedgerSettings()
    keeper: KeeperSettings = KeeperSettings()

    def copy(self, **updates) -> "RaffleSettings":
        return replace(self, **updates)


def load_from_environment() -> RaffleSettings:
    entrance_fee = _non_negative(
        "RAFFLE__ENTRANCE_FEE",
        _int_from_env(os.getenv("RAFFLE__ENTRANCE_FEE"), DEFAULT_ENTRANCE_FEE),
    )
    interval_seconds = _non_negative(
        "RAFFLE__INTERVAL_SECONDS",
        _int_from_env(os.getenv("RAFFLE__INTERVAL_SECONDS"), DEFAULT_INTERVAL_SECONDS),
    )

    provider = os.getenv("RANDOMNESS__PROVIDER", "local").strip().lower()
    if provider not in {"local", "http"}:
        raise RuntimeError(f"Unsupported RANDOMNESS__PROVIDER: {provider}")
    randomness = RandomnessSettings(
        provider=provider,
        url=os.getenv("RANDOMNESS__URL", ""),
        key_hash=os.getenv("RANDOMNESS__KEY_HASH", ""),
        subscription_id=_int_from_env(os.getenv("RANDOMNESS__SUBSCRIPTION_ID"), 0),
        callback_gas_limit=_int_from_env(os.getenv("RANDOMNESS__CALLBACK_GAS_LIMIT"), 500000),
        request_confirmations=_int_from_env(os.getenv("RANDOMNESS__REQUEST_CONFIRMATIONS"), 3),
        callback_url=os.getenv("RANDOMNESS__CALLBACK_URL", ""),
        callback_token=os.getenv("RANDOMNESS__CALLBACK_TOKEN", ""),
        timeout_seconds=_int_from_env(os.getenv("RANDOMNESS__TIMEOUT_SECONDS"), 10),
    )
    if randomness.provider == "http" and not randomness.url:
        raise RuntimeError("RANDOMNESS__URL is required when RANDOMNESS__PROVIDER=http")

    backend = os.getenv("LEDGER__BACKEND", "memory").strip().lower()
    if backend not in {"memory", "web3"}:
        raise RuntimeError(f"Unsupported LEDGER__BACKEND: {backend}")
    chain_id = os.getenv("LEDGER__CHAIN_ID")
    ledger = LedgerSettings(
        backend=backend,
        rpc_url=os.getenv("LEDGER__RPC_URL", ""),
        private_key=os.getenv("LEDGER__PRIVATE_KEY", ""),
        chain_id=int(chain_id) if chain_id else None,
        gas_limit=_int_from_env(os.getenv("LEDGER__GAS_LIMIT"), 21000),
        confirmations=_int_from_env(os.getenv("LEDGER__CONFIRMATIONS"), 1),
    )
    if ledger.backend == "web3":
        if not ledger.rpc_url:
            raise RuntimeError("Missing required environment variable: LEDGER__RPC_URL")
        if not ledger.private_key:
            raise RuntimeError("Missing required environment variable: LEDGER__PRIVATE_KEY")

    keeper = KeeperSettings(
        raffle_url=os.getenv("KEEPER__RAFFLE_URL", "http://localhost:5000"),
        poll_interval_seconds=_int_from_env(os.getenv("KEEPER__POLL_INTERVAL_SECONDS"), 30),
        run_once=_bool_from_env(os.getenv("KEEPER__RUN_ONCE"), False),
        admin_api_key=os.getenv("ADMIN_API_KEY") or None,
        timeout_seconds=_int_from_env(os.getenv("KEEPER__TIMEOUT_SECONDS"), 10),
    )

    return RaffleSettings(
        entrance_fee=entrance_fee,
        interval_seconds=interval_seconds,
        randomness=randomness,
        ledger=ledger,
        keeper=keeper,
    )


@lru_cache(maxsize=1)
def load_config(dotenv_path: Optional[str] = None) -> RaffleSettings:
    if dotenv_path:
        load_dotenv(dotenv_path)
    else:
        default_path = pathlib.Path(".env")
        if default_path.exists():
            load_dotenv(default_path)
    return load_from_environment()
