from __future__ import annotations

import hmac
import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence, Tuple

import requests

from ..errors import RandomnessRequestFailed
from .base import RandomnessClient


@dataclass(frozen=True)
class HttpRandomnessClientConfig:
    """Connection parameters for a remote randomness provider."""

    url: str
    callback_url: str = ""
    callback_token: str = ""
    key_hash: str = ""
    subscription_id: int = 0
    callback_gas_limit: int = 500000
    request_confirmations: int = 3
    timeout_seconds: int = 10


class HttpRandomnessClient(RandomnessClient):
    """Request randomness from a JSON HTTP provider.

    Fulfillments are pushed back by the provider to the callback URL and handed
    to :meth:`handle_callback` by the web layer.
    """

    def __init__(self, config: HttpRandomnessClientConfig, logger: Optional[logging.Logger] = None) -> None:
        super().__init__()
        self._config = config
        self._session = requests.Session()
        self._logger = logger or logging.getLogger("raffle.randomness")

    def request_random(self, count: int) -> int:
        if count < 1:
            raise ValueError("count must be at least 1")
        cfg = self._config
        body = {
            "num_words": count,
            "key_hash": cfg.key_hash,
            "subscription_id": cfg.subscription_id,
            "callback_gas_limit": cfg.callback_gas_limit,
            "request_confirmations": cfg.request_confirmations,
            "callback_url": cfg.callback_url,
        }
        try:
            resp = self._session.post(
                f"{cfg.url.rstrip('/')}/requests", json=body, timeout=cfg.timeout_seconds
            )
            resp.raise_for_status()
            payload = resp.json()
        except (requests.RequestException, ValueError) as exc:
            raise RandomnessRequestFailed(f"Randomness provider did not acknowledge request: {exc}") from exc

        if not isinstance(payload, Mapping):
            raise RandomnessRequestFailed("Randomness provider returned non-object payload")
        try:
            request_id = self._parse_request_id(payload.get("request_id"))
        except ValueError as exc:
            raise RandomnessRequestFailed(str(exc)) from exc
        self._logger.info("Randomness request %s accepted by %s", request_id, cfg.url)
        return request_id

    def verify_token(self, token: Optional[str]) -> bool:
        expected = self._config.callback_token
        if not expected:
            return True
        return token is not None and hmac.compare_digest(token, expected)

    def handle_callback(self, payload: Mapping[str, Any], token: Optional[str] = None) -> Tuple[int, Tuple[int, ...]]:
        """Validate a provider callback and deliver it to subscribers."""

        if not self.verify_token(token):
            raise PermissionError("invalid randomness callback token")
        request_id = self._parse_request_id(payload.get("request_id"))
        words = self._parse_words(payload.get("random_words"))
        self._logger.info("Randomness fulfillment received for request %s", request_id)
        self._deliver(request_id, words)
        return request_id, words

    def close(self) -> None:
        self._session.close()

    @staticmethod
    def _parse_request_id(raw: Any) -> int:
        if isinstance(raw, bool) or raw is None:
            raise ValueError("request_id missing")
        try:
            return int(raw)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"invalid request_id: {raw!r}") from exc

    @staticmethod
    def _parse_words(raw: Any) -> Tuple[int, ...]:
        if not isinstance(raw, Sequence) or isinstance(raw, (str, bytes)):
            raise ValueError("random_words must be a list")
        words = []
        for value in raw:
            # Large words may be serialised as decimal strings.
            if isinstance(value, bool):
                raise ValueError("random_words must be integers")
            if isinstance(value, str) and value.isdigit():
                value = int(value)
            if not isinstance(value, int) or value < 0:
                raise ValueError("random_words must be non-negative integers")
            words.append(value)
        if len(words) == 0:
            raise ValueError("random_words empty")
        return tuple(words)
