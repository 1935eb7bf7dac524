from __future__ import annotations

import asyncio
from typing import Any, Mapping, Optional

import requests

from .config import KeeperSettings
from .types import UpkeepStatus


class RaffleClient:
    """Wrapper around the raffle backend's upkeep endpoints."""

    def __init__(self, settings: KeeperSettings, session: Optional[requests.Session] = None) -> None:
        self._settings = settings
        self._base_url = settings.raffle_url.rstrip("/")
        self._session = session or requests.Session()

    async def check_upkeep(self) -> UpkeepStatus:
        return await asyncio.to_thread(self._sync_check_upkeep)

    def _sync_check_upkeep(self) -> UpkeepStatus:
        resp = self._session.get(f"{self._base_url}/raffle/upkeep", timeout=self._settings.timeout_seconds)
        resp.raise_for_status()
        return self._parse_status(resp.json())

    async def perform_upkeep(self) -> Optional[int]:
        return await asyncio.to_thread(self._sync_perform_upkeep)

    def _sync_perform_upkeep(self) -> Optional[int]:
        headers = {}
        if self._settings.admin_api_key:
            headers["X-Admin-Token"] = self._settings.admin_api_key
        resp = self._session.post(
            f"{self._base_url}/admin/api/upkeep",
            headers=headers,
            timeout=self._settings.timeout_seconds,
        )
        if resp.status_code == 409:
            # Another caller started the draw, or eligibility lapsed since the check.
            return None
        resp.raise_for_status()
        payload = resp.json()
        return int(payload["request_id"])

    def close(self) -> None:
        self._session.close()

    @staticmethod
    def _parse_status(payload: Any) -> UpkeepStatus:
        if not isinstance(payload, Mapping):
            raise ValueError("upkeep endpoint returned non-object payload")
        try:
            return UpkeepStatus(
                upkeep_needed=bool(payload["upkeep_needed"]),
                is_open=bool(payload["is_open"]),
                time_passed=bool(payload["time_passed"]),
                has_players=bool(payload["has_players"]),
                has_balance=bool(payload["has_balance"]),
            )
        except KeyError as exc:
            raise ValueError(f"Missing upkeep field: {exc.args[0]}") from exc
