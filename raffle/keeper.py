from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, Protocol

from .config import KeeperSettings
from .types import UpkeepStatus


class RaffleClientProtocol(Protocol):
    async def check_upkeep(self) -> UpkeepStatus:
        ...

    async def perform_upkeep(self) -> Optional[int]:
        ...


@dataclass
class UpkeepResult:
    request_id: int
    status: UpkeepStatus


class KeeperScheduler:
    """Polls draw eligibility and starts the draw when it is due."""

    def __init__(
        self,
        settings: KeeperSettings,
        client: RaffleClientProtocol,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._settings = settings
        self._client = client
        self._logger = logger or logging.getLogger("raffle.keeper")

    async def run_forever(self) -> None:
        interval = self._settings.poll_interval_seconds
        self._logger.info("Keeper loop started; poll interval=%s", interval)
        while True:
            try:
                await self._attempt_upkeep()
            except Exception as exc:
                self._logger.exception("Keeper iteration failed: %s", exc)
            await asyncio.sleep(interval)

    async def run_once(self) -> Optional[UpkeepResult]:
        return await self._attempt_upkeep()

    async def _attempt_upkeep(self) -> Optional[UpkeepResult]:
        status = await self._client.check_upkeep()
        if not status.upkeep_needed:
            self._logger.debug(
                "Upkeep not needed (open=%s time_passed=%s players=%s balance=%s)",
                status.is_open,
                status.time_passed,
                status.has_players,
                status.has_balance,
            )
            return None

        self._logger.info("Upkeep needed; starting draw.")
        request_id = await self._client.perform_upkeep()
        if request_id is None:
            self._logger.info("Draw start rejected by raffle; will re-check next poll.")
            return None

        self._logger.info("Draw started with randomness request %s", request_id)
        return UpkeepResult(request_id=request_id, status=status)
