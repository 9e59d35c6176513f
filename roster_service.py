from __future__ import annotations

import logging
import os
from typing import Any, Optional

import httpx

from config_utils import read_float_env, read_str_env


class RosterLookupService:
    """Player names for a match from football-data.org (v4).

    Names only widen keyword relevance, so every failure degrades to an empty
    roster instead of raising.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout_s: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._api_key = api_key or os.getenv("FOOTBALL_DATA_API_KEY") or ""
        self._base_url = base_url or read_str_env("FOOTBALL_DATA_BASE_URL", "https://api.football-data.org/v4")
        self._timeout_s = timeout_s or read_float_env("ROSTER_TIMEOUT_SECONDS", 5.0)
        self._transport = transport

    async def fetch_player_names(self, match_id: str) -> list[str]:
        if not match_id:
            return []
        headers = {"X-Auth-Token": self._api_key} if self._api_key else {}
        try:
            async with httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout_s,
                transport=self._transport,
            ) as client:
                response = await client.get(f"/matches/{match_id}", headers=headers)
        except httpx.HTTPError as exc:
            logging.warning("roster_lookup_failed match_id=%s error=%s", match_id, exc)
            return []
        if not response.is_success:
            logging.warning("roster_lookup_failed match_id=%s status=%d", match_id, response.status_code)
            return []
        try:
            payload = response.json()
        except ValueError as exc:
            logging.warning("roster_lookup_invalid_json match_id=%s error=%s", match_id, exc)
            return []
        names = self._extract_names(payload)
        logging.info("roster_loaded match_id=%s players=%d", match_id, len(names))
        return names

    @staticmethod
    def _extract_names(payload: Any) -> list[str]:
        if not isinstance(payload, dict):
            return []
        names: list[str] = []
        for team_key in ("homeTeam", "awayTeam"):
            team = payload.get(team_key) or {}
            for player in team.get("squad") or []:
                name = (player or {}).get("name")
                if name:
                    names.append(str(name).lower())
        return names
