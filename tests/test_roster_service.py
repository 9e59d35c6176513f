from __future__ import annotations

import asyncio
import unittest

import httpx

from roster_service import RosterLookupService

MATCH_PAYLOAD = {
    "id": 498765,
    "homeTeam": {"name": "Inter", "squad": [{"name": "Lautaro Martínez"}, {"name": "Nicolò Barella"}]},
    "awayTeam": {"name": "Milan", "squad": [{"name": "Rafael Leão"}, {"name": None}]},
}


def _service(handler) -> RosterLookupService:
    return RosterLookupService(
        api_key="token-123",
        base_url="https://football.test/v4",
        timeout_s=1.0,
        transport=httpx.MockTransport(handler),
    )


class RosterLookupTests(unittest.TestCase):
    def test_collects_lowercased_names_from_both_squads(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=MATCH_PAYLOAD)

        names = asyncio.run(_service(handler).fetch_player_names("498765"))

        self.assertEqual(names, ["lautaro martínez", "nicolò barella", "rafael leão"])
        self.assertEqual(seen[0].url.path, "/v4/matches/498765")
        self.assertEqual(seen[0].headers["X-Auth-Token"], "token-123")

    def test_non_success_status_yields_empty_roster(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(403, json={"message": "restricted"})

        with self.assertLogs(level="WARNING"):
            names = asyncio.run(_service(handler).fetch_player_names("1"))
        self.assertEqual(names, [])

    def test_transport_error_yields_empty_roster(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("unreachable", request=request)

        self.assertEqual(asyncio.run(_service(handler).fetch_player_names("1")), [])

    def test_invalid_json_yields_empty_roster(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=b"<html>")

        self.assertEqual(asyncio.run(_service(handler).fetch_player_names("1")), [])

    def test_missing_match_id_skips_request(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        self.assertEqual(asyncio.run(_service(handler).fetch_player_names("")), [])


if __name__ == "__main__":
    unittest.main()
