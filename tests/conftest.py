from __future__ import annotations

import asyncio
import itertools
import json
from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import uuid4

import httpx
import pytest

from esports_sim.config import Settings
from esports_sim.gateway import BackendGateway

BASE_URL = "https://backend.test"
ANON_KEY = "public-anon-key"
PASSWORD = "secret123"

TEAM_ROWS: list[dict[str, Any]] = [
    {"id": 1, "name": "Team Vitality", "region": "EMEA", "abbreviation": "VIT", "logo_url": "https://cdn.test/vit.png"},
    {"id": 2, "name": "Fnatic", "region": "EMEA", "abbreviation": "FNC", "logo_url": None},
    {"id": 3, "name": "Karmine Corp", "region": "EMEA", "abbreviation": None, "logo_url": None},
    {"id": 4, "name": "EDward Gaming", "region": "China", "abbreviation": "EDG", "logo_url": None},
    {"id": 5, "name": "Bilibili Gaming", "region": "China", "abbreviation": "BLG", "logo_url": None},
    {"id": 6, "name": "Paper Rex", "region": "Pacific", "abbreviation": "PRX", "logo_url": None},
    {"id": 7, "name": "DRX", "region": "Pacific", "abbreviation": "DRX", "logo_url": None},
    {"id": 8, "name": "Sentinels", "region": "Americas", "abbreviation": "SEN", "logo_url": "https://cdn.test/sen.png"},
    {"id": 9, "name": "LOUD", "region": "Americas", "abbreviation": None, "logo_url": None},
    {"id": 10, "name": "100 Thieves", "region": "Americas", "abbreviation": "100T", "logo_url": None},
]

_RESERVED_PARAMS = {"select", "order", "limit"}
_RLS_MESSAGE = 'new row violates row-level security policy for table "saved_games"'


def _matches(row: dict[str, Any], params: httpx.QueryParams) -> bool:
    for key, value in params.multi_items():
        if key in _RESERVED_PARAMS:
            continue
        op, _, expected = value.partition(".")
        if op != "eq" or str(row.get(key)) != expected:
            return False
    return True


def _shape(rows: list[dict[str, Any]], params: httpx.QueryParams) -> list[dict[str, Any]]:
    order = params.get("order")
    if order:
        column, _, direction = order.partition(".")
        rows = sorted(rows, key=lambda row: row[column], reverse=direction == "desc")
    limit = params.get("limit")
    if limit:
        rows = rows[: int(limit)]
    return [dict(row) for row in rows]


class FakeBackend:
    """In-memory stand-in for the hosted auth + table API."""

    def __init__(self, *, confirm_email: bool = False) -> None:
        self.confirm_email = confirm_email
        self.offline = False
        self.teams = [dict(row) for row in TEAM_ROWS]
        self.saved_games: list[dict[str, Any]] = []
        self.users: dict[str, dict[str, str]] = {}
        self.tokens: dict[str, str] = {}
        self.refresh_tokens: dict[str, str] = {}
        self.requests: list[httpx.Request] = []
        self.failures: dict[tuple[str, str], tuple[int, dict[str, Any]]] = {}
        self.garbled: set[tuple[str, str]] = set()
        self.region_gates: dict[str, asyncio.Event] = {}
        self.delete_gate: asyncio.Event | None = None
        self._clock = itertools.count()

    def gateway(self) -> BackendGateway:
        settings = Settings(supabase_url=BASE_URL, supabase_anon_key=ANON_KEY)
        return BackendGateway(settings, transport=httpx.MockTransport(self.handle))

    def add_user(self, email: str, password: str = PASSWORD) -> dict[str, str]:
        user = {"id": str(uuid4()), "email": email, "password": password}
        self.users[email] = user
        return user

    def seed_save(self, user: dict[str, str], save_name: str, team_id: int = 1) -> dict[str, Any]:
        team = next(row for row in self.teams if row["id"] == team_id)
        stamp = self._timestamp()
        row = {
            "id": str(uuid4()),
            "user_id": user["id"],
            "save_name": save_name,
            "team_id": team["id"],
            "team_name": team["name"],
            "team_region": team["region"],
            "team_abbreviation": team["abbreviation"],
            "team_logo_url": team["logo_url"],
            "game_data": {},
            "created_at": stamp,
            "updated_at": stamp,
        }
        self.saved_games.append(row)
        return row

    def fail(self, method: str, path: str, status: int = 500, message: str = "Internal server error") -> None:
        self.failures[(method, path)] = (status, {"message": message})

    def garble(self, method: str, path: str) -> None:
        self.garbled.add((method, path))

    def table_requests(self, table: str, method: str | None = None) -> list[httpx.Request]:
        return [
            r
            for r in self.requests
            if r.url.path == f"/rest/v1/{table}" and (method is None or r.method == method)
        ]

    def _timestamp(self) -> str:
        base = datetime(2025, 1, 5, 14, 30, tzinfo=UTC)
        return (base + timedelta(minutes=next(self._clock))).isoformat()

    def _user_for(self, request: httpx.Request) -> dict[str, str] | None:
        token = request.headers.get("authorization", "").removeprefix("Bearer ").strip()
        user_id = self.tokens.get(token)
        if user_id is None:
            return None
        return next((u for u in self.users.values() if u["id"] == user_id), None)

    def _session_payload(self, user: dict[str, str]) -> dict[str, Any]:
        access = f"access-{uuid4().hex}"
        refresh = f"refresh-{uuid4().hex}"
        self.tokens[access] = user["id"]
        self.refresh_tokens[refresh] = user["id"]
        return {
            "access_token": access,
            "refresh_token": refresh,
            "token_type": "bearer",
            "expires_in": 3600,
            "user": {"id": user["id"], "email": user["email"]},
        }

    async def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.offline:
            raise httpx.ConnectError("connection refused", request=request)
        path = request.url.path
        failure = self.failures.get((request.method, path))
        if failure is not None:
            status, body = failure
            return httpx.Response(status, json=body)
        if (request.method, path) in self.garbled:
            return httpx.Response(200, text="<html>upstream proxy error</html>")
        if path.startswith("/auth/v1/"):
            return self._auth(request, path.removeprefix("/auth/v1/"))
        if path == "/rest/v1/teams":
            return await self._teams(request)
        if path == "/rest/v1/saved_games":
            return await self._saved_games(request)
        return httpx.Response(404, json={"message": "Not found"})

    def _auth(self, request: httpx.Request, action: str) -> httpx.Response:
        body = json.loads(request.content) if request.content else {}
        if action == "signup":
            if body.get("email") in self.users:
                return httpx.Response(422, json={"msg": "User already registered"})
            user = self.add_user(body["email"], body["password"])
            if self.confirm_email:
                return httpx.Response(200, json={"id": user["id"], "email": user["email"]})
            return httpx.Response(200, json=self._session_payload(user))
        if action == "token":
            grant = request.url.params.get("grant_type")
            if grant == "password":
                user = self.users.get(body.get("email", ""))
                if user is None or user["password"] != body.get("password"):
                    return httpx.Response(
                        400,
                        json={"error": "invalid_grant", "error_description": "Invalid login credentials"},
                    )
                return httpx.Response(200, json=self._session_payload(user))
            if grant == "refresh_token":
                user_id = self.refresh_tokens.pop(body.get("refresh_token", ""), None)
                user = next((u for u in self.users.values() if u["id"] == user_id), None)
                if user is None:
                    return httpx.Response(400, json={"error_description": "Invalid Refresh Token"})
                return httpx.Response(200, json=self._session_payload(user))
        if action == "logout":
            token = request.headers.get("authorization", "").removeprefix("Bearer ").strip()
            self.tokens.pop(token, None)
            return httpx.Response(204)
        if action == "user":
            user = self._user_for(request)
            if user is None:
                return httpx.Response(401, json={"msg": "invalid JWT"})
            return httpx.Response(200, json={"id": user["id"], "email": user["email"]})
        return httpx.Response(404, json={"msg": "Not found"})

    async def _teams(self, request: httpx.Request) -> httpx.Response:
        params = request.url.params
        region = params.get("region", "").removeprefix("eq.")
        gate = self.region_gates.get(region)
        if gate is not None:
            await gate.wait()
        rows = [row for row in self.teams if _matches(row, params)]
        return httpx.Response(200, json=_shape(rows, params))

    async def _saved_games(self, request: httpx.Request) -> httpx.Response:
        user = self._user_for(request)
        params = request.url.params
        if request.method == "POST":
            body = json.loads(request.content)
            if user is None or body.get("user_id") != user["id"]:
                return httpx.Response(403, json={"message": _RLS_MESSAGE, "code": "42501"})
            stamp = self._timestamp()
            row = {**body, "id": str(uuid4()), "created_at": stamp, "updated_at": stamp}
            self.saved_games.append(row)
            return httpx.Response(201, json=[dict(row)])

        # Row ownership: callers only ever see their own rows.
        owned = [r for r in self.saved_games if user is not None and r["user_id"] == user["id"]]
        matched = [r for r in owned if _matches(r, params)]
        if request.method == "GET":
            return httpx.Response(200, json=_shape(matched, params))
        if request.method == "PATCH":
            body = json.loads(request.content)
            for row in matched:
                row.update(body)
            return httpx.Response(200, json=[dict(row) for row in matched])
        if request.method == "DELETE":
            if self.delete_gate is not None:
                await self.delete_gate.wait()
            for row in matched:
                self.saved_games.remove(row)
            return httpx.Response(200, json=[dict(row) for row in matched])
        return httpx.Response(405, json={"message": "Method not allowed"})


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def coach(backend: FakeBackend) -> dict[str, str]:
    return backend.add_user("coach@example.com")
