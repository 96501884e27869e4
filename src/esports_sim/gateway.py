from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any, Callable, TypeVar

import httpx

from .config import REGIONS, SAVED_GAMES_TABLE, TEAMS_TABLE, Settings
from .errors import AuthenticationRequiredError, RemoteOperationError
from .models import SavedGame, Session, SignUpResult, Team, User

logger = logging.getLogger(__name__)

SIGNED_IN = "SIGNED_IN"
SIGNED_OUT = "SIGNED_OUT"
TOKEN_REFRESHED = "TOKEN_REFRESHED"

MALFORMED_RESPONSE = "Malformed response from backend"

AuthCallback = Callable[[str, Session | None], None]
T = TypeVar("T")


class AuthSubscription:
    def __init__(self, listeners: list[AuthCallback], callback: AuthCallback) -> None:
        self._listeners = listeners
        self._callback = callback
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        if not self._active:
            return
        self._active = False
        if self._callback in self._listeners:
            self._listeners.remove(self._callback)

    def __enter__(self) -> AuthSubscription:
        return self

    def __exit__(self, *_exc: object) -> None:
        self.unsubscribe()


def _json(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError as exc:
        raise RemoteOperationError(MALFORMED_RESPONSE, status_code=response.status_code) from exc


def _parse(factory: Callable[[Any], T], payload: Any) -> T:
    # A row missing columns or carrying unusable values is a backend failure.
    try:
        return factory(payload)
    except (AttributeError, KeyError, TypeError, ValueError) as exc:
        raise RemoteOperationError(MALFORMED_RESPONSE) from exc


def _rows(response: httpx.Response) -> list[dict[str, Any]]:
    payload = _json(response)
    if payload is None:
        return []
    if isinstance(payload, dict):
        return [payload]
    if not isinstance(payload, list):
        return []
    return [row for row in payload if isinstance(row, dict)]


def _sign_up_result(payload: dict[str, Any]) -> SignUpResult:
    if payload.get("access_token"):
        session = Session.from_payload(payload)
        return SignUpResult(user=session.user, session=session)
    # E-mail confirmation pending: the backend answers with the bare user.
    user_payload = payload["user"] if isinstance(payload.get("user"), dict) else payload
    return SignUpResult(user=User.from_payload(user_payload), session=None)


def _error_payload(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None


class BackendGateway:
    """Async access to the hosted backend: auth, ``teams`` and ``saved_games``.

    The session is held in memory only. Saved-game calls resolve the signed-in
    user first and always filter by ``user_id`` on top of the server's own
    row-level ownership rules.
    """

    def __init__(self, settings: Settings, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._anon_key = settings.supabase_anon_key
        self._client = httpx.AsyncClient(
            base_url=settings.supabase_url,
            timeout=settings.http_timeout,
            headers={"apikey": settings.supabase_anon_key},
            transport=transport,
        )
        self._session: Session | None = None
        self._listeners: list[AuthCallback] = []

    async def __aenter__(self) -> BackendGateway:
        return self

    async def __aexit__(self, *_exc: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        self._listeners.clear()
        await self._client.aclose()

    def _bearer(self, token: str | None = None) -> dict[str, str]:
        if token is None:
            token = self._session.access_token if self._session is not None else self._anon_key
        return {"Authorization": f"Bearer {token}"}

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, str] | None = None,
        json: Any = None,
        headers: dict[str, str] | None = None,
        token: str | None = None,
    ) -> httpx.Response:
        merged = self._bearer(token)
        if headers:
            merged.update(headers)
        try:
            response = await self._client.request(method, path, params=params, json=json, headers=merged)
        except httpx.HTTPError as exc:
            raise RemoteOperationError(f"Network error: {exc}") from exc
        if response.is_error:
            raise RemoteOperationError.from_payload(
                _error_payload(response),
                response.status_code,
                response.reason_phrase,
            )
        return response

    # Auth

    def _emit(self, event: str, session: Session | None) -> None:
        for callback in list(self._listeners):
            try:
                callback(event, session)
            except Exception:
                logger.exception("Auth listener failed while handling %s", event)

    def _set_session(self, session: Session | None, event: str) -> None:
        self._session = session
        self._emit(event, session)

    def on_auth_state_change(self, callback: AuthCallback) -> AuthSubscription:
        self._listeners.append(callback)
        return AuthSubscription(self._listeners, callback)

    def get_current_session(self) -> Session | None:
        return self._session

    async def get_current_user(self) -> User | None:
        if self._session is None:
            return None
        try:
            response = await self._request("GET", "/auth/v1/user")
        except RemoteOperationError as exc:
            if exc.status_code in {401, 403}:
                return None
            raise
        return _parse(User.from_payload, _json(response))

    async def sign_up(self, email: str, password: str) -> SignUpResult:
        response = await self._request("POST", "/auth/v1/signup", json={"email": email, "password": password})
        result = _parse(_sign_up_result, _json(response))
        if result.session is not None:
            self._set_session(result.session, SIGNED_IN)
        return result

    async def sign_in(self, email: str, password: str) -> Session:
        response = await self._request(
            "POST",
            "/auth/v1/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        session = _parse(Session.from_payload, _json(response))
        self._set_session(session, SIGNED_IN)
        logger.info("Signed in", extra={"user_id": session.user.id})
        return session

    async def refresh_session(self) -> Session:
        current = self._session
        if current is None:
            raise AuthenticationRequiredError("No session to refresh")
        response = await self._request(
            "POST",
            "/auth/v1/token",
            params={"grant_type": "refresh_token"},
            json={"refresh_token": current.refresh_token},
        )
        session = _parse(Session.from_payload, _json(response))
        self._set_session(session, TOKEN_REFRESHED)
        return session

    async def sign_out(self) -> None:
        current = self._session
        if current is None:
            return
        try:
            await self._request("POST", "/auth/v1/logout", token=current.access_token)
        finally:
            self._set_session(None, SIGNED_OUT)

    # Teams

    async def get_teams_by_region(self, region: str) -> list[Team]:
        if region not in REGIONS:
            raise ValueError(f"Unknown region '{region}'")
        response = await self._request(
            "GET",
            f"/rest/v1/{TEAMS_TABLE}",
            params={"select": "*", "region": f"eq.{region}", "order": "name.asc"},
        )
        return [_parse(Team.from_row, row) for row in _rows(response)]

    async def get_team_by_id(self, team_id: int) -> Team | None:
        response = await self._request(
            "GET",
            f"/rest/v1/{TEAMS_TABLE}",
            params={"select": "*", "id": f"eq.{int(team_id)}", "limit": "1"},
        )
        rows = _rows(response)
        return _parse(Team.from_row, rows[0]) if rows else None

    # Saved games

    async def _require_user(self) -> User:
        user = await self.get_current_user()
        if user is None:
            raise AuthenticationRequiredError()
        return user

    async def create_saved_game(self, save_name: str, team: Team) -> SavedGame:
        user = await self._require_user()
        row = {
            "user_id": user.id,
            "save_name": save_name,
            "team_id": team.id,
            "team_name": team.name,
            "team_region": team.region,
            "team_abbreviation": team.abbreviation,
            "team_logo_url": team.logo_url,
            "game_data": {},
        }
        response = await self._request(
            "POST",
            f"/rest/v1/{SAVED_GAMES_TABLE}",
            params={"select": "*"},
            json=row,
            headers={"Prefer": "return=representation"},
        )
        rows = _rows(response)
        if not rows:
            raise RemoteOperationError("Saved game was not returned by the backend")
        saved = _parse(SavedGame.from_row, rows[0])
        logger.info("Created saved game", extra={"save_id": saved.id, "team_id": team.id})
        return saved

    async def get_user_saved_games(self) -> list[SavedGame]:
        user = await self._require_user()
        response = await self._request(
            "GET",
            f"/rest/v1/{SAVED_GAMES_TABLE}",
            params={"select": "*", "user_id": f"eq.{user.id}", "order": "updated_at.desc"},
        )
        return [_parse(SavedGame.from_row, row) for row in _rows(response)]

    async def load_saved_game(self, save_id: str) -> SavedGame | None:
        user = await self._require_user()
        response = await self._request(
            "GET",
            f"/rest/v1/{SAVED_GAMES_TABLE}",
            params={"select": "*", "id": f"eq.{save_id}", "user_id": f"eq.{user.id}", "limit": "1"},
        )
        rows = _rows(response)
        return _parse(SavedGame.from_row, rows[0]) if rows else None

    async def delete_saved_game(self, save_id: str) -> int:
        user = await self._require_user()
        response = await self._request(
            "DELETE",
            f"/rest/v1/{SAVED_GAMES_TABLE}",
            params={"id": f"eq.{save_id}", "user_id": f"eq.{user.id}"},
            headers={"Prefer": "return=representation"},
        )
        removed = len(_rows(response))
        logger.info("Deleted saved game", extra={"save_id": save_id, "rows": removed})
        return removed

    async def update_saved_game(self, save_id: str, game_data: dict[str, Any]) -> SavedGame | None:
        user = await self._require_user()
        response = await self._request(
            "PATCH",
            f"/rest/v1/{SAVED_GAMES_TABLE}",
            params={"id": f"eq.{save_id}", "user_id": f"eq.{user.id}", "select": "*"},
            json={"game_data": dict(game_data), "updated_at": datetime.now(UTC).isoformat()},
            headers={"Prefer": "return=representation"},
        )
        rows = _rows(response)
        return _parse(SavedGame.from_row, rows[0]) if rows else None
