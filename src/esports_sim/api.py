from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .config import Settings, load_settings
from .controller import ShellController
from .errors import AuthenticationRequiredError, NotFoundError, RemoteOperationError
from .gateway import BackendGateway


class AuthModeSelection(BaseModel):
    mode: str = "login"


class CredentialsSubmission(BaseModel):
    email: str = ""
    password: str = ""
    confirm_password: str = ""


class SaveNameEntry(BaseModel):
    save_name: str = ""


class RegionSelection(BaseModel):
    region: str | None = None


class TeamSelection(BaseModel):
    team_id: int | None = None


class TabSelection(BaseModel):
    tab: str = "roster"


async def _settle(task: asyncio.Task[Any] | None) -> None:
    # A superseded fetch ends cancelled; the view already reflects the newer one.
    if task is not None:
        await asyncio.wait([task])


class ShellService:
    def __init__(self, gateway: BackendGateway) -> None:
        self.gateway = gateway
        self.controller = ShellController(gateway)

    def view(self) -> dict[str, Any]:
        return self.controller.view()

    def open_auth(self) -> dict[str, Any]:
        self.controller.open_auth()
        return self.view()

    def switch_auth_mode(self, mode: str) -> dict[str, Any]:
        self.controller.switch_auth_mode(mode)
        return self.view()

    async def submit_auth(self, email: str, password: str, confirm_password: str) -> dict[str, Any]:
        await self.controller.submit_auth(email=email, password=password, confirm_password=confirm_password)
        browser = self.controller.save_browser
        if browser is not None:
            await _settle(browser.load_task)
        return self.view()

    def cancel_auth(self) -> dict[str, Any]:
        self.controller.cancel_auth()
        return self.view()

    async def sign_out(self) -> dict[str, Any]:
        await self.controller.sign_out()
        return self.view()

    def request_new_game(self) -> dict[str, Any]:
        self.controller.request_new_game()
        return self.view()

    async def request_load_game(self) -> dict[str, Any]:
        await _settle(self.controller.request_load_game())
        return self.view()

    def back(self) -> dict[str, Any]:
        self.controller.back()
        return self.view()

    def set_save_name(self, save_name: str) -> dict[str, Any]:
        self.controller.new_game.set_save_name(save_name)
        return self.view()

    async def select_region(self, region: str | None) -> dict[str, Any]:
        await _settle(self.controller.new_game.select_region(region))
        return self.view()

    def select_team(self, team_id: int | None) -> dict[str, Any]:
        self.controller.new_game.select_team(team_id)
        return self.view()

    async def start_new_game(self) -> dict[str, Any]:
        await self.controller.start_new_game()
        return self.view()

    async def reload_saves(self) -> dict[str, Any]:
        await _settle(self.controller.load_game.reload())
        return self.view()

    def request_delete(self, save_id: str) -> dict[str, Any]:
        self.controller.load_game.request_delete(save_id)
        return self.view()

    async def confirm_delete(self) -> dict[str, Any]:
        await _settle(self.controller.load_game.confirm_delete())
        return self.view()

    def cancel_delete(self) -> dict[str, Any]:
        self.controller.load_game.cancel_delete()
        return self.view()

    def open_save(self, save_id: str) -> dict[str, Any]:
        self.controller.pick_save(save_id)
        return self.view()

    def select_tab(self, tab: str) -> dict[str, Any]:
        self.controller.select_tab(tab)
        return self.view()

    def exit_game(self) -> dict[str, Any]:
        self.controller.exit_game()
        return self.view()

    async def teams_in_region(self, region: str) -> list[dict[str, Any]]:
        return [team.to_dict() for team in await self.gateway.get_teams_by_region(region)]

    async def saved_game(self, save_id: str) -> dict[str, Any]:
        saved = await self.gateway.load_saved_game(save_id)
        if saved is None:
            raise NotFoundError("Saved game not found")
        return saved.to_dict()


def create_app(settings: Settings | None = None, gateway: BackendGateway | None = None) -> FastAPI:
    if gateway is None:
        gateway = BackendGateway(settings or load_settings())
    service = ShellService(gateway)

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        async with gateway:
            async with service.controller:
                yield

    app = FastAPI(title="Esports Sim Shell API", version="0.1.0", lifespan=lifespan)
    app.state.service = service
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ValueError)
    async def invalid_action(_request: Request, exc: ValueError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(NotFoundError)
    async def not_found(_request: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(AuthenticationRequiredError)
    async def auth_required(_request: Request, exc: AuthenticationRequiredError) -> JSONResponse:
        return JSONResponse(status_code=401, content={"detail": str(exc)})

    @app.exception_handler(RemoteOperationError)
    async def remote_failure(_request: Request, exc: RemoteOperationError) -> JSONResponse:
        return JSONResponse(status_code=502, content={"detail": exc.message})

    @app.get("/api/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/api/shell")
    async def shell() -> dict[str, Any]:
        return service.view()

    @app.get("/api/regions/{region}/teams")
    async def region_teams(region: str) -> list[dict[str, Any]]:
        return await service.teams_in_region(region)

    @app.get("/api/saves/{save_id}")
    async def saved_game(save_id: str) -> dict[str, Any]:
        return await service.saved_game(save_id)

    @app.post("/api/auth/open")
    async def open_auth() -> dict[str, Any]:
        return service.open_auth()

    @app.post("/api/auth/mode")
    async def auth_mode(payload: AuthModeSelection) -> dict[str, Any]:
        return service.switch_auth_mode(payload.mode)

    @app.post("/api/auth/submit")
    async def auth_submit(payload: CredentialsSubmission) -> dict[str, Any]:
        return await service.submit_auth(payload.email, payload.password, payload.confirm_password)

    @app.post("/api/auth/cancel")
    async def auth_cancel() -> dict[str, Any]:
        return service.cancel_auth()

    @app.post("/api/auth/sign-out")
    async def sign_out() -> dict[str, Any]:
        return await service.sign_out()

    @app.post("/api/landing/new-game")
    async def landing_new_game() -> dict[str, Any]:
        return service.request_new_game()

    @app.post("/api/landing/load-game")
    async def landing_load_game() -> dict[str, Any]:
        return await service.request_load_game()

    @app.post("/api/back")
    async def back() -> dict[str, Any]:
        return service.back()

    @app.put("/api/new-game/save-name")
    async def new_game_save_name(payload: SaveNameEntry) -> dict[str, Any]:
        return service.set_save_name(payload.save_name)

    @app.put("/api/new-game/region")
    async def new_game_region(payload: RegionSelection) -> dict[str, Any]:
        return await service.select_region(payload.region)

    @app.put("/api/new-game/team")
    async def new_game_team(payload: TeamSelection) -> dict[str, Any]:
        return service.select_team(payload.team_id)

    @app.post("/api/new-game/start")
    async def new_game_start() -> dict[str, Any]:
        return await service.start_new_game()

    @app.post("/api/load-game/reload")
    async def load_game_reload() -> dict[str, Any]:
        return await service.reload_saves()

    @app.post("/api/load-game/delete/confirm")
    async def load_game_confirm_delete() -> dict[str, Any]:
        return await service.confirm_delete()

    @app.post("/api/load-game/delete/cancel")
    async def load_game_cancel_delete() -> dict[str, Any]:
        return service.cancel_delete()

    @app.post("/api/load-game/{save_id}/delete")
    async def load_game_delete(save_id: str) -> dict[str, Any]:
        return service.request_delete(save_id)

    @app.post("/api/load-game/{save_id}/open")
    async def load_game_open(save_id: str) -> dict[str, Any]:
        return service.open_save(save_id)

    @app.put("/api/game/tab")
    async def game_tab(payload: TabSelection) -> dict[str, Any]:
        return service.select_tab(payload.tab)

    @app.post("/api/game/exit")
    async def game_exit() -> dict[str, Any]:
        return service.exit_game()

    return app
