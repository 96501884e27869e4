from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any

from .auth_prompt import AuthPrompt
from .config import APP_FOOTER, APP_SUBTITLE, APP_TITLE
from .gateway import BackendGateway
from .models import GameState, SavedGame
from .save_browser import SaveBrowser
from .session import AuthSession
from .setup_flow import GameSetupFlow

logger = logging.getLogger(__name__)

SIGN_OUT_NOTICE = "Sign out could not be confirmed. You have been returned to the main menu."


class Screen(str, Enum):
    LANDING = "landing"
    NEW_GAME = "new-game"
    LOAD_GAME = "load-game"
    GAME = "game"


class GameTab(str, Enum):
    ROSTER = "roster"
    SEASON = "season"


class PendingAction(Enum):
    NONE = "none"
    AWAITING_NEW_GAME = "awaiting-new-game"
    AWAITING_LOAD_GAME = "awaiting-load-game"


TAB_PLACEHOLDERS: dict[GameTab, str] = {
    GameTab.ROSTER: "Roster management is coming soon.",
    GameTab.SEASON: "The season schedule is coming soon.",
}


class ShellController:
    """Owns the visible screen, the auth gate and the active game.

    Entering the controller resolves the session and subscribes to auth
    events; leaving it closes the open screen's requests and the subscription.
    """

    def __init__(self, gateway: BackendGateway) -> None:
        self._gateway = gateway
        self.session = AuthSession(gateway)
        self.screen = Screen.LANDING
        self.pending = PendingAction.NONE
        self.auth_prompt: AuthPrompt | None = None
        self.setup_flow: GameSetupFlow | None = None
        self.save_browser: SaveBrowser | None = None
        self.game_state: GameState | None = None
        self.game_tab = GameTab.ROSTER
        self.notice: str | None = None

    async def start(self) -> None:
        await self.session.start()

    async def close(self) -> None:
        self._close_flows()
        self.session.close()

    async def __aenter__(self) -> ShellController:
        await self.start()
        return self

    async def __aexit__(self, *_exc: object) -> None:
        await self.close()

    def _require_screen(self, *screens: Screen) -> None:
        if self.screen not in screens:
            raise ValueError(f"Action not available on the {self.screen.value} screen")

    def _close_flows(self) -> None:
        if self.setup_flow is not None:
            self.setup_flow.close()
            self.setup_flow = None
        if self.save_browser is not None:
            self.save_browser.close()
            self.save_browser = None

    def _enter_new_game(self) -> None:
        self._close_flows()
        self.setup_flow = GameSetupFlow(self._gateway)
        self.screen = Screen.NEW_GAME

    def _enter_load_game(self) -> asyncio.Task[None]:
        self._close_flows()
        self.save_browser = SaveBrowser(self._gateway)
        self.screen = Screen.LOAD_GAME
        return self.save_browser.open()

    def _activate(self, saved: SavedGame) -> GameState:
        self._close_flows()
        self.game_state = GameState.from_saved_game(saved)
        self.game_tab = GameTab.ROSTER
        self.screen = Screen.GAME
        logger.info("Game activated", extra={"save_id": saved.id})
        return self.game_state

    # Landing and the auth gate

    def _prompt_auth(self, pending: PendingAction) -> None:
        self.pending = pending
        self.auth_prompt = AuthPrompt(self.session)

    def open_auth(self) -> None:
        self._require_screen(Screen.LANDING)
        self._prompt_auth(PendingAction.NONE)

    def request_new_game(self) -> None:
        self._require_screen(Screen.LANDING)
        self.notice = None
        if not self.session.is_authenticated:
            self._prompt_auth(PendingAction.AWAITING_NEW_GAME)
            return
        self._enter_new_game()

    def request_load_game(self) -> asyncio.Task[None] | None:
        self._require_screen(Screen.LANDING)
        self.notice = None
        if not self.session.is_authenticated:
            self._prompt_auth(PendingAction.AWAITING_LOAD_GAME)
            return None
        return self._enter_load_game()

    def _require_prompt(self) -> AuthPrompt:
        if self.auth_prompt is None:
            raise ValueError("No authentication prompt is open")
        return self.auth_prompt

    def switch_auth_mode(self, mode: str) -> None:
        self._require_prompt().switch_mode(mode)

    async def submit_auth(
        self,
        email: str | None = None,
        password: str | None = None,
        confirm_password: str | None = None,
    ) -> bool:
        prompt = self._require_prompt()
        prompt.update(email=email, password=password, confirm_password=confirm_password)
        if not await prompt.submit():
            return False
        if prompt is not self.auth_prompt:
            # Dismissed while the request was in flight.
            return True
        pending = self.pending
        self.auth_prompt = None
        self.pending = PendingAction.NONE
        if pending is PendingAction.AWAITING_NEW_GAME:
            self._enter_new_game()
        elif pending is PendingAction.AWAITING_LOAD_GAME:
            self._enter_load_game()
        return True

    def cancel_auth(self) -> None:
        self.auth_prompt = None
        self.pending = PendingAction.NONE

    async def sign_out(self) -> bool:
        ok = await self.session.sign_out()
        self._close_flows()
        self.auth_prompt = None
        self.pending = PendingAction.NONE
        self.game_state = None
        self.screen = Screen.LANDING
        self.notice = None if ok else SIGN_OUT_NOTICE
        return ok

    # New game and load game

    def _require_setup_flow(self) -> GameSetupFlow:
        self._require_screen(Screen.NEW_GAME)
        if self.setup_flow is None:
            raise RuntimeError("New game screen is open without a setup flow")
        return self.setup_flow

    def _require_save_browser(self) -> SaveBrowser:
        self._require_screen(Screen.LOAD_GAME)
        if self.save_browser is None:
            raise RuntimeError("Load game screen is open without a save browser")
        return self.save_browser

    @property
    def new_game(self) -> GameSetupFlow:
        return self._require_setup_flow()

    @property
    def load_game(self) -> SaveBrowser:
        return self._require_save_browser()

    async def start_new_game(self) -> GameState | None:
        flow = self._require_setup_flow()
        saved = await flow.submit()
        if saved is None or flow is not self.setup_flow:
            return None
        return self._activate(saved)

    def pick_save(self, save_id: str) -> GameState:
        saved = self._require_save_browser().select(save_id)
        return self._activate(saved)

    def back(self) -> None:
        self._require_screen(Screen.NEW_GAME, Screen.LOAD_GAME)
        self._close_flows()
        self.screen = Screen.LANDING

    # In game

    def select_tab(self, tab: str) -> None:
        self._require_screen(Screen.GAME)
        self.game_tab = GameTab(tab)

    def exit_game(self) -> None:
        self._require_screen(Screen.GAME)
        self.game_state = None
        self.screen = Screen.LANDING

    def view(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "screen": self.screen.value,
            "auth": self.session.view(),
            "auth_prompt": self.auth_prompt.view() if self.auth_prompt is not None else None,
            "pending_action": self.pending.value,
            "notice": self.notice,
        }
        if self.screen is Screen.NEW_GAME and self.setup_flow is not None:
            payload["new_game"] = self.setup_flow.view()
        elif self.screen is Screen.LOAD_GAME and self.save_browser is not None:
            payload["load_game"] = self.save_browser.view()
        elif self.screen is Screen.GAME and self.game_state is not None:
            payload["game"] = {
                "state": self.game_state.to_dict(),
                "tab": self.game_tab.value,
                "tabs": [tab.value for tab in GameTab],
                "content": TAB_PLACEHOLDERS[self.game_tab],
            }
        else:
            payload["landing"] = {
                "title": APP_TITLE,
                "subtitle": APP_SUBTITLE,
                "footer": APP_FOOTER,
            }
        return payload
