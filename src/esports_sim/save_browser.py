from __future__ import annotations

import asyncio
import logging
from typing import Any

from .errors import NotFoundError, ShellError
from .gateway import BackendGateway
from .models import SavedGame
from .tasks import TaskScope

logger = logging.getLogger(__name__)

LOAD_FAILED = "Failed to load saved games. Please try again."
DELETE_FAILED = "Failed to delete game. Please try again."
DELETE_PROMPT = "Are you sure you want to delete this save?"


class SaveBrowser:
    def __init__(self, gateway: BackendGateway) -> None:
        self._gateway = gateway
        self._scope = TaskScope("load-game")
        self._generation = 0
        self.saved_games: list[SavedGame] = []
        self.is_loading = True
        self.error: str | None = None
        self.deleting_ids: set[str] = set()
        self.confirm_delete_id: str | None = None
        self.load_task: asyncio.Task[None] | None = None

    def open(self) -> asyncio.Task[None]:
        return self.reload()

    def reload(self) -> asyncio.Task[None]:
        self._generation += 1
        self.is_loading = True
        self.error = None
        self.load_task = self._scope.spawn(self._load(self._generation))
        return self.load_task

    async def _load(self, generation: int) -> None:
        try:
            games = await self._gateway.get_user_saved_games()
        except ShellError:
            if generation != self._generation:
                return
            logger.warning("Failed to load saved games", exc_info=True)
            self.error = LOAD_FAILED
            self.is_loading = False
            return
        if generation != self._generation:
            return
        self.saved_games = games
        self.is_loading = False

    def _find(self, save_id: str) -> SavedGame:
        saved = next((g for g in self.saved_games if g.id == save_id), None)
        if saved is None:
            raise NotFoundError("Saved game not found")
        return saved

    def is_deleting(self, save_id: str) -> bool:
        return save_id in self.deleting_ids

    def request_delete(self, save_id: str) -> None:
        self._find(save_id)
        if self.is_deleting(save_id):
            raise ValueError("Save is already being deleted")
        self.confirm_delete_id = save_id

    def cancel_delete(self) -> None:
        self.confirm_delete_id = None

    def confirm_delete(self) -> asyncio.Task[None]:
        save_id = self.confirm_delete_id
        if save_id is None:
            raise ValueError("No delete is awaiting confirmation")
        self.confirm_delete_id = None
        self.deleting_ids.add(save_id)
        return self._scope.spawn(self._delete(save_id))

    async def _delete(self, save_id: str) -> None:
        try:
            await self._gateway.delete_saved_game(save_id)
        except ShellError:
            logger.warning("Failed to delete saved game %s", save_id, exc_info=True)
            self.error = DELETE_FAILED
        else:
            self.saved_games = [g for g in self.saved_games if g.id != save_id]
        finally:
            self.deleting_ids.discard(save_id)

    def select(self, save_id: str) -> SavedGame:
        saved = self._find(save_id)
        if self.is_deleting(save_id):
            raise ValueError("Save is being deleted")
        return saved

    def close(self) -> None:
        self._generation += 1
        self._scope.close()

    def view(self) -> dict[str, Any]:
        pending = next((g for g in self.saved_games if g.id == self.confirm_delete_id), None)
        return {
            "is_loading": self.is_loading,
            "error": self.error,
            "is_empty": not self.is_loading and self.error is None and not self.saved_games,
            "empty_title": "No Saved Games",
            "empty_message": "You haven't created any games yet. Start a new game to begin!",
            "saved_games": [
                {**g.to_dict(), "deleting": self.is_deleting(g.id)}
                for g in self.saved_games
            ],
            "confirm_delete": (
                {"id": pending.id, "save_name": pending.save_name, "prompt": DELETE_PROMPT}
                if pending is not None
                else None
            ),
        }
