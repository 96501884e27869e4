from __future__ import annotations

import asyncio
import logging
from typing import Any

from .config import REGION_DESCRIPTIONS, REGIONS, SAVE_NAME_MAX_LENGTH
from .errors import NotFoundError, ShellError
from .gateway import BackendGateway
from .models import SavedGame, Team
from .tasks import TaskScope

logger = logging.getLogger(__name__)

TEAM_FETCH_FAILED = "Failed to load teams. Please try again."


class GameSetupFlow:
    """New-game wizard: save name, region, then a team from that region.

    Each region change bumps ``_generation`` and cancels the previous fetch;
    a fetch only writes its result while its generation is still current.
    """

    def __init__(self, gateway: BackendGateway) -> None:
        self._gateway = gateway
        self._scope = TaskScope("new-game")
        self._generation = 0
        self._fetch_task: asyncio.Task[None] | None = None
        self.save_name = ""
        self.region: str | None = None
        self.teams: list[Team] = []
        self.selected_team_id: int | None = None
        self.is_loading_teams = False
        self.is_submitting = False
        self.error: str | None = None
        self.alert: str | None = None

    @property
    def selected_team(self) -> Team | None:
        if self.selected_team_id is None:
            return None
        return next((team for team in self.teams if team.id == self.selected_team_id), None)

    @property
    def can_start(self) -> bool:
        return bool(self.save_name.strip()) and self.selected_team is not None and not self.is_submitting

    @property
    def team_select_enabled(self) -> bool:
        return self.region is not None and not self.is_loading_teams

    def set_save_name(self, value: str) -> None:
        self.save_name = value[:SAVE_NAME_MAX_LENGTH]

    def select_region(self, region: str | None) -> asyncio.Task[None] | None:
        region = region or None
        if region is not None and region not in REGIONS:
            raise ValueError(f"Unknown region '{region}'")
        self._generation += 1
        if self._fetch_task is not None and not self._fetch_task.done():
            self._fetch_task.cancel()
        self._fetch_task = None
        self.region = region
        self.teams = []
        self.selected_team_id = None
        self.error = None
        if region is None:
            self.is_loading_teams = False
            return None
        self.is_loading_teams = True
        self._fetch_task = self._scope.spawn(self._load_teams(region, self._generation))
        return self._fetch_task

    async def _load_teams(self, region: str, generation: int) -> None:
        try:
            teams = await self._gateway.get_teams_by_region(region)
        except ShellError:
            if generation != self._generation:
                return
            logger.warning("Failed to load teams for %s", region, exc_info=True)
            self.teams = []
            self.error = TEAM_FETCH_FAILED
            self.is_loading_teams = False
            return
        if generation != self._generation:
            return
        self.teams = teams
        self.is_loading_teams = False

    def select_team(self, team_id: int | None) -> Team | None:
        if team_id is None:
            self.selected_team_id = None
            return None
        if not self.team_select_enabled:
            raise ValueError("Select a region and wait for its teams to load")
        team = next((t for t in self.teams if t.id == team_id), None)
        if team is None:
            raise NotFoundError(f"Team {team_id} is not available in {self.region}")
        self.selected_team_id = team.id
        return team

    async def submit(self) -> SavedGame | None:
        if self.is_submitting:
            raise ValueError("Game creation already in progress")
        save_name = self.save_name.strip()
        team = self.selected_team
        if not save_name or team is None:
            raise ValueError("Enter a save name and select a team")

        self.is_submitting = True
        self.alert = None
        try:
            saved = await self._gateway.create_saved_game(save_name, team)
        except ShellError as exc:
            logger.warning("Failed to create saved game %r", save_name, exc_info=True)
            self.alert = f"Failed to create game: {exc}"
            return None
        finally:
            self.is_submitting = False
        return saved

    def close(self) -> None:
        self._generation += 1
        self._scope.close()
        self.is_loading_teams = False

    def view(self) -> dict[str, Any]:
        if self.is_loading_teams:
            placeholder = "Loading teams..."
        elif self.region is not None:
            placeholder = "Choose a team..."
        else:
            placeholder = "Select a region first"
        team = self.selected_team
        return {
            "save_name": self.save_name,
            "save_name_max_length": SAVE_NAME_MAX_LENGTH,
            "regions": [
                {"value": region, "label": region, "description": REGION_DESCRIPTIONS[region]}
                for region in REGIONS
            ],
            "region": self.region,
            "teams": [t.to_dict() for t in self.teams],
            "team_select_enabled": self.team_select_enabled,
            "team_placeholder": placeholder,
            "team_hint": "Pick the team you want to manage" if self.region else "Select a region first",
            "selected_team": team.to_dict() if team is not None else None,
            "is_loading_teams": self.is_loading_teams,
            "is_submitting": self.is_submitting,
            "can_start": self.can_start,
            "error": self.error,
            "alert": self.alert,
        }
