from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from .config import REGIONS


def _optional_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def format_timestamp(value: str) -> str:
    """Render an ISO timestamp like ``Jan 5, 2025, 02:30 PM``."""
    try:
        stamp = datetime.fromisoformat(value)
    except (TypeError, ValueError):
        return str(value)
    return f"{stamp.strftime('%b')} {stamp.day}, {stamp.year}, {stamp.strftime('%I:%M %p')}"


@dataclass(frozen=True, slots=True)
class Team:
    id: int
    name: str
    region: str
    abbreviation: str | None = None
    logo_url: str | None = None

    def __post_init__(self) -> None:
        if self.region not in REGIONS:
            raise ValueError(f"Unknown region '{self.region}'")

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> Team:
        return cls(
            id=int(row["id"]),
            name=str(row["name"]),
            region=str(row["region"]),
            abbreviation=_optional_text(row.get("abbreviation")),
            logo_url=_optional_text(row.get("logo_url")),
        )

    @property
    def label(self) -> str:
        return f"[{self.abbreviation}] {self.name}" if self.abbreviation else self.name

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "region": self.region,
            "abbreviation": self.abbreviation,
            "logo_url": self.logo_url,
            "label": self.label,
        }


@dataclass(slots=True)
class SavedGame:
    id: str
    user_id: str
    save_name: str
    team_id: int
    team_name: str
    team_region: str
    created_at: str
    updated_at: str
    team_abbreviation: str | None = None
    team_logo_url: str | None = None
    game_data: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> SavedGame:
        raw_data = row.get("game_data")
        return cls(
            id=str(row["id"]),
            user_id=str(row["user_id"]),
            save_name=str(row["save_name"]),
            team_id=int(row["team_id"]),
            team_name=str(row["team_name"]),
            team_region=str(row["team_region"]),
            created_at=str(row.get("created_at", "")),
            updated_at=str(row.get("updated_at", "")),
            team_abbreviation=_optional_text(row.get("team_abbreviation")),
            team_logo_url=_optional_text(row.get("team_logo_url")),
            game_data=dict(raw_data) if isinstance(raw_data, dict) else {},
        )

    @property
    def team_label(self) -> str:
        return f"[{self.team_abbreviation}] {self.team_name}" if self.team_abbreviation else self.team_name

    @property
    def logo_placeholder(self) -> str:
        return self.team_abbreviation or self.team_name[:1]

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "save_name": self.save_name,
            "team_id": self.team_id,
            "team_name": self.team_name,
            "team_region": self.team_region,
            "team_abbreviation": self.team_abbreviation,
            "team_logo_url": self.team_logo_url,
            "team_label": self.team_label,
            "logo_placeholder": self.logo_placeholder,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "last_played": format_timestamp(self.updated_at),
        }


@dataclass(frozen=True, slots=True)
class User:
    id: str
    email: str

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> User:
        return cls(id=str(payload["id"]), email=str(payload.get("email") or ""))


@dataclass(frozen=True, slots=True)
class Session:
    access_token: str
    refresh_token: str
    user: User
    token_type: str = "bearer"
    expires_in: int = 3600

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> Session:
        return cls(
            access_token=str(payload["access_token"]),
            refresh_token=str(payload.get("refresh_token") or ""),
            user=User.from_payload(payload["user"]),
            token_type=str(payload.get("token_type") or "bearer"),
            expires_in=int(payload.get("expires_in") or 3600),
        )


@dataclass(frozen=True, slots=True)
class GameState:
    save_id: str
    save_name: str
    team_id: int
    team_name: str
    team_region: str
    team_abbreviation: str | None = None
    team_logo_url: str | None = None

    @classmethod
    def from_saved_game(cls, saved: SavedGame) -> GameState:
        return cls(
            save_id=saved.id,
            save_name=saved.save_name,
            team_id=saved.team_id,
            team_name=saved.team_name,
            team_region=saved.team_region,
            team_abbreviation=saved.team_abbreviation,
            team_logo_url=saved.team_logo_url,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "save_id": self.save_id,
            "save_name": self.save_name,
            "team_id": self.team_id,
            "team_name": self.team_name,
            "team_region": self.team_region,
            "team_abbreviation": self.team_abbreviation,
            "team_logo_url": self.team_logo_url,
        }


@dataclass(frozen=True, slots=True)
class SignUpResult:
    user: User
    session: Session | None = None

    @property
    def confirmation_pending(self) -> bool:
        return self.session is None
