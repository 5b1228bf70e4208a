"""Pydantic request models for API endpoints."""

from pydantic import BaseModel, Field

from narrative_tracker.models import Author


class PostMessage(BaseModel):
    author: Author = "narrator"
    text: str


class UpdateSettings(BaseModel):
    auto_parse: bool | None = None
    parse_player_messages: bool | None = None
    activity_limit: int | None = Field(default=None, ge=1)
    rumor_cooldown: int | None = Field(default=None, ge=0)
    rumor_count: int | None = Field(default=None, ge=0)
    gates: dict[str, list[str]] | None = None
