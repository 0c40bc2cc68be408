"""Core domain models.

Every service and flow operates on these types. Pydantic validates records
read back from the JSON tables and serialises them on the way out.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

StoryStatus = Literal["active", "completed", "archived"]
LengthTier = Literal["short", "medium", "long"]


class StoryParameters(BaseModel):
    """The time/location/characters/action/mood/genre tuple guiding generation."""

    time: str | None = None
    location: str | None = None
    characters: list[str] | None = None
    action: str | None = None
    mood: str | None = None
    genre: str | None = None


class User(BaseModel):
    id: str
    username: str
    email: str
    created_at: str
    updated_at: str


class Story(BaseModel):
    id: str
    title: str
    description: str | None = None
    initial_prompt: str
    status: StoryStatus = "active"
    created_by: str = "anonymous"
    max_participants: int | None = None
    current_participants: int = 1
    created_at: str
    updated_at: str


class StorySegment(BaseModel):
    """One continuation of a story. Never updated once written."""

    id: str
    story_id: str
    author_id: str
    content: str
    order_index: int
    story_parameters: StoryParameters = Field(default_factory=StoryParameters)
    created_at: str
    updated_at: str


class StoryParticipant(BaseModel):
    id: str
    story_id: str
    user_id: str
    joined_at: str
    contribution_count: int = 0


class StoryGenerationRequest(BaseModel):
    prompt: str | None = None
    parameters: StoryParameters = Field(default_factory=StoryParameters)
    style: str = "fantasy"
    length: LengthTier = "medium"


class StoryStats(BaseModel):
    total_stories: int
    active_stories: int
    completed_stories: int
    total_participants: int
    user_contributions: int
