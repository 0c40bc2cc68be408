"""Pydantic request models for API endpoints."""

from pydantic import BaseModel

from storychain.models import StoryParameters, StoryStatus


class CreateStory(BaseModel):
    title: str
    initial_prompt: str
    description: str | None = None
    status: StoryStatus = "active"
    created_by: str = "anonymous"
    max_participants: int | None = 10


class UpdateStory(BaseModel):
    title: str | None = None
    description: str | None = None
    initial_prompt: str | None = None
    status: StoryStatus | None = None
    max_participants: int | None = None


class SegmentBody(BaseModel):
    content: str
    parameters: StoryParameters | None = None
    author_id: str = "anonymous"


class ContinuationBody(SegmentBody):
    story_id: str


class CreateUser(BaseModel):
    username: str
    email: str
