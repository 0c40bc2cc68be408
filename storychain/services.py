"""Entity services layered on the flat-file store.

Each service owns one table and returns pydantic models. Lookups are linear
scans over the full table. Nothing here validates input; absent records come
back as None rather than raising.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ValidationError

from storychain.models import (
    Story,
    StoryParameters,
    StoryParticipant,
    StorySegment,
    StoryStatus,
    User,
)
from storychain.storage import PARTICIPANTS, SEGMENTS, STORIES, USERS, Storage

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _new_id() -> str:
    return str(uuid.uuid4())


class _TableService(Generic[M]):
    table: str
    model: type[M]

    def __init__(self, storage: Storage) -> None:
        self._storage = storage

    def _load(self) -> list[M]:
        """Typed records of the table. A malformed record empties the whole table."""
        raw = self._storage.read(self.table)
        try:
            return [self.model.model_validate(r) for r in raw]
        except ValidationError as e:
            logger.warning(
                "table %s failed validation (%d errors), reading as empty",
                self.table, e.error_count(),
            )
            return []

    def _save(self, records: list[M]) -> None:
        self._storage.write(self.table, [r.model_dump(mode="json") for r in records])

    def _append(self, record: M) -> M:
        records = self._load()
        records.append(record)
        self._save(records)
        return record

    def get_all(self) -> list[M]:
        return self._load()

    def get_by_id(self, record_id: str) -> M | None:
        for record in self._load():
            if record.id == record_id:
                return record
        return None


class UserService(_TableService[User]):
    table = USERS
    model = User

    def get_by_email(self, email: str) -> User | None:
        """Case-insensitive email lookup."""
        wanted = email.strip().lower()
        for user in self._load():
            if user.email.lower() == wanted:
                return user
        return None

    def create(self, username: str, email: str) -> User:
        now = _now()
        user = User(
            id=_new_id(), username=username, email=email,
            created_at=now, updated_at=now,
        )
        self._append(user)
        logger.info("created user id=%s", user.id)
        return user


class StoryService(_TableService[Story]):
    table = STORIES
    model = Story

    # Never overwritten by update()
    _IMMUTABLE = {"id", "created_at"}

    def get_active_stories(self) -> list[Story]:
        return [s for s in self._load() if s.status == "active"]

    def create(
        self,
        title: str,
        initial_prompt: str,
        status: StoryStatus = "active",
        created_by: str = "anonymous",
        description: str | None = None,
        max_participants: int | None = None,
    ) -> Story:
        now = _now()
        story = Story(
            id=_new_id(),
            title=title,
            description=description,
            initial_prompt=initial_prompt,
            status=status,
            created_by=created_by,
            max_participants=max_participants,
            current_participants=1,
            created_at=now,
            updated_at=now,
        )
        self._append(story)
        logger.info("created story id=%s title=%r", story.id, story.title)
        return story

    def update(self, story_id: str, fields: dict[str, Any]) -> Story | None:
        """Merge fields into a story and refresh updated_at. Returns None if absent."""
        stories = self._load()
        for i, story in enumerate(stories):
            if story.id != story_id:
                continue
            merged = story.model_dump()
            for key, value in fields.items():
                if key not in self._IMMUTABLE:
                    merged[key] = value
            merged["updated_at"] = _now()
            stories[i] = Story.model_validate(merged)
            self._save(stories)
            return stories[i]
        return None


class SegmentService(_TableService[StorySegment]):
    table = SEGMENTS
    model = StorySegment

    def get_segments_by_story_id(self, story_id: str) -> list[StorySegment]:
        """Segments of one story, ascending by order_index."""
        segments = [s for s in self._load() if s.story_id == story_id]
        return sorted(segments, key=lambda s: s.order_index)

    def get_next_order_index(self, story_id: str) -> int:
        segments = self.get_segments_by_story_id(story_id)
        return max((s.order_index for s in segments), default=-1) + 1

    def create(
        self,
        story_id: str,
        author_id: str,
        content: str,
        order_index: int,
        story_parameters: StoryParameters | None = None,
    ) -> StorySegment:
        now = _now()
        segment = StorySegment(
            id=_new_id(),
            story_id=story_id,
            author_id=author_id,
            content=content,
            order_index=order_index,
            story_parameters=story_parameters or StoryParameters(),
            created_at=now,
            updated_at=now,
        )
        self._append(segment)
        logger.info(
            "created segment story=%s order_index=%d", story_id, order_index
        )
        return segment


class ParticipantService(_TableService[StoryParticipant]):
    table = PARTICIPANTS
    model = StoryParticipant

    def get_participants_by_story_id(self, story_id: str) -> list[StoryParticipant]:
        return [p for p in self._load() if p.story_id == story_id]

    def get_participant(self, story_id: str, user_id: str) -> StoryParticipant | None:
        for p in self.get_participants_by_story_id(story_id):
            if p.user_id == user_id:
                return p
        return None

    def add_participant(self, story_id: str, user_id: str) -> StoryParticipant:
        """Join a user to a story. Returns the existing record on a repeat join."""
        participants = self._load()
        for p in participants:
            if p.story_id == story_id and p.user_id == user_id:
                return p
        participant = StoryParticipant(
            id=_new_id(),
            story_id=story_id,
            user_id=user_id,
            joined_at=_now(),
            contribution_count=0,
        )
        participants.append(participant)
        self._save(participants)
        return participant

    def increment_contribution(self, story_id: str, user_id: str) -> None:
        participants = self._load()
        for p in participants:
            if p.story_id == story_id and p.user_id == user_id:
                p.contribution_count += 1
                self._save(participants)
                return


class Services:
    """The four entity services sharing one storage directory."""

    def __init__(self, storage: Storage) -> None:
        self.storage = storage
        self.users = UserService(storage)
        self.stories = StoryService(storage)
        self.segments = SegmentService(storage)
        self.participants = ParticipantService(storage)
