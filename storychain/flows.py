"""Request-level flows on top of the entity services.

The services never validate; these functions do, then call one or more
services in sequence. Writes across tables are independent: a crash between
them leaves earlier writes in place and nothing is rolled back.

Failures are reported with StoryError subclasses. The HTTP layer maps
NotFound to 404, EmailTaken to 409 and every other StoryError to 400.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date
from typing import Any

from storychain import generator
from storychain.config import AIConfig
from storychain.llm import LLM
from storychain.models import (
    Story,
    StoryGenerationRequest,
    StoryParameters,
    StorySegment,
    StoryStats,
    StoryStatus,
    User,
)
from storychain.services import Services

logger = logging.getLogger(__name__)

ANONYMOUS = "anonymous"
DEFAULT_MAX_PARTICIPANTS = 10

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_REQUIRED_STORY_FIELDS = ("title", "initial_prompt", "status")

# action → (allowed source states, target state)
TRANSITIONS: dict[str, tuple[frozenset[str], StoryStatus]] = {
    "complete": (frozenset({"active"}), "completed"),
    "reactivate": (frozenset({"completed"}), "active"),
    "archive": (frozenset({"active", "completed"}), "archived"),
    "restore": (frozenset({"archived"}), "active"),
}


class StoryError(ValueError):
    """Base class for caller-side validation failures."""


class NotFound(StoryError):
    pass


class ValidationFailed(StoryError):
    pass


class InvalidTransition(StoryError):
    pass


class ParticipantLimitReached(StoryError):
    pass


class EmailTaken(StoryError):
    pass


@dataclass
class ContinuationResult:
    segment: StorySegment
    story: Story
    total_segments: int


@dataclass
class GeneratedStory:
    text: str
    story_id: str | None = None


def _require_story(services: Services, story_id: str) -> Story:
    story = services.stories.get_by_id(story_id)
    if story is None:
        raise NotFound("Story not found")
    return story


# ── Users ────────────────────────────────────────────────


def normalize_email(email: str) -> str:
    return email.strip().lower()


def register_user(services: Services, username: str, email: str) -> User:
    """Create a user. The email must be well-formed and not already taken."""
    if not username.strip() or not email.strip():
        raise ValidationFailed("username and email are required")
    email = normalize_email(email)
    if not _EMAIL_RE.match(email):
        raise ValidationFailed("Invalid email address")
    if services.users.get_by_email(email) is not None:
        raise EmailTaken("Email is already registered")
    return services.users.create(username=username.strip(), email=email)


def login(services: Services, username: str, email: str) -> User:
    """Look a user up by email, registering them on first sight."""
    existing = services.users.get_by_email(normalize_email(email))
    if existing is not None:
        return existing
    return register_user(services, username, email)


# ── Stories ──────────────────────────────────────────────


def create_story(
    services: Services,
    title: str,
    initial_prompt: str,
    description: str | None = None,
    status: StoryStatus = "active",
    created_by: str = ANONYMOUS,
    max_participants: int | None = DEFAULT_MAX_PARTICIPANTS,
) -> Story:
    if not title.strip() or not initial_prompt.strip():
        raise ValidationFailed("title and initial_prompt are required")
    return services.stories.create(
        title=title,
        initial_prompt=initial_prompt,
        description=description,
        status=status,
        created_by=created_by or ANONYMOUS,
        max_participants=max_participants,
    )


def list_stories(services: Services, status: str | None = None) -> list[Story]:
    """Stories newest first, optionally filtered by status ("all" = no filter)."""
    if status == "active":
        stories = services.stories.get_active_stories()
    else:
        stories = services.stories.get_all()
        if status and status != "all":
            stories = [s for s in stories if s.status == status]
    return sorted(stories, key=lambda s: s.created_at, reverse=True)


def get_story(services: Services, story_id: str) -> Story:
    return _require_story(services, story_id)


def update_story(services: Services, story_id: str, fields: dict[str, Any]) -> Story:
    """Partial update. An explicit None clears description or max_participants."""
    cleared = [k for k in _REQUIRED_STORY_FIELDS if k in fields and fields[k] is None]
    if cleared:
        raise ValidationFailed(f"{', '.join(cleared)} cannot be null")
    _require_story(services, story_id)
    updated = services.stories.update(story_id, fields)
    if updated is None:
        raise NotFound("Story not found")
    return updated


def transition_story(services: Services, story_id: str, action: str) -> Story:
    """Apply a lifecycle action: complete, reactivate, archive or restore."""
    if action not in TRANSITIONS:
        raise ValidationFailed(f"Unknown story action: {action}")
    allowed, target = TRANSITIONS[action]
    story = _require_story(services, story_id)
    if story.status not in allowed:
        raise InvalidTransition(f"Cannot {action} a story that is {story.status}")
    updated = services.stories.update(story_id, {"status": target})
    if updated is None:
        raise NotFound("Story not found")
    logger.info("story %s: %s → %s", story_id, story.status, target)
    return updated


# ── Segments ─────────────────────────────────────────────


def get_segments(services: Services, story_id: str) -> list[StorySegment]:
    _require_story(services, story_id)
    return services.segments.get_segments_by_story_id(story_id)


def submit_continuation(
    services: Services,
    story_id: str,
    content: str,
    parameters: StoryParameters | None = None,
    author_id: str = ANONYMOUS,
) -> ContinuationResult:
    """Append a segment to an active story and refresh its participant count.

    An author who already takes part may always continue; a new author is
    turned away once current_participants reaches max_participants.
    """
    if not story_id or not content or not content.strip():
        raise ValidationFailed("story_id and content are required")
    story = _require_story(services, story_id)
    if story.status != "active":
        raise ValidationFailed("Only active stories can be continued")
    if (
        story.max_participants
        and story.current_participants >= story.max_participants
        and services.participants.get_participant(story_id, author_id) is None
    ):
        raise ParticipantLimitReached("Story has reached its participant limit")

    order_index = services.segments.get_next_order_index(story_id)
    segment = services.segments.create(
        story_id=story_id,
        author_id=author_id,
        content=content.strip(),
        order_index=order_index,
        story_parameters=parameters,
    )

    try:
        services.participants.add_participant(story_id, author_id)
        services.participants.increment_contribution(story_id, author_id)
    except OSError:
        logger.exception("participant bookkeeping failed for story %s", story_id)

    participants = services.participants.get_participants_by_story_id(story_id)
    updated = services.stories.update(
        story_id, {"current_participants": len(participants)}
    )
    return ContinuationResult(
        segment=segment,
        story=updated or story,
        total_segments=len(services.segments.get_segments_by_story_id(story_id)),
    )


def suggest_continuations(services: Services, story_id: str) -> list[str]:
    """Next-step prompts built from the parameters of the latest segment."""
    _require_story(services, story_id)
    segments = services.segments.get_segments_by_story_id(story_id)
    parameters = segments[-1].story_parameters if segments else StoryParameters()
    return generator.continuation_suggestions(parameters)


# ── Generation ───────────────────────────────────────────


async def generate_story(
    services: Services,
    request: StoryGenerationRequest,
    config: AIConfig,
    llm: LLM | None = None,
) -> GeneratedStory:
    """Generate an opening and, when it has a setting or a character, save it as a story."""
    if not generator.validate_parameters(request.parameters):
        raise ValidationFailed(
            "Story parameters are incomplete: provide at least a time, "
            "location, character or action"
        )
    text = await generator.generate_beginning_with_ai(request, config, llm=llm)

    params = request.parameters
    has_character = any(c.strip() for c in params.characters or [])
    if not (params.time or params.location or has_character):
        return GeneratedStory(text=text)

    try:
        story = services.stories.create(
            title=f"{request.style} story - {date.today().isoformat()}",
            initial_prompt=text,
            status="active",
            created_by=ANONYMOUS,
            description=f"A story generated in the {request.style} style",
            max_participants=DEFAULT_MAX_PARTICIPANTS,
        )
    except OSError:
        logger.exception("could not save generated story")
        return GeneratedStory(text=text)
    return GeneratedStory(text=text, story_id=story.id)


# ── Stats ────────────────────────────────────────────────


def story_stats(services: Services, user_id: str | None = None) -> StoryStats:
    stories = services.stories.get_all()
    participants = services.participants.get_all()
    return StoryStats(
        total_stories=len(stories),
        active_stories=sum(1 for s in stories if s.status == "active"),
        completed_stories=sum(1 for s in stories if s.status == "completed"),
        total_participants=len({p.user_id for p in participants}),
        user_contributions=sum(
            p.contribution_count for p in participants
            if user_id is not None and p.user_id == user_id
        ),
    )
