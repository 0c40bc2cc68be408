"""Tests for request-level flows: story creation, continuation, lifecycle,
users, generation and stats."""

from unittest.mock import AsyncMock, patch

import pytest

from storychain import flows
from storychain.config import AIConfig
from storychain.llm import LLMError
from storychain.models import StoryGenerationRequest, StoryParameters
from storychain.services import Services


# ── Stories ──────────────────────────────────────────────────


def test_create_story_defaults(services: Services):
    story = flows.create_story(services, "T", "P")
    assert story.status == "active"
    assert story.current_participants == 1
    assert story.max_participants == 10
    assert story.created_by == "anonymous"


@pytest.mark.parametrize("title,prompt", [("", "P"), ("T", ""), ("  ", "P")])
def test_create_story_requires_title_and_prompt(services: Services, title, prompt):
    with pytest.raises(flows.ValidationFailed):
        flows.create_story(services, title, prompt)


def test_list_stories_filters_and_sorts(services: Services):
    a = flows.create_story(services, "A", "P")
    b = flows.create_story(services, "B", "P")
    flows.transition_story(services, b.id, "complete")
    c = flows.create_story(services, "C", "P")

    assert [s.id for s in flows.list_stories(services)] == [c.id, b.id, a.id]
    assert [s.id for s in flows.list_stories(services, "all")] == [c.id, b.id, a.id]
    assert [s.id for s in flows.list_stories(services, "active")] == [c.id, a.id]
    assert [s.id for s in flows.list_stories(services, "completed")] == [b.id]
    assert flows.list_stories(services, "archived") == []


def test_get_story_missing(services: Services):
    with pytest.raises(flows.NotFound):
        flows.get_story(services, "nope")


def test_update_story(services: Services):
    story = flows.create_story(services, "T", "P")
    updated = flows.update_story(services, story.id, {"description": "D"})
    assert updated.description == "D"


def test_update_story_missing(services: Services):
    with pytest.raises(flows.NotFound):
        flows.update_story(services, "nope", {"title": "X"})


def test_update_story_none_clears_description(services: Services):
    story = flows.create_story(services, "T", "P", description="D")
    assert flows.update_story(services, story.id, {"description": None}).description is None


def test_update_story_rejects_null_title(services: Services):
    story = flows.create_story(services, "T", "P")
    with pytest.raises(flows.ValidationFailed):
        flows.update_story(services, story.id, {"title": None})


# ── Continuation ─────────────────────────────────────────────


def test_end_to_end_continuation(services: Services):
    story = flows.create_story(services, "T", "P")
    assert story.status == "active"
    assert story.current_participants == 1

    first = flows.submit_continuation(services, story.id, "C1")
    assert first.segment.order_index == 0
    assert first.segment.content == "C1"
    assert first.total_segments == 1

    second = flows.submit_continuation(services, story.id, "C2")
    assert second.segment.order_index == 1
    assert second.total_segments == 2

    segments = services.segments.get_segments_by_story_id(story.id)
    assert [s.content for s in segments] == ["C1", "C2"]


def test_continuation_tracks_participants(services: Services):
    story = flows.create_story(services, "T", "P")
    flows.submit_continuation(services, story.id, "C1", author_id="u1")
    flows.submit_continuation(services, story.id, "C2", author_id="u1")
    result = flows.submit_continuation(services, story.id, "C3", author_id="u2")

    assert result.story.current_participants == 2
    assert services.stories.get_by_id(story.id).current_participants == 2
    assert services.participants.get_participant(story.id, "u1").contribution_count == 2
    assert services.participants.get_participant(story.id, "u2").contribution_count == 1


def test_continuation_trims_content_and_keeps_parameters(services: Services):
    story = flows.create_story(services, "T", "P")
    params = StoryParameters(mood="tense")
    result = flows.submit_continuation(services, story.id, "  C1 \n", parameters=params)
    assert result.segment.content == "C1"
    assert result.segment.story_parameters == params


@pytest.mark.parametrize("content", ["", "   "])
def test_continuation_requires_content(services: Services, content):
    story = flows.create_story(services, "T", "P")
    with pytest.raises(flows.ValidationFailed):
        flows.submit_continuation(services, story.id, content)
    assert services.segments.get_all() == []


def test_continuation_unknown_story(services: Services):
    with pytest.raises(flows.NotFound):
        flows.submit_continuation(services, "nope", "C1")


@pytest.mark.parametrize("action", ["complete", "archive"])
def test_continuation_requires_active_story(services: Services, action):
    story = flows.create_story(services, "T", "P")
    flows.transition_story(services, story.id, action)
    with pytest.raises(flows.ValidationFailed):
        flows.submit_continuation(services, story.id, "C1")


def test_participant_limit_blocks_new_authors(services: Services):
    story = flows.create_story(services, "T", "P", max_participants=2)
    flows.submit_continuation(services, story.id, "C1", author_id="u1")
    flows.submit_continuation(services, story.id, "C2", author_id="u2")
    with pytest.raises(flows.ParticipantLimitReached):
        flows.submit_continuation(services, story.id, "C3", author_id="u3")
    # existing participants can keep writing
    result = flows.submit_continuation(services, story.id, "C3", author_id="u1")
    assert result.segment.order_index == 2


def test_no_limit_when_max_participants_unset(services: Services):
    story = flows.create_story(services, "T", "P", max_participants=None)
    for i in range(3):
        flows.submit_continuation(services, story.id, f"C{i}", author_id=f"u{i}")
    assert services.stories.get_by_id(story.id).current_participants == 3


def test_participant_failure_does_not_lose_segment(services: Services):
    story = flows.create_story(services, "T", "P")
    with patch.object(
        services.participants, "add_participant", side_effect=OSError("disk full")
    ):
        result = flows.submit_continuation(services, story.id, "C1")
    assert result.segment.content == "C1"
    assert len(services.segments.get_segments_by_story_id(story.id)) == 1


def test_get_segments_unknown_story(services: Services):
    with pytest.raises(flows.NotFound):
        flows.get_segments(services, "nope")


def test_suggestions_from_latest_segment(services: Services):
    story = flows.create_story(services, "T", "P")
    flows.submit_continuation(
        services, story.id, "C1", parameters=StoryParameters(location="the old mill"),
    )
    suggestions = flows.suggest_continuations(services, story.id)
    assert len(suggestions) == 3
    assert "the old mill" in suggestions[1]


# ── Lifecycle ────────────────────────────────────────────────


def test_complete_and_reactivate(services: Services):
    story = flows.create_story(services, "T", "P")
    assert flows.transition_story(services, story.id, "complete").status == "completed"
    assert flows.transition_story(services, story.id, "reactivate").status == "active"


def test_archive_completed_story(services: Services):
    story = flows.create_story(services, "T", "P")
    flows.transition_story(services, story.id, "complete")
    assert flows.transition_story(services, story.id, "archive").status == "archived"


def test_archive_already_archived_rejected(services: Services):
    story = flows.create_story(services, "T", "P")
    flows.transition_story(services, story.id, "archive")
    with pytest.raises(flows.InvalidTransition):
        flows.transition_story(services, story.id, "archive")


def test_restore_archived(services: Services):
    story = flows.create_story(services, "T", "P")
    flows.transition_story(services, story.id, "archive")
    assert flows.transition_story(services, story.id, "restore").status == "active"


@pytest.mark.parametrize("setup,action", [
    ([], "reactivate"),
    ([], "restore"),
    (["archive"], "complete"),
    (["complete"], "complete"),
    (["complete"], "restore"),
])
def test_invalid_transitions(services: Services, setup, action):
    story = flows.create_story(services, "T", "P")
    for step in setup:
        flows.transition_story(services, story.id, step)
    with pytest.raises(flows.InvalidTransition):
        flows.transition_story(services, story.id, action)


def test_transition_unknown_story(services: Services):
    with pytest.raises(flows.NotFound):
        flows.transition_story(services, "nope", "complete")


def test_transition_unknown_action(services: Services):
    story = flows.create_story(services, "T", "P")
    with pytest.raises(flows.ValidationFailed):
        flows.transition_story(services, story.id, "delete")


# ── Users ────────────────────────────────────────────────────


def test_register_normalizes_email(services: Services):
    user = flows.register_user(services, " ann ", " Ann@Example.COM ")
    assert user.username == "ann"
    assert user.email == "ann@example.com"


def test_register_duplicate_email(services: Services):
    flows.register_user(services, "ann", "ann@example.com")
    with pytest.raises(flows.EmailTaken):
        flows.register_user(services, "other", "ANN@example.com")


@pytest.mark.parametrize("email", ["not-an-email", "a@b", "a b@c.d"])
def test_register_rejects_malformed_email(services: Services, email):
    with pytest.raises(flows.ValidationFailed):
        flows.register_user(services, "ann", email)


def test_register_requires_username(services: Services):
    with pytest.raises(flows.ValidationFailed):
        flows.register_user(services, "", "ann@example.com")


def test_login_creates_then_reuses(services: Services):
    first = flows.login(services, "ann", "ann@example.com")
    again = flows.login(services, "someone else", "Ann@example.com")
    assert again.id == first.id
    assert len(services.users.get_all()) == 1


# ── Generation ───────────────────────────────────────────────


async def test_generate_story_saves_story(services: Services):
    request = StoryGenerationRequest(
        parameters=StoryParameters(time="dusk", location="the harbour"), length="short",
    )
    result = await flows.generate_story(services, request, AIConfig())
    assert result.text.startswith("It was dusk when ")
    story = services.stories.get_by_id(result.story_id)
    assert story.initial_prompt == result.text
    assert story.title.startswith("fantasy story - ")
    assert story.max_participants == 10


async def test_generate_story_action_only_not_saved(services: Services):
    request = StoryGenerationRequest(parameters=StoryParameters(action="run away"))
    result = await flows.generate_story(services, request, AIConfig())
    assert result.story_id is None
    assert services.stories.get_all() == []


async def test_generate_story_rejects_empty_parameters(services: Services):
    with pytest.raises(flows.ValidationFailed):
        await flows.generate_story(services, StoryGenerationRequest(), AIConfig())


async def test_generate_story_uses_ai(services: Services):
    llm = AsyncMock(return_value="The lights went out.")
    request = StoryGenerationRequest(parameters=StoryParameters(time="dusk"))
    result = await flows.generate_story(services, request, AIConfig(api_key="sk-1"), llm=llm)
    assert result.text == "The lights went out."


async def test_generate_story_ai_failure_falls_back(services: Services):
    llm = AsyncMock(side_effect=LLMError("LLM backend returned HTTP 500"))
    request = StoryGenerationRequest(
        parameters=StoryParameters(time="dusk", location="the harbour"), length="short",
    )
    result = await flows.generate_story(services, request, AIConfig(api_key="sk-1"), llm=llm)
    assert result.text.startswith("It was dusk when ")
    assert result.story_id is not None


async def test_generate_story_storage_failure_still_returns_text(services: Services):
    request = StoryGenerationRequest(parameters=StoryParameters(time="dusk"))
    with patch.object(services.stories, "create", side_effect=OSError("read-only")):
        result = await flows.generate_story(services, request, AIConfig())
    assert result.text
    assert result.story_id is None


# ── Stats ────────────────────────────────────────────────────


def test_story_stats(services: Services):
    a = flows.create_story(services, "A", "P")
    b = flows.create_story(services, "B", "P")
    flows.create_story(services, "C", "P")
    flows.transition_story(services, b.id, "complete")
    flows.submit_continuation(services, a.id, "C1", author_id="u1")
    flows.submit_continuation(services, a.id, "C2", author_id="u1")
    flows.submit_continuation(services, a.id, "C3", author_id="u2")

    stats = flows.story_stats(services, user_id="u1")
    assert stats.total_stories == 3
    assert stats.active_stories == 2
    assert stats.completed_stories == 1
    assert stats.total_participants == 2
    assert stats.user_contributions == 2


def test_story_stats_without_user(services: Services):
    assert flows.story_stats(services).user_contributions == 0
