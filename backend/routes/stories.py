"""Story CRUD, lifecycle, segment and stats endpoints."""

from fastapi import APIRouter, Depends

from storychain import flows
from storychain.services import Services

from .deps import get_services, http_error
from .models import CreateStory, SegmentBody, UpdateStory

router = APIRouter()


@router.get("/stories")
async def list_stories(status: str | None = None, services: Services = Depends(get_services)):
    """List stories newest first, optionally filtered by status."""
    stories = flows.list_stories(services, status)
    return {"stories": stories, "count": len(stories)}


@router.post("/stories")
async def create_story(body: CreateStory, services: Services = Depends(get_services)):
    """Create a story from a title and an opening."""
    try:
        return flows.create_story(services, **body.model_dump())
    except flows.StoryError as e:
        raise http_error(e)


@router.get("/stats")
async def stats(user_id: str | None = None, services: Services = Depends(get_services)):
    """Story and participation counts, plus one user's contributions if given."""
    return flows.story_stats(services, user_id)


@router.get("/stories/{story_id}")
async def get_story(story_id: str, services: Services = Depends(get_services)):
    """Get a single story by id."""
    try:
        return flows.get_story(services, story_id)
    except flows.StoryError as e:
        raise http_error(e)


@router.patch("/stories/{story_id}")
async def update_story(
    story_id: str, body: UpdateStory, services: Services = Depends(get_services)
):
    """Update story fields (partial merge)."""
    try:
        return flows.update_story(services, story_id, body.model_dump(exclude_unset=True))
    except flows.StoryError as e:
        raise http_error(e)


async def _transition(services: Services, story_id: str, action: str):
    try:
        return flows.transition_story(services, story_id, action)
    except flows.StoryError as e:
        raise http_error(e)


@router.post("/stories/{story_id}/complete")
async def complete_story(story_id: str, services: Services = Depends(get_services)):
    """Mark an active story as completed."""
    return await _transition(services, story_id, "complete")


@router.delete("/stories/{story_id}/complete")
async def reactivate_story(story_id: str, services: Services = Depends(get_services)):
    """Reopen a completed story."""
    return await _transition(services, story_id, "reactivate")


@router.post("/stories/{story_id}/archive")
async def archive_story(story_id: str, services: Services = Depends(get_services)):
    """Archive an active or completed story."""
    return await _transition(services, story_id, "archive")


@router.delete("/stories/{story_id}/archive")
async def restore_story(story_id: str, services: Services = Depends(get_services)):
    """Restore an archived story to active."""
    return await _transition(services, story_id, "restore")


@router.get("/stories/{story_id}/segments")
async def get_segments(story_id: str, services: Services = Depends(get_services)):
    """Segments of a story in order."""
    try:
        story = flows.get_story(services, story_id)
        segments = flows.get_segments(services, story_id)
    except flows.StoryError as e:
        raise http_error(e)
    return {"segments": segments, "count": len(segments), "story_title": story.title}


@router.post("/stories/{story_id}/segments")
async def add_segment(
    story_id: str, body: SegmentBody, services: Services = Depends(get_services)
):
    """Append a segment to a story."""
    try:
        result = flows.submit_continuation(
            services, story_id, body.content, body.parameters, body.author_id,
        )
    except flows.StoryError as e:
        raise http_error(e)
    return result.segment


@router.get("/stories/{story_id}/suggestions")
async def suggestions(story_id: str, services: Services = Depends(get_services)):
    """Ideas for the next continuation."""
    try:
        return {"suggestions": flows.suggest_continuations(services, story_id)}
    except flows.StoryError as e:
        raise http_error(e)
