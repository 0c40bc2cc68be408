"""Parameter suggestion, story opening generation and continuation endpoints."""

from fastapi import APIRouter, Depends

from storychain import flows, generator
from storychain.config import AIConfig
from storychain.models import StoryGenerationRequest
from storychain.services import Services

from .deps import get_ai_config, get_services, http_error
from .models import ContinuationBody

router = APIRouter()


@router.get("/generate-parameters")
async def generate_parameters(style: str = generator.DEFAULT_GENRE):
    """Random story parameters drawn from a genre's tables."""
    return {"parameters": generator.generate_parameters(style)}


@router.post("/generate-story")
async def generate_story(
    body: StoryGenerationRequest,
    services: Services = Depends(get_services),
    config: AIConfig = Depends(get_ai_config),
):
    """Generate a story opening and save it as a new story when it has a setting."""
    try:
        result = await flows.generate_story(services, body, config)
    except flows.StoryError as e:
        raise http_error(e)
    response = {"story": result.text}
    if result.story_id is not None:
        response["story_id"] = result.story_id
    return response


@router.post("/continue-story")
async def continue_story(body: ContinuationBody, services: Services = Depends(get_services)):
    """Append a continuation segment to an active story."""
    try:
        result = flows.submit_continuation(
            services, body.story_id, body.content, body.parameters, body.author_id,
        )
    except flows.StoryError as e:
        raise http_error(e)
    return {
        "segment": result.segment,
        "story": result.story,
        "total_segments": result.total_segments,
    }
