"""Shared route dependencies and error mapping."""

from fastapi import HTTPException, Request

from storychain.config import AIConfig
from storychain.flows import EmailTaken, NotFound, StoryError
from storychain.services import Services


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_ai_config(request: Request) -> AIConfig:
    return request.app.state.ai_config


def http_error(e: StoryError) -> HTTPException:
    """Map a flow failure to its HTTP status."""
    if isinstance(e, NotFound):
        return HTTPException(404, str(e))
    if isinstance(e, EmailTaken):
        return HTTPException(409, str(e))
    return HTTPException(400, str(e))
