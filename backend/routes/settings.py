"""Health check and AI status endpoints."""

from fastapi import APIRouter, Depends

from storychain.config import AIConfig

from .deps import get_ai_config

router = APIRouter()


@router.get("/health")
async def health():
    """Health check."""
    return {"status": "ok"}


@router.get("/ai-status")
async def ai_status(config: AIConfig = Depends(get_ai_config)):
    """Report whether openings come from the AI provider or the template generator."""
    status = config.status()
    return {
        "ai_enabled": status["configured"],
        "message": status["message"],
        "provider": status["provider"],
    }
