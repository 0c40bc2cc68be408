"""FastAPI API endpoints under /api.

Endpoint groups: health + AI status, generation (parameters, openings,
continuation), stories (CRUD, lifecycle, segments, suggestions, stats) and
users (lookup, registration, login).
"""

from fastapi import APIRouter

from .generation import router as generation_router
from .settings import router as settings_router
from .stories import router as stories_router
from .users import router as users_router

router = APIRouter()
router.include_router(settings_router)
router.include_router(generation_router)
router.include_router(stories_router)
router.include_router(users_router)
