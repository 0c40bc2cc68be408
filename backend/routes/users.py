"""User lookup, registration and login endpoints."""

from fastapi import APIRouter, Depends

from storychain import flows
from storychain.services import Services

from .deps import get_services, http_error
from .models import CreateUser

router = APIRouter()


@router.get("/users")
async def get_users(
    email: str | None = None,
    id: str | None = None,
    services: Services = Depends(get_services),
):
    """Look a user up by email or id, or list all users."""
    if email:
        return {"user": services.users.get_by_email(email)}
    if id:
        return {"user": services.users.get_by_id(id)}
    users = services.users.get_all()
    return {"users": users, "count": len(users)}


@router.post("/users")
async def create_user(body: CreateUser, services: Services = Depends(get_services)):
    """Register a new user."""
    try:
        return flows.register_user(services, body.username, body.email)
    except flows.StoryError as e:
        raise http_error(e)


@router.post("/login")
async def login(body: CreateUser, services: Services = Depends(get_services)):
    """Find the user with this email, creating them on first login."""
    try:
        return flows.login(services, body.username, body.email)
    except flows.StoryError as e:
        raise http_error(e)
