from fastapi import APIRouter, Depends, Request

from auth import service
from auth.dependencies import LOGIN_RATE_LIMIT, get_current_user, get_settings, limiter
from auth.models import User
from auth.schemas import (
    ChangePasswordRequest,
    LoginRequest,
    MeResponse,
    Message,
    TokenResponse,
    UserOut,
)
from database import get_db

router = APIRouter(prefix="/auth", tags=["Auth"])


@router.post("/login", response_model=TokenResponse)
@limiter.limit(LOGIN_RATE_LIMIT)
async def login(
    request: Request,
    body: LoginRequest,
    db=Depends(get_db),
    settings=Depends(get_settings),
):
    """
    Exchange a username and password for a bearer token.
    """
    token, user = await service.authenticate(db, settings, body.username, body.password)
    return TokenResponse(token=token, user=UserOut.model_validate(user))


@router.get("/me", response_model=MeResponse)
async def me(user: User = Depends(get_current_user)):
    return MeResponse(authenticated=True, user=UserOut.model_validate(user))


@router.post("/change-password", response_model=Message)
async def change_password(
    body: ChangePasswordRequest,
    user: User = Depends(get_current_user),
    db=Depends(get_db),
    settings=Depends(get_settings),
):
    await service.change_password(
        db, settings, user, body.current_password, body.new_password
    )
    return Message(message="Password updated")
