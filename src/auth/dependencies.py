from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy.ext.asyncio import AsyncSession

from auth.models import User
from auth.security import decode_token
from config import Settings
from database import get_db
from exceptions import Forbidden, Unauthorized

bearer_scheme = HTTPBearer(auto_error=False)

# Attempts per client address
LOGIN_RATE_LIMIT = "20 per 10 minutes"

limiter = Limiter(key_func=get_remote_address)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> User:
    """
    Resolve the bearer token of the request to a user.
    """
    if credentials is None:
        raise Unauthorized("Missing bearer token")

    claims = decode_token(credentials.credentials, settings)
    user = await db.get(User, int(claims["sub"]))
    if user is None:
        raise Unauthorized("User no longer exists")
    return user


def require_role(*roles: str):
    async def dependency(user: User = Depends(get_current_user)) -> User:
        if user.role not in roles:
            raise Forbidden(f"Requires role: {', '.join(roles)}")
        return user

    return dependency


require_admin = require_role("admin")
