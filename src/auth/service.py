import logging
from typing import Tuple

from fastapi.concurrency import run_in_threadpool
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from auth.models import ROLES, User
from auth.security import hash_password, issue_token, verify_password
from config import Settings
from exceptions import Conflict, Unauthorized, ValidationFailed
from validation import Violation

logger = logging.getLogger(__name__)


async def get_user_by_username(db: AsyncSession, username: str):
    result = await db.execute(select(User).where(User.username == username))
    return result.scalars().first()


async def authenticate(
    db: AsyncSession, settings: Settings, username: str, password: str
) -> Tuple[str, User]:
    """
    Check the credentials and return a signed token for the user.
    """
    user = await get_user_by_username(db, username)
    if user is None or not await run_in_threadpool(
        verify_password, password, user.password_hash
    ):
        logger.info("Failed login for username %r", username)
        raise Unauthorized("Invalid credentials")

    return issue_token(user, settings), user


async def change_password(
    db: AsyncSession,
    settings: Settings,
    user: User,
    current_password: str,
    new_password: str,
) -> None:
    if not await run_in_threadpool(verify_password, current_password, user.password_hash):
        raise Unauthorized("Current password is incorrect")

    try:
        user.password_hash = await run_in_threadpool(
            hash_password, new_password, settings.bcrypt_rounds
        )
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info("User %r changed their password", user.username)


async def create_user(
    db: AsyncSession, settings: Settings, username: str, password: str, role: str = "admin"
) -> User:
    if role not in ROLES:
        raise ValidationFailed([Violation("role", f"role must be one of: {', '.join(ROLES)}")])
    if await get_user_by_username(db, username) is not None:
        raise Conflict(f"User {username!r} already exists")

    try:
        user = User(
            username=username,
            password_hash=await run_in_threadpool(
                hash_password, password, settings.bcrypt_rounds
            ),
            role=role,
        )
        db.add(user)
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise Conflict(f"User {username!r} already exists")
    except Exception:
        await db.rollback()
        raise

    logger.info("Created %s user %r", role, username)
    return user
