from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.actor import ActorContext
from app.core.context import set_actor_id
from app.core.security import JWTKeyError, decode_token
from app.db.session import get_db
from app.models import User
from app.schemas.common import clean_string_list


# Tokens are minted by the external identity provider; this service only verifies them.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/token", auto_error=True)


async def get_db_session(db: AsyncSession = Depends(get_db)) -> AsyncSession:
    return db


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db_session),
) -> User:
    try:
        payload = decode_token(token, expected_type="access")
    except (ValueError, JWTKeyError) as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
        ) from exc
    user_sub = payload.get("sub")
    if not user_sub:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    try:
        user_id = UUID(str(user_sub))
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token") from exc

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Inactive user")
    return user


async def get_current_actor(current_user: User = Depends(get_current_user)) -> ActorContext:
    """Resolve the acting user into the context passed to every lifecycle service."""
    set_actor_id(str(current_user.id))
    return ActorContext(
        actor_id=current_user.id,
        role=current_user.role,
        departments=tuple(clean_string_list(current_user.departments or [])),
    )


async def require_internal_actor(actor: ActorContext = Depends(get_current_actor)) -> ActorContext:
    """Guard for staff/admin-only surfaces; fine-grained checks stay in the services."""
    if actor.is_external:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Staff access required")
    return actor
