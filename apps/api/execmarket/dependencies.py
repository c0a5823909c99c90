from typing import Annotated

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from execmarket.core.auth import decode_access_token
from execmarket.core.errors import AuthenticationError, AuthorizationError
from execmarket.db.models import Company, CompanyUser, User
from execmarket.db.session import get_db
from execmarket.domain import PUBLIC_VIEWER, Viewer

security = HTTPBearer(auto_error=False)

__all__ = ["get_db", "get_optional_viewer", "get_current_viewer", "require_admin"]


async def _load_viewer(db: AsyncSession, token: str) -> Viewer:
    user_id = decode_access_token(token)
    if not user_id:
        raise AuthenticationError("Invalid or expired token")
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user or not user.is_active:
        raise AuthenticationError("User not found")
    membership = await db.execute(
        select(Company)
        .join(CompanyUser, CompanyUser.company_id == Company.id)
        .where(CompanyUser.user_id == user.id)
    )
    company = membership.scalar_one_or_none()
    return Viewer(
        user_id=user.id,
        role=user.role,
        company_id=str(company.id) if company else None,
        tier=company.tier if company else None,
        access_model=company.payment_preference if company else "credits",
    )


async def get_optional_viewer(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Viewer:
    """Viewer for routes that also serve anonymous (public-mode) callers. A bad token is still 401."""
    if not credentials:
        return PUBLIC_VIEWER
    return await _load_viewer(db, credentials.credentials)


async def get_current_viewer(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Viewer:
    if not credentials:
        raise AuthenticationError()
    return await _load_viewer(db, credentials.credentials)


async def require_admin(viewer: Annotated[Viewer, Depends(get_current_viewer)]) -> Viewer:
    if not viewer.is_admin:
        raise AuthorizationError("Admin access required")
    return viewer
