"""
Accounts Dependencies
=====================

FastAPI dependencies for authentication and role checks, shared by every
bounded context's routes.

Usage:
    @router.get("/admin/thing")
    async def handler(admin = Depends(require_roles(Role.ADMIN))):
        ...
"""

from typing import Any, Callable, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from quixdesk.accounts.application.services import AccountService
from quixdesk.accounts.domain import has_any_role
from quixdesk.accounts.infrastructure.repositories import SQLAlchemyUserRepository
from quixdesk.core import AuthenticationException, PermissionDeniedException
from quixdesk.infrastructure.database import get_session

bearer_scheme = HTTPBearer(auto_error=False, description="JWT access token from /auth/login")


def get_account_service(
    request: Request,
    db: AsyncSession = Depends(get_session)
) -> AccountService:
    """Account service bound to the request's session."""
    state = request.app.state
    return AccountService(
        SQLAlchemyUserRepository(db),
        hasher=state.password_hasher,
        tokens=state.token_service,
        media=state.media_uploader,
        notifier=state.email_notifier,
        reset_url=state.settings.password_reset_url,
    )


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    service: AccountService = Depends(get_account_service)
) -> Optional[Any]:
    """The caller if a bearer token was sent, else None."""
    if credentials is None:
        return None
    return await service.authenticate(credentials.credentials)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    service: AccountService = Depends(get_account_service)
) -> Any:
    """
    The authenticated caller.

    Raises:
        AuthenticationException: missing, invalid or expired token, or a
            deleted account
    """
    if credentials is None:
        raise AuthenticationException("Not authenticated")
    return await service.authenticate(credentials.credentials)


def require_roles(*roles: str) -> Callable:
    """Dependency factory admitting only callers holding one of the roles."""

    async def dependency(user: Any = Depends(get_current_user)) -> Any:
        if not has_any_role(user.role, roles):
            raise PermissionDeniedException(
                f"This action requires one of the roles: {', '.join(roles)}"
            )
        return user

    return dependency
