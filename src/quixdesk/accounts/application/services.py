"""
Accounts Application Services
==============================

Registration, login, password reset, profile maintenance, account
deletion and employee management.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional, Tuple

from quixdesk.accounts.application.dto import (
    PasswordChangeRequest,
    PasswordResetConfirmRequest,
    ProfileUpdateRequest,
    RegisterRequest,
)
from quixdesk.accounts.domain.entities import DEFAULT_PASSWORD_POLICY, PasswordPolicy
from quixdesk.accounts.infrastructure.security import (
    PasswordHasher,
    TokenService,
    password_fingerprint,
)
from quixdesk.config import Role
from quixdesk.core import (
    AuthenticationException,
    ConflictException,
    PermissionDeniedException,
    ResourceNotFoundException,
    ValidationException,
)
from quixdesk.infrastructure.mail import NotificationDispatcher
from quixdesk.infrastructure.media import IMediaUploader
from quixdesk.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


# ========== Repository Interfaces (Dependency Inversion) ==========

class IUserRepository(ABC):
    """Interface for account data access."""

    @abstractmethod
    async def get_by_id(self, user_id: str) -> Optional[Any]:
        """Get a user by id (deleted users included)."""

    @abstractmethod
    async def get_by_email(self, email: str) -> Optional[Any]:
        """Get a user by email (deleted users included)."""

    @abstractmethod
    async def get_many(self, user_ids: Iterable[str]) -> Dict[str, Any]:
        """Users keyed by str(id); unknown ids are skipped."""

    @abstractmethod
    async def create(
        self,
        name: str,
        email: str,
        phone: Optional[str],
        role: str,
        password_hash: str,
        profile_picture: Optional[str] = None
    ) -> Any:
        """Create a user."""

    @abstractmethod
    async def save(self, user: Any) -> Any:
        """Persist changes to a loaded user."""

    @abstractmethod
    async def list_employees(self, search: Optional[str] = None) -> List[Any]:
        """Non-deleted employees, optionally filtered by name."""

    @abstractmethod
    async def exists_with_role(self, role: str) -> bool:
        """Whether any non-deleted user holds the role."""


# ========== Services ==========

class AccountService:
    """Use cases around user accounts."""

    def __init__(
        self,
        user_repo: IUserRepository,
        hasher: Optional[PasswordHasher] = None,
        tokens: Optional[TokenService] = None,
        media: Optional[IMediaUploader] = None,
        notifier: Optional[NotificationDispatcher] = None,
        reset_url: str = "",
        password_policy: PasswordPolicy = DEFAULT_PASSWORD_POLICY
    ):
        self._users = user_repo
        self._hasher = hasher or PasswordHasher()
        self._tokens = tokens or TokenService()
        self._media = media
        self._notifier = notifier
        self._reset_url = reset_url
        self._policy = password_policy

    @property
    def tokens(self) -> TokenService:
        return self._tokens

    async def register(self, request: RegisterRequest, actor: Optional[Any] = None) -> Any:
        """
        Create an account.

        Employee and admin accounts may only be created by an admin, except
        for the very first admin, which bootstraps an empty installation.
        """
        if request.role != Role.USER:
            actor_is_admin = actor is not None and actor.role == Role.ADMIN
            bootstrapping = (
                request.role == Role.ADMIN
                and not await self._users.exists_with_role(Role.ADMIN)
            )
            if not actor_is_admin and not bootstrapping:
                raise PermissionDeniedException(
                    f"Only an admin can create '{request.role}' accounts"
                )

        self._policy.validate(request.password, request.confirm_password)

        email = request.email.lower()
        if await self._users.get_by_email(email) is not None:
            raise ConflictException("An account with this email already exists")

        user = await self._users.create(
            name=request.name,
            email=email,
            phone=request.phone,
            role=request.role,
            password_hash=self._hasher.hash(request.password),
            profile_picture=request.profile_picture
        )
        logger.info("User registered", extra={"user_id": str(user.id), "role": user.role})
        return user

    async def login(self, email: str, password: str) -> Tuple[str, Any]:
        """Verify credentials and issue an access token."""
        user = await self._users.get_by_email(email.lower())
        if user is None or user.is_deleted or not self._hasher.verify(password, user.password_hash):
            logger.info("Login rejected", extra={"email": email.lower()})
            raise AuthenticationException("Invalid email or password")

        token = self._tokens.create_access_token(str(user.id), user.role)
        logger.info("User logged in", extra={"user_id": str(user.id)})
        return token, user

    async def authenticate(self, token: str) -> Any:
        """Resolve a bearer token to an active user."""
        payload = self._tokens.decode_access_token(token)
        user = await self._users.get_by_id(payload["sub"])
        if user is None or user.is_deleted:
            raise AuthenticationException("Account no longer exists")
        return user

    async def update_profile(self, user: Any, request: ProfileUpdateRequest) -> Any:
        if request.email is not None:
            email = request.email.lower()
            if email != user.email:
                existing = await self._users.get_by_email(email)
                if existing is not None and existing.id != user.id:
                    raise ConflictException("An account with this email already exists")
                user.email = email
        if request.name is not None:
            user.name = request.name.strip()
        if request.phone is not None:
            user.phone = request.phone or None

        await self._users.save(user)
        logger.info("Profile updated", extra={"user_id": str(user.id)})
        return user

    async def change_password(self, user: Any, request: PasswordChangeRequest) -> None:
        if not self._hasher.verify(request.old_password, user.password_hash):
            raise ValidationException("Current password is incorrect")
        self._policy.validate(request.new_password, request.confirm_password)

        user.password_hash = self._hasher.hash(request.new_password)
        await self._users.save(user)
        logger.info("Password changed", extra={"user_id": str(user.id)})

    async def request_password_reset(self, email: str) -> Optional[str]:
        """
        Email a reset link to the account holder.

        Unknown and deleted accounts are ignored without an error so the
        endpoint does not reveal which emails are registered. Returns the
        issued token, or None when nothing was sent.
        """
        user = await self._users.get_by_email(email.lower())
        if user is None or user.is_deleted:
            logger.info("Password reset requested for unknown account", extra={"email": email.lower()})
            return None

        token = self._tokens.create_reset_token(str(user.id), user.password_hash)
        if self._notifier is not None:
            self._notifier.password_reset(user.name, user.email, f"{self._reset_url}?token={token}")
        logger.info("Password reset link issued", extra={"user_id": str(user.id)})
        return token

    async def reset_password(self, request: PasswordResetConfirmRequest) -> None:
        """
        Set a new password from a reset token.

        Raises:
            ValidationException: token invalid, expired or already used, or weak password
        """
        payload = self._tokens.decode_reset_token(request.token)
        user = await self._users.get_by_id(payload["sub"])
        if user is None or user.is_deleted:
            raise ValidationException("Invalid password reset link")
        if payload["pwd"] != password_fingerprint(user.password_hash):
            raise ValidationException("Password reset link has already been used")
        self._policy.validate(request.new_password, request.confirm_password)

        user.password_hash = self._hasher.hash(request.new_password)
        await self._users.save(user)
        logger.info("Password reset", extra={"user_id": str(user.id)})

    async def delete_account(self, user: Any) -> None:
        """Soft-delete the caller's own account; its tokens stop working."""
        user.is_deleted = True
        await self._users.save(user)
        logger.info("Account deleted by owner", extra={"user_id": str(user.id), "role": user.role})

    async def upload_profile_picture(
        self,
        user: Any,
        filename: str,
        content: bytes,
        content_type: str
    ) -> Any:
        if self._media is None:
            raise ValidationException("Image uploads are not available")

        user.profile_picture = await self._media.upload(filename, content, content_type)
        await self._users.save(user)
        return user

    async def list_employees(self, search: Optional[str] = None) -> List[Any]:
        return await self._users.list_employees(search)

    async def get_employee(self, employee_id: str) -> Any:
        """Active employee by id."""
        user = await self._users.get_by_id(employee_id)
        if user is None or user.is_deleted or user.role != Role.EMPLOYEE:
            raise ResourceNotFoundException("Employee", employee_id)
        return user

    async def remove_employee(self, employee_id: str) -> None:
        """Soft-delete an employee account."""
        user = await self._users.get_by_id(employee_id)
        if user is None or user.is_deleted:
            raise ResourceNotFoundException("Employee", employee_id)
        if user.role != Role.EMPLOYEE:
            raise ValidationException(f"User {employee_id} is not an employee")

        user.is_deleted = True
        await self._users.save(user)
        logger.info("Employee removed", extra={"employee_id": employee_id})
