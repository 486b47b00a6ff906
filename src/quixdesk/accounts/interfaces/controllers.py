"""
Accounts Controllers (API Routes)
==================================

FastAPI routes for sign-up, login, password reset, profiles and employee
management.

Controllers delegate to application services.
"""

from typing import Any, Optional

from fastapi import APIRouter, Depends, File, Query, Response, UploadFile, status

from quixdesk.accounts.application.dto import (
    EmployeeListResponse,
    LoginRequest,
    PasswordChangeRequest,
    PasswordResetConfirmRequest,
    PasswordResetRequest,
    ProfileUpdateRequest,
    RegisterRequest,
    TokenResponse,
    UserResponse,
)
from quixdesk.accounts.application.services import AccountService
from quixdesk.accounts.interfaces.dependencies import (
    get_account_service,
    get_current_user,
    get_optional_user,
    require_roles,
)
from quixdesk.config import Role
from quixdesk.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(tags=["Accounts"])


# ========== Example payloads for Swagger ==========

REGISTER_REQUEST_EXAMPLE = {
    "name": "Ada Lovelace",
    "email": "ada@example.com",
    "phone": "+44 20 7946 0958",
    "password": "Str0ng!Pass",
    "confirm_password": "Str0ng!Pass",
    "role": "user"
}

TOKEN_RESPONSE_EXAMPLE = {
    "access_token": "eyJhbGciOiJIUzI1NiIsInR5cCI6IkpXVCJ9...",
    "token_type": "bearer",
    "expires_in": 28800,
    "user": {
        "id": "123e4567-e89b-12d3-a456-426614174000",
        "name": "Ada Lovelace",
        "email": "ada@example.com",
        "phone": "+44 20 7946 0958",
        "profile_picture": None,
        "role": "user",
        "created_at": "2024-05-01T09:30:00Z"
    }
}


# ========== Authentication ==========

@router.post(
    "/auth/register",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create an account",
    description="""
    Register a new account.

    Passwords need at least 8 characters with a lowercase letter, an
    uppercase letter, a digit and one of `@$!%*?&`.

    Employee and admin accounts can only be created by an admin. The
    first admin of an empty installation may register without one.
    """,
    responses={
        201: {"description": "Account created"},
        403: {"description": "Privileged role requested without an admin token"},
        409: {"description": "Email already registered"},
    },
    openapi_extra={"requestBody": {"content": {"application/json": {"example": REGISTER_REQUEST_EXAMPLE}}}}
)
async def register(
    payload: RegisterRequest,
    actor: Optional[Any] = Depends(get_optional_user),
    service: AccountService = Depends(get_account_service)
):
    user = await service.register(payload, actor=actor)
    return UserResponse.model_validate(user)


@router.post(
    "/auth/login",
    response_model=TokenResponse,
    summary="Log in",
    responses={
        200: {
            "description": "Access token issued",
            "content": {"application/json": {"example": TOKEN_RESPONSE_EXAMPLE}}
        },
        401: {"description": "Invalid email or password"},
    }
)
async def login(
    payload: LoginRequest,
    service: AccountService = Depends(get_account_service)
):
    token, user = await service.login(payload.email, payload.password)
    return TokenResponse(
        access_token=token,
        expires_in=service.tokens.expires_in_seconds,
        user=UserResponse.model_validate(user)
    )


@router.get("/auth/me", response_model=UserResponse, summary="Current account")
async def me(user: Any = Depends(get_current_user)):
    return UserResponse.model_validate(user)


@router.post(
    "/auth/password-reset",
    status_code=status.HTTP_202_ACCEPTED,
    summary="Request a password reset link",
    description="""
    Email a single-use reset link to the account holder.

    Always answers 202, whether or not the email is registered.
    """
)
async def request_password_reset(
    payload: PasswordResetRequest,
    service: AccountService = Depends(get_account_service)
):
    await service.request_password_reset(payload.email)
    return {"detail": "If the account exists, a reset link has been sent"}


@router.post(
    "/auth/password-reset/confirm",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Set a new password from a reset link",
    responses={422: {"description": "Invalid, expired or used link, or weak password"}}
)
async def confirm_password_reset(
    payload: PasswordResetConfirmRequest,
    service: AccountService = Depends(get_account_service)
):
    await service.reset_password(payload)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ========== Profile ==========

@router.get("/profile", response_model=UserResponse, summary="Get own profile")
async def get_profile(user: Any = Depends(get_current_user)):
    return UserResponse.model_validate(user)


@router.patch(
    "/profile",
    response_model=UserResponse,
    summary="Update own profile",
    responses={409: {"description": "Email already in use"}}
)
async def update_profile(
    payload: ProfileUpdateRequest,
    user: Any = Depends(get_current_user),
    service: AccountService = Depends(get_account_service)
):
    updated = await service.update_profile(user, payload)
    return UserResponse.model_validate(updated)


@router.delete(
    "/profile",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete own account",
    description="Soft-deletes the caller's account. Existing tokens stop working and the email can no longer log in."
)
async def delete_account(
    user: Any = Depends(get_current_user),
    service: AccountService = Depends(get_account_service)
):
    await service.delete_account(user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/profile/picture",
    response_model=UserResponse,
    summary="Upload a profile picture",
    responses={
        422: {"description": "Not an image or too large"},
        502: {"description": "Image host failed"},
    }
)
async def upload_profile_picture(
    file: UploadFile = File(..., description="JPEG, PNG, GIF or WebP image"),
    user: Any = Depends(get_current_user),
    service: AccountService = Depends(get_account_service)
):
    content = await file.read()
    updated = await service.upload_profile_picture(
        user, file.filename or "upload", content, file.content_type or ""
    )
    return UserResponse.model_validate(updated)


@router.post(
    "/profile/password",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Change password",
    responses={422: {"description": "Wrong current password or weak new password"}}
)
async def change_password(
    payload: PasswordChangeRequest,
    user: Any = Depends(get_current_user),
    service: AccountService = Depends(get_account_service)
):
    await service.change_password(user, payload)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ========== Employees (admin) ==========

@router.get(
    "/employees",
    response_model=EmployeeListResponse,
    summary="List employees",
    description="Active employees, optionally filtered by a case-insensitive name match."
)
async def list_employees(
    search: Optional[str] = Query(None, description="Name contains"),
    _admin: Any = Depends(require_roles(Role.ADMIN)),
    service: AccountService = Depends(get_account_service)
):
    employees = await service.list_employees(search)
    return EmployeeListResponse(
        employees=[UserResponse.model_validate(e) for e in employees],
        total=len(employees)
    )


@router.get("/employees/{employee_id}", response_model=UserResponse, summary="Get an employee")
async def get_employee(
    employee_id: str,
    _admin: Any = Depends(require_roles(Role.ADMIN)),
    service: AccountService = Depends(get_account_service)
):
    return UserResponse.model_validate(await service.get_employee(employee_id))


@router.delete(
    "/employees/{employee_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remove an employee",
    description="Soft-deletes the account; the employee can no longer log in.",
    responses={
        404: {"description": "No such employee"},
        422: {"description": "Account is not an employee"},
    }
)
async def remove_employee(
    employee_id: str,
    admin: Any = Depends(require_roles(Role.ADMIN)),
    service: AccountService = Depends(get_account_service)
):
    await service.remove_employee(employee_id)
    logger.info("Employee removed by admin", extra={"employee_id": employee_id, "admin_id": str(admin.id)})
    return Response(status_code=status.HTTP_204_NO_CONTENT)


accounts_router = router
