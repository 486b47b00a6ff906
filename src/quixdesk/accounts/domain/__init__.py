"""
Accounts Domain Layer
=====================

Password policy and role rules. Framework-agnostic.
"""

from quixdesk.accounts.domain.entities import (
    DEFAULT_PASSWORD_POLICY,
    PasswordPolicy,
    has_any_role,
    is_staff,
)

__all__ = [
    "PasswordPolicy",
    "DEFAULT_PASSWORD_POLICY",
    "is_staff",
    "has_any_role",
]
