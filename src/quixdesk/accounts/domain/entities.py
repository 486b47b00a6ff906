"""
Accounts Domain
===============

Password policy and role rules. Free of infrastructure concerns.
"""

import re
from dataclasses import dataclass
from typing import Iterable

from quixdesk.config import Role
from quixdesk.core import ValidationException


@dataclass(frozen=True)
class PasswordPolicy:
    """
    Minimum eight characters with at least one lowercase letter, one
    uppercase letter, one digit and one of @$!%*?&. No other characters.
    """

    pattern: str = r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)(?=.*[@$!%*?&])[A-Za-z\d@$!%*?&]{8,}$"
    message: str = (
        "Password must be at least 8 characters and include an uppercase letter, "
        "a lowercase letter, a number and a special character (@$!%*?&)"
    )

    def is_valid(self, password: str) -> bool:
        return re.fullmatch(self.pattern, password or "") is not None

    def validate(self, password: str, confirmation: str) -> None:
        """
        Raises:
            ValidationException: password is weak or confirmation differs
        """
        if not self.is_valid(password):
            raise ValidationException(self.message)
        if password != confirmation:
            raise ValidationException("Passwords do not match")


DEFAULT_PASSWORD_POLICY = PasswordPolicy()


def is_staff(role: str) -> bool:
    """Employees and admins work tickets; plain users only file them."""
    return role in (Role.EMPLOYEE, Role.ADMIN)


def has_any_role(role: str, allowed: Iterable[str]) -> bool:
    return role in set(allowed)
