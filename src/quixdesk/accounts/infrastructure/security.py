"""
Accounts Security
=================

bcrypt password hashing, HS256 JWT access tokens and single-use
password reset tokens.
"""

import hashlib
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import bcrypt
import jwt

from quixdesk.config import settings
from quixdesk.core import AuthenticationException, ValidationException

# bcrypt ignores input past 72 bytes; longer passwords are rejected outright
MAX_PASSWORD_BYTES = 72


def password_fingerprint(password_hash: str) -> str:
    """Short digest of a stored hash; changes whenever the password does."""
    return hashlib.sha256(password_hash.encode("utf-8")).hexdigest()[:32]


class PasswordHasher:
    """bcrypt hashing with a configurable work factor."""

    def __init__(self, rounds: Optional[int] = None):
        self._rounds = rounds or settings.bcrypt_rounds

    def hash(self, password: str) -> str:
        encoded = password.encode("utf-8")
        if len(encoded) > MAX_PASSWORD_BYTES:
            raise ValidationException(f"Password exceeds {MAX_PASSWORD_BYTES} bytes")
        return bcrypt.hashpw(encoded, bcrypt.gensalt(rounds=self._rounds)).decode("utf-8")

    def verify(self, password: str, hashed: str) -> bool:
        encoded = password.encode("utf-8")
        if len(encoded) > MAX_PASSWORD_BYTES:
            return False
        try:
            return bcrypt.checkpw(encoded, hashed.encode("utf-8"))
        except ValueError:
            # Malformed stored hash
            return False


class TokenService:
    """Issues and validates access tokens."""

    def __init__(
        self,
        secret: Optional[str] = None,
        algorithm: Optional[str] = None,
        expire_minutes: Optional[int] = None,
        reset_expire_minutes: Optional[int] = None
    ):
        self._secret = secret or settings.jwt_secret
        self._algorithm = algorithm or settings.jwt_algorithm
        self._expire_minutes = expire_minutes or settings.access_token_expire_minutes
        self._reset_expire_minutes = reset_expire_minutes or settings.password_reset_expire_minutes

    @property
    def expires_in_seconds(self) -> int:
        return self._expire_minutes * 60

    def create_access_token(self, user_id: str, role: str) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "sub": str(user_id),
            "role": role,
            "iat": now,
            "exp": now + timedelta(minutes=self._expire_minutes),
            "type": "access",
        }
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def decode_access_token(self, token: str) -> Dict[str, Any]:
        """
        Raises:
            AuthenticationException: token is malformed, expired or not an access token
        """
        try:
            payload = jwt.decode(token, self._secret, algorithms=[self._algorithm])
        except jwt.ExpiredSignatureError:
            raise AuthenticationException("Token has expired")
        except jwt.InvalidTokenError:
            raise AuthenticationException("Invalid authentication token")

        if payload.get("type") != "access" or not payload.get("sub"):
            raise AuthenticationException("Invalid authentication token")
        return payload

    def create_reset_token(self, user_id: str, password_hash: str) -> str:
        """
        Password reset token bound to the current password hash, so it
        stops working once the password has been changed.
        """
        now = datetime.now(timezone.utc)
        payload = {
            "sub": str(user_id),
            "pwd": password_fingerprint(password_hash),
            "iat": now,
            "exp": now + timedelta(minutes=self._reset_expire_minutes),
            "type": "password_reset",
        }
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def decode_reset_token(self, token: str) -> Dict[str, Any]:
        """
        Raises:
            ValidationException: token is malformed, expired or not a reset token
        """
        try:
            payload = jwt.decode(token, self._secret, algorithms=[self._algorithm])
        except jwt.ExpiredSignatureError:
            raise ValidationException("Password reset link has expired")
        except jwt.InvalidTokenError:
            raise ValidationException("Invalid password reset link")

        if payload.get("type") != "password_reset" or not payload.get("sub") or not payload.get("pwd"):
            raise ValidationException("Invalid password reset link")
        return payload
