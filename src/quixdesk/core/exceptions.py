"""
Core Exceptions
================

Application exceptions raised by services and translated to HTTP
responses at the API boundary.
"""

from typing import Optional


class ApplicationException(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class DomainException(ApplicationException):
    """Base exception for domain rule violations."""


class InvalidTransitionException(DomainException):
    """A ticket action is not allowed from its current state."""

    def __init__(self, action: str, current_status: str, details: Optional[dict] = None):
        self.action = action
        self.current_status = current_status
        super().__init__(
            f"Cannot {action} a ticket in status '{current_status}'",
            details or {"action": action, "status": current_status}
        )


class RepositoryException(ApplicationException):
    """Base exception for repository/data access errors."""


class ValidationException(ApplicationException):
    """Exception for validation errors."""


class ResourceNotFoundException(ApplicationException):
    """Exception when a requested resource is not found."""

    def __init__(
        self,
        resource_type: str,
        resource_id: Optional[str] = None,
        details: Optional[dict] = None
    ):
        self.resource_type = resource_type
        self.resource_id = resource_id
        message = f"{resource_type}"
        if resource_id:
            message += f" with id '{resource_id}'"
        message += " not found"
        super().__init__(message, details)


class AuthenticationException(ApplicationException):
    """Missing, invalid or expired credentials."""


class PermissionDeniedException(ApplicationException):
    """Authenticated, but not allowed to perform the action."""


class ConflictException(ApplicationException):
    """The request collides with existing state."""


class ConfigurationException(ApplicationException):
    """Exception for configuration errors."""


class ExternalServiceException(ApplicationException):
    """Base exception for external service failures."""

    def __init__(
        self,
        service_name: str,
        message: str,
        details: Optional[dict] = None
    ):
        self.service_name = service_name
        super().__init__(f"{service_name}: {message}", details)


class LLMException(ExternalServiceException):
    """Exception for LLM API failures."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__("LLM Service", message, details)
