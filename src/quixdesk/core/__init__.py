"""
Core Module
============

Framework-agnostic building blocks shared by every bounded context.
"""

from quixdesk.core.exceptions import (
    ApplicationException,
    DomainException,
    InvalidTransitionException,
    RepositoryException,
    ValidationException,
    ResourceNotFoundException,
    AuthenticationException,
    PermissionDeniedException,
    ConflictException,
    ConfigurationException,
    ExternalServiceException,
    LLMException,
)

__all__ = [
    "ApplicationException",
    "DomainException",
    "InvalidTransitionException",
    "RepositoryException",
    "ValidationException",
    "ResourceNotFoundException",
    "AuthenticationException",
    "PermissionDeniedException",
    "ConflictException",
    "ConfigurationException",
    "ExternalServiceException",
    "LLMException",
]
