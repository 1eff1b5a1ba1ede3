"""
Core Exceptions
================

Custom exceptions for the engine following clean architecture principles.

These exceptions define domain-specific errors that can be caught and handled
appropriately at the application boundaries (HTTP handlers, scheduler jobs).
"""

from typing import Optional


class ApplicationException(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class DomainException(ApplicationException):
    """Base exception for domain logic violations."""


class RepositoryException(ApplicationException):
    """Base exception for repository/data access errors."""


class ValidationException(ApplicationException):
    """Exception for validation errors."""


class ConfigurationException(ApplicationException):
    """Exception for configuration errors."""


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


class NotFoundError(ResourceNotFoundException):
    """A referenced incident, service, rule, team or escalation is absent."""


class CycleError(DomainException):
    """Adding the dependency would close a cycle in the service graph."""

    def __init__(
        self,
        service_id: str,
        depends_on_service_id: str,
        details: Optional[dict] = None
    ):
        self.service_id = service_id
        self.depends_on_service_id = depends_on_service_id
        super().__init__(
            "This would create a circular dependency",
            details or {
                "service_id": service_id,
                "depends_on_service_id": depends_on_service_id,
            }
        )


class CapacityOrStateError(DomainException):
    """A business rule refuses the operation in the entity's current state."""


class StoreError(RepositoryException):
    """Transient store failure; the whole pass is safe to retry."""
