# database/errors.py
"""
Error taxonomy shared by the storage layer and every repository.

Everything derives from DomainError so a caller (CLI, UI, tests) can catch a
single type and show `str(err)` to the user.
"""
from __future__ import annotations


class DomainError(Exception):
    """Domain-level error the caller can surface directly (toast/snackbar)."""


class NotInitializedError(DomainError):
    def __init__(self, message: str = "Database not initialized. Call initialize() first.") -> None:
        super().__init__(message)


class TransientStorageError(DomainError):
    """Lock/busy condition that survived every retry."""

    def __init__(self, message: str = "Storage busy, try again.", attempts: int = 0) -> None:
        super().__init__(message)
        self.attempts = attempts


class ValidationError(DomainError):
    pass


class NotFound(DomainError):
    def __init__(self, entity: str, entity_id: object) -> None:
        super().__init__(f"{entity} not found: {entity_id}")
        self.entity = entity
        self.entity_id = entity_id


class ReferenceNotFound(DomainError):
    """A write points at a foreign row (product, order booker, ...) that does not exist."""

    def __init__(self, entity: str, entity_id: object) -> None:
        super().__init__(f"Referenced {entity} does not exist: {entity_id}")
        self.entity = entity
        self.entity_id = entity_id


class _WrappedFailure(DomainError):
    verb = "operation"

    def __init__(self, entity: str, cause: BaseException) -> None:
        super().__init__(f"Failed to {self.verb} {entity}: {cause}")
        self.entity = entity
        self.cause = cause


class CreationFailed(_WrappedFailure):
    verb = "create"


class UpdateFailed(_WrappedFailure):
    verb = "update"


__all__ = [
    "DomainError",
    "NotInitializedError",
    "TransientStorageError",
    "ValidationError",
    "NotFound",
    "ReferenceNotFound",
    "CreationFailed",
    "UpdateFailed",
]
