from __future__ import annotations

from typing import Optional, Sequence


class DomainError(Exception):
    """Base exception for business rule violations."""


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""

    def __init__(self, message: str, *, outstanding: Optional[int] = None):
        super().__init__(message)
        self.outstanding = outstanding


class NotFoundError(DomainError):
    """Raised when an entity is missing or outside the caller's tenant scope.

    Both cases produce the same message so other tenants' rows cannot be discovered.
    """

    def __init__(self, entity: str):
        super().__init__(f"{entity} not found")
        self.entity = entity


class InvalidReferenceError(DomainError):
    """Raised when referenced fee components are inactive or belong to another org."""

    def __init__(self, component_ids: Sequence[int]):
        ids = sorted({int(c) for c in component_ids})
        super().__init__(f"One or more fee components are invalid or inactive: {ids}")
        self.component_ids = ids


class ConflictError(DomainError):
    """Raised when a uniqueness rule or a concurrent writer wins inside a transaction."""


class StorageFault(DomainError):
    """Raised when a storage transaction fails. The transaction has been rolled back."""
