"""
Errors raised by the access propagation engine.

Validation, not-found and conflict errors are all raised before the first
write of an action. Store errors (SQLAlchemy exceptions) are not wrapped; they
propagate and the session rolls the whole action back.
"""
from __future__ import annotations

from typing import Any


class AccessControlError(Exception):
    """Base class for typed engine failures."""

    code: str = "access_control_error"
    status_code: int = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.code, "message": self.message}


class ValidationError(AccessControlError):
    """Malformed or missing identifier."""

    code = "validation_error"
    status_code = 400

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.code, "message": self.message, "field": self.field}


class NotFoundError(AccessControlError):
    """A referenced user, team, resource, edge, membership or assignment is absent."""

    code = "not_found"
    status_code = 404

    def __init__(self, entity: str, message: str | None = None) -> None:
        super().__init__(message or f"{entity.replace('_', ' ').capitalize()} not found")
        self.entity = entity

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.code, "message": self.message, "entity": self.entity}


class ConflictError(AccessControlError):
    """The requested change contradicts current state."""

    code = "conflict"
    status_code = 409


class DuplicateMembershipError(ConflictError):
    code = "duplicate_membership"


class DuplicateEdgeError(ConflictError):
    code = "duplicate_edge"


class DuplicateAssignmentError(ConflictError):
    code = "duplicate_assignment"


class SelfManagementError(ConflictError):
    code = "self_management"
    status_code = 400

    def __init__(self, message: str = "Cannot manage yourself") -> None:
        super().__init__(message)


class CycleError(ConflictError):
    code = "cycle"
    status_code = 400

    def __init__(
        self, message: str = "Cannot create circular management relationship"
    ) -> None:
        super().__init__(message)


class DepthExceededError(ConflictError):
    code = "depth_exceeded"
    status_code = 400

    def __init__(self, max_depth: int, chain_length: int) -> None:
        super().__init__(
            f"Cannot exceed {max_depth}-level management depth "
            f"(resulting chain would be {chain_length} levels)"
        )
        self.max_depth = max_depth
        self.chain_length = chain_length
