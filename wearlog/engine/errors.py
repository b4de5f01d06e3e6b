"""Typed errors raised by the wearlog engine.

Every engine operation either returns a value or raises one of these.  The
HTTP layer maps them onto status codes in ``wearlog.main``.
"""

from __future__ import annotations

from uuid import UUID


class WearlogError(Exception):
    """Base class for all engine errors."""


class EquipmentNotFound(WearlogError):
    """Raised when an operation references equipment that does not exist."""

    def __init__(self, equipment_id: UUID) -> None:
        super().__init__(f"Equipment not found: {equipment_id}")
        self.equipment_id = equipment_id


class EquipmentArchived(WearlogError):
    """Raised when a mutation targets archived (retired) equipment."""

    def __init__(self, equipment_id: UUID) -> None:
        super().__init__(f"Cannot perform operation on archived equipment {equipment_id}")
        self.equipment_id = equipment_id


class InvalidEquipment(WearlogError, ValueError):
    """Raised when equipment fields fail validation."""


class NoActiveSession(WearlogError):
    """Raised when stopping equipment that has no open session."""

    def __init__(self, equipment_id: UUID) -> None:
        super().__init__(f"No active session for equipment {equipment_id}")
        self.equipment_id = equipment_id


class SessionAlreadyActive(WearlogError):
    """Raised when starting equipment that already holds the open session."""

    def __init__(self, equipment_id: UUID) -> None:
        super().__init__(f"A session is already active for equipment {equipment_id}")
        self.equipment_id = equipment_id


class InvalidInterval(WearlogError, ValueError):
    """Raised for malformed, zero-length or negative-length intervals."""


class PersistenceFailure(WearlogError):
    """Raised when the underlying store fails.  Keeps the backend exception as ``cause``."""

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.cause = cause
