"""
Exception taxonomy for the reservation engine.

Validation and conflict errors are always surfaced to the caller. Route
handlers translate them to HTTP responses in ``routes/errors.py``.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Sequence


class ReservationEngineError(Exception):
    """Base class for all engine errors."""

    code = "reservation_engine_error"

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "detail": str(self)}


class ValidationError(ReservationEngineError):
    """Malformed input rejected before any I/O (bad date range, missing field)."""

    code = "validation_error"


class NotFound(ReservationEngineError):
    """Referenced room, reservation, group or mapping does not exist."""

    code = "not_found"


class InvalidTransition(ReservationEngineError):
    """Requested lifecycle move is not allowed from the current status."""

    code = "invalid_transition"

    def __init__(self, reservation_id: str, current: str, target: str):
        self.reservation_id = reservation_id
        self.current = current
        self.target = target
        super().__init__(
            f"Reservation {reservation_id} cannot move from '{current}' to '{target}'"
        )


class ConflictError(ReservationEngineError):
    """Base for date-range conflicts on a room."""

    code = "conflict"

    def __init__(
        self,
        room_number: str,
        check_in: date,
        check_out: date,
        conflicting_ids: Sequence[str] = (),
        message: str | None = None,
    ):
        self.room_number = room_number
        self.check_in = check_in
        self.check_out = check_out
        self.conflicting_ids = list(conflicting_ids)
        super().__init__(message or self._default_message())

    def _default_message(self) -> str:
        return (
            f"Room {self.room_number} is not available "
            f"from {self.check_in.isoformat()} to {self.check_out.isoformat()}"
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "detail": str(self),
            "room_number": self.room_number,
            "check_in": self.check_in.isoformat(),
            "check_out": self.check_out.isoformat(),
            "conflicting_ids": self.conflicting_ids,
        }


class AvailabilityConflict(ConflictError):
    """The range collides with another internal reservation (double booking)."""

    code = "availability_conflict"


class ChannelConflict(ConflictError):
    """
    The range collides with a busy period imported from an external channel.

    Remediation differs from an internal conflict: the channel calendar may be
    stale, or the dates must be blocked/unblocked on the channel side.
    """

    code = "channel_conflict"

    def _default_message(self) -> str:
        return (
            f"Room {self.room_number} is held by an external channel "
            f"from {self.check_in.isoformat()} to {self.check_out.isoformat()}"
        )


class PartialGroupFailure(ReservationEngineError):
    """
    A multi-room operation failed after some lines were already written.

    Attributes:
        group_id: Group identifier the lines were written under
        committed: Room numbers whose rows were written before the failure
        failed: Room numbers that were not written
        compensated: Room numbers whose rows were cancelled again
        compensation_failed: Room numbers whose compensating cancel also failed
        cause: The error that stopped the operation
    """

    code = "partial_group_failure"

    def __init__(
        self,
        group_id: str,
        committed: Sequence[str],
        failed: Sequence[str],
        compensated: Sequence[str] = (),
        compensation_failed: Sequence[str] = (),
        cause: BaseException | None = None,
    ):
        self.group_id = group_id
        self.committed = list(committed)
        self.failed = list(failed)
        self.compensated = list(compensated)
        self.compensation_failed = list(compensation_failed)
        self.cause = cause
        super().__init__(
            f"Group {group_id} failed: committed={self.committed} failed={self.failed} "
            f"compensated={self.compensated} cause={cause!s}"
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "detail": str(self),
            "group_id": self.group_id,
            "committed": self.committed,
            "failed": self.failed,
            "compensated": self.compensated,
            "compensation_failed": self.compensation_failed,
            "cause": str(self.cause) if self.cause else None,
        }


class SyncMappingError(ReservationEngineError):
    """Import for a single channel mapping failed; sibling mappings are unaffected."""

    code = "sync_mapping_error"

    def __init__(self, mapping_id: str, message: str):
        self.mapping_id = mapping_id
        super().__init__(f"Mapping {mapping_id}: {message}")
