"""
In-flight booking cart of one operator session.

Lines in the cart are not persisted yet, so the store cannot see them. The
availability engine consults the cart so that a single session cannot select
the same room for overlapping dates on two lines before committing.
"""

from __future__ import annotations

import threading
import uuid
from typing import Optional

from lodge_reservations.schemas.reservations import ReservationDraft
from lodge_reservations.utils.intervals import overlaps


class BookingSession:
    """
    Uncommitted reservation drafts held by one operator.

    Example:
        >>> session = BookingSession()
        >>> session.add(draft_101_jan10_15)
        >>> session.overlapping("room-101", date(2025, 1, 14), date(2025, 1, 16))
        [ReservationDraft(...)]
    """

    def __init__(self, session_id: Optional[str] = None):
        self.id = session_id or str(uuid.uuid4())
        self._lines: list[ReservationDraft] = []
        self._lock = threading.Lock()

    @property
    def lines(self) -> list[ReservationDraft]:
        with self._lock:
            return list(self._lines)

    def overlapping(
        self,
        room_id: str,
        check_in,
        check_out,
        exclude: Optional[ReservationDraft] = None,
    ) -> list[ReservationDraft]:
        """Cart lines on ``room_id`` that share a night with ``[check_in, check_out)``."""
        with self._lock:
            return [
                line
                for line in self._lines
                if line is not exclude
                and line.room_id == room_id
                and overlaps(line.check_in, line.check_out, check_in, check_out)
            ]

    def add(self, draft: ReservationDraft) -> None:
        with self._lock:
            self._lines.append(draft)

    def remove(self, draft: ReservationDraft) -> None:
        with self._lock:
            self._lines = [line for line in self._lines if line is not draft]

    def clear(self) -> None:
        with self._lock:
            self._lines.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._lines)
