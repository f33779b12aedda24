"""
Unit tests for translating engine errors into HTTP status codes.
"""

from __future__ import annotations

from datetime import date

import pytest

from lodge_reservations.errors import (
    AvailabilityConflict,
    ChannelConflict,
    InvalidTransition,
    NotFound,
    PartialGroupFailure,
    ReservationEngineError,
    SyncMappingError,
    ValidationError,
)
from lodge_reservations.routes.errors import status_code_for


@pytest.mark.unit
@pytest.mark.parametrize(
    "error,expected",
    [
        (ValidationError("bad range"), 422),
        (NotFound("no such room"), 404),
        (AvailabilityConflict("101", date(2025, 1, 10), date(2025, 1, 15)), 409),
        (ChannelConflict("101", date(2025, 1, 10), date(2025, 1, 15)), 409),
        (InvalidTransition("r-1", "cancelled", "checked-in"), 409),
        (PartialGroupFailure("g-1", ["101"], ["102"]), 500),
        (SyncMappingError("m-1", "feed down"), 502),
        (ReservationEngineError("other"), 500),
    ],
)
def test_status_code_for(error: ReservationEngineError, expected: int) -> None:
    assert status_code_for(error) == expected


@pytest.mark.unit
def test_partial_group_failure_body_names_every_line() -> None:
    error = PartialGroupFailure(
        "g-1",
        committed=["101"],
        failed=["102", "201"],
        compensated=["101"],
        cause=RuntimeError("disk full"),
    )

    body = error.to_dict()

    assert body["code"] == "partial_group_failure"
    assert body["committed"] == ["101"]
    assert body["failed"] == ["102", "201"]
    assert body["compensated"] == ["101"]
    assert body["compensation_failed"] == []
    assert body["cause"] == "disk full"


@pytest.mark.unit
def test_conflict_body_distinguishes_kind() -> None:
    internal = AvailabilityConflict("101", date(2025, 1, 10), date(2025, 1, 15), ["r-1"]).to_dict()
    channel = ChannelConflict("101", date(2025, 1, 10), date(2025, 1, 15), ["h-1"]).to_dict()

    assert internal["code"] == "availability_conflict"
    assert channel["code"] == "channel_conflict"
    assert channel["conflicting_ids"] == ["h-1"]
    assert "external channel" in channel["detail"]
