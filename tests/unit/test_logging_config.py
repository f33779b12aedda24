"""
Unit tests for structlog configuration.
"""

from __future__ import annotations

import pytest

from lodge_reservations.config import PROPERTY_NAME
from lodge_reservations.logging_config import add_property


@pytest.mark.unit
def test_add_property_tags_events() -> None:
    event = add_property(None, "info", {"event": "reservation_created"})

    assert event["property"] == PROPERTY_NAME


@pytest.mark.unit
def test_add_property_keeps_explicit_value() -> None:
    event = add_property(None, "info", {"event": "x", "property": "Annex"})

    assert event["property"] == "Annex"
