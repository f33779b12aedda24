"""
Unit tests for metrics endpoint.
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from lodge_reservations.main import app
from lodge_reservations.metrics import (
    availability_checks,
    calendar_latency,
    calendar_requests,
    channel_hold_upserts,
    channel_syncs,
    reservation_writes,
    sync_duration,
)


@pytest.fixture
def client() -> TestClient:
    """FastAPI test client."""
    return TestClient(app)


@pytest.mark.unit
def test_metrics_endpoint_returns_prometheus_format(client: TestClient) -> None:
    """Test that /metrics endpoint returns Prometheus text format."""
    response = client.get("/metrics")

    assert response.status_code == 200
    assert "text/plain" in response.headers["content-type"]


@pytest.mark.unit
def test_metrics_endpoint_contains_custom_metrics(client: TestClient) -> None:
    """Test that /metrics endpoint includes the booking and sync metrics."""
    reservation_writes.labels(operation="create", outcome="success").inc()
    availability_checks.labels(result="available").inc()
    channel_syncs.labels(channel="airbnb", status="success").inc()
    channel_hold_upserts.labels(channel="airbnb", action="created").inc(3)
    sync_duration.labels(channel="airbnb").observe(0.8)
    calendar_requests.labels(status_code="200").inc()
    calendar_latency.observe(0.2)

    content = client.get("/metrics").text

    assert "lodge_reservation_writes_total" in content
    assert "lodge_availability_checks_total" in content
    assert "lodge_channel_syncs_total" in content
    assert "lodge_channel_hold_upserts_total" in content
    assert "lodge_channel_sync_duration_seconds" in content
    assert "lodge_calendar_requests_total" in content
    assert "lodge_calendar_latency_seconds" in content


@pytest.mark.unit
def test_metrics_endpoint_includes_help_and_type_metadata(client: TestClient) -> None:
    """Test that metrics include Prometheus HELP and TYPE metadata."""
    content = client.get("/metrics").text

    assert "# HELP" in content
    assert "# TYPE" in content
