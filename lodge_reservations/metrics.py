"""
Prometheus metrics for bookings, availability checks, and channel sync.

Metrics are exposed via the /metrics endpoint for scraping by Prometheus.

Example:
    >>> from lodge_reservations.metrics import channel_syncs
    >>> channel_syncs.labels(channel="airbnb", status="success").inc()
"""

from __future__ import annotations

from prometheus_client import Counter, Histogram

# =============================================================================
# Booking Metrics
# =============================================================================

reservation_writes = Counter(
    "lodge_reservation_writes_total",
    "Reservation write attempts by operation and outcome",
    ["operation", "outcome"],
)
"""
Counter for reservation writes.

Labels:
    operation: create, confirm, check_in, check_out, cancel, group_create, group_check_out
    outcome: success, availability_conflict, channel_conflict, invalid, error
"""

availability_checks = Counter(
    "lodge_availability_checks_total",
    "Availability checks by result",
    ["result"],
)
"""
Counter for availability checks.

Labels:
    result: available, maintenance, internal_conflict, channel_conflict,
            cart_conflict, unknown_room, read_error
"""

group_compensations = Counter(
    "lodge_group_compensations_total",
    "Compensating cancellations applied after a partial group failure",
    ["outcome"],
)

# =============================================================================
# Channel Sync Metrics
# =============================================================================

channel_syncs = Counter(
    "lodge_channel_syncs_total",
    "Channel mapping import runs by status",
    ["channel", "status"],
)

channel_hold_upserts = Counter(
    "lodge_channel_hold_upserts_total",
    "Channel-hold rows touched by imports",
    ["channel", "action"],
)
"""
Counter for channel-hold writes.

Labels:
    channel: channel slug
    action: created, updated, unchanged, cancelled, reactivated, contention
"""

calendar_requests = Counter(
    "lodge_calendar_requests_total",
    "External calendar feed requests",
    ["status_code"],
)

calendar_latency = Histogram(
    "lodge_calendar_latency_seconds",
    "External calendar feed request latency in seconds",
    buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, float("inf")),
)

sync_duration = Histogram(
    "lodge_channel_sync_duration_seconds",
    "Duration of a single mapping import in seconds",
    ["channel"],
    buckets=(0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, float("inf")),
)

export_requests = Counter(
    "lodge_export_requests_total",
    "Calendar export feed requests by outcome",
    ["outcome"],
)
