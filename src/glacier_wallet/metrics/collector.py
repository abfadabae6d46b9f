"""Metrics collector — Prometheus counters and histograms for the lock service.

Exposed series:
- ``glacier_scanned_addresses_total`` (``status``: used, unused, error)
- ``glacier_locks_total`` (``outcome``: validated, discarded)
- ``glacier_drafts_total`` (``kind``: new_lock, unlock)
- ``glacier_broadcasts_total`` (``kind``, ``outcome``: accepted, rejected)
- ``glacier_scan_duration_seconds``
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import TYPE_CHECKING

from prometheus_client import CollectorRegistry, Counter, Histogram

if TYPE_CHECKING:
    from collections.abc import Iterator

_PREFIX = "glacier"


class MetricsCollector:
    """Low-level Prometheus collector that owns the registry.

    Use :class:`GlacierMetrics` for the high-level tracking interface.
    """

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self._registry = registry or CollectorRegistry()

    @property
    def registry(self) -> CollectorRegistry:
        """Return the underlying Prometheus registry."""
        return self._registry

    def histogram(self, name: str, doc: str, labels: tuple[str, ...] = ()) -> Histogram:
        """Register and return a Histogram."""
        return Histogram(name, doc, labels, registry=self._registry)

    def counter(self, name: str, doc: str, labels: tuple[str, ...] = ()) -> Counter:
        """Register and return a Counter."""
        return Counter(name, doc, labels, registry=self._registry)


class GlacierMetrics:
    """High-level metrics for scans, lock discovery, drafting and broadcast."""

    def __init__(self, collector: MetricsCollector | None = None) -> None:
        self._collector = collector or MetricsCollector()

        self._scanned = self._collector.counter(
            f"{_PREFIX}_scanned_addresses",
            "Receive addresses visited by scans",
            ("status",),
        )
        self._locks = self._collector.counter(
            f"{_PREFIX}_locks",
            "Lock candidates seen during validation",
            ("outcome",),
        )
        self._drafts = self._collector.counter(
            f"{_PREFIX}_drafts",
            "Unsigned drafts built",
            ("kind",),
        )
        self._broadcasts = self._collector.counter(
            f"{_PREFIX}_broadcasts",
            "Broadcast attempts",
            ("kind", "outcome"),
        )
        self._scan_duration = self._collector.histogram(
            f"{_PREFIX}_scan_duration_seconds",
            "Duration of receive-address scans",
        )

    @property
    def registry(self) -> CollectorRegistry:
        """Return the underlying Prometheus registry."""
        return self._collector.registry

    # -- Counters --

    def address_scanned(self, status: str) -> None:
        self._scanned.labels(status=status).inc()

    def lock_validated(self) -> None:
        self._locks.labels(outcome="validated").inc()

    def lock_discarded(self) -> None:
        self._locks.labels(outcome="discarded").inc()

    def draft_built(self, kind: str) -> None:
        self._drafts.labels(kind=kind).inc()

    def broadcast(self, kind: str, *, accepted: bool) -> None:
        """Record the outcome of one broadcast."""
        outcome = "accepted" if accepted else "rejected"
        self._broadcasts.labels(kind=kind, outcome=outcome).inc()

    # -- Operation trackers (context managers) --

    @contextmanager
    def track_scan(self) -> Iterator[None]:
        """Track the duration of a receive-address scan."""
        start = time.monotonic()
        try:
            yield
        finally:
            self._scan_duration.observe(time.monotonic() - start)
