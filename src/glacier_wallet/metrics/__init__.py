"""Metrics — Prometheus metrics collection and exposure."""

from __future__ import annotations

from glacier_wallet.metrics.collector import GlacierMetrics, MetricsCollector

__all__ = ["GlacierMetrics", "MetricsCollector"]
