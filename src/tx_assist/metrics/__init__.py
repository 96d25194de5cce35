"""Metrics: Prometheus metrics collection."""

from __future__ import annotations

from tx_assist.metrics.collector import AssistMetrics, MetricsCollector

__all__ = ["AssistMetrics", "MetricsCollector"]
