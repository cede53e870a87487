from __future__ import annotations

from typing import Optional

from prometheus_client import CollectorRegistry, Counter, Gauge, start_http_server

from utils.logger import FeedLogger


class FeedTelemetry:
    """Prometheus counters for feed health; each instance owns its registry."""

    def __init__(self, registry: CollectorRegistry | None = None, logger: FeedLogger | None = None):
        self.logger = logger or FeedLogger("telemetry")
        self.registry = registry or CollectorRegistry()
        self.messages = Counter(
            "orderbook_messages",
            "Raw websocket messages received",
            ["venue"],
            registry=self.registry,
        )
        self.ignored = Counter(
            "orderbook_ignored_messages",
            "Messages that carried no book (control frames, malformed payloads)",
            ["venue"],
            registry=self.registry,
        )
        self.snapshots = Counter(
            "orderbook_snapshots",
            "Snapshots produced, by origin",
            ["venue", "source"],
            registry=self.registry,
        )
        self.degraded = Counter(
            "orderbook_degraded",
            "Supervisors that switched to synthetic data",
            ["venue"],
            registry=self.registry,
        )
        self.connected = Gauge(
            "orderbook_connected",
            "1 while the venue websocket is open",
            ["venue"],
            registry=self.registry,
        )

    def serve(self, port: int) -> None:
        start_http_server(port, registry=self.registry)
        self.logger.info("prometheus exporter started", port=port)

    def record_message(self, venue: str, has_book: bool) -> None:
        self.messages.labels(venue=venue).inc()
        if not has_book:
            self.ignored.labels(venue=venue).inc()

    def record_snapshot(self, venue: str, source: str) -> None:
        self.snapshots.labels(venue=venue, source=source).inc()

    def record_degraded(self, venue: str) -> None:
        self.degraded.labels(venue=venue).inc()
        self.connected.labels(venue=venue).set(0)

    def set_connected(self, venue: str, connected: bool) -> None:
        self.connected.labels(venue=venue).set(1 if connected else 0)

    def value(self, name: str, **labels: str) -> Optional[float]:
        return self.registry.get_sample_value(name, labels)
