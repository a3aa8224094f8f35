"""Prometheus metrics owned by the analysis worker."""

from __future__ import annotations

from functools import lru_cache
from typing import Mapping, Optional

from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, Counter, Gauge, generate_latest

FIELD_LABELS = ("farmer_name", "property_name", "field_name", "field_id")

METRICS_CONTENT_TYPE = CONTENT_TYPE_LATEST


class MetricsRegistry:
    """Counters and gauges for one worker process.

    Every series lives in a private ``CollectorRegistry`` so several
    registries can coexist (one per test, for instance) without clashing in
    the prometheus_client default registry. Individual increments and sets
    are atomic, callers never need their own locking.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None) -> None:
        self.registry = registry or CollectorRegistry()

        self.events_processed = Counter(
            "agro_events_processed",
            "Total sensor events processed",
            registry=self.registry,
        )

        self.soil_humidity = Gauge(
            "agro_soil_humidity_percent",
            "Current soil humidity (%)",
            FIELD_LABELS,
            registry=self.registry,
        )
        self.drought_alerts = Counter(
            "agro_alert_drought",
            "Drought alerts raised (humidity < 30%)",
            FIELD_LABELS,
            registry=self.registry,
        )

        self.ambient_temperature = Gauge(
            "agro_temperature_celsius",
            "Current ambient temperature (°C)",
            FIELD_LABELS,
            registry=self.registry,
        )
        self.frost_alerts = Counter(
            "agro_alert_frost",
            "Frost alerts raised (temperature < 5°C)",
            FIELD_LABELS,
            registry=self.registry,
        )
        self.heat_alerts = Counter(
            "agro_alert_heat",
            "Excessive heat alerts raised (temperature > 35°C)",
            FIELD_LABELS,
            registry=self.registry,
        )

        self.atmospheric_pressure = Gauge(
            "agro_pressure_hpa",
            "Current atmospheric pressure (hPa)",
            FIELD_LABELS,
            registry=self.registry,
        )
        self.storm_alerts = Counter(
            "agro_alert_storm",
            "Storm alerts raised (pressure < 1000 hPa)",
            FIELD_LABELS,
            registry=self.registry,
        )

        self.queue_messages = Counter(
            "agro_queue_messages",
            "Queue messages handled by the consumer, by outcome",
            ["outcome"],
            registry=self.registry,
        )
        self.queue_poll_failures = Counter(
            "agro_queue_poll_failures",
            "Failed attempts to receive messages from the queue",
            registry=self.registry,
        )

    def render(self) -> bytes:
        """Return the text exposition of every series in this registry."""
        return generate_latest(self.registry)

    def sample(self, name: str, labels: Optional[Mapping[str, str]] = None) -> Optional[float]:
        """Read the current value of one sample, ``None`` if it was never touched."""
        return self.registry.get_sample_value(name, dict(labels) if labels else None)


@lru_cache
def build_default_registry() -> MetricsRegistry:
    return MetricsRegistry()
