"""OpenTelemetry exporter – pushes collector snapshots via OTLP/HTTP."""

from __future__ import annotations

import logging
from typing import Any

from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import MetricReader, PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource, SERVICE_NAME

from ..collector.base import Snapshot
from ..config import OtelExporterConfig
from .base import BaseExporter

logger = logging.getLogger(__name__)


class OtelExporter(BaseExporter):
    """Exports snapshots to an OpenTelemetry endpoint.

    Each call to :meth:`export` records gauge observations via the OTel SDK;
    the SDK's ``PeriodicExportingMetricReader`` flushes them to the configured
    OTLP/HTTP endpoint. Gauges are created the first time a metric name is
    seen and per-device series (``mountpoint``, ``interface`` labels) appear
    as new devices show up; nothing is ever unregistered. Collection time
    is recorded in the ``appmetrics.capture.duration`` histogram.

    Pass *reader* to use a different metric reader than the OTLP one.
    """

    def __init__(self, config: OtelExporterConfig, reader: MetricReader | None = None) -> None:
        self._config = config
        resource = Resource.create({SERVICE_NAME: config.service_name})

        if reader is None:
            exporter_kwargs: dict[str, Any] = {
                "endpoint": f"{config.endpoint.rstrip('/')}/v1/metrics",
            }
            if config.headers:
                exporter_kwargs["headers"] = config.headers

            reader = PeriodicExportingMetricReader(
                OTLPMetricExporter(**exporter_kwargs),
                export_interval_millis=config.export_interval_ms,
            )
        self._provider = MeterProvider(resource=resource, metric_readers=[reader])
        self._meter = self._provider.get_meter("appmetrics")
        self._gauges: dict[str, Any] = {}
        self._series: set[tuple[str, tuple[tuple[str, str], ...]]] = set()
        self._capture_timer = self._meter.create_histogram(
            name="appmetrics.capture.duration",
            unit="s",
            description="Time spent collecting one snapshot",
        )

        logger.info(
            "OtelExporter initialized → %s (service=%s)",
            config.endpoint,
            config.service_name,
        )

    @property
    def gauge_names(self) -> list[str]:
        return sorted(self._gauges)

    @property
    def series(self) -> set[tuple[str, tuple[tuple[str, str], ...]]]:
        return set(self._series)

    def _get_gauge(self, name: str, unit: str, description: str) -> Any:
        key = name
        if key not in self._gauges:
            self._gauges[key] = self._meter.create_gauge(
                name=name,
                unit=unit,
                description=description,
            )
        return self._gauges[key]

    def export(self, snapshot: Snapshot) -> None:
        for s in snapshot.to_samples():
            gauge = self._get_gauge(s.name, s.unit, s.description)
            series = (s.name, tuple(sorted(s.labels.items())))
            if series not in self._series:
                self._series.add(series)
                logger.debug("Registered series %s %s", s.name, s.labels)
            gauge.set(s.value, attributes=s.labels)
        self._capture_timer.record(snapshot.duration_seconds, attributes={"collector": snapshot.kind})

    def shutdown(self) -> None:
        self._provider.shutdown()
        logger.info("OtelExporter shut down")
