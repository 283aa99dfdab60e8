"""Tests for the OpenTelemetry registry exporter."""

from opentelemetry.sdk.metrics.export import InMemoryMetricReader

from appmetrics.collector.runtime import RuntimeCollector
from appmetrics.collector.system import BandwidthStat, SystemStats
from appmetrics.config import OtelExporterConfig
from appmetrics.exporter.otel import OtelExporter


def _points(reader):
    points = {}
    data = reader.get_metrics_data()
    for rm in data.resource_metrics:
        for sm in rm.scope_metrics:
            for metric in sm.metrics:
                points[metric.name] = list(metric.data.data_points)
    return points


def _stats(bandwidth, timestamp=0.0):
    return SystemStats(timestamp=timestamp, duration_seconds=0.01, bandwidth=bandwidth)


def test_network_counters_are_distinct_gauges():
    reader = InMemoryMetricReader()
    exporter = OtelExporter(OtelExporterConfig(service_name="test"), reader=reader)
    try:
        exporter.export(_stats({"eth0": BandwidthStat(1, 2, 3, 4)}))
        points = _points(reader)
        values = {
            name: points[name][0].value
            for name in (
                "system.net.bytes_sent",
                "system.net.bytes_recv",
                "system.net.packets_sent",
                "system.net.packets_recv",
            )
        }
        assert values == {
            "system.net.bytes_sent": 1.0,
            "system.net.bytes_recv": 2.0,
            "system.net.packets_sent": 3.0,
            "system.net.packets_recv": 4.0,
        }
        assert dict(points["system.net.bytes_sent"][0].attributes) == {"interface": "eth0"}
    finally:
        exporter.shutdown()


def test_new_interface_registered_lazily():
    reader = InMemoryMetricReader()
    exporter = OtelExporter(OtelExporterConfig(), reader=reader)
    try:
        exporter.export(_stats({"eth0": BandwidthStat(0, 0, 0, 0)}))
        assert ("system.net.bytes_sent", (("interface", "eth0"),)) in exporter.series
        gauges_before = exporter.gauge_names

        exporter.export(_stats({"eth0": BandwidthStat(5, 5, 1, 1), "tun0": BandwidthStat(0, 0, 0, 0)}, 1.0))
        assert ("system.net.bytes_sent", (("interface", "tun0"),)) in exporter.series
        # gauges are per metric name, devices only add series
        assert exporter.gauge_names == gauges_before

        exporter.export(_stats({"eth0": BandwidthStat(1, 1, 1, 1)}, 2.0))
        assert ("system.net.bytes_sent", (("interface", "tun0"),)) in exporter.series

        interfaces = {
            dict(p.attributes)["interface"] for p in _points(reader)["system.net.bytes_sent"]
        }
        assert {"eth0", "tun0"} <= interfaces
    finally:
        exporter.shutdown()


def test_capture_duration_histogram():
    reader = InMemoryMetricReader()
    exporter = OtelExporter(OtelExporterConfig(), reader=reader)
    collector = RuntimeCollector()
    try:
        exporter.export(collector.sample_once())
        exporter.export(_stats({}))
        points = _points(reader)
        durations = points["appmetrics.capture.duration"]
        assert {dict(p.attributes)["collector"] for p in durations} == {"runtime", "system"}
        assert "runtime.mem.gc.count" in points
    finally:
        collector.close()
        exporter.shutdown()
