"""Configuration loading and validation for app-metrics."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml


@dataclass
class OtelExporterConfig:
    """OpenTelemetry exporter settings."""

    endpoint: str = "http://localhost:4318"
    service_name: str = "app-metrics"
    headers: dict[str, str] = field(default_factory=dict)
    export_interval_ms: int = 10000


@dataclass
class CollectorConfig:
    """Collector cadence and metric group switches."""

    enabled: bool = True
    interval_seconds: float = 10.0
    runtime: bool = True
    system: bool = True
    cpu: bool = True
    memory: bool = True
    gc: bool = True
    load: bool = True
    swap: bool = True
    disk: bool = True
    network: bool = True
    partitions: list[str] = field(default_factory=list)
    all_partitions: bool = False


@dataclass
class HttpConfig:
    """Debug HTTP endpoint settings."""

    enabled: bool = True
    host: str = "127.0.0.1"
    port: int = 6060
    default_seconds: int = 30
    max_seconds: int = 300


@dataclass
class ExpvarConfig:
    """Process-wide variable map settings."""

    enabled: bool = True
    runtime_map: str = "runtime_stats"
    system_map: str = "system_stats"


@dataclass
class AppMetricsConfig:
    """Top-level app-metrics configuration."""

    mode: str = "local"
    collector: CollectorConfig = field(default_factory=CollectorConfig)
    http: HttpConfig = field(default_factory=HttpConfig)
    expvar: ExpvarConfig = field(default_factory=ExpvarConfig)
    otel: OtelExporterConfig = field(default_factory=OtelExporterConfig)


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    """Apply environment variable overrides using APP_METRICS_ prefix."""
    env_map = {
        "APP_METRICS_MODE": ("mode",),
        "APP_METRICS_OTEL_ENDPOINT": ("otel", "endpoint"),
        "APP_METRICS_OTEL_SERVICE_NAME": ("otel", "service_name"),
        "APP_METRICS_COLLECTOR_INTERVAL": ("collector", "interval_seconds"),
        "APP_METRICS_HTTP_HOST": ("http", "host"),
        "APP_METRICS_HTTP_PORT": ("http", "port"),
    }
    for env_key, path in env_map.items():
        value = os.environ.get(env_key)
        if value is not None:
            obj = data
            for part in path[:-1]:
                obj = obj.setdefault(part, {})
            final_key = path[-1]
            # coerce numeric values
            if final_key == "interval_seconds":
                obj[final_key] = float(value)
            elif final_key == "port":
                obj[final_key] = int(value)
            else:
                obj[final_key] = value
    return data


def _section(cls: type, data: dict[str, Any]) -> Any:
    return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})


def _dict_to_config(data: dict[str, Any]) -> AppMetricsConfig:
    """Convert a raw dictionary to an AppMetricsConfig dataclass."""
    return AppMetricsConfig(
        mode=data.get("mode", "local"),
        collector=_section(CollectorConfig, data.get("collector", {})),
        http=_section(HttpConfig, data.get("http", {})),
        expvar=_section(ExpvarConfig, data.get("expvar", {})),
        otel=_section(OtelExporterConfig, data.get("otel", {})),
    )


def load_config(path: str | Path | None = None) -> AppMetricsConfig:
    """Load configuration from a YAML file with environment overrides.

    Looks for ``app_metrics.yaml`` in the current directory if *path* is None.
    A missing file yields the defaults.
    """
    data: dict[str, Any] = {}
    if path is None:
        path = Path("app_metrics.yaml")
    else:
        path = Path(path)

    if path.exists():
        with open(path, encoding="utf-8") as fh:
            loaded = yaml.safe_load(fh)
            if isinstance(loaded, dict):
                data = loaded

    data = _apply_env_overrides(data)
    return _dict_to_config(data)
