"""Process-wide exported variables.

Numeric cells (:class:`IntVar`, :class:`FloatVar`) live in named
:class:`VarMap` objects that are published into a :class:`VarRegistry`.
The module keeps one default registry for the process; pass an explicit
registry to keep independent sets apart (tests, embedded hosts)::

    exporter = ExpvarExporter()
    manager = CollectorManager(CollectorConfig(interval_seconds=5))
    manager.add_sink(exporter.export)
    manager.start()

    default_registry.to_json()
"""

from __future__ import annotations

import abc
import json
import logging
import threading
from typing import Any, Iterator

from ..collector.base import Snapshot
from ..collector.manager import CollectorManager
from ..config import CollectorConfig, ExpvarConfig
from .base import BaseExporter

logger = logging.getLogger(__name__)


class Var(abc.ABC):
    """An exported variable."""

    @abc.abstractmethod
    def value(self) -> Any:
        """Current value as a JSON-serialisable object."""

    def __str__(self) -> str:
        return json.dumps(self.value())


class IntVar(Var):
    def __init__(self, value: int = 0) -> None:
        self._lock = threading.Lock()
        self._value = int(value)

    def value(self) -> int:
        with self._lock:
            return self._value

    def set(self, value: int) -> None:
        with self._lock:
            self._value = int(value)

    def add(self, delta: int) -> None:
        with self._lock:
            self._value += int(delta)


class FloatVar(Var):
    def __init__(self, value: float = 0.0) -> None:
        self._lock = threading.Lock()
        self._value = float(value)

    def value(self) -> float:
        with self._lock:
            return self._value

    def set(self, value: float) -> None:
        with self._lock:
            self._value = float(value)

    def add(self, delta: float) -> None:
        with self._lock:
            self._value += float(delta)


class VarMap(Var):
    """A string-keyed map of variables. Entries are never removed."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._vars: dict[str, Var] = {}

    def get(self, key: str) -> Var | None:
        with self._lock:
            return self._vars.get(key)

    def set(self, key: str, var: Var) -> None:
        with self._lock:
            self._vars[key] = var

    def setdefault(self, key: str, var: Var) -> Var:
        with self._lock:
            return self._vars.setdefault(key, var)

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(self._vars)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._vars

    def __len__(self) -> int:
        with self._lock:
            return len(self._vars)

    def value(self) -> dict[str, Any]:
        with self._lock:
            items = sorted(self._vars.items())
        return {key: var.value() for key, var in items}


class VarRegistry:
    """Named collection of published variables."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._vars: dict[str, Var] = {}

    def publish(self, name: str, var: Var) -> Var:
        """Publish *var* under *name*; reusing a name is an error."""
        with self._lock:
            if name in self._vars:
                raise ValueError(f"reuse of exported var name: {name}")
            self._vars[name] = var
        return var

    def get(self, name: str) -> Var | None:
        with self._lock:
            return self._vars.get(name)

    def __iter__(self) -> Iterator[tuple[str, Var]]:
        with self._lock:
            items = sorted(self._vars.items())
        return iter(items)

    def to_json(self) -> str:
        return json.dumps({name: var.value() for name, var in self})


default_registry = VarRegistry()


def publish(name: str, var: Var) -> Var:
    """Publish *var* in the process default registry."""
    return default_registry.publish(name, var)


def get(name: str) -> Var | None:
    return default_registry.get(name)


def _map_for(registry: VarRegistry, name: str) -> VarMap:
    existing = registry.get(name)
    if existing is None:
        return registry.publish(name, VarMap())  # type: ignore[return-value]
    if not isinstance(existing, VarMap):
        raise ValueError(f"exported var {name!r} is not a map")
    return existing


class ExpvarExporter(BaseExporter):
    """Upserts snapshot values into two published variable maps.

    Runtime snapshots go to ``config.runtime_map``, system snapshots to
    ``config.system_map``. A cell is created the first time its key is
    seen, as a :class:`FloatVar` for float fields and an :class:`IntVar`
    otherwise. Two exporters on one registry share the maps, so each key
    should have a single writer.
    """

    def __init__(
        self,
        config: ExpvarConfig | None = None,
        registry: VarRegistry | None = None,
    ) -> None:
        self._config = config or ExpvarConfig()
        self._registry = registry if registry is not None else default_registry
        self._maps = {
            "runtime": _map_for(self._registry, self._config.runtime_map),
            "system": _map_for(self._registry, self._config.system_map),
        }
        logger.info(
            "ExpvarExporter initialized → %s, %s",
            self._config.runtime_map,
            self._config.system_map,
        )

    @property
    def runtime_map(self) -> VarMap:
        return self._maps["runtime"]

    @property
    def system_map(self) -> VarMap:
        return self._maps["system"]

    def export(self, snapshot: Snapshot) -> None:
        var_map = self._maps.get(snapshot.kind)
        if var_map is None:
            logger.debug("No variable map for %r snapshots", snapshot.kind)
            return
        for key, value in snapshot.values().items():
            cell = var_map.get(key)
            if cell is None:
                cell = var_map.setdefault(key, FloatVar() if isinstance(value, float) else IntVar())
            cell.set(value)  # type: ignore[attr-defined]

    def shutdown(self) -> None:
        logger.info("ExpvarExporter shut down")


def start_expvar(
    interval_seconds: float | None = None,
    stop_event: threading.Event | None = None,
    *,
    config: ExpvarConfig | None = None,
    registry: VarRegistry | None = None,
) -> CollectorManager:
    """Start runtime and system collectors publishing into variable maps.

    Setting *stop_event* stops both collectors; alternatively call
    ``stop()`` on the returned manager.
    """
    collector_config = CollectorConfig(interval_seconds=interval_seconds or 10.0)
    manager = CollectorManager(collector_config)
    exporter = ExpvarExporter(config, registry)
    manager.add_sink(exporter.export)
    manager.start()
    if stop_event is not None:
        threading.Thread(
            target=lambda: (stop_event.wait(), manager.stop()),
            name="appmetrics-expvar-stop",
            daemon=True,
        ).start()
    return manager
