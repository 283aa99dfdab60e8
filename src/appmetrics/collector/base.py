"""Base interface for periodic metric collectors."""

from __future__ import annotations

import abc
import enum
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, ClassVar, TypeVar

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 10.0

T = TypeVar("T")


@dataclass
class MetricSample:
    """A single metric data point."""

    name: str
    value: float
    unit: str
    timestamp: float
    labels: dict[str, str]
    description: str = ""


@dataclass(frozen=True)
class Snapshot(abc.ABC):
    """Immutable record of every value gathered in one collection cycle.

    Subclasses add one optional field per metric group; a group that was
    disabled or whose platform read failed is left as ``None``.
    """

    kind: ClassVar[str] = ""

    timestamp: float
    duration_seconds: float

    @abc.abstractmethod
    def values(self) -> dict[str, int | float]:
        """Flatten the snapshot to dotted ``key -> value`` pairs."""

    @abc.abstractmethod
    def to_samples(self) -> list[MetricSample]:
        """Convert the snapshot to labelled samples for registry sinks."""

    def to_dict(self) -> list[dict[str, Any]]:
        """Serialize samples to plain dictionaries."""
        return [
            {
                "name": s.name,
                "value": s.value,
                "unit": s.unit,
                "timestamp": s.timestamp,
                "labels": s.labels,
                "description": s.description,
            }
            for s in self.to_samples()
        ]


class CollectorState(enum.Enum):
    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"


def _noop(_snapshot: Snapshot) -> None:
    pass


class BaseCollector(abc.ABC):
    """Abstract base class for periodic collectors.

    A collector owns its delta state and its cadence. ``sample_once`` takes
    one synchronous reading; ``run`` blocks, handing a snapshot to the
    callback immediately and then every ``interval_seconds`` until the stop
    event is set. An instance is meant for a single owner: calling
    ``sample_once`` while ``run`` is active on another thread is not
    supported.
    """

    def __init__(
        self,
        callback: Callable[[Snapshot], None] | None = None,
        interval_seconds: float | None = None,
    ) -> None:
        if interval_seconds is None or interval_seconds <= 0:
            interval_seconds = DEFAULT_INTERVAL_SECONDS
        self.interval_seconds = float(interval_seconds)
        self._callback = callback or _noop
        self._state = CollectorState.IDLE

    @property
    @abc.abstractmethod
    def name(self) -> str:
        """Collector name used in configuration and output."""

    @abc.abstractmethod
    def _collect(self, now: float) -> Snapshot:
        """Read every enabled metric group and build a snapshot."""

    @property
    def state(self) -> CollectorState:
        return self._state

    def sample_once(self) -> Snapshot:
        """Collect current metrics once and return the snapshot."""
        return self._collect(time.time())

    def run(self, stop_event: threading.Event | None = None) -> None:
        """Collect and dispatch snapshots until *stop_event* is set.

        The first snapshot is dispatched before any waiting. A slow callback
        pushes the next tick back; missed ticks are not replayed.
        """
        if self._state is not CollectorState.IDLE:
            raise RuntimeError(f"collector {self.name!r} is {self._state.value}, cannot run again")
        if stop_event is None:
            stop_event = threading.Event()

        self._state = CollectorState.RUNNING
        logger.debug("Collector %s running (interval=%.3fs)", self.name, self.interval_seconds)
        try:
            self._dispatch(self.sample_once())
            deadline = time.monotonic() + self.interval_seconds
            while not stop_event.wait(max(0.0, deadline - time.monotonic())):
                self._dispatch(self.sample_once())
                deadline = max(deadline + self.interval_seconds, time.monotonic())
        finally:
            self._state = CollectorState.STOPPED
            logger.debug("Collector %s stopped", self.name)

    def close(self) -> None:
        """Release resources held by the collector."""

    def _read(self, group: str, func: Callable[[], T]) -> T | None:
        """Run one metric group read; a failure omits the group for this cycle."""
        try:
            return func()
        except Exception:
            logger.debug("Reading %s %s stats failed, omitting group", self.name, group, exc_info=True)
            return None

    def _dispatch(self, snapshot: Snapshot) -> None:
        try:
            self._callback(snapshot)
        except Exception:
            logger.exception("Callback for collector %s failed", self.name)
