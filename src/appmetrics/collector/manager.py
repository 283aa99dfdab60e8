"""Collector manager that orchestrates runtime and system collection."""

from __future__ import annotations

import logging
import threading
from typing import Callable

from ..config import CollectorConfig
from .base import BaseCollector, Snapshot
from .runtime import RuntimeCollector
from .system import SystemCollector

logger = logging.getLogger(__name__)


class CollectorManager:
    """Runs the configured collectors on background threads.

    This class is designed to be reusable: instantiate it with a
    :class:`CollectorConfig`, register one or more sinks via
    :meth:`add_sink`, then call :meth:`start` / :meth:`stop`. Every
    collector gets its own thread; snapshots from one collector reach the
    sinks in order.
    """

    def __init__(self, config: CollectorConfig) -> None:
        self._config = config
        self._sinks: list[Callable[[Snapshot], None]] = []
        self._threads: list[threading.Thread] = []
        self._stop_event = threading.Event()
        self._collectors = self._build_collectors()

    def _build_collectors(self) -> list[BaseCollector]:
        collectors: list[BaseCollector] = []
        if self._config.runtime:
            collectors.append(RuntimeCollector(
                self._dispatch,
                self._config.interval_seconds,
                cpu=self._config.cpu,
                memory=self._config.memory,
                gc_stats=self._config.gc,
            ))
        if self._config.system:
            collectors.append(SystemCollector(
                self._dispatch,
                self._config.interval_seconds,
                cpu=self._config.cpu,
                load=self._config.load,
                memory=self._config.memory,
                swap=self._config.swap,
                disk=self._config.disk,
                network=self._config.network,
                partitions=self._config.partitions or None,
                all_partitions=self._config.all_partitions,
            ))
        return collectors

    @property
    def collectors(self) -> list[BaseCollector]:
        return list(self._collectors)

    @property
    def running(self) -> bool:
        return any(t.is_alive() for t in self._threads)

    def add_sink(self, sink: Callable[[Snapshot], None]) -> None:
        """Register a callback to receive collected snapshots."""
        self._sinks.append(sink)

    def collect_once(self) -> list[Snapshot]:
        """Run all collectors once and return their snapshots.

        Not to be mixed with :meth:`start` on the same manager.
        """
        return [collector.sample_once() for collector in self._collectors]

    def _dispatch(self, snapshot: Snapshot) -> None:
        for sink in self._sinks:
            try:
                sink(snapshot)
            except Exception:
                logger.exception("Sink failed for %s snapshot", snapshot.kind)

    def start(self) -> None:
        """Start collecting in the background."""
        if not self._config.enabled:
            return
        if self._threads:
            return
        if self._stop_event.is_set():
            # stopped collectors never run again; restart with fresh ones
            self._stop_event = threading.Event()
            self._collectors = self._build_collectors()
        for collector in self._collectors:
            thread = threading.Thread(
                target=collector.run,
                args=(self._stop_event,),
                name=f"appmetrics-{collector.name}",
                daemon=True,
            )
            thread.start()
            self._threads.append(thread)
        logger.info(
            "CollectorManager started %d collector(s) (interval=%.1fs)",
            len(self._threads),
            self._config.interval_seconds,
        )

    def stop(self) -> None:
        """Stop background collection and release collector resources."""
        self._stop_event.set()
        for thread in self._threads:
            thread.join(timeout=5)
        self._threads = []
        for collector in self._collectors:
            collector.close()
        logger.info("CollectorManager stopped")
