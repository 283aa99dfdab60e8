"""Python runtime collector – threads, process memory and garbage collection."""

from __future__ import annotations

import gc
import os
import platform
import sys
import threading
import time
import tracemalloc
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Mapping

import psutil

from .base import BaseCollector, MetricSample, Snapshot


class GcPauseTracker:
    """Times garbage collection passes through ``gc.callbacks``.

    The hook is process-wide, so the tracker must be closed when its owner
    goes away. Pause figures cover only the time since :meth:`install`.
    """

    def __init__(self) -> None:
        self.pause_total_ns = 0
        self.last_pause_ns = 0
        self.last_gc_ns = 0
        self._started_ns = 0
        self._installed_at = time.perf_counter_ns()
        self._installed = False

    def install(self) -> None:
        if not self._installed:
            self._installed_at = time.perf_counter_ns()
            gc.callbacks.append(self._on_gc)
            self._installed = True

    def uninstall(self) -> None:
        if self._installed:
            try:
                gc.callbacks.remove(self._on_gc)
            except ValueError:
                pass
            self._installed = False

    @property
    def installed(self) -> bool:
        return self._installed

    def _on_gc(self, phase: str, _info: dict[str, Any]) -> None:
        if phase == "start":
            self._started_ns = time.perf_counter_ns()
        elif phase == "stop" and self._started_ns:
            pause = time.perf_counter_ns() - self._started_ns
            self.last_pause_ns = pause
            self.pause_total_ns += pause
            self.last_gc_ns = time.time_ns()
            self._started_ns = 0

    def cpu_fraction(self) -> float:
        """Share of wall time since install spent inside the collector."""
        elapsed = time.perf_counter_ns() - self._installed_at
        if elapsed <= 0:
            return 0.0
        return self.pause_total_ns / elapsed


@dataclass(frozen=True)
class RuntimeCpuStat:
    count: int
    threads: int
    python_threads: int


@dataclass(frozen=True)
class RuntimeMemStat:
    rss: int
    vms: int
    blocks: int
    traced_current: int | None = None
    traced_peak: int | None = None


@dataclass(frozen=True)
class GcStat:
    count: int
    collected: int
    uncollectable: int
    pending: tuple[int, ...]
    frozen: int
    garbage: int
    pause_total_ns: int
    last_pause_ns: int
    last_gc_ns: int
    cpu_fraction: float


def _default_tags() -> Mapping[str, str]:
    return MappingProxyType({
        "python.implementation": platform.python_implementation(),
        "python.version": platform.python_version(),
        "os": sys.platform,
        "arch": platform.machine(),
    })


@dataclass(frozen=True)
class RuntimeStats(Snapshot):
    """One cycle of interpreter and process metrics."""

    kind = "runtime"

    cpu: RuntimeCpuStat | None = None
    memory: RuntimeMemStat | None = None
    gc: GcStat | None = None
    tags: Mapping[str, str] = field(default_factory=_default_tags, hash=False)

    def values(self) -> dict[str, int | float]:
        values: dict[str, int | float] = {}
        if self.cpu is not None:
            values["cpu.count"] = self.cpu.count
            values["cpu.threads"] = self.cpu.threads
            # key kept for dashboards that chart lightweight threads
            values["cpu.goroutines"] = self.cpu.python_threads
        if self.memory is not None:
            values["mem.rss"] = self.memory.rss
            values["mem.vms"] = self.memory.vms
            values["mem.blocks"] = self.memory.blocks
            if self.memory.traced_current is not None:
                values["mem.heap.alloc"] = self.memory.traced_current
            if self.memory.traced_peak is not None:
                values["mem.heap.peak"] = self.memory.traced_peak
        if self.gc is not None:
            values["mem.gc.count"] = self.gc.count
            values["mem.gc.collected"] = self.gc.collected
            values["mem.gc.uncollectable"] = self.gc.uncollectable
            for generation, pending in enumerate(self.gc.pending):
                values[f"mem.gc.gen{generation}.pending"] = pending
            values["mem.gc.frozen"] = self.gc.frozen
            values["mem.gc.garbage"] = self.gc.garbage
            values["mem.gc.pause_total"] = self.gc.pause_total_ns
            values["mem.gc.pause"] = self.gc.last_pause_ns
            values["mem.gc.last"] = self.gc.last_gc_ns
            values["mem.gc.cpu_fraction"] = self.gc.cpu_fraction
        return values

    def to_samples(self) -> list[MetricSample]:
        units = {
            "mem.rss": "bytes",
            "mem.vms": "bytes",
            "mem.heap.alloc": "bytes",
            "mem.heap.peak": "bytes",
            "mem.gc.pause_total": "ns",
            "mem.gc.pause": "ns",
            "mem.gc.last": "ns",
        }
        return [
            MetricSample(
                name=f"runtime.{key}",
                value=float(value),
                unit=units.get(key, "1"),
                timestamp=self.timestamp,
                labels=dict(self.tags),
            )
            for key, value in self.values().items()
        ]


class RuntimeCollector(BaseCollector):
    """Collects interpreter thread, memory and garbage collector metrics.

    With *gc_stats* enabled a :class:`GcPauseTracker` hook is installed at
    construction; call :meth:`close` to remove it. GC statistics are only
    read when *memory* is enabled as well.
    """

    def __init__(
        self,
        callback: Callable[[RuntimeStats], None] | None = None,
        interval_seconds: float | None = None,
        *,
        cpu: bool = True,
        memory: bool = True,
        gc_stats: bool = True,
    ) -> None:
        super().__init__(callback, interval_seconds)
        self._enable_cpu = cpu
        self._enable_memory = memory
        self._enable_gc = memory and gc_stats
        self._process = psutil.Process(os.getpid())
        self._pauses = GcPauseTracker()
        if self._enable_gc:
            self._pauses.install()

    @property
    def name(self) -> str:
        return "runtime"

    def close(self) -> None:
        self._pauses.uninstall()

    def _collect(self, now: float) -> RuntimeStats:
        started = time.perf_counter()
        cpu = self._read("cpu", self._read_cpu) if self._enable_cpu else None
        memory = self._read("memory", self._read_memory) if self._enable_memory else None
        gc_stat = self._read("gc", self._read_gc) if self._enable_gc else None
        return RuntimeStats(
            timestamp=now,
            duration_seconds=time.perf_counter() - started,
            cpu=cpu,
            memory=memory,
            gc=gc_stat,
        )

    def _read_cpu(self) -> RuntimeCpuStat:
        return RuntimeCpuStat(
            count=psutil.cpu_count() or os.cpu_count() or 0,
            threads=self._process.num_threads(),
            python_threads=threading.active_count(),
        )

    def _read_memory(self) -> RuntimeMemStat:
        info = self._process.memory_info()
        traced_current = traced_peak = None
        if tracemalloc.is_tracing():
            traced_current, traced_peak = tracemalloc.get_traced_memory()
        return RuntimeMemStat(
            rss=int(info.rss),
            vms=int(info.vms),
            blocks=sys.getallocatedblocks(),
            traced_current=traced_current,
            traced_peak=traced_peak,
        )

    def _read_gc(self) -> GcStat:
        generations = gc.get_stats()
        return GcStat(
            count=sum(g.get("collections", 0) for g in generations),
            collected=sum(g.get("collected", 0) for g in generations),
            uncollectable=sum(g.get("uncollectable", 0) for g in generations),
            pending=tuple(gc.get_count()),
            frozen=gc.get_freeze_count(),
            garbage=len(gc.garbage),
            pause_total_ns=self._pauses.pause_total_ns,
            last_pause_ns=self._pauses.last_pause_ns,
            last_gc_ns=self._pauses.last_gc_ns,
            cpu_fraction=float(self._pauses.cpu_fraction()),
        )
