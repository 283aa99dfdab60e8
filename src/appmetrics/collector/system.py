"""Operating-system resource collector."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Mapping

import psutil

from .base import BaseCollector, MetricSample, Snapshot
from .delta import CounterDelta, CpuTimesDelta

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CpuStat:
    """CPU usage percentages over the last interval."""

    user: float = 0.0
    system: float = 0.0
    nice: float = 0.0
    iowait: float = 0.0
    irq: float = 0.0
    softirq: float = 0.0
    steal: float = 0.0
    idle: float = 0.0


@dataclass(frozen=True)
class LoadStat:
    load1: float
    load5: float
    load15: float


@dataclass(frozen=True)
class MemStat:
    total: int
    available: int
    used: int


@dataclass(frozen=True)
class SwapStat:
    total: int
    free: int
    used: int


@dataclass(frozen=True)
class DiskStat:
    total: int
    free: int
    used: int


@dataclass(frozen=True)
class BandwidthStat:
    """Per-interval network counter deltas for one interface."""

    bytes_sent: int
    bytes_recv: int
    packets_sent: int
    packets_recv: int


@dataclass(frozen=True)
class SystemStats(Snapshot):
    """One cycle of operating-system metrics."""

    kind = "system"

    cpu: CpuStat | None = None
    load: LoadStat | None = None
    memory: MemStat | None = None
    swap: SwapStat | None = None
    disks: Mapping[str, DiskStat] | None = field(default=None, hash=False)
    bandwidth: Mapping[str, BandwidthStat] | None = field(default=None, hash=False)

    def values(self) -> dict[str, int | float]:
        values: dict[str, int | float] = {}
        if self.cpu is not None:
            for field_name, value in vars(self.cpu).items():
                values[f"cpu.{field_name}"] = value
        if self.load is not None:
            values["load.load1"] = self.load.load1
            values["load.load5"] = self.load.load5
            values["load.load15"] = self.load.load15
        if self.memory is not None:
            values["mem.total"] = self.memory.total
            values["mem.available"] = self.memory.available
            values["mem.used"] = self.memory.used
        if self.swap is not None:
            values["swap.total"] = self.swap.total
            values["swap.free"] = self.swap.free
            values["swap.used"] = self.swap.used
        for mountpoint, disk in (self.disks or {}).items():
            values[f"disk.{mountpoint}.total"] = disk.total
            values[f"disk.{mountpoint}.free"] = disk.free
            values[f"disk.{mountpoint}.used"] = disk.used
        for iface, bw in (self.bandwidth or {}).items():
            values[f"net.{iface}.bytes_sent"] = bw.bytes_sent
            values[f"net.{iface}.bytes_recv"] = bw.bytes_recv
            values[f"net.{iface}.packets_sent"] = bw.packets_sent
            values[f"net.{iface}.packets_recv"] = bw.packets_recv
        return values

    def to_samples(self) -> list[MetricSample]:
        now = self.timestamp
        samples: list[MetricSample] = []

        def add(name: str, value: float, unit: str, description: str, **labels: str) -> None:
            samples.append(MetricSample(
                name=f"system.{name}",
                value=float(value),
                unit=unit,
                timestamp=now,
                labels=labels,
                description=description,
            ))

        if self.cpu is not None:
            for field_name, value in vars(self.cpu).items():
                add(f"cpu.{field_name}", value, "%", f"CPU time spent in {field_name}")
        if self.load is not None:
            add("load.load1", self.load.load1, "1", "Load average 1 minute")
            add("load.load5", self.load.load5, "1", "Load average 5 minutes")
            add("load.load15", self.load.load15, "1", "Load average 15 minutes")
        if self.memory is not None:
            add("mem.total", self.memory.total, "bytes", "Total memory in bytes")
            add("mem.available", self.memory.available, "bytes", "Memory available in bytes")
            add("mem.used", self.memory.used, "bytes", "Memory used in bytes")
        if self.swap is not None:
            add("swap.total", self.swap.total, "bytes", "Total swap in bytes")
            add("swap.free", self.swap.free, "bytes", "Free swap in bytes")
            add("swap.used", self.swap.used, "bytes", "Swap used in bytes")
        for mountpoint, disk in (self.disks or {}).items():
            add("disk.total", disk.total, "bytes", "Partition size in bytes", mountpoint=mountpoint)
            add("disk.free", disk.free, "bytes", "Partition free bytes", mountpoint=mountpoint)
            add("disk.used", disk.used, "bytes", "Partition used bytes", mountpoint=mountpoint)
        for iface, bw in (self.bandwidth or {}).items():
            add("net.bytes_sent", bw.bytes_sent, "bytes", "Bytes sent during the interval", interface=iface)
            add("net.bytes_recv", bw.bytes_recv, "bytes", "Bytes received during the interval", interface=iface)
            add("net.packets_sent", bw.packets_sent, "1", "Packets sent during the interval", interface=iface)
            add("net.packets_recv", bw.packets_recv, "1", "Packets received during the interval", interface=iface)
        return samples


class SystemCollector(BaseCollector):
    """Collects CPU, load, memory, swap, disk and network metrics.

    CPU percentages and network figures are deltas against the previous
    call on the same instance, so the first snapshot reports zeros for
    them. Partitions are listed again on every cycle unless *partitions*
    pins them, which lets new mounts show up without a restart.
    """

    def __init__(
        self,
        callback: Callable[[SystemStats], None] | None = None,
        interval_seconds: float | None = None,
        *,
        cpu: bool = True,
        load: bool = True,
        memory: bool = True,
        swap: bool = True,
        disk: bool = True,
        network: bool = True,
        partitions: list[str] | None = None,
        all_partitions: bool = False,
    ) -> None:
        super().__init__(callback, interval_seconds)
        self._enable_cpu = cpu
        self._enable_load = load
        self._enable_memory = memory
        self._enable_swap = swap
        self._enable_disk = disk
        self._enable_network = network
        self._partitions = list(partitions) if partitions else None
        self._all_partitions = all_partitions

        self._cpu_delta = CpuTimesDelta()
        self._net_delta = CounterDelta()

    @property
    def name(self) -> str:
        return "system"

    def _collect(self, now: float) -> SystemStats:
        started = time.perf_counter()
        cpu = self._read("cpu", self._read_cpu) if self._enable_cpu else None
        load = self._read("load", self._read_load) if self._enable_load else None
        memory = self._read("memory", self._read_memory) if self._enable_memory else None
        swap = self._read("swap", self._read_swap) if self._enable_swap else None
        disks = self._read("disk", self._read_disks) if self._enable_disk else None
        bandwidth = self._read("network", self._read_network) if self._enable_network else None
        return SystemStats(
            timestamp=now,
            duration_seconds=time.perf_counter() - started,
            cpu=cpu,
            load=load,
            memory=memory,
            swap=swap,
            disks=disks,
            bandwidth=bandwidth,
        )

    def _read_cpu(self) -> CpuStat:
        return CpuStat(**self._cpu_delta.update(psutil.cpu_times(percpu=False)))

    def _read_load(self) -> LoadStat:
        load1, load5, load15 = psutil.getloadavg()
        return LoadStat(load1=float(load1), load5=float(load5), load15=float(load15))

    def _read_memory(self) -> MemStat:
        mem = psutil.virtual_memory()
        return MemStat(total=int(mem.total), available=int(mem.available), used=int(mem.used))

    def _read_swap(self) -> SwapStat:
        swap = psutil.swap_memory()
        return SwapStat(total=int(swap.total), free=int(swap.free), used=int(swap.used))

    def _mountpoints(self) -> list[str]:
        if self._partitions is not None:
            return self._partitions
        return [p.mountpoint for p in psutil.disk_partitions(all=self._all_partitions)]

    def _read_disks(self) -> Mapping[str, DiskStat]:
        disks: dict[str, DiskStat] = {}
        for mountpoint in self._mountpoints():
            try:
                usage = psutil.disk_usage(mountpoint)
            except (OSError, psutil.Error):
                logger.debug("Disk usage for %s unavailable", mountpoint, exc_info=True)
                continue
            disks[mountpoint] = DiskStat(
                total=int(usage.total), free=int(usage.free), used=int(usage.used)
            )
        return MappingProxyType(disks)

    def _read_network(self) -> Mapping[str, BandwidthStat]:
        counters: dict[str, Any] = psutil.net_io_counters(pernic=True)
        bandwidth: dict[str, BandwidthStat] = {}
        for iface, nio in counters.items():
            if iface not in self._net_delta:
                logger.debug("New network interface %s", iface)
            sent, recv, psent, precv = self._net_delta.update(
                iface, (nio.bytes_sent, nio.bytes_recv, nio.packets_sent, nio.packets_recv)
            )
            bandwidth[iface] = BandwidthStat(
                bytes_sent=sent, bytes_recv=recv, packets_sent=psent, packets_recv=precv
            )
        return MappingProxyType(bandwidth)
