"""Delta arithmetic over monotonically increasing counters."""

from __future__ import annotations

from typing import Any, Sequence

CPU_CATEGORIES = ("user", "system", "nice", "iowait", "irq", "softirq", "steal", "idle")


def cpu_total(times: Sequence[float]) -> float:
    """Sum every time bucket the platform reports (user, system, ..., idle)."""
    return float(sum(times))


def cpu_percentages(prev: Any, now: Any) -> dict[str, float]:
    """Per-category CPU usage between two cumulative ``cpu_times`` readings.

    Categories missing on the platform (``iowait`` outside Linux, for
    example) report ``0.0``, as does every category when no time elapsed.
    """
    elapsed = cpu_total(now) - cpu_total(prev)
    result = dict.fromkeys(CPU_CATEGORIES, 0.0)
    if elapsed <= 0:
        return result
    for category in CPU_CATEGORIES:
        # iowait is known to step backwards on Linux
        spent = max(0.0, getattr(now, category, 0.0) - getattr(prev, category, 0.0))
        result[category] = spent * 100 / elapsed
    return result


def counter_delta(prev: Sequence[int], now: Sequence[int]) -> tuple[int, ...]:
    """Element-wise ``now - prev``; a counter that went backwards yields 0."""
    return tuple(max(0, b - a) for a, b in zip(prev, now))


class CpuTimesDelta:
    """Keeps the previous CPU times reading and turns new ones into percentages."""

    def __init__(self) -> None:
        self._prev: Any = None

    def update(self, times: Any) -> dict[str, float]:
        prev = self._prev if self._prev is not None else times
        self._prev = times
        return cpu_percentages(prev, times)


class CounterDelta:
    """Per-key delta tracker for cumulative counter tuples.

    The first reading for a key becomes its own baseline, so a newly seen
    interface reports zeros instead of its lifetime totals. Keys are never
    evicted.
    """

    def __init__(self) -> None:
        self._prev: dict[str, tuple[int, ...]] = {}

    def __contains__(self, key: str) -> bool:
        return key in self._prev

    def __len__(self) -> int:
        return len(self._prev)

    def update(self, key: str, counters: Sequence[int]) -> tuple[int, ...]:
        current = tuple(counters)
        prev = self._prev.get(key, current)
        self._prev[key] = current
        return counter_delta(prev, current)
