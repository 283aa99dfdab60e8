"""Tests for the counter delta arithmetic."""

from collections import namedtuple

from appmetrics.collector.delta import (
    CPU_CATEGORIES,
    CounterDelta,
    CpuTimesDelta,
    counter_delta,
    cpu_percentages,
    cpu_total,
)

scputimes = namedtuple(
    "scputimes",
    ["user", "nice", "system", "idle", "iowait", "irq", "softirq", "steal", "guest", "guest_nice"],
)
# platform without iowait/irq buckets
mac_cputimes = namedtuple("scputimes", ["user", "nice", "system", "idle"])


def _times(**kwargs):
    values = dict.fromkeys(scputimes._fields, 0.0)
    values.update(kwargs)
    return scputimes(**values)


def test_cpu_total_sums_every_bucket():
    t = scputimes(1.0, 2.0, 3.0, 4.0, 5.0, 6.0, 7.0, 8.0, 9.0, 10.0)
    assert cpu_total(t) == 55.0


def test_cpu_percentages():
    prev = _times(user=10.0, system=5.0, idle=85.0)
    now = _times(user=30.0, system=15.0, idle=155.0)
    pct = cpu_percentages(prev, now)
    # elapsed total = 200 - 100 = 100
    assert pct["user"] == 20.0
    assert pct["system"] == 10.0
    assert pct["idle"] == 70.0
    assert pct["iowait"] == 0.0


def test_cpu_percentages_no_elapsed_time():
    t = _times(user=10.0, idle=90.0)
    pct = cpu_percentages(t, t)
    assert set(pct) == set(CPU_CATEGORIES)
    assert all(v == 0.0 for v in pct.values())


def test_cpu_percentages_missing_categories():
    prev = mac_cputimes(1.0, 0.0, 1.0, 8.0)
    now = mac_cputimes(3.0, 0.0, 2.0, 15.0)
    pct = cpu_percentages(prev, now)
    assert pct["user"] == 20.0
    assert pct["steal"] == 0.0
    assert pct["iowait"] == 0.0


def test_cpu_times_delta_first_update_is_zero():
    delta = CpuTimesDelta()
    first = delta.update(_times(user=100.0, idle=900.0))
    assert all(v == 0.0 for v in first.values())
    second = delta.update(_times(user=150.0, idle=950.0))
    assert second["user"] == 50.0
    assert second["idle"] == 50.0


def test_counter_delta():
    assert counter_delta((10, 20), (15, 20)) == (5, 0)


def test_counter_delta_reset_is_zero():
    assert counter_delta((100, 5), (3, 9)) == (0, 4)


def test_counter_delta_tracker_new_key_baseline():
    delta = CounterDelta()
    assert delta.update("eth0", (1000, 2000, 10, 20)) == (0, 0, 0, 0)
    assert "eth0" in delta
    assert delta.update("eth0", (1500, 2100, 15, 21)) == (500, 100, 5, 1)
    # a new key starts from its own baseline
    assert delta.update("wlan0", (99999, 1, 1, 1)) == (0, 0, 0, 0)
    assert len(delta) == 2
