"""Local host metrics: CPU, memory, disk, load average and uptime."""

from __future__ import annotations

import time

import psutil

from keel.model import CPUMetrics, DiskMetrics, LoadAvgMetrics, MemoryMetrics, UptimeMetrics


def read_cpu() -> CPUMetrics:
    """Sample overall CPU usage over one second."""
    return CPUMetrics(usage_percent=float(psutil.cpu_percent(interval=1.0)))


def read_memory() -> MemoryMetrics:
    """Read RAM usage."""
    vm = psutil.virtual_memory()
    return MemoryMetrics(
        total_bytes=int(vm.total),
        used_bytes=int(vm.used),
        available_bytes=int(vm.available),
        usage_percent=float(vm.percent),
    )


def read_disk() -> DiskMetrics:
    """Read disk usage of the root partition."""
    usage = psutil.disk_usage("/")
    return DiskMetrics(
        total_bytes=int(usage.total),
        used_bytes=int(usage.used),
        available_bytes=int(usage.free),
        usage_percent=float(usage.percent),
    )


def read_load_avg() -> LoadAvgMetrics:
    """Read the 1, 5 and 15 minute load averages."""
    load1, load5, load15 = psutil.getloadavg()
    return LoadAvgMetrics(load1=float(load1), load5=float(load5), load15=float(load15))


def read_uptime() -> UptimeMetrics:
    """Read the number of whole seconds since the host booted."""
    seconds = int(time.time() - psutil.boot_time())
    return UptimeMetrics(uptime_seconds=float(max(seconds, 0)))