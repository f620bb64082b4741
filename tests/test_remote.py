import threading

import pytest

from keel.remote import (
    RemoteCollector,
    RemoteMetricsError,
    parse_cpu_line,
    parse_remote_metrics,
)
from keel.ssh import SSHTarget

SAMPLE = """cpu  7894 123 4567 890123 456 0 78 0 0 0
cpu  7900 123 4570 890200 456 0 80 0 0 0
MemTotal:       16384000 kB
MemFree:         2048000 kB
MemAvailable:    8192000 kB
Buffers:          512000 kB
---LOADAVG---
1.25 0.85 0.50 2/345 12345
---UPTIME---
86400.50 172800.00
---DISK---
/dev/sda1 500000000000 200000000000 250000000000 45% /
"""


def test_parse_cpu():
    m = parse_remote_metrics(SAMPLE)
    assert 0 <= m.cpu.usage_percent <= 100


def test_parse_memory():
    m = parse_remote_metrics(SAMPLE)
    assert m.memory.total_bytes == 16384000 * 1024
    assert m.memory.available_bytes == 8192000 * 1024
    assert m.memory.used_bytes == m.memory.total_bytes - m.memory.available_bytes
    assert 0 < m.memory.usage_percent < 100


def test_parse_load_avg():
    m = parse_remote_metrics(SAMPLE)
    assert m.load_avg.load1 == 1.25
    assert m.load_avg.load5 == 0.85
    assert m.load_avg.load15 == 0.50


def test_parse_uptime():
    m = parse_remote_metrics(SAMPLE)
    assert m.uptime.uptime_seconds == 86400.50


def test_parse_disk():
    m = parse_remote_metrics(SAMPLE)
    assert m.disk.total_bytes == 500000000000
    assert m.disk.used_bytes == 200000000000
    assert m.disk.available_bytes == 250000000000
    assert m.disk.usage_percent > 0


def test_parse_too_short():
    with pytest.raises(RemoteMetricsError):
        parse_remote_metrics("short")


def test_parse_cpu_line_valid():
    idle, total = parse_cpu_line("cpu  7894 123 4567 890123 456 0 78 0 0 0")
    assert idle == 890123
    assert total != 0
    assert total >= idle


def test_parse_cpu_line_too_short():
    assert parse_cpu_line("cpu 1 2") == (0, 0)


def test_parse_empty_sections():
    raw = "\n".join(
        [
            "cpu  100 0 50 800 10 0 5 0 0 0",
            "cpu  110 0 55 810 10 0 6 0 0 0",
            "MemTotal:       8192000 kB",
            "MemAvailable:   4096000 kB",
            "---LOADAVG---",
            "---UPTIME---",
            "---DISK---",
        ]
    )
    m = parse_remote_metrics(raw)
    assert m.cpu.usage_percent >= 0
    assert m.memory.total_bytes > 0
    assert m.load_avg.load1 == 0
    assert m.uptime.uptime_seconds == 0
    assert m.disk.total_bytes == 0


TARGET = SSHTarget(name="prod", mode="remote", host="host.example.com", ssh_user="user")


class _Runner:
    def __init__(self, outputs):
        self.outputs = list(outputs)
        self.calls = []
        self.second = threading.Event()

    def __call__(self, argv, timeout):
        self.calls.append(argv)
        if len(self.calls) >= 2:
            self.second.set()
        out = self.outputs[min(len(self.calls), len(self.outputs)) - 1]
        if isinstance(out, Exception):
            raise out
        return out


def test_collector_builds_ssh_command_and_caches():
    runner = _Runner([SAMPLE])
    collector = RemoteCollector(TARGET, ttl=60.0, runner=runner)
    first = collector.read_all()
    second = collector.read_all()
    assert len(runner.calls) == 1
    argv = runner.calls[0]
    assert argv[0] == "ssh"
    assert "user@host.example.com" in argv
    assert "/proc/stat" in argv[-1]
    assert first.load_avg.load1 == 1.25
    assert second == first


def test_collector_set_target_drops_cache():
    runner = _Runner([SAMPLE])
    collector = RemoteCollector(TARGET, ttl=60.0, runner=runner)
    collector.read_all()
    other = SSHTarget(name="stage", mode="remote", host="stage.example.com", ssh_user="user")
    collector.set_target(other)
    collector.read_all()
    assert len(runner.calls) == 2
    assert "user@stage.example.com" in runner.calls[1]


def test_collector_error_is_raised_and_cached():
    runner = _Runner([RemoteMetricsError("ssh metrics: refused")])
    collector = RemoteCollector(TARGET, ttl=60.0, runner=runner)
    with pytest.raises(RemoteMetricsError, match="refused"):
        collector.read_all()
    with pytest.raises(RemoteMetricsError, match="refused"):
        collector.read_all()
    assert len(runner.calls) == 1


def test_collector_returns_stale_and_refreshes_in_background():
    changed = SAMPLE.replace("1.25 0.85 0.50", "3.00 2.00 1.00")
    runner = _Runner([SAMPLE, changed])
    collector = RemoteCollector(TARGET, ttl=0.0, runner=runner)
    first = collector.read_all()
    stale = collector.read_all()
    assert stale.load_avg.load1 == first.load_avg.load1 == 1.25
    assert runner.second.wait(timeout=5.0)
    assert len(runner.calls) == 2