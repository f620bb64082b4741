from keel.hostmetrics import read_cpu, read_disk, read_load_avg, read_memory, read_uptime


def test_read_cpu_returns_valid_percentage():
    cpu = read_cpu()
    assert 0 <= cpu.usage_percent <= 100


def test_read_memory_returns_valid_struct():
    mem = read_memory()
    assert mem.total_bytes > 0
    assert 0 <= mem.usage_percent <= 100
    assert mem.used_bytes <= mem.total_bytes


def test_read_disk_returns_valid_struct():
    disk = read_disk()
    assert disk.total_bytes > 0
    assert 0 <= disk.usage_percent <= 100


def test_read_load_avg_non_negative():
    la = read_load_avg()
    assert la.load1 >= 0
    assert la.load5 >= 0
    assert la.load15 >= 0


def test_read_uptime_positive():
    up = read_uptime()
    assert up.uptime_seconds > 0


def test_read_cpu_usage_is_reasonable():
    cpu = read_cpu()
    assert 0 <= cpu.usage_percent <= 100