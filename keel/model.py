"""Service, seeder and metrics records with their JSON shapes."""

from __future__ import annotations

import enum
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any


class ContainerStatus(str, enum.Enum):
    """Runtime state of a Docker container."""

    RUNNING = "running"
    RESTARTING = "restarting"
    STOPPED = "stopped"
    UNHEALTHY = "unhealthy"
    MISSING = "missing"

    def __str__(self) -> str:
        return self.value


def _mapping(data: Any, what: str) -> Mapping[str, Any]:
    if not isinstance(data, Mapping):
        raise ValueError(f"{what}: expected a JSON object, got {type(data).__name__}")
    return data


def _str(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"field {key!r}: expected a string, got {type(value).__name__}")
    return value


def _int(data: Mapping[str, Any], key: str) -> int:
    value = data.get(key)
    if value is None:
        return 0
    if isinstance(value, bool):
        raise ValueError(f"field {key!r}: expected an integer, got a boolean")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    raise ValueError(f"field {key!r}: expected an integer, got {value!r}")


def _str_list(data: Mapping[str, Any], key: str) -> list[str]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ValueError(f"field {key!r}: expected a list of strings")
    return list(value)


def _str_map(data: Mapping[str, Any], key: str) -> dict[str, str]:
    value = data.get(key)
    if value is None:
        return {}
    if not isinstance(value, Mapping) or not all(
        isinstance(k, str) and isinstance(v, str) for k, v in value.items()
    ):
        raise ValueError(f"field {key!r}: expected an object of strings")
    return dict(value)


def _obj_list(data: Mapping[str, Any], key: str) -> list[Mapping[str, Any]]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError(f"field {key!r}: expected a list")
    return [_mapping(item, key) for item in value]


def _put(out: dict[str, Any], key: str, value: Any) -> None:
    """Store value under key unless it is empty (zero, blank, None or empty container)."""
    if value:
        out[key] = value


@dataclass
class PortConfig:
    """Internal and external port mapping."""

    internal: int = 0
    external: int = 0

    @classmethod
    def _parse(cls, data: Any) -> PortConfig:
        data = _mapping(data, "ports")
        return cls(internal=_int(data, "internal"), external=_int(data, "external"))

    def _dump(self) -> dict[str, Any]:
        return {"internal": self.internal, "external": self.external}


@dataclass
class HealthCheck:
    """How to check whether a service is healthy ("command" or "http")."""

    type: str = ""
    command: str = ""
    url: str = ""
    interval: int = 0
    retries: int = 0
    start_period: int = 0

    @classmethod
    def _parse(cls, data: Any) -> HealthCheck:
        data = _mapping(data, "health_check")
        return cls(
            type=_str(data, "type"),
            command=_str(data, "command"),
            url=_str(data, "url"),
            interval=_int(data, "interval"),
            retries=_int(data, "retries"),
            start_period=_int(data, "start_period"),
        )

    def _dump(self) -> dict[str, Any]:
        out: dict[str, Any] = {"type": self.type}
        _put(out, "command", self.command)
        _put(out, "url", self.url)
        out["interval"] = self.interval
        out["retries"] = self.retries
        out["start_period"] = self.start_period
        return out


@dataclass
class LogSource:
    """Where to read logs for a service: docker output or a file."""

    name: str = ""
    type: str = ""
    path: str = ""
    host_path: str = ""

    @classmethod
    def _parse(cls, data: Any) -> LogSource:
        data = _mapping(data, "logs")
        return cls(
            name=_str(data, "name"),
            type=_str(data, "type"),
            path=_str(data, "path"),
            host_path=_str(data, "host_path"),
        )

    def _dump(self) -> dict[str, Any]:
        out: dict[str, Any] = {"name": self.name, "type": self.type}
        _put(out, "path", self.path)
        _put(out, "host_path", self.host_path)
        return out


@dataclass
class DevConfig:
    """How to run a service in local development mode."""

    command: list[str] = field(default_factory=list)
    cap_add: list[str] = field(default_factory=list)
    dockerfile: list[str] = field(default_factory=list)

    @classmethod
    def _parse(cls, data: Any) -> DevConfig:
        data = _mapping(data, "dev")
        return cls(
            command=_str_list(data, "command"),
            cap_add=_str_list(data, "cap_add"),
            dockerfile=_str_list(data, "dockerfile"),
        )

    def _dump(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        _put(out, "command", list(self.command))
        _put(out, "cap_add", list(self.cap_add))
        _put(out, "dockerfile", list(self.dockerfile))
        return out


@dataclass
class Service:
    """A single container definition, stored as its own JSON file."""

    name: str = ""
    group: str = ""
    hostname: str = ""
    image: str = ""
    registry: str = ""
    network: str = ""
    ports: PortConfig = field(default_factory=PortConfig)
    extra_ports: list[PortConfig] = field(default_factory=list)
    environment: dict[str, str] = field(default_factory=dict)
    volumes: list[str] = field(default_factory=list)
    command: str = ""
    files: list[str] = field(default_factory=list)
    health_check: HealthCheck | None = None
    logs: list[LogSource] = field(default_factory=list)
    ram_estimate_mb: int = 0
    dashboard_url: str = ""
    dev: DevConfig | None = None
    start_order: int = 0
    platform: str = ""
    network_aliases: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> Service:
        """Build a service from its decoded JSON object."""
        data = _mapping(data, "service")
        ports = data.get("ports")
        health = data.get("health_check")
        dev = data.get("dev")
        return cls(
            name=_str(data, "name"),
            group=_str(data, "group"),
            hostname=_str(data, "hostname"),
            image=_str(data, "image"),
            registry=_str(data, "registry"),
            network=_str(data, "network"),
            ports=PortConfig._parse(ports) if ports is not None else PortConfig(),
            extra_ports=[PortConfig._parse(p) for p in _obj_list(data, "extra_ports")],
            environment=_str_map(data, "environment"),
            volumes=_str_list(data, "volumes"),
            command=_str(data, "command"),
            files=_str_list(data, "files"),
            health_check=HealthCheck._parse(health) if health is not None else None,
            logs=[LogSource._parse(s) for s in _obj_list(data, "logs")],
            ram_estimate_mb=_int(data, "ram_estimate_mb"),
            dashboard_url=_str(data, "dashboard_url"),
            dev=DevConfig._parse(dev) if dev is not None else None,
            start_order=_int(data, "start_order"),
            platform=_str(data, "platform"),
            network_aliases=_str_list(data, "network_aliases"),
        )

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON object for this service, leaving out empty optional fields."""
        out: dict[str, Any] = {"name": self.name}
        _put(out, "group", self.group)
        out["hostname"] = self.hostname
        out["image"] = self.image
        _put(out, "registry", self.registry)
        out["network"] = self.network
        out["ports"] = self.ports._dump()
        _put(out, "extra_ports", [p._dump() for p in self.extra_ports])
        _put(out, "environment", dict(self.environment))
        _put(out, "volumes", list(self.volumes))
        _put(out, "command", self.command)
        _put(out, "files", list(self.files))
        if self.health_check is not None:
            out["health_check"] = self.health_check._dump()
        _put(out, "logs", [s._dump() for s in self.logs])
        _put(out, "ram_estimate_mb", self.ram_estimate_mb)
        _put(out, "dashboard_url", self.dashboard_url)
        if self.dev is not None:
            out["dev"] = self.dev._dump()
        _put(out, "start_order", self.start_order)
        _put(out, "platform", self.platform)
        _put(out, "network_aliases", list(self.network_aliases))
        return out


@dataclass
class GlobalConfig:
    """Environment-wide settings shared across all containers."""

    network: str = ""
    network_subnet: str = ""

    @classmethod
    def from_dict(cls, data: Any) -> GlobalConfig:
        """Build the global config from its decoded JSON object."""
        data = _mapping(data, "global config")
        return cls(network=_str(data, "network"), network_subnet=_str(data, "network_subnet"))

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON object for the global config."""
        out: dict[str, Any] = {"network": self.network}
        _put(out, "network_subnet", self.network_subnet)
        return out


@dataclass
class SeederHTTP:
    """An HTTP request executed as a seeder step."""

    url: str = ""
    method: str = ""
    headers: dict[str, str] = field(default_factory=dict)
    body: str = ""
    expect_status: int = 0

    @classmethod
    def _parse(cls, data: Any) -> SeederHTTP:
        data = _mapping(data, "http")
        return cls(
            url=_str(data, "url"),
            method=_str(data, "method"),
            headers=_str_map(data, "headers"),
            body=_str(data, "body"),
            expect_status=_int(data, "expect_status"),
        )

    def _dump(self) -> dict[str, Any]:
        out: dict[str, Any] = {"url": self.url}
        _put(out, "method", self.method)
        _put(out, "headers", dict(self.headers))
        _put(out, "body", self.body)
        _put(out, "expect_status", self.expect_status)
        return out


@dataclass
class SeederCommand:
    """A single initialization step."""

    name: str = ""
    command: str = ""
    script: str = ""
    interpreter: str = ""
    http: SeederHTTP | None = None

    @classmethod
    def _parse(cls, data: Any) -> SeederCommand:
        data = _mapping(data, "commands")
        http = data.get("http")
        return cls(
            name=_str(data, "name"),
            command=_str(data, "command"),
            script=_str(data, "script"),
            interpreter=_str(data, "interpreter"),
            http=SeederHTTP._parse(http) if http is not None else None,
        )

    def _dump(self) -> dict[str, Any]:
        out: dict[str, Any] = {"name": self.name}
        _put(out, "command", self.command)
        _put(out, "script", self.script)
        _put(out, "interpreter", self.interpreter)
        if self.http is not None:
            out["http"] = self.http._dump()
        return out


@dataclass
class Seeder:
    """Initialization commands for an infrastructure container."""

    name: str = ""
    target: str = ""
    description: str = ""
    order: int = 0
    commands: list[SeederCommand] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> Seeder:
        """Build a seeder from its decoded JSON object."""
        data = _mapping(data, "seeder")
        return cls(
            name=_str(data, "name"),
            target=_str(data, "target"),
            description=_str(data, "description"),
            order=_int(data, "order"),
            commands=[SeederCommand._parse(c) for c in _obj_list(data, "commands")],
        )

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON object for this seeder."""
        out: dict[str, Any] = {"name": self.name, "target": self.target}
        _put(out, "description", self.description)
        _put(out, "order", self.order)
        out["commands"] = [c._dump() for c in self.commands]
        return out


@dataclass
class CPUMetrics:
    """CPU usage."""

    usage_percent: float = 0.0


@dataclass
class MemoryMetrics:
    """RAM usage."""

    total_bytes: int = 0
    used_bytes: int = 0
    available_bytes: int = 0
    usage_percent: float = 0.0


@dataclass
class DiskMetrics:
    """Disk usage."""

    total_bytes: int = 0
    used_bytes: int = 0
    available_bytes: int = 0
    usage_percent: float = 0.0


@dataclass
class LoadAvgMetrics:
    """Load averages over 1, 5 and 15 minutes."""

    load1: float = 0.0
    load5: float = 0.0
    load15: float = 0.0


@dataclass
class UptimeMetrics:
    """Host uptime."""

    uptime_seconds: float = 0.0


@dataclass
class ContainerStats:
    """Per-container resource usage as reported by docker stats."""

    name: str = ""
    cpu_perc: str = ""
    mem_usage: str = ""
    mem_perc: str = ""
    net_io: str = ""
    block_io: str = ""


@dataclass
class SystemMetrics:
    """All system resource metrics together."""

    cpu: CPUMetrics = field(default_factory=CPUMetrics)
    memory: MemoryMetrics = field(default_factory=MemoryMetrics)
    disk: DiskMetrics = field(default_factory=DiskMetrics)
    load_avg: LoadAvgMetrics = field(default_factory=LoadAvgMetrics)
    uptime: UptimeMetrics = field(default_factory=UptimeMetrics)
    containers: list[ContainerStats] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON object for these metrics."""
        return {
            "cpu": {"usage_percent": self.cpu.usage_percent},
            "memory": {
                "total_bytes": self.memory.total_bytes,
                "used_bytes": self.memory.used_bytes,
                "available_bytes": self.memory.available_bytes,
                "usage_percent": self.memory.usage_percent,
            },
            "disk": {
                "total_bytes": self.disk.total_bytes,
                "used_bytes": self.disk.used_bytes,
                "available_bytes": self.disk.available_bytes,
                "usage_percent": self.disk.usage_percent,
            },
            "load_avg": {
                "load1": self.load_avg.load1,
                "load5": self.load_avg.load5,
                "load15": self.load_avg.load15,
            },
            "uptime": {"uptime_seconds": self.uptime.uptime_seconds},
            "containers": [
                {
                    "name": c.name,
                    "cpu_perc": c.cpu_perc,
                    "mem_usage": c.mem_usage,
                    "mem_perc": c.mem_perc,
                    "net_io": c.net_io,
                    "block_io": c.block_io,
                }
                for c in self.containers
            ],
        }