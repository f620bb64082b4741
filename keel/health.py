"""Health checks of running services: a command in the container or an HTTP probe."""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from typing import Any

import requests

from keel.model import ContainerStatus, Service

log = logging.getLogger(__name__)

CHECK_TIMEOUT = 10.0
HTTP_TIMEOUT = 5.0


class HealthCheckError(Exception):
    """A health check could not be carried out."""


@dataclass
class HealthResult:
    """Health of a single service."""

    name: str
    status: ContainerStatus
    healthy: bool | None = None
    output: str = ""
    error: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON object for this result, leaving out empty fields."""
        out: dict[str, Any] = {"name": self.name, "container_status": str(self.status)}
        if self.healthy is not None:
            out["healthy"] = self.healthy
        if self.output:
            out["output"] = self.output
        if self.error:
            out["error"] = self.error
        return out


def run_health_check(
    service: Service, container: str | None, timeout: float = CHECK_TIMEOUT
) -> tuple[bool, str]:
    """Run the service's health check and return (healthy, output).

    ``container`` is the running container's name, or None if there is none.
    """
    check = service.health_check
    if check is None:
        return False, ""
    if check.type == "command":
        return run_command_check(container, check.command, timeout)
    if check.type == "http":
        return run_http_check(check.url, min(timeout, HTTP_TIMEOUT))
    raise HealthCheckError(f"unknown health check type: {check.type}")


def _text(value: object) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value if isinstance(value, str) else ""


def run_command_check(
    container: str | None, command: str, timeout: float = CHECK_TIMEOUT
) -> tuple[bool, str]:
    """Run ``sh -c command`` in the container; healthy when it exits with status 0."""
    if not container:
        raise HealthCheckError("container not found")
    argv = ["docker", "exec", container, "sh", "-c", command]
    try:
        proc = subprocess.run(
            argv,
            stdin=subprocess.DEVNULL,
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired as exc:
        return False, _text(exc.stdout) or _text(exc.stderr)
    except OSError:
        return False, ""
    output = proc.stdout or proc.stderr
    return proc.returncode == 0, output


def run_http_check(url: str, timeout: float = HTTP_TIMEOUT) -> tuple[bool, str]:
    """GET the URL; healthy for any 2xx or 3xx final status."""
    try:
        resp = requests.get(url, timeout=timeout, stream=True)
    except (requests.exceptions.MissingSchema,
            requests.exceptions.InvalidSchema,
            requests.exceptions.InvalidURL) as exc:
        raise HealthCheckError(str(exc)) from exc
    except requests.RequestException as exc:
        log.warning("health http check %s: %s", url, exc)
        return False, ""
    with resp:
        code = resp.status_code
    return 200 <= code < 400, f"HTTP {code}"