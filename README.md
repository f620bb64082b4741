# keel

Python building blocks for managing Docker services on the local machine or on
a remote host reached over SSH. The package is a library: you import its
modules and call them from your own code.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

Anything that runs containers, terminals, tunnels, health checks or remote
metrics calls the `docker` and `ssh` commands, which must be on the `PATH`.
Terminal sessions need a POSIX system (they use a pseudo-terminal).

## Modules

- `keel.model`: data classes for service definitions (`Service`,
  `PortConfig`, `HealthCheck`, `LogSource`, `DevConfig`), `GlobalConfig`,
  seeders (`Seeder`, `SeederCommand`, `SeederHTTP`), the `ContainerStatus`
  enum and metrics records (`CPUMetrics`, `MemoryMetrics`, `DiskMetrics`,
  `LoadAvgMetrics`, `UptimeMetrics`, `ContainerStats`, `SystemMetrics`).
  `Service`, `GlobalConfig` and `Seeder` have `from_dict` and `to_dict` for
  their JSON objects; `to_dict` leaves out empty optional fields.
  `SystemMetrics` has `to_dict`. Malformed input raises `ValueError`.
- `keel.ssh`: `SSHTarget` (name, mode, host, user, key, jump host),
  `expand_home` for a leading `~/`, and `build_args`, which returns the ssh
  options for a target ending with `user@host`, including `-i` for a key and a
  `ProxyCommand` for a jump host.
- `keel.updater`: `parse_semver`, `is_newer`, `check` (reads the latest
  release from the redirect of `<releases>/latest`), `download_url`,
  `download`, `replace` and `fetch_release_notes`; `strip_boilerplate` drops
  Installation and Manual download sections from release notes. Failures raise
  `UpdateError`. The release locations are read from the environment
  variables `KEEL_RELEASES_URL` and `KEEL_RELEASE_API_URL`; their defaults are
  placeholders, so set them before using the network functions.
- `keel.hostmetrics`: `read_cpu` (samples over one second), `read_memory`,
  `read_disk` (root partition), `read_load_avg` and `read_uptime` for the
  local host, using psutil.
- `keel.dockerstats`: `parse_docker_stats`, `fetch_docker_stats` (runs
  `docker stats --no-stream` once, raising `DockerStatsError` on failure) and
  `StatsPoller`, which caches results for `ttl` seconds (5 by default) until
  `invalidate` is called.
- `keel.remote`: `RemoteCollector` reads CPU, memory, disk, load average and
  uptime of a remote target in a single SSH call and returns `RemoteMetrics`.
  Results are cached for 10 seconds; once expired, the stale value is returned
  while a background refresh runs. `parse_remote_metrics` and
  `parse_cpu_line` parse the script's output. Failures raise
  `RemoteMetricsError`.
- `keel.tunnel`: `Monitor` forwards a remote Docker socket to a local Unix
  socket over SSH. `start` sets `DOCKER_HOST` to that socket, then watches
  the ssh process and runs periodic `docker info` checks, reconnecting with
  exponential backoff. `status` returns a `TunnelStatus`; `subscribe` returns
  a queue of status changes (ended by `None` after `unsubscribe`). A failed
  start raises `TunnelError`.
- `keel.terminal`: `Session` runs a process on a pseudo-terminal with
  `read`, `write`, `resize` and `close` (also a context manager).
  `new_session` starts `/bin/bash`; `new_exec_session` starts a shell inside
  a container, choosing it with `detect_shell`.
- `keel.oplock`: `OpMutex` lets one long-running operation run at a time.
  `acquire(op_type)` returns a handle to release (or use in a `with` block) and
  raises `OperationBusy` if another operation holds the lock; `active_op`
  names the running operation.
- `keel.logs`: `parse_lines` (default 100, capped at 10000),
  `find_log_source`, `is_within_dir`, `list_host_log_files`,
  `list_container_log_files`, `validate_container_file` (raises
  `LogRequestError`), `format_sse` and `stream_command`, which yields a
  command's output as server-sent event frames. `LogSourceFile` and
  `LogSourceInfo` describe resolved log sources.
- `keel.origin`: `check_ws_origin` accepts an empty origin, the request's own
  host or a loopback origin; `parse_control_message` returns `(rows, cols)`
  for a terminal resize message.
- `keel.health`: `run_health_check`, `run_command_check` (runs `sh -c` in the
  container) and `run_http_check` (healthy on 2xx or 3xx), returning
  `(healthy, output)`; `HealthResult` with `to_dict`; `HealthCheckError`.
- `keel.ordering`: `partition_by_group` (infra first, rest second),
  `sort_by_start_order` (unset order 0 goes last), `group_services`,
  `parse_environment` for `KEY=VALUE` lines and `parse_volumes`.
- `keel.templatefuncs`: `progress_color`, `format_bytes` and
  `format_uptime` for display.

## Example

```python
from keel.model import Service
from keel.ordering import partition_by_group
from keel.templatefuncs import format_bytes, format_uptime

services = [
    Service.from_dict({"name": "redis", "hostname": "keel-redis",
                       "image": "redis:7", "network": "keel-net",
                       "group": "infra", "ports": {"internal": 6379, "external": 6379}}),
    Service.from_dict({"name": "api", "hostname": "keel-api",
                       "image": "api:latest", "network": "keel-net",
                       "ports": {"internal": 8080, "external": 8080}}),
]

infra, rest = partition_by_group(services)
print([s.name for s in infra], [s.name for s in rest])  # ['redis'] ['api']
print(format_bytes(3 * 1024 ** 3))  # 3.0 GB
print(format_uptime(90061))         # 1d 1h 1m
```

## What this package does not do

There is no command-line program, web dashboard or HTTP server here: the
package provides the pieces such a tool is built from, not the tool. It also
does not store or load service and seeder definitions on disk, does not start,
stop or remove containers itself, and does not run seeders; callers read the
JSON files and drive Docker on their own, using the models and helpers above.