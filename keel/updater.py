"""Release checks and self-update of the installed program."""

from __future__ import annotations

import contextlib
import os
import platform
import re
import shutil
import sys
import tempfile
from dataclasses import dataclass

import requests

RELEASES_BASE = os.environ.get("KEEL_RELEASES_URL", "https://releases.example.com/keel/releases")
RELEASE_API = os.environ.get(
    "KEEL_RELEASE_API_URL", "https://api.example.com/repos/keel/releases/tags"
)

_INT = re.compile(r"[+-]?\d+")
_STOP_HEADINGS = (
    "## installation",
    "### installation",
    "## manual download",
    "### manual download",
)
_SEPARATORS = ("---", "***", "___")
_ARCH_NAMES = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "aarch64": "arm64",
    "arm64": "arm64",
    "i386": "386",
    "i686": "386",
    "x86": "386",
    "armv6l": "arm",
    "armv7l": "arm",
}


class UpdateError(Exception):
    """A version check, download or replacement failed."""


@dataclass
class CheckResult:
    """Outcome of a version check."""

    current: str
    latest: str
    update_url: str
    available: bool


def check(current: str) -> CheckResult:
    """Find the latest release from the ``/latest`` redirect and compare with ``current``."""
    try:
        resp = requests.get(RELEASES_BASE + "/latest", timeout=5, allow_redirects=False)
    except requests.RequestException as exc:
        raise UpdateError(f"fetch version: {exc}") from exc
    location = resp.headers.get("Location") or ""
    if not location:
        raise UpdateError("fetch version: no redirect from /latest")
    latest = location.split("/")[-1]
    return CheckResult(
        current=current,
        latest=latest,
        update_url=download_url(latest),
        available=current != "dev" and is_newer(latest, current),
    )


def parse_semver(version: str) -> tuple[int, int, int] | None:
    """Split ``major.minor.patch`` (optional leading ``v``) into integers, or return None."""
    if version.startswith("v"):
        version = version[1:]
    parts = version.split(".", 2)
    if len(parts) != 3 or not all(_INT.fullmatch(p) for p in parts):
        return None
    major, minor, patch = (int(p) for p in parts)
    return major, minor, patch


def is_newer(a: str, b: str) -> bool:
    """Report whether version ``a`` is newer than ``b``; unparsable versions differ if unequal."""
    pa, pb = parse_semver(a), parse_semver(b)
    if pa is None or pb is None:
        return a != b
    return pa > pb


def _platform() -> tuple[str, str]:
    os_name = platform.system().lower() or sys.platform
    machine = platform.machine().lower()
    return os_name, _ARCH_NAMES.get(machine, machine)


def download_url(version: str) -> str:
    """Return the release asset URL for this platform."""
    os_name, arch = _platform()
    return f"{RELEASES_BASE}/download/{version}/keel-{os_name}-{arch}"


def _executable() -> str:
    candidate = sys.argv[0] if sys.argv else ""
    if candidate and os.path.isfile(candidate):
        return os.path.realpath(candidate)
    raise UpdateError("find executable: cannot determine the running program's path")


def download(version: str) -> str:
    """Download the release binary to a temporary file and return its path.

    The file is placed next to the running program when possible, so that the
    later replacement is an atomic rename; otherwise in the system temp dir.
    """
    url = download_url(version)
    try:
        resp = requests.get(url, timeout=120, stream=True)
    except requests.RequestException as exc:
        raise UpdateError(f"download: {exc}") from exc
    with resp:
        if resp.status_code != 200:
            raise UpdateError(f"download: status {resp.status_code}")
        exe = _executable()
        try:
            tmp = tempfile.NamedTemporaryFile(
                dir=os.path.dirname(exe), prefix="keel-update-", delete=False
            )
        except OSError:
            try:
                tmp = tempfile.NamedTemporaryFile(prefix="keel-update-", delete=False)
            except OSError as exc:
                raise UpdateError(f"create temp: {exc}") from exc
        try:
            with tmp:
                for chunk in resp.iter_content(chunk_size=64 * 1024):
                    if chunk:
                        tmp.write(chunk)
        except (OSError, requests.RequestException) as exc:
            with contextlib.suppress(OSError):
                os.remove(tmp.name)
            raise UpdateError(f"write: {exc}") from exc
    try:
        os.chmod(tmp.name, 0o755)
    except OSError as exc:
        with contextlib.suppress(OSError):
            os.remove(tmp.name)
        raise UpdateError(f"chmod: {exc}") from exc
    return tmp.name


def replace(tmp_path: str) -> None:
    """Replace the running program with the downloaded file.

    Renames when possible; falls back to copying across filesystems.
    """
    exe = _executable()
    try:
        os.replace(tmp_path, exe)
        return
    except OSError:
        pass
    try:
        src = open(tmp_path, "rb")
    except OSError as exc:
        raise UpdateError(f"open update: {exc}") from exc
    with src:
        try:
            dst = open(exe, "wb")
        except OSError as exc:
            raise UpdateError(f"create binary: {exc}") from exc
        try:
            with dst:
                shutil.copyfileobj(src, dst)
        except OSError as exc:
            raise UpdateError(f"write binary: {exc}") from exc
    with contextlib.suppress(OSError):
        os.remove(tmp_path)


def fetch_release_notes(version: str) -> str:
    """Return the release notes (markdown) for a version tag, without install sections."""
    url = f"{RELEASE_API}/{version}"
    try:
        resp = requests.get(
            url, timeout=10, headers={"Accept": "application/vnd.github+json"}
        )
    except requests.RequestException as exc:
        raise UpdateError(f"fetch release notes: {exc}") from exc
    if resp.status_code != 200:
        raise UpdateError(f"fetch release notes: status {resp.status_code}")
    try:
        release = resp.json()
    except ValueError as exc:
        raise UpdateError(f"parse release notes: {exc}") from exc
    if not isinstance(release, dict):
        raise UpdateError("parse release notes: expected a JSON object")
    body = release.get("body")
    return strip_boilerplate(body if isinstance(body, str) else "")


def strip_boilerplate(body: str) -> str:
    """Drop Installation and Manual download sections, keeping only what's new."""
    lines = body.split("\n")
    kept: list[str] = []
    for i, line in enumerate(lines):
        lower = line.strip().lower()
        if lower.startswith(_STOP_HEADINGS):
            break
        if lower in _SEPARATORS:
            following = next((l.strip().lower() for l in lines[i + 1:] if l.strip()), "")
            if following.startswith(_STOP_HEADINGS):
                break
        kept.append(line)
    return "\n".join(kept).strip()