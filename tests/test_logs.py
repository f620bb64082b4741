import os
import subprocess
import sys
from unittest.mock import patch

import pytest

from keel.logs import (
    DEFAULT_LOG_LINES,
    MAX_LOG_LINES,
    LogRequestError,
    LogSourceFile,
    find_log_source,
    format_sse,
    is_within_dir,
    list_container_log_files,
    list_host_log_files,
    parse_lines,
    stream_command,
    validate_container_file,
)
from keel.model import LogSource


def test_parse_lines_default():
    assert parse_lines("") == DEFAULT_LOG_LINES


def test_parse_lines_valid():
    assert parse_lines("lines=250") == 250


def test_parse_lines_exceeds_max():
    assert parse_lines("lines=99999") == MAX_LOG_LINES


def test_parse_lines_invalid():
    assert parse_lines("lines=abc") == DEFAULT_LOG_LINES


def test_parse_lines_zero():
    assert parse_lines("lines=0") == DEFAULT_LOG_LINES


def test_parse_lines_negative():
    assert parse_lines("lines=-5") == DEFAULT_LOG_LINES


def test_parse_lines_mapping():
    assert parse_lines({"lines": "250"}) == 250
    assert parse_lines({"lines": ["300"]}) == 300
    assert parse_lines({}) == DEFAULT_LOG_LINES


def test_find_log_source_found():
    sources = [
        LogSource(name="container", type="docker"),
        LogSource(name="app", type="file", path="/var/log/app.log"),
    ]
    got = find_log_source(sources, "app")
    assert got is not None
    assert got.path == "/var/log/app.log"


def test_find_log_source_not_found():
    assert find_log_source([LogSource(name="container", type="docker")], "nonexistent") is None


def test_find_log_source_empty():
    assert find_log_source(None, "app") is None


def test_is_within_dir(tmp_path):
    inner = tmp_path / "logs"
    inner.mkdir()
    f = inner / "a.log"
    f.write_text("x")
    assert is_within_dir(str(f), str(inner)) is True
    assert is_within_dir(str(inner), str(inner)) is True
    assert is_within_dir(str(inner / "missing.log"), str(inner)) is True
    assert is_within_dir(str(tmp_path / "other.log"), str(inner)) is False
    assert is_within_dir(str(inner / ".." / "other.log"), str(inner)) is False


def test_is_within_dir_symlink_escape(tmp_path):
    inner = tmp_path / "logs"
    inner.mkdir()
    outside = tmp_path / "secret.txt"
    outside.write_text("x")
    link = inner / "link.log"
    os.symlink(outside, link)
    assert is_within_dir(str(link), str(inner)) is False


def test_list_host_log_files(tmp_path):
    (tmp_path / "b.log").write_text("b")
    sub = tmp_path / "sub"
    sub.mkdir()
    (sub / "a.log").write_text("a")
    (tmp_path / "a.log").write_text("a")
    files = list_host_log_files(str(tmp_path))
    assert [f.name for f in files] == ["a.log", "b.log", "sub/a.log"]
    assert all(os.path.isfile(f.path) for f in files)
    assert files[2].path == str(sub / "a.log")


def test_list_host_log_files_not_a_directory(tmp_path):
    f = tmp_path / "single.log"
    f.write_text("x")
    assert list_host_log_files(str(f)) == []
    assert list_host_log_files(str(tmp_path / "missing")) == []


def test_list_container_log_files():
    done = subprocess.CompletedProcess(
        args=[], returncode=0, stdout="/var/log/app/a.log\n/var/log/app/b.log\n", stderr=""
    )
    with patch("keel.logs.subprocess.run", return_value=done) as run:
        files = list_container_log_files("keel-app", "/var/log/app")
    assert files == [
        LogSourceFile(name="a.log", path="/var/log/app/a.log"),
        LogSourceFile(name="b.log", path="/var/log/app/b.log"),
    ]
    assert run.call_args.args[0] == [
        "docker", "exec", "keel-app", "find", "/var/log/app", "-type", "f",
    ]


def test_list_container_log_files_failure():
    failed = subprocess.CompletedProcess(args=[], returncode=1, stdout="", stderr="no such")
    with patch("keel.logs.subprocess.run", return_value=failed):
        assert list_container_log_files("keel-app", "/var/log/app") == []


def test_validate_container_file_allowed():
    sources = [LogSource(name="app", type="file", path="/var/log/app/")]
    assert validate_container_file("/var/log/app/./x.log", sources) == "/var/log/app/x.log"


def test_validate_container_file_traversal():
    sources = [LogSource(name="app", type="file", path="/var/log/app")]
    with pytest.raises(LogRequestError, match="invalid file path") as info:
        validate_container_file("../etc/passwd", sources)
    assert info.value.status == 400


def test_validate_container_file_outside():
    sources = [LogSource(name="app", type="file", path="/var/log/app")]
    with pytest.raises(LogRequestError, match="not within allowed log directory"):
        validate_container_file("/etc/hosts", sources)


def test_format_sse():
    assert format_sse("hello") == "data: hello\n\n"
    assert format_sse("boom", event="app-error") == "event: app-error\ndata: boom\n\n"


def test_stream_command_lines():
    argv = [sys.executable, "-c", "print('a'); print('b\\r')"]
    assert list(stream_command(argv)) == ["data: a\n\n", "data: b\n\n"]


def test_stream_command_start_failure(tmp_path):
    frames = list(stream_command([str(tmp_path / "no-such-program")]))
    assert len(frames) == 1
    assert frames[0].startswith("event: app-error\ndata: failed to start:")


def test_stream_command_timeout():
    argv = [sys.executable, "-c", "print('a')"]
    assert list(stream_command(argv, timeout=0)) == [
        "event: app-error\ndata: stream timeout\n\n"
    ]