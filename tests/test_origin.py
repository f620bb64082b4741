import pytest

from keel.origin import check_ws_origin, parse_control_message

HOST = "myapp.example.com:8080"


def test_empty_origin():
    assert check_ws_origin(HOST, "") is True


def test_same_host():
    assert check_ws_origin(HOST, "http://myapp.example.com:8080") is True


def test_same_host_different_port():
    assert check_ws_origin(HOST, "http://myapp.example.com:3000") is True


def test_localhost():
    assert check_ws_origin(HOST, "http://localhost:3000") is True


def test_127001():
    assert check_ws_origin(HOST, "http://127.0.0.1:8080") is True


def test_ipv6_loopback():
    assert check_ws_origin(HOST, "http://[::1]:8080") is True


def test_cross_origin_rejected():
    assert check_ws_origin(HOST, "http://evil.example.com") is False


def test_invalid_origin():
    assert check_ws_origin(HOST, "://invalid") is False


def test_https():
    assert check_ws_origin("myapp.example.com:443", "https://myapp.example.com") is True


def test_invalid_port_rejected():
    assert check_ws_origin(HOST, "http://myapp.example.com:abc") is False


def test_resize_message():
    assert parse_control_message('{"type":"resize","cols":120,"rows":40}') == (40, 120)
    assert parse_control_message(b'{"type":"resize","cols":80,"rows":24}') == (24, 80)


@pytest.mark.parametrize(
    "text",
    [
        "not json",
        "[1, 2]",
        '{"type":"resize","cols":0,"rows":24}',
        '{"type":"resize","cols":80}',
        '{"type":"other","cols":80,"rows":24}',
        '{"type":"resize","cols":-1,"rows":24}',
        '{"type":"resize","cols":70000,"rows":24}',
        '{"type":"resize","cols":80.5,"rows":24}',
        '{"type":5,"cols":80,"rows":24}',
    ],
)
def test_rejected_messages(text):
    assert parse_control_message(text) is None