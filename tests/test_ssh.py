import os

from keel.ssh import SSHTarget, build_args, expand_home

BASE_OPTIONS = [
    "-o", "StrictHostKeyChecking=accept-new",
    "-o", "BatchMode=yes",
    "-o", "IdentityAgent=none",
    "-o", "LogLevel=ERROR",
]


def test_expand_home_tilde(monkeypatch, tmp_path):
    monkeypatch.setenv("HOME", str(tmp_path))
    assert expand_home("~/.ssh/id_ed25519") == os.path.join(str(tmp_path), ".ssh", "id_ed25519")


def test_expand_home_leaves_other_paths():
    assert expand_home("/etc/keys/id") == "/etc/keys/id"
    assert expand_home("~other/x") == "~other/x"
    assert expand_home("~") == "~"
    assert expand_home("") == ""


def test_build_args_plain():
    target = SSHTarget(name="prod", mode="remote", host="host.example.com", ssh_user="deploy")
    args = build_args(target)
    assert args[:8] == BASE_OPTIONS
    assert args[8:] == [f"{target.ssh_user}@{target.host}"]


def test_build_args_with_key(monkeypatch, tmp_path):
    monkeypatch.setenv("HOME", str(tmp_path))
    target = SSHTarget(host="host.example.com", ssh_user="deploy", ssh_key="~/.ssh/key")
    args = build_args(target)
    assert args[:8] == BASE_OPTIONS
    assert args[8:10] == ["-i", expand_home(target.ssh_key)]
    assert args[-1] == f"{target.ssh_user}@{target.host}"
    assert not any(a.startswith("ProxyCommand=") for a in args)


def test_build_args_with_jump_no_key():
    target = SSHTarget(host="host.example.com", ssh_user="deploy", ssh_jump="bastion.example.com")
    args = build_args(target)
    assert "-i" not in args
    assert args[-3:-1] == [
        "-o",
        "ProxyCommand=ssh -o StrictHostKeyChecking=accept-new -o BatchMode=yes "
        "-o LogLevel=ERROR -W %h:%p " + target.ssh_jump,
    ]


def test_build_args_with_jump_and_key(monkeypatch, tmp_path):
    monkeypatch.setenv("HOME", str(tmp_path))
    target = SSHTarget(
        host="host.example.com", ssh_user="deploy", ssh_key="~/k", ssh_jump="bastion.example.com"
    )
    args = build_args(target)
    proxy = next(a for a in args if a.startswith("ProxyCommand="))
    assert " -i " + expand_home(target.ssh_key) + " " in proxy
    assert proxy.endswith(" -W %h:%p " + target.ssh_jump)
    assert args.index(proxy) < len(args) - 1