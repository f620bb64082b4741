"""Building blocks for managing Docker services locally or on a remote host over SSH."""

__version__ = "0.1.0"

__all__ = [
    "dockerstats",
    "health",
    "hostmetrics",
    "logs",
    "model",
    "oplock",
    "ordering",
    "origin",
    "remote",
    "ssh",
    "templatefuncs",
    "terminal",
    "tunnel",
    "updater",
]