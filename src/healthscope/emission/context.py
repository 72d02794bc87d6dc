"""
Execution context capture for emitted records.

Two depths:

- **partial**: user, host and pid.  Cheap enough for SUCCESS and CHECK
  records, which are emitted at high frequency.
- **full**: partial plus shell, working directory, prefixed environment
  variables and load / memory / disk metrics.  Used for OPERATION, FAILURE,
  ERROR and snapshot levels, where the environment explains the outcome.

Every probe degrades to ``"unknown"``; capture never raises.
"""

from __future__ import annotations

import getpass
import os
import shutil
import socket
import sys
from typing import Any


UNKNOWN = "unknown"
PROC_MEMINFO = "/proc/meminfo"


def current_user() -> str:
    user = os.environ.get("USER")
    if user:
        return user
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return UNKNOWN


def current_host() -> str:
    try:
        return socket.gethostname() or UNKNOWN
    except OSError:
        return UNKNOWN


def user_identifier(user: str, host: str, pid: int) -> str:
    """Format the ``user@host:pid`` identifier used in record headers."""
    return f"{user}@{host}:{pid}"


def _shell_description() -> str:
    shell = os.environ.get("SHELL", UNKNOWN)
    try:
        tty = sys.stdin is not None and sys.stdin.isatty()
    except ValueError:
        tty = False
    interactive = "interactive" if tty else "non-interactive"
    login = "login" if os.environ.get("SHLVL") == "1" else "non-login"
    return f"{shell} ({interactive}, {login})"


def _cwd() -> str:
    try:
        return os.getcwd()
    except OSError:
        return UNKNOWN


def _load_average() -> str:
    try:
        one, five, fifteen = os.getloadavg()
    except (AttributeError, OSError):
        return UNKNOWN
    return f"{one:.2f}, {five:.2f}, {fifteen:.2f}"


def _memory_usage() -> str:
    values: dict[str, int] = {}
    try:
        with open(PROC_MEMINFO, encoding="utf-8") as fh:
            for line in fh:
                name, _, rest = line.partition(":")
                if name in ("MemTotal", "MemAvailable"):
                    values[name] = int(rest.split()[0])
    except (OSError, ValueError, IndexError):
        return UNKNOWN
    if "MemTotal" not in values or "MemAvailable" not in values:
        return UNKNOWN
    total_mb = values["MemTotal"] // 1024
    used_mb = total_mb - values["MemAvailable"] // 1024
    return f"{used_mb}MB / {total_mb}MB"


def _disk_usage(path: str = ".") -> str:
    try:
        usage = shutil.disk_usage(path)
    except OSError:
        return UNKNOWN
    gb = 1024 ** 3
    percent = (usage.used * 100 // usage.total) if usage.total else 0
    return f"{usage.used / gb:.1f}G / {usage.total / gb:.1f}G ({percent}%)"


def capture_environment(prefix: str) -> dict[str, str]:
    """Environment variables starting with ``prefix``, sorted by name."""
    if not prefix:
        return {}
    return {
        key: value
        for key, value in sorted(os.environ.items())
        if key.startswith(prefix)
    }


def capture_partial() -> dict[str, Any]:
    return {
        "user": current_user(),
        "host": current_host(),
        "pid": os.getpid(),
    }


def capture_full(env_prefix: str = "") -> dict[str, Any]:
    context = capture_partial()
    context["shell"] = _shell_description()
    context["cwd"] = _cwd()
    environment = capture_environment(env_prefix)
    if environment:
        context["environment"] = environment
    context["system"] = {
        "load": _load_average(),
        "memory": _memory_usage(),
        "disk": _disk_usage(),
    }
    return context
