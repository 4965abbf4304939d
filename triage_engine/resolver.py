# triage_engine/resolver.py

"""
Best-effort pid -> process identity lookup against the live process table.

Name and executable path are read independently: a process whose name is
visible but whose path is not (access denied, kernel threads, system
processes) still resolves with an empty path.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

import psutil

from .models import UNKNOWN_IDENTITY, UNKNOWN_PROCESS, ProcessIdentity

Resolver = Callable[[Optional[int]], ProcessIdentity]


def _read_name(proc: psutil.Process) -> str:
    try:
        return proc.name() or UNKNOWN_PROCESS
    except psutil.Error:
        return UNKNOWN_PROCESS


def _read_path(proc: psutil.Process) -> str:
    try:
        return proc.exe() or ""
    except (psutil.Error, OSError):
        return ""


def resolve(pid: Optional[int], logger: Optional[logging.Logger] = None) -> ProcessIdentity:
    if pid is None:
        return UNKNOWN_IDENTITY

    try:
        proc = psutil.Process(pid)
    except (psutil.Error, ValueError, TypeError) as exc:
        if logger:
            logger.debug("Process %s not resolvable: %s", pid, exc)
        return UNKNOWN_IDENTITY

    with proc.oneshot():
        name = _read_name(proc)
        path = _read_path(proc)

    if logger and not path:
        logger.debug("No executable path for pid %s (%s)", pid, name)
    return ProcessIdentity(name=name, path=path)


__all__ = ["Resolver", "resolve"]
