# triage_engine/sources.py

"""
Connection sources: where a snapshot of the TCP table comes from.

A source exposes ``snapshot()`` returning ConnectionRecords and raises
EnumerationError when the table cannot be read at all.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Iterable, List, Union

import psutil

from .models import ConnectionRecord, ConnectionState


class EnumerationError(RuntimeError):
    """The connection table could not be read."""


def _split_addr(addr: Any):
    if not addr:
        return "", None
    ip = getattr(addr, "ip", None)
    port = getattr(addr, "port", None)
    if ip is None and isinstance(addr, tuple) and len(addr) >= 2:
        ip, port = addr[0], addr[1]
    return str(ip or ""), port


def record_from_psutil(conn: Any) -> ConnectionRecord:
    local_ip, local_port = _split_addr(conn.laddr)
    remote_ip, remote_port = _split_addr(conn.raddr)
    return ConnectionRecord(
        local_address=local_ip,
        local_port=local_port,
        remote_address=remote_ip,
        remote_port=remote_port or 0,
        state=ConnectionState.parse(conn.status),
        owner_pid=conn.pid,
    )


class PsutilConnectionSource:
    def __init__(self, kind: str = "tcp"):
        self.kind = kind

    def snapshot(self) -> List[ConnectionRecord]:
        try:
            connections = psutil.net_connections(kind=self.kind)
        except psutil.AccessDenied as exc:
            raise EnumerationError(f"Access denied reading the connection table (try elevated privileges): {exc}") from exc
        except (psutil.Error, OSError, NotImplementedError) as exc:
            raise EnumerationError(f"Connection table unavailable: {exc}") from exc

        return [record_from_psutil(conn) for conn in connections]


class JsonSnapshotSource:
    """Replays connections saved by ``dump_snapshot``."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path).expanduser()

    def snapshot(self) -> List[ConnectionRecord]:
        try:
            with open(self.path, "r", encoding="utf-8") as handle:
                payload = json.load(handle)
        except (OSError, ValueError) as exc:
            raise EnumerationError(f"Failed to read snapshot '{self.path}': {exc}") from exc

        if isinstance(payload, dict):
            payload = payload.get("connections", [])
        if not isinstance(payload, list):
            raise EnumerationError(f"Snapshot '{self.path}' does not contain a connection list")

        # non-object entries are not connections; the pipeline drops portless ones
        return [ConnectionRecord.from_dict(item) for item in payload if isinstance(item, dict)]


def dump_snapshot(records: Iterable[ConnectionRecord], path: Union[str, Path]) -> Path:
    target = Path(path).expanduser()
    target.parent.mkdir(parents=True, exist_ok=True)
    with open(target, "w", encoding="utf-8") as handle:
        json.dump({"connections": [record.to_dict() for record in records]}, handle, indent=2)
    return target


__all__ = [
    "EnumerationError",
    "PsutilConnectionSource",
    "JsonSnapshotSource",
    "dump_snapshot",
    "record_from_psutil",
]
