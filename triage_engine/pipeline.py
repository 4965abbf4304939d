# triage_engine/pipeline.py

"""
Connection pipeline: filter -> resolve owning process -> classify -> sort.

``run`` works on an already-enumerated sequence of records. ``scan`` pulls the
records from a connection source first and reports enumeration failure
explicitly instead of raising, so callers can tell an unreadable table apart
from a host that really has no connections.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import AbstractSet, List, Optional, Sequence

from .classifier import classify
from .models import UNKNOWN_IDENTITY, ClassifiedRecord, ClassifierConfig, ConnectionRecord, ProcessIdentity
from .resolver import Resolver, resolve
from .sources import EnumerationError


@dataclass(frozen=True)
class ScanReport:
    records: List[ClassifiedRecord] = field(default_factory=list)
    enumerated: int = 0
    error: Optional[str] = None

    @property
    def enumeration_failed(self) -> bool:
        return self.error is not None

    @property
    def flagged(self) -> List[ClassifiedRecord]:
        return [record for record in self.records if record.flagged]


def sort_key(record: ClassifiedRecord):
    return (not record.flagged, record.identity.name.casefold())


def _safe_resolve(resolver: Resolver, pid: Optional[int], logger: Optional[logging.Logger]) -> ProcessIdentity:
    try:
        return resolver(pid)
    except Exception as exc:
        if logger:
            logger.warning("Resolver failed for pid %s, using Unknown: %s", pid, exc)
        return UNKNOWN_IDENTITY


def run(
    connections: Sequence[ConnectionRecord],
    suspicious_ports: AbstractSet[int],
    resolver: Resolver = resolve,
    workers: int = 1,
    logger: Optional[logging.Logger] = None,
) -> List[ClassifiedRecord]:
    usable = [conn for conn in connections if conn.local_port is not None]
    dropped = len(connections) - len(usable)
    if logger and dropped:
        logger.debug("Dropped %d connection(s) without a local port", dropped)

    pids = [conn.owner_pid for conn in usable]
    if workers > 1 and len(usable) > 1:
        with ThreadPoolExecutor(max_workers=workers) as pool:
            identities = list(pool.map(lambda pid: _safe_resolve(resolver, pid, logger), pids))
    else:
        identities = [_safe_resolve(resolver, pid, logger) for pid in pids]

    classified = [
        ClassifiedRecord(connection=conn, identity=identity, flags=classify(conn, identity, suspicious_ports))
        for conn, identity in zip(usable, identities)
    ]
    classified.sort(key=sort_key)

    if logger:
        flagged = sum(1 for record in classified if record.flagged)
        logger.info("Classified %d connection(s), %d flagged", len(classified), flagged)
    return classified


def scan(
    source,
    config: Optional[ClassifierConfig] = None,
    resolver: Resolver = resolve,
    workers: int = 1,
    logger: Optional[logging.Logger] = None,
) -> ScanReport:
    config = config or ClassifierConfig()
    try:
        connections = source.snapshot()
    except EnumerationError as exc:
        if logger:
            logger.error("Connection enumeration failed: %s", exc)
        return ScanReport(records=[], enumerated=0, error=str(exc))

    records = run(
        connections,
        config.suspicious_ports,
        resolver=resolver,
        workers=workers,
        logger=logger,
    )
    return ScanReport(records=records, enumerated=len(connections))


__all__ = ["ScanReport", "run", "scan", "sort_key"]
