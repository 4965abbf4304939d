# triage_engine/models.py

"""
Typed records passed between the stages of the triage pipeline.

ConnectionRecord -> (resolver) -> ProcessIdentity -> (classifier) -> ClassifiedRecord

All records are frozen; each stage builds new values instead of mutating the
previous stage's output.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, Optional, Tuple

UNKNOWN_PROCESS = "Unknown"


class ConnectionState(Enum):
    ESTABLISHED = "ESTABLISHED"
    SYN_SENT = "SYN_SENT"
    SYN_RECV = "SYN_RECV"
    FIN_WAIT1 = "FIN_WAIT1"
    FIN_WAIT2 = "FIN_WAIT2"
    TIME_WAIT = "TIME_WAIT"
    CLOSE = "CLOSE"
    CLOSE_WAIT = "CLOSE_WAIT"
    LAST_ACK = "LAST_ACK"
    LISTEN = "LISTEN"
    CLOSING = "CLOSING"
    NONE = "NONE"
    DELETE_TCB = "DELETE_TCB"
    BOUND = "BOUND"
    UNKNOWN = "UNKNOWN"

    @property
    def label(self) -> str:
        return _STATE_LABELS[self]

    @classmethod
    def parse(cls, value: Optional[str]) -> "ConnectionState":
        """Accept a psutil constant, a display label or an enum name."""
        if isinstance(value, cls):
            return value
        if not value:
            return cls.UNKNOWN
        key = str(value).strip().upper()
        if key in cls.__members__:
            return cls[key]
        return _LABEL_LOOKUP.get(key.replace("_", ""), cls.UNKNOWN)


_STATE_LABELS = {
    ConnectionState.ESTABLISHED: "Established",
    ConnectionState.SYN_SENT: "SynSent",
    ConnectionState.SYN_RECV: "SynReceived",
    ConnectionState.FIN_WAIT1: "FinWait1",
    ConnectionState.FIN_WAIT2: "FinWait2",
    ConnectionState.TIME_WAIT: "TimeWait",
    ConnectionState.CLOSE: "Closed",
    ConnectionState.CLOSE_WAIT: "CloseWait",
    ConnectionState.LAST_ACK: "LastAck",
    ConnectionState.LISTEN: "Listen",
    ConnectionState.CLOSING: "Closing",
    ConnectionState.NONE: "None",
    ConnectionState.DELETE_TCB: "DeleteTCB",
    ConnectionState.BOUND: "Bound",
    ConnectionState.UNKNOWN: "Unknown",
}

_LABEL_LOOKUP = {label.upper(): state for state, label in _STATE_LABELS.items()}


def _optional_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(str(value).strip())
    except ValueError:
        return None


class FlagKind(str, Enum):
    CHECK_PORT = "CHECK_PORT"
    LISTENING = "LISTENING"
    PUBLIC_REMOTE = "PUBLIC_REMOTE"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class ConnectionRecord:
    local_address: str
    local_port: Optional[int]
    remote_address: str = ""
    remote_port: int = 0
    state: ConnectionState = ConnectionState.UNKNOWN
    owner_pid: Optional[int] = None

    @property
    def local_endpoint(self) -> str:
        if self.local_port is None:
            return "-"
        return f"{self.local_address}:{self.local_port}"

    @property
    def remote_endpoint(self) -> str:
        if not self.remote_address and not self.remote_port:
            return "-"
        return f"{self.remote_address}:{self.remote_port}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "local_address": self.local_address,
            "local_port": self.local_port,
            "remote_address": self.remote_address,
            "remote_port": self.remote_port,
            "state": self.state.value,
            "owner_pid": self.owner_pid,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConnectionRecord":
        """Blank or non-numeric ports and pids become None (port 0 for the remote)."""
        return cls(
            local_address=str(data.get("local_address") or ""),
            local_port=_optional_int(data.get("local_port")),
            remote_address=str(data.get("remote_address") or ""),
            remote_port=_optional_int(data.get("remote_port")) or 0,
            state=ConnectionState.parse(data.get("state")),
            owner_pid=_optional_int(data.get("owner_pid")),
        )


@dataclass(frozen=True)
class ProcessIdentity:
    name: str = UNKNOWN_PROCESS
    path: str = ""

    @property
    def resolved(self) -> bool:
        return self.name != UNKNOWN_PROCESS


UNKNOWN_IDENTITY = ProcessIdentity()


@dataclass(frozen=True)
class ClassifiedRecord:
    connection: ConnectionRecord
    identity: ProcessIdentity
    flags: Tuple[FlagKind, ...] = ()

    @property
    def flagged(self) -> bool:
        return bool(self.flags)

    @property
    def flags_text(self) -> str:
        return ",".join(flag.value for flag in self.flags)

    def to_row(self) -> Dict[str, str]:
        """Report columns, in display order."""
        pid = self.connection.owner_pid
        return {
            "Process": self.identity.name,
            "PID": str(pid) if pid is not None else "N/A",
            "ProcessPath": self.identity.path,
            "State": self.connection.state.label,
            "LocalAddress": self.connection.local_endpoint,
            "RemoteAddress": self.connection.remote_endpoint,
            "Flags": self.flags_text,
        }


# Reverse shells, botnet C2/IRC, unencrypted relays and proxies.
DEFAULT_SUSPICIOUS_PORTS: FrozenSet[int] = frozenset(
    {23, 1080, 1337, 3128, 4444, 5555, 6666, 6667, 6697, 9001, 12345, 31337}
)


@dataclass(frozen=True)
class ClassifierConfig:
    suspicious_ports: FrozenSet[int] = field(default=DEFAULT_SUSPICIOUS_PORTS)

    @classmethod
    def from_ports(cls, ports: Iterable[int]) -> "ClassifierConfig":
        return cls(suspicious_ports=frozenset(int(port) for port in ports))


__all__ = [
    "UNKNOWN_PROCESS",
    "UNKNOWN_IDENTITY",
    "DEFAULT_SUSPICIOUS_PORTS",
    "ConnectionState",
    "FlagKind",
    "ConnectionRecord",
    "ProcessIdentity",
    "ClassifiedRecord",
    "ClassifierConfig",
]
