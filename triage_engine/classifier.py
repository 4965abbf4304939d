# triage_engine/classifier.py

"""
Heuristic rules applied to one connection and its owning process.

Each rule is an independent predicate. ``classify`` evaluates every rule in
``RULES`` order, so the resulting flags always read port, listen, public-remote.
"""

from __future__ import annotations

import ipaddress
from typing import AbstractSet, Callable, Optional, Tuple, Union

from .models import ConnectionRecord, ConnectionState, FlagKind, ProcessIdentity

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]

LOOPBACK_NETWORKS = (
    ipaddress.ip_network("127.0.0.0/8"),
    ipaddress.ip_network("::1/128"),
)
PRIVATE_NETWORKS = (
    ipaddress.ip_network("10.0.0.0/8"),
    ipaddress.ip_network("172.16.0.0/12"),
    ipaddress.ip_network("192.168.0.0/16"),
)
BLANK_ADDRESSES = frozenset({"", "0.0.0.0", "::"})


def _parse_address(address: str) -> Optional[IPAddress]:
    try:
        parsed = ipaddress.ip_address(address.strip())
    except ValueError:
        return None
    if isinstance(parsed, ipaddress.IPv6Address):
        if parsed.ipv4_mapped is not None:
            return parsed.ipv4_mapped
        if parsed.scope_id:
            # fe80::1%eth0 -> fe80::1
            return ipaddress.IPv6Address(str(parsed).split("%", 1)[0])
    return parsed


def _in_networks(address: str, networks) -> bool:
    parsed = _parse_address(address)
    if parsed is None:
        return False
    return any(parsed.version == net.version and parsed in net for net in networks)


def is_blank(address: Optional[str]) -> bool:
    if address is None:
        return True
    address = address.strip()
    if address in BLANK_ADDRESSES:
        return True
    parsed = _parse_address(address)
    return parsed is not None and parsed.is_unspecified


def is_loopback(address: str) -> bool:
    return _in_networks(address, LOOPBACK_NETWORKS)


def is_private(address: str) -> bool:
    """RFC 1918 IPv4 ranges only; IPv6 ULA/link-local are not exempt."""
    return _in_networks(address, PRIVATE_NETWORKS)


def is_suspicious_port(record: ConnectionRecord, identity: ProcessIdentity, suspicious_ports: AbstractSet[int]) -> bool:
    return record.remote_port in suspicious_ports


def is_listening(record: ConnectionRecord, identity: ProcessIdentity, suspicious_ports: AbstractSet[int]) -> bool:
    return record.state is ConnectionState.LISTEN


def is_public_remote(record: ConnectionRecord, identity: ProcessIdentity, suspicious_ports: AbstractSet[int]) -> bool:
    address = record.remote_address
    if is_blank(address):
        return False
    if is_loopback(address):
        return False
    if is_private(address):
        return False
    return True


Rule = Callable[[ConnectionRecord, ProcessIdentity, AbstractSet[int]], bool]

RULES: Tuple[Tuple[FlagKind, Rule], ...] = (
    (FlagKind.CHECK_PORT, is_suspicious_port),
    (FlagKind.LISTENING, is_listening),
    (FlagKind.PUBLIC_REMOTE, is_public_remote),
)


def classify(
    record: ConnectionRecord,
    identity: ProcessIdentity,
    suspicious_ports: AbstractSet[int],
) -> Tuple[FlagKind, ...]:
    flags = []
    for kind, rule in RULES:
        if rule(record, identity, suspicious_ports) and kind not in flags:
            flags.append(kind)
    return tuple(flags)


__all__ = [
    "RULES",
    "classify",
    "is_blank",
    "is_loopback",
    "is_private",
    "is_suspicious_port",
    "is_listening",
    "is_public_remote",
]
