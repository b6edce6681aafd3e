"""Creation of SNMP sessions connected to an agent."""

from __future__ import annotations

import random
import socket
import time

from netmanage.snmp.session import Session, SessionConfig
from netmanage.snmp.trace import DEFAULT_LOGGING_HOOKS, NO_OP_LOGGING_HOOKS, SessionTrace
from netmanage.snmp.types import Version

_NETWORKS = {
    "udp": (socket.AF_UNSPEC, socket.SOCK_DGRAM),
    "udp4": (socket.AF_INET, socket.SOCK_DGRAM),
    "udp6": (socket.AF_INET6, socket.SOCK_DGRAM),
    "tcp": (socket.AF_UNSPEC, socket.SOCK_STREAM),
    "tcp4": (socket.AF_INET, socket.SOCK_STREAM),
    "tcp6": (socket.AF_INET6, socket.SOCK_STREAM),
}


def _split_target(target: str) -> tuple[str | None, int]:
    host, sep, port_text = target.rpartition(":")
    if not sep:
        raise ValueError(f"address {target}: missing port in address")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    if not port_text.isdigit() or int(port_text) > 65535:
        raise ValueError(f"address {target}: invalid port")
    return host or None, int(port_text)


def _dial(network: str, target: str) -> socket.socket:
    try:
        family, socktype = _NETWORKS[network]
    except KeyError:
        raise ValueError(f"unknown network {network!r}") from None
    host, port = _split_target(target)
    error: OSError | None = None
    for fam, kind, proto, _, sockaddr in socket.getaddrinfo(host, port, family, socktype):
        sock = socket.socket(fam, kind, proto)
        try:
            sock.connect(sockaddr)
        except OSError as exc:
            sock.close()
            error = exc
            continue
        return sock
    raise error if error is not None else OSError(f"no address found for {target}")


def new_session(
    target: str,
    *,
    network: str = "udp",
    timeout: float = 5.0,
    retries: int = 3,
    version: Version = Version.SNMPV2C,
    community: str = "public",
    trace: SessionTrace = DEFAULT_LOGGING_HOOKS,
) -> Session:
    """Open a session for managing the agent at ``target`` ("host:port")."""
    config = SessionConfig(
        network=network,
        address=target,
        version=version,
        community=community,
        timeout=timeout,
        retries=retries,
        trace=trace.merged(NO_OP_LOGGING_HOOKS),
    )
    hooks = config.trace
    hooks.connect_start(config)
    start = time.monotonic()
    try:
        conn = _dial(network, target)
    except (OSError, ValueError) as exc:
        hooks.connect_done(config, exc, time.monotonic() - start)
        hooks.error("Network Connection", config, exc)
        raise
    hooks.connect_done(config, None, time.monotonic() - start)
    return Session(conn, config, next_request_id=random.randrange(2**31))