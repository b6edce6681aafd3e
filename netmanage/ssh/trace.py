"""Hooks invoked by the SSH server to report listening, accept and channel events."""

from __future__ import annotations

import contextlib
import contextvars
import dataclasses
import logging
import threading
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import Any, Optional

logger = logging.getLogger(__name__)

ListenedHook = Callable[[str, Optional[BaseException]], None]
StartAcceptingHook = Callable[[], None]
ConnHook = Callable[[Any, Optional[BaseException]], None]
ReplyHook = Callable[[Optional[BaseException]], None]


@dataclass(frozen=True)
class SshTrace:
    """Callbacks for SSH server events; a field left as None is not reported."""

    listened: Optional[ListenedHook] = None
    start_accepting: Optional[StartAcceptingHook] = None
    accepted: Optional[ConnHook] = None
    new_server_conn: Optional[ConnHook] = None
    ssh_channel_accept: Optional[ConnHook] = None
    subsystem_request_reply: Optional[ReplyHook] = None

    def merged(self, fallback: SshTrace) -> SshTrace:
        """Return a copy whose missing hooks are taken from ``fallback``."""
        return dataclasses.replace(
            self,
            **{
                f.name: getattr(fallback, f.name)
                for f in dataclasses.fields(self)
                if getattr(self, f.name) is None
            },
        )


def _log_listen_failure(address: str, err: Optional[BaseException]) -> None:
    if err is not None:
        logger.error("Listen address:%s status:%s", address, err)


def _log_start_accepting() -> None:
    worker = threading.current_thread().name
    logger.info("Start Accepting thread:%s", worker)


def _log_accept_failure(conn: Any, err: Optional[BaseException]) -> None:
    if err is not None:
        logger.error("Accept status:%s", err)


def _log_server_conn_failure(conn: Any, err: Optional[BaseException]) -> None:
    if err is not None:
        logger.error("NewServerConn status:%s", err)


def _log_channel_accept_failure(conn: Any, err: Optional[BaseException]) -> None:
    if err is not None:
        logger.error("SSHChannelAccept status:%s", err)


def _log_reply_failure(err: Optional[BaseException]) -> None:
    if err is not None:
        logger.error("SubsystemRequestReply status:%s", err)


def _log_listened(address: str, err: Optional[BaseException]) -> None:
    logger.info("Listen address:%s status:%s", address, err)


def _log_accepted(conn: Any, err: Optional[BaseException]) -> None:
    logger.info("Accept conn:%s status:%s", conn, err)


def _log_server_conn(conn: Any, err: Optional[BaseException]) -> None:
    logger.info("NewServerConn conn:%s status:%s", conn, err)


def _log_channel_accept(conn: Any, err: Optional[BaseException]) -> None:
    logger.info("SSHChannelAccept conn:%s status:%s", conn, err)


def _log_reply(err: Optional[BaseException]) -> None:
    logger.info("SubsystemRequestReply status:%s", err)


DEFAULT_LOGGING_HOOKS = SshTrace(
    listened=_log_listen_failure,
    start_accepting=_log_start_accepting,
    accepted=_log_accept_failure,
    new_server_conn=_log_server_conn_failure,
    ssh_channel_accept=_log_channel_accept_failure,
    subsystem_request_reply=_log_reply_failure,
)
"""Reports failures only."""

DIAGNOSTIC_LOGGING_HOOKS = SshTrace(
    listened=_log_listened,
    start_accepting=_log_start_accepting,
    accepted=_log_accepted,
    new_server_conn=_log_server_conn,
    ssh_channel_accept=_log_channel_accept,
    subsystem_request_reply=_log_reply,
)
"""Reports every event."""

NO_OP_LOGGING_HOOKS = SshTrace(
    listened=lambda *_args: None,
    start_accepting=lambda: None,
    accepted=lambda *_args: None,
    new_server_conn=lambda *_args: None,
    ssh_channel_accept=lambda *_args: None,
    subsystem_request_reply=lambda *_args: None,
)
"""Hooks that do nothing."""

_current_trace: contextvars.ContextVar[Optional[SshTrace]] = contextvars.ContextVar(
    "ssh_trace", default=None
)


def current_ssh_trace() -> SshTrace:
    """Return the trace in effect, completed with no-op hooks."""
    trace = _current_trace.get()
    if trace is None:
        return NO_OP_LOGGING_HOOKS
    return trace.merged(NO_OP_LOGGING_HOOKS)


@contextlib.contextmanager
def use_ssh_trace(trace: SshTrace) -> Iterator[SshTrace]:
    """Make ``trace`` the one in effect for the duration of the block."""
    token = _current_trace.set(trace)
    try:
        yield trace
    finally:
        _current_trace.reset(token)