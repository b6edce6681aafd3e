"""Hooks invoked by SNMP sessions to report connection and i/o events."""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Optional

logger = logging.getLogger(__name__)

ConnectStartHook = Callable[[Any], None]
ConnectDoneHook = Callable[[Any, Optional[BaseException], float], None]
ErrorHook = Callable[[str, Any, BaseException], None]
IoDoneHook = Callable[[Any, bytes, Optional[BaseException], float], None]


@dataclass(frozen=True)
class SessionTrace:
    """Callbacks for session trace events; durations are in seconds.

    A field left as None means the event is not reported.
    """

    connect_start: Optional[ConnectStartHook] = None
    connect_done: Optional[ConnectDoneHook] = None
    error: Optional[ErrorHook] = None
    write_done: Optional[IoDoneHook] = None
    read_done: Optional[IoDoneHook] = None

    def merged(self, fallback: SessionTrace) -> SessionTrace:
        """Return a copy whose missing hooks are taken from ``fallback``."""
        return dataclasses.replace(
            self,
            **{
                f.name: getattr(fallback, f.name)
                for f in dataclasses.fields(self)
                if getattr(self, f.name) is None
            },
        )


def _millis(duration: float) -> int:
    return int(duration * 1000)


def _log_error(location: str, config: Any, err: BaseException) -> None:
    logger.error("SNMP-Error context:%s target:%s err:%s", location, config.address, err)


def _log_connect_start(config: Any) -> None:
    logger.info("SNMP-ConnectStart target:%s", config.address)


def _log_connect_done(config: Any, err: Optional[BaseException], duration: float) -> None:
    logger.info(
        "SNMP-ConnectDone target:%s err:%s took:%dms", config.address, err, _millis(duration)
    )


def _log_write_metric(
    config: Any, output: bytes, err: Optional[BaseException], duration: float
) -> None:
    logger.info("SNMP-WriteDone target:%s err:%s took:%dms", config.address, err, _millis(duration))


def _log_read_metric(
    config: Any, data: bytes, err: Optional[BaseException], duration: float
) -> None:
    logger.info("SNMP-ReadDone target:%s err:%s took:%dms", config.address, err, _millis(duration))


def _log_write_diagnostic(
    config: Any, output: bytes, err: Optional[BaseException], duration: float
) -> None:
    logger.info(
        "SNMP-WriteDone target:%s err:%s took:%dms data:%s",
        config.address,
        err,
        _millis(duration),
        bytes(output).hex(),
    )


def _log_read_diagnostic(
    config: Any, data: bytes, err: Optional[BaseException], duration: float
) -> None:
    logger.info(
        "SNMP-ReadDone target:%s err:%s took:%dms data:%s",
        config.address,
        err,
        _millis(duration),
        bytes(data).hex(),
    )


def _ignore(*_args: Any) -> None:
    return None


DEFAULT_LOGGING_HOOKS = SessionTrace(error=_log_error)
"""Reports errors only."""

METRIC_LOGGING_HOOKS = SessionTrace(
    connect_done=_log_connect_done,
    error=_log_error,
    write_done=_log_write_metric,
    read_done=_log_read_metric,
)
"""Reports errors and how long connections, writes and reads took."""

DIAGNOSTIC_LOGGING_HOOKS = SessionTrace(
    connect_start=_log_connect_start,
    connect_done=_log_connect_done,
    error=_log_error,
    write_done=_log_write_diagnostic,
    read_done=_log_read_diagnostic,
)
"""Reports every event together with the data written and read."""

NO_OP_LOGGING_HOOKS = SessionTrace(
    connect_start=_ignore,
    connect_done=_ignore,
    error=_ignore,
    write_done=_ignore,
    read_done=_ignore,
)
"""Hooks that do nothing."""