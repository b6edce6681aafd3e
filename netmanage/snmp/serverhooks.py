"""Hooks invoked by the SNMP trap/inform server to report events."""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Optional

logger = logging.getLogger(__name__)

StartListeningHook = Callable[[Any], None]
StopListeningHook = Callable[[Any, Optional[BaseException]], None]
ServerErrorHook = Callable[[Any, BaseException], None]
IoCompleteHook = Callable[[Any, Any, bytes, Optional[BaseException]], None]


@dataclass(frozen=True)
class ServerHooks:
    """Callbacks for server events; a field left as None is not reported."""

    start_listening: Optional[StartListeningHook] = None
    stop_listening: Optional[StopListeningHook] = None
    error: Optional[ServerErrorHook] = None
    write_complete: Optional[IoCompleteHook] = None
    read_complete: Optional[IoCompleteHook] = None

    def merged(self, fallback: ServerHooks) -> ServerHooks:
        """Return a copy whose missing hooks are taken from ``fallback``."""
        return dataclasses.replace(
            self,
            **{
                f.name: getattr(fallback, f.name)
                for f in dataclasses.fields(self)
                if getattr(self, f.name) is None
            },
        )


def _log_error(config: Any, err: BaseException) -> None:
    logger.error("Error target:%s err:%s", config.address, err)


def _log_write_failure(
    config: Any, addr: Any, output: bytes, err: Optional[BaseException]
) -> None:
    if err is not None:
        logger.error("WriteComplete target:%s err:%s", addr, err)


def _log_read_failure(
    config: Any, addr: Any, data: bytes, err: Optional[BaseException]
) -> None:
    if err is not None:
        logger.error("ReadComplete source:%s err:%s", addr, err)


def _log_start_listening(addr: Any) -> None:
    logger.info("StartListening address:%s", addr)


def _log_stop_listening(addr: Any, err: Optional[BaseException]) -> None:
    logger.info("StopListening address:%s err:%s", addr, err)


def _log_error_diagnostic(config: Any, err: BaseException) -> None:
    logger.info("Error err:%s", err)


def _log_write_diagnostic(
    config: Any, addr: Any, output: bytes, err: Optional[BaseException]
) -> None:
    logger.info("WriteComplete target:%s err:%s data:%s", addr, err, bytes(output).hex())


def _log_read_diagnostic(
    config: Any, addr: Any, data: bytes, err: Optional[BaseException]
) -> None:
    logger.info("ReadComplete source:%s err:%s data:%s", addr, err, bytes(data).hex())


DEFAULT_SERVER_HOOKS = ServerHooks(
    error=_log_error,
    write_complete=_log_write_failure,
    read_complete=_log_read_failure,
)
"""Reports server errors only."""

DIAGNOSTIC_SERVER_HOOKS = ServerHooks(
    start_listening=_log_start_listening,
    stop_listening=_log_stop_listening,
    error=_log_error_diagnostic,
    write_complete=_log_write_diagnostic,
    read_complete=_log_read_diagnostic,
)
"""Reports every event together with the data written and read."""

NO_OP_SERVER_HOOKS = ServerHooks(
    start_listening=lambda *_args: None,
    stop_listening=lambda *_args: None,
    error=lambda *_args: None,
    write_complete=lambda *_args: None,
    read_complete=lambda *_args: None,
)
"""Hooks that do nothing."""