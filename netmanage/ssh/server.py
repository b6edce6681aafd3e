"""A password authenticated SSH server passing each channel to a handler."""

from __future__ import annotations

import abc
import socket
import threading
from collections.abc import Callable
from typing import Any

import paramiko

from netmanage.ssh.config import ServerConfig
from netmanage.ssh.trace import SshTrace, current_ssh_trace

_POLL_INTERVAL = 0.5
_JOIN_TIMEOUT = 2.0


class Handler(abc.ABC):
    """Handles i/o to and from one SSH channel."""

    @abc.abstractmethod
    def handle(self, channel: paramiko.Channel) -> None:
        """Serve the channel; it is closed once this returns."""


HandlerFactory = Callable[[paramiko.Transport], Handler]


class _Interface(paramiko.ServerInterface):
    def __init__(self, config: ServerConfig, trace: SshTrace):
        self._config = config
        self._trace = trace

    def get_allowed_auths(self, username: str) -> str:
        return "password"

    def check_auth_password(self, username: str, password: str) -> int:
        try:
            self._config.check_credentials(username, password)
        except PermissionError:
            return paramiko.AUTH_FAILED
        return paramiko.AUTH_SUCCESSFUL

    def check_channel_request(self, kind: str, chanid: int) -> int:
        return paramiko.OPEN_SUCCEEDED

    def check_channel_subsystem_request(self, channel: paramiko.Channel, name: str) -> bool:
        self._trace.subsystem_request_reply(None)
        return True

    def _refuse(self) -> bool:
        self._trace.subsystem_request_reply(None)
        return False

    def check_channel_shell_request(self, channel: paramiko.Channel) -> bool:
        return self._refuse()

    def check_channel_exec_request(self, channel: paramiko.Channel, command: bytes) -> bool:
        return self._refuse()

    def check_channel_pty_request(
        self,
        channel: paramiko.Channel,
        term: bytes,
        width: int,
        height: int,
        pixelwidth: int,
        pixelheight: int,
        modes: bytes,
    ) -> bool:
        return self._refuse()

    def check_channel_env_request(self, channel: paramiko.Channel, name: bytes, value: bytes) -> bool:
        return self._refuse()


class Server:
    """Accepts TCP connections and serves SSH sessions on background threads."""

    def __init__(self, listener: socket.socket, trace: SshTrace):
        self._listener = listener
        self._trace = trace
        self._port = listener.getsockname()[1]
        self._closed = threading.Event()
        self._thread: threading.Thread | None = None

    def __enter__(self) -> Server:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def port(self) -> int:
        """The TCP port on which the server listens."""
        return self._port

    def close(self) -> None:
        """Stop accepting connections and release the listening socket."""
        self._closed.set()
        self._listener.close()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(_JOIN_TIMEOUT)

    def _start(self, config: ServerConfig, factory: HandlerFactory) -> None:
        self._thread = threading.Thread(
            target=self._accept_connections, args=(config, factory), name="ssh-accept", daemon=True
        )
        self._thread.start()

    def _accept_connections(self, config: ServerConfig, factory: HandlerFactory) -> None:
        self._trace.start_accepting()
        while not self._closed.is_set():
            try:
                conn, _ = self._listener.accept()
            except TimeoutError:
                continue
            except OSError as exc:
                self._trace.accepted(None, exc)
                return
            self._trace.accepted(conn, None)
            threading.Thread(
                target=self._serve_connection, args=(conn, config, factory), daemon=True
            ).start()

    def _serve_connection(
        self, conn: socket.socket, config: ServerConfig, factory: HandlerFactory
    ) -> None:
        transport = paramiko.Transport(conn)
        transport.add_server_key(config.host_key)
        try:
            transport.start_server(server=_Interface(config, self._trace))
        except (paramiko.SSHException, EOFError, OSError) as exc:
            self._trace.new_server_conn(conn, exc)
            transport.close()
            return
        self._trace.new_server_conn(conn, None)
        while transport.is_active():
            channel = transport.accept(_POLL_INTERVAL)
            if channel is None:
                continue
            self._trace.ssh_channel_accept(conn, None)
            threading.Thread(
                target=self._handle_channel, args=(factory, transport, channel), daemon=True
            ).start()

    @staticmethod
    def _handle_channel(
        factory: HandlerFactory, transport: paramiko.Transport, channel: paramiko.Channel
    ) -> None:
        try:
            factory(transport).handle(channel)
        finally:
            channel.close()


def new_server(address: str, port: int, config: ServerConfig, factory: HandlerFactory) -> Server:
    """Listen on ``address``:``port`` (0 for an ephemeral port) and start serving."""
    trace = current_ssh_trace()
    try:
        if not 0 <= port <= 65535:
            raise ValueError(f"invalid port {port}")
        family = socket.AF_INET6 if ":" in address else socket.AF_INET
        listener = socket.create_server((address, port), family=family)
    except (OSError, ValueError) as exc:
        trace.listened(address, exc)
        raise
    trace.listened(address, None)
    listener.settimeout(_POLL_INTERVAL)
    server = Server(listener, trace)
    server._start(config, factory)
    return server