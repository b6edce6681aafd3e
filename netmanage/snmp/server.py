"""A server receiving SNMP trap and inform messages."""

from __future__ import annotations

import abc
import socket
import threading
from dataclasses import dataclass
from typing import Any

from netmanage.snmp.ber import (
    CLASS_UNIVERSAL,
    TAG_INTEGER,
    TAG_OCTET_STRING,
    TAG_SEQUENCE,
    BerError,
    RawValue,
    decode,
    decode_sequence,
    encode_sequence,
)
from netmanage.snmp.serverhooks import DEFAULT_SERVER_HOOKS, NO_OP_SERVER_HOOKS, ServerHooks
from netmanage.snmp.session import MAX_INPUT_BUFFER_SIZE, unmarshal_values
from netmanage.snmp.types import PDU, MessageType

_POLL_INTERVAL = 0.5
_JOIN_TIMEOUT = 2.0


class Handler(abc.ABC):
    """Receives the trap and inform messages that arrive at a server."""

    @abc.abstractmethod
    def new_message(self, pdu: PDU, is_inform: bool, source_addr: Any) -> None:
        """Handle one message; it blocks the receipt of further messages."""


@dataclass
class ServerConfig:
    """Properties controlling server behaviour."""

    network: str = "udp"
    address: str = ""
    port: int = 162
    hooks: ServerHooks = DEFAULT_SERVER_HOOKS


def _expect_universal(raw: RawValue, tag: int, what: str) -> RawValue:
    if raw.cls != CLASS_UNIVERSAL or raw.tag != tag:
        raise BerError(f"expected {what}, found class {raw.cls} tag {raw.tag}")
    return raw


class Server:
    """Processes incoming messages from a datagram socket on a background thread.

    ``conn`` needs ``recvfrom``, ``sendto``, ``getsockname`` and ``close``.
    """

    def __init__(self, conn: Any, config: ServerConfig | None = None, handler: Handler | None = None):
        self._conn = conn
        self.config = config if config is not None else ServerConfig()
        self._hooks = self.config.hooks.merged(NO_OP_SERVER_HOOKS)
        self.handler = handler
        self._closed = threading.Event()
        self._thread: threading.Thread | None = None

    def __enter__(self) -> Server:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def local_address(self) -> Any:
        """The address the server's socket is bound to."""
        return self._conn.getsockname()

    def start(self) -> None:
        """Start processing incoming messages on a background thread."""
        if self._thread is not None:
            raise RuntimeError("server already started")
        self._thread = threading.Thread(target=self._run, name="snmp-server", daemon=True)
        self._thread.start()

    def close(self) -> None:
        """Stop receiving messages and close the socket."""
        self._closed.set()
        self._conn.close()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(_JOIN_TIMEOUT)

    def process_message(self, data: bytes, addr: Any) -> None:
        """Decode one trap or inform message, pass it on, and acknowledge informs."""
        try:
            message, _ = decode(data)
            _expect_universal(message, TAG_SEQUENCE, "message sequence")
            elements = decode_sequence(message)
            if len(elements) != 3:
                raise BerError(f"message holds {len(elements)} elements, expected 3")
            version, community, raw_pdu = elements
            _expect_universal(version, TAG_INTEGER, "version")
            _expect_universal(community, TAG_OCTET_STRING, "community")
        except BerError as exc:
            raise BerError(f"failed to unmarshal packet: {exc}") from exc

        message_type = raw_pdu.full_bytes[0]
        if message_type not in (MessageType.INFORM, MessageType.V2_TRAP):
            raise BerError(f"unrecognised message type {message_type}")

        try:
            pdu = unmarshal_values(raw_pdu)
        except BerError as exc:
            raise BerError(f"failed to unmarshal values: {exc}") from exc

        is_inform = message_type == MessageType.INFORM
        if self.handler is not None:
            self.handler.new_message(pdu, is_inform, addr)
        if is_inform:
            response_pdu = bytes([MessageType.GET_RESPONSE]) + raw_pdu.full_bytes[1:]
            response = encode_sequence([version.full_bytes, community.full_bytes, response_pdu])
            self._write(response, addr)

    def _local_address_or_none(self) -> Any:
        try:
            return self._conn.getsockname()
        except OSError:
            return None

    def _run(self) -> None:
        local = self._local_address_or_none()
        self._hooks.start_listening(local)
        error = self._listen()
        self._hooks.stop_listening(local, error)

    def _listen(self) -> BaseException | None:
        while True:
            try:
                data, addr = self._conn.recvfrom(MAX_INPUT_BUFFER_SIZE)
            except TimeoutError:
                if self._closed.is_set():
                    return None
                continue
            except OSError as exc:
                self._hooks.read_complete(self.config, None, b"", exc)
                return exc
            data = bytes(data)
            self._hooks.read_complete(self.config, addr, data, None)
            try:
                self.process_message(data, addr)
            except Exception as exc:  # reported, the server keeps listening
                self._hooks.error(self.config, exc)

    def _write(self, message: bytes, addr: Any) -> None:
        error: BaseException | None = None
        try:
            self._conn.sendto(message, addr)
        except OSError as exc:
            error = exc
            raise
        finally:
            self._hooks.write_complete(self.config, addr, message, error)


def new_server(
    handler: Handler | None,
    *,
    network: str = "udp",
    address: str = "",
    port: int = 162,
    hooks: ServerHooks = DEFAULT_SERVER_HOOKS,
) -> Server:
    """Bind a UDP socket and start a server passing messages to ``handler``."""
    config = ServerConfig(
        network=network, address=address, port=port, hooks=hooks.merged(NO_OP_SERVER_HOOKS)
    )
    if not 0 <= port <= 65535:
        raise ValueError(f"invalid port {port}")
    if network == "udp4":
        family = socket.AF_INET
    elif network == "udp6":
        family = socket.AF_INET6
    elif network == "udp":
        family = socket.AF_INET6 if ":" in address else socket.AF_INET
    else:
        raise ValueError(f"unknown network {network!r}")
    sock = socket.socket(family, socket.SOCK_DGRAM)
    try:
        sock.bind((address, port))
        sock.settimeout(_POLL_INTERVAL)
    except BaseException:
        sock.close()
        raise
    server = Server(sock, config, handler)
    server.start()
    return server