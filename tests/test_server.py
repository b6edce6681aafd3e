import dataclasses
import socket
import threading

import pytest

from netmanage.snmp.ber import BerError
from netmanage.snmp.server import Handler, Server, ServerConfig, new_server
from netmanage.snmp.serverhooks import (
    DEFAULT_SERVER_HOOKS,
    DIAGNOSTIC_SERVER_HOOKS,
    NO_OP_SERVER_HOOKS,
)
from netmanage.snmp.types import MessageType

SOURCE = ("192.0.2.10", 40000)


def message_with_type(m_type):
    return bytes(
        [
            0x30, 0x52,
            0x02, 0x01, 0x01,
            0x04, 0x06, 0x70, 0x75, 0x62, 0x6C, 0x69, 0x63,
            int(m_type), 0x45,
            0x02, 0x04, 0x3D, 0xCD, 0xA1, 0x06,
            0x02, 0x01, 0x00,
            0x02, 0x01, 0x00,
            0x30, 0x37,
            0x30, 0x10,
            0x06, 0x08, 0x2B, 0x06, 0x01, 0x02, 0x01, 0x01, 0x03, 0x00,
            0x43, 0x04, 0x03, 0x01, 0x7B, 0x89,
            0x30, 0x14,
            0x06, 0x0A, 0x2B, 0x06, 0x01, 0x06, 0x03, 0x01, 0x01, 0x04, 0x01, 0x00,
            0x06, 0x06, 0x2B, 0x06, 0x01, 0x01, 0x02, 0x03,
            0x30, 0x0D,
            0x06, 0x06, 0x2B, 0x06, 0x01, 0x07, 0x08, 0x09,
            0x02, 0x03, 0x01, 0xE2, 0x40,
        ]
    )


class FakeConn:
    def __init__(self, incoming, send_error=None):
        self._incoming = list(incoming)
        self._send_error = send_error
        self.sent = []
        self.closed = False

    def getsockname(self):
        return ("127.0.0.1", 1162)

    def recvfrom(self, size):
        if self._incoming:
            return self._incoming.pop(0), SOURCE
        raise OSError("read failed")

    def sendto(self, data, addr):
        if self._send_error is not None:
            raise self._send_error
        self.sent.append((bytes(data), addr))
        return len(data)

    def close(self):
        self.closed = True


class RecordingHandler(Handler):
    def __init__(self):
        self.calls = []
        self.received = threading.Event()

    def new_message(self, pdu, is_inform, source_addr):
        self.calls.append((pdu, is_inform, source_addr))
        self.received.set()


def traced_hooks(base_hooks):
    """Hooks that record errors, writes and the end of listening."""
    stopped = threading.Event()
    record = {"errors": [], "writes": [], "stop": None}

    def on_stop(addr, err):
        record["stop"] = err
        stopped.set()

    hooks = dataclasses.replace(
        base_hooks,
        stop_listening=on_stop,
        error=lambda config, err: record["errors"].append(err),
        write_complete=lambda config, addr, output, err: record["writes"].append((output, err)),
    )
    return hooks, record, stopped


def assert_trap_pdu(pdu):
    assert pdu.varbinds[0].typed_value.value != 0
    assert str(pdu.varbinds[1].typed_value) == "1.3.6.1.1.2.3"
    assert str(pdu.varbinds[2].typed_value) == "123456"


def test_handle_trap():
    conn = FakeConn([message_with_type(MessageType.V2_TRAP)])
    handler = RecordingHandler()
    hooks, record, stopped = traced_hooks(NO_OP_SERVER_HOOKS)
    server = Server(conn, ServerConfig(hooks=hooks), handler)
    server.start()
    assert stopped.wait(5)
    server.close()
    assert len(handler.calls) == 1
    pdu, is_inform, source = handler.calls[0]
    assert is_inform is False
    assert source == SOURCE
    assert_trap_pdu(pdu)
    assert conn.sent == []
    assert record["errors"] == []


def test_handle_inform_sends_acknowledgement():
    conn = FakeConn([message_with_type(MessageType.INFORM)])
    handler = RecordingHandler()
    hooks, record, stopped = traced_hooks(DIAGNOSTIC_SERVER_HOOKS)
    server = Server(conn, ServerConfig(hooks=hooks), handler)
    server.start()
    assert stopped.wait(5)
    server.close()
    pdu, is_inform, _ = handler.calls[0]
    assert is_inform is True
    assert_trap_pdu(pdu)
    assert conn.sent == [(message_with_type(MessageType.GET_RESPONSE), SOURCE)]
    assert record["writes"] == [(message_with_type(MessageType.GET_RESPONSE), None)]


def test_inform_acknowledgement_failure():
    conn = FakeConn([message_with_type(MessageType.INFORM)], send_error=OSError("write failure"))
    handler = RecordingHandler()
    hooks, record, stopped = traced_hooks(DEFAULT_SERVER_HOOKS)
    server = Server(conn, ServerConfig(hooks=hooks), handler)
    server.start()
    assert stopped.wait(5)
    server.close()
    assert_trap_pdu(handler.calls[0][0])
    assert [str(e) for e in record["errors"]] == ["write failure"]
    assert str(record["writes"][0][1]) == "write failure"


def test_ignoring_unsupported_message_type():
    conn = FakeConn([message_with_type(MessageType.GET)])
    handler = RecordingHandler()
    hooks, record, stopped = traced_hooks(DIAGNOSTIC_SERVER_HOOKS)
    server = Server(conn, ServerConfig(hooks=hooks), handler)
    server.start()
    assert stopped.wait(5)
    server.close()
    assert handler.calls == []
    assert len(record["errors"]) == 1
    assert str(record["errors"][0]) == "unrecognised message type 160"


def test_message_parse_failure():
    conn = FakeConn([bytes([0xFF, 0xFF, 0xFF])])
    handler = RecordingHandler()
    hooks, record, stopped = traced_hooks(DIAGNOSTIC_SERVER_HOOKS)
    server = Server(conn, ServerConfig(hooks=hooks), handler)
    server.start()
    assert stopped.wait(5)
    server.close()
    assert handler.calls == []
    assert isinstance(record["errors"][0], BerError)
    assert str(record["errors"][0]).startswith("failed to unmarshal packet")


def test_read_failure_stops_listening():
    conn = FakeConn([])
    hooks, record, stopped = traced_hooks(NO_OP_SERVER_HOOKS)
    server = Server(conn, ServerConfig(hooks=hooks), RecordingHandler())
    server.start()
    assert stopped.wait(5)
    server.close()
    assert str(record["stop"]) == "read failed"
    assert conn.closed is True


@pytest.mark.parametrize("m_type", [MessageType.GET, MessageType.GET_RESPONSE, MessageType.GET_BULK])
def test_process_message_rejects_other_types(m_type):
    server = Server(FakeConn([]), ServerConfig(hooks=NO_OP_SERVER_HOOKS), RecordingHandler())
    with pytest.raises(BerError, match=f"unrecognised message type {int(m_type)}"):
        server.process_message(message_with_type(m_type), SOURCE)


def test_process_message_trap_directly():
    handler = RecordingHandler()
    server = Server(FakeConn([]), ServerConfig(hooks=NO_OP_SERVER_HOOKS), handler)
    server.process_message(message_with_type(MessageType.V2_TRAP), SOURCE)
    assert handler.calls[0][0].request_id == 0x3DCDA106


def test_close_closes_connection():
    conn = FakeConn([])
    server = Server(conn, ServerConfig(hooks=NO_OP_SERVER_HOOKS), None)
    server.close()
    assert conn.closed is True


def test_new_server_success():
    handler = RecordingHandler()
    with new_server(handler, port=0, hooks=NO_OP_SERVER_HOOKS) as server:
        assert server.config.address == ""
        assert server.config.port == 0
        assert server.handler is handler


def test_new_server_options():
    with new_server(
        None, network="udp", address="127.0.0.1", port=0, hooks=NO_OP_SERVER_HOOKS
    ) as server:
        assert server.config.network == "udp"
        assert server.config.address == "127.0.0.1"
        assert server.config.port == 0
        assert server.local_address[0] == "127.0.0.1"


def test_listen_failure_invalid_port():
    with pytest.raises(ValueError, match="invalid port"):
        new_server(None, port=1000000000)


def test_unknown_network_rejected():
    with pytest.raises(ValueError, match="unknown network"):
        new_server(None, network="tcp", port=0)


def test_end_to_end_inform_over_udp():
    handler = RecordingHandler()
    with new_server(handler, address="127.0.0.1", port=0, hooks=NO_OP_SERVER_HOOKS) as server:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as client:
            client.settimeout(5)
            client.sendto(message_with_type(MessageType.INFORM), server.local_address)
            reply, _ = client.recvfrom(65535)
    assert reply == message_with_type(MessageType.GET_RESPONSE)
    assert handler.calls[0][1] is True
    assert_trap_pdu(handler.calls[0][0])


def test_end_to_end_trap_over_udp():
    handler = RecordingHandler()
    with new_server(handler, address="127.0.0.1", port=0, hooks=NO_OP_SERVER_HOOKS) as server:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as client:
            client.sendto(message_with_type(MessageType.V2_TRAP), server.local_address)
            assert handler.received.wait(5)
    assert handler.calls[0][1] is False
    assert_trap_pdu(handler.calls[0][0])