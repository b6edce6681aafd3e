"""SNMP sessions: GET, GET NEXT, GET BULK requests and MIB walks."""

from __future__ import annotations

import itertools
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

from netmanage.snmp.ber import (
    CLASS_UNIVERSAL,
    TAG_INTEGER,
    TAG_OCTET_STRING,
    TAG_OID,
    TAG_SEQUENCE,
    BerError,
    ObjectIdentifier,
    RawValue,
    decode,
    decode_integer,
    decode_oid,
    encode_integer,
    encode_null,
    encode_octet_string,
    encode_oid,
    encode_sequence,
    encode_tlv,
    parse_oid,
)
from netmanage.snmp.trace import DEFAULT_LOGGING_HOOKS, NO_OP_LOGGING_HOOKS, SessionTrace
from netmanage.snmp.types import (
    PDU,
    DataType,
    MessageType,
    Varbind,
    Version,
    unmarshal_variable,
)

MAX_INPUT_BUFFER_SIZE = 65535

Walker = Callable[[Varbind], Any]


@dataclass
class SessionConfig:
    """Properties controlling session behaviour; timeout is in seconds."""

    network: str = "udp"
    address: str = ""
    version: Version = Version.SNMPV2C
    community: str = "public"
    timeout: float = 5.0
    retries: int = 3
    trace: SessionTrace = DEFAULT_LOGGING_HOOKS


def _int32(value: int) -> int:
    return (value + 2**31) % 2**32 - 2**31


def oid_to_ints(text: str) -> ObjectIdentifier:
    """Convert dotted text, with optional leading/trailing dots, to an OID."""
    return parse_oid(text)


def is_oid_descendant_of_root(oid: Iterable[int], root_oid: str) -> bool:
    """Tell whether ``oid`` lies beneath ``root_oid``."""
    return str(ObjectIdentifier(oid)).startswith(root_oid + ".")


def _children(raw: RawValue) -> list[RawValue]:
    elements = []
    rest = raw.content
    while rest:
        element, rest = decode(rest)
        elements.append(element)
    return elements


def _expect(raw: RawValue, tag: int, what: str) -> RawValue:
    if raw.cls != CLASS_UNIVERSAL or raw.tag != tag:
        raise BerError(f"expected {what}, found class {raw.cls} tag {raw.tag}")
    return raw


def unmarshal_values(raw_pdu: RawValue) -> PDU:
    """Resolve a PDU element, whatever its message tag, into a PDU."""
    elements = _children(raw_pdu)
    if len(elements) != 4:
        raise BerError(f"PDU holds {len(elements)} elements, expected 4")
    request_id, error, error_index, varbind_list = elements
    varbinds = []
    for raw_varbind in _children(_expect(varbind_list, TAG_SEQUENCE, "varbind list")):
        parts = _children(_expect(raw_varbind, TAG_SEQUENCE, "varbind"))
        if len(parts) != 2:
            raise BerError(f"varbind holds {len(parts)} elements, expected 2")
        oid = decode_oid(_expect(parts[0], TAG_OID, "object identifier"))
        varbinds.append(Varbind(oid, unmarshal_variable(parts[1])))
    return PDU(
        request_id=decode_integer(_expect(request_id, TAG_INTEGER, "request id")),
        error=decode_integer(_expect(error, TAG_INTEGER, "error status")),
        error_index=decode_integer(_expect(error_index, TAG_INTEGER, "error index")),
        varbinds=varbinds,
    )


def parse_response(data: bytes) -> PDU:
    """Parse an SNMP message and return its PDU with resolved values."""
    message, _ = decode(data)
    elements = _children(_expect(message, TAG_SEQUENCE, "message sequence"))
    if len(elements) != 3:
        raise BerError(f"message holds {len(elements)} elements, expected 3")
    version, community, raw_pdu = elements
    _expect(version, TAG_INTEGER, "version")
    _expect(community, TAG_OCTET_STRING, "community")
    return unmarshal_values(raw_pdu)


class Session:
    """An SNMP management session over a connected datagram socket.

    ``conn`` needs ``settimeout``, ``send``, ``recv`` and ``close``.
    """

    def __init__(self, conn: Any, config: SessionConfig | None = None, next_request_id: int = 0):
        self._conn = conn
        self.config = config if config is not None else SessionConfig()
        self._trace = self.config.trace.merged(NO_OP_LOGGING_HOOKS)
        self._next_request_id = _int32(next_request_id)

    def __enter__(self) -> Session:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def get(self, oids: Iterable[str]) -> PDU:
        """Issue a GET request for the given OIDs."""
        return self._execute_get(MessageType.GET, oids)

    def get_next(self, oids: Iterable[str]) -> PDU:
        """Issue a GET NEXT request for the given OIDs."""
        return self._execute_get(MessageType.GET_NEXT, oids)

    def get_bulk(self, oids: Iterable[str], non_repeaters: int, max_repetitions: int) -> PDU:
        """Issue a GET BULK request for the given OIDs."""
        return self._execute_get(MessageType.GET_BULK, oids, non_repeaters, max_repetitions)

    def walk(self, root_oid: str, walker: Walker) -> None:
        """Call ``walker`` for each variable beneath ``root_oid``, using GET NEXT."""
        self._execute_walk(MessageType.GET_NEXT, 0, root_oid, walker)

    def bulk_walk(self, root_oid: str, max_repetitions: int, walker: Walker) -> None:
        """Call ``walker`` for each variable beneath ``root_oid``, using GET BULK."""
        self._execute_walk(MessageType.GET_BULK, max_repetitions, root_oid, walker)

    def close(self) -> None:
        """Close the underlying connection."""
        self._conn.close()

    def _execute_get(
        self,
        message_type: MessageType,
        oids: Iterable[str],
        non_repeaters: int = 0,
        max_repetitions: int = 0,
    ) -> PDU:
        oids = list(oids)
        for attempt in itertools.count():
            self._conn.settimeout(self.config.timeout)
            packet = self._build_packet(oids, message_type, non_repeaters, max_repetitions)
            self._write(packet)
            try:
                data = self._read()
            except TimeoutError:
                if attempt < self.config.retries:
                    continue
                raise
            return parse_response(data)
        raise AssertionError("unreachable")

    def _execute_walk(
        self, message_type: MessageType, max_repetitions: int, root_oid: str, walker: Walker
    ) -> None:
        next_oid = root_oid
        while True:
            pdu = self._execute_get(message_type, [next_oid], 0, max_repetitions)
            for varbind in pdu.varbinds:
                if not is_oid_descendant_of_root(varbind.oid, root_oid):
                    return
                walker(varbind)
                if varbind.typed_value.type == DataType.END_OF_MIB:
                    return
            if not pdu.varbinds:
                return
            next_oid = str(pdu.varbinds[-1].oid)

    def _next_id(self) -> int:
        request_id = self._next_request_id
        self._next_request_id = _int32(request_id + 1)
        return request_id

    def _build_packet(
        self,
        oids: list[str],
        message_type: MessageType,
        non_repeaters: int,
        max_repetitions: int,
    ) -> bytes:
        parsed = [oid_to_ints(oid) for oid in oids]
        request_id = self._next_id()
        if message_type is MessageType.GET_BULK:
            error, error_index = non_repeaters, max_repetitions
        else:
            error, error_index = 0, 0
        varbinds = encode_sequence(encode_sequence([encode_oid(oid), encode_null()]) for oid in parsed)
        pdu = encode_tlv(
            int(message_type),
            encode_integer(request_id)
            + encode_integer(error)
            + encode_integer(error_index)
            + varbinds,
        )
        return encode_sequence(
            [
                encode_integer(int(self.config.version)),
                encode_octet_string(self.config.community),
                pdu,
            ]
        )

    def _write(self, packet: bytes) -> None:
        start = time.monotonic()
        sent = 0
        error: BaseException | None = None
        try:
            sent = self._conn.send(packet)
        except Exception as exc:
            error = exc
            raise
        finally:
            self._trace.write_done(self.config, packet[:sent], error, time.monotonic() - start)

    def _read(self) -> bytes:
        start = time.monotonic()
        data = b""
        error: BaseException | None = None
        try:
            data = bytes(self._conn.recv(MAX_INPUT_BUFFER_SIZE))
            if len(data) >= MAX_INPUT_BUFFER_SIZE:
                raise OSError("overflowing response buffer")
            return data
        except Exception as exc:
            error = exc
            raise
        finally:
            self._trace.read_done(self.config, data, error, time.monotonic() - start)