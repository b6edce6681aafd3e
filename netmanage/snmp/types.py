"""SNMP data types, variable bindings and PDUs."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any

from netmanage.snmp.ber import (
    CLASS_APPLICATION,
    CLASS_CONTEXT_SPECIFIC,
    CLASS_UNIVERSAL,
    TAG_INTEGER,
    TAG_OCTET_STRING,
    TAG_OID,
    BerError,
    ObjectIdentifier,
    RawValue,
    decode_integer,
    decode_octet_string,
    decode_oid,
)


class DataType(enum.IntEnum):
    """Kinds of value found in variable bindings."""

    INTEGER = 0
    OCTET_STRING = 1
    OID = 2
    IP_ADDRESS = 3
    TIME = 4
    COUNTER32 = 5
    COUNTER64 = 6
    GAUGE32 = 7
    OPAQUE = 8
    END_OF_MIB = 9
    NO_SUCH_OBJECT = 10
    NO_SUCH_INSTANCE = 11


class MessageType(enum.IntEnum):
    """SNMP PDU identifier bytes."""

    GET = 0xA0
    GET_NEXT = 0xA1
    GET_RESPONSE = 0xA2
    GET_BULK = 0xA5
    INFORM = 0xA6
    V2_TRAP = 0xA7


class Version(enum.IntEnum):
    """SNMP protocol versions as carried on the wire."""

    SNMPV1 = 0
    SNMPV2C = 1
    SNMPV3 = 3


_TYPE_BY_TAG = {
    (CLASS_UNIVERSAL, TAG_INTEGER): DataType.INTEGER,
    (CLASS_UNIVERSAL, TAG_OCTET_STRING): DataType.OCTET_STRING,
    (CLASS_UNIVERSAL, TAG_OID): DataType.OID,
    (CLASS_APPLICATION, 0x40 & 0x1F): DataType.IP_ADDRESS,
    (CLASS_APPLICATION, 0x41 & 0x1F): DataType.COUNTER32,
    (CLASS_APPLICATION, 0x42 & 0x1F): DataType.GAUGE32,
    (CLASS_APPLICATION, 0x43 & 0x1F): DataType.TIME,
    (CLASS_APPLICATION, 0x44 & 0x1F): DataType.OPAQUE,
    (CLASS_APPLICATION, 0x46 & 0x1F): DataType.COUNTER64,
    (CLASS_CONTEXT_SPECIFIC, 0x80 & 0x1F): DataType.NO_SUCH_OBJECT,
    (CLASS_CONTEXT_SPECIFIC, 0x81 & 0x1F): DataType.NO_SUCH_INSTANCE,
    (CLASS_CONTEXT_SPECIFIC, 0x82 & 0x1F): DataType.END_OF_MIB,
}

_INTEGER_TYPES = frozenset(
    {DataType.INTEGER, DataType.COUNTER32, DataType.COUNTER64, DataType.GAUGE32, DataType.TIME}
)
_OCTET_TYPES = frozenset({DataType.OCTET_STRING, DataType.IP_ADDRESS, DataType.OPAQUE})
_UINT32_TYPES = frozenset({DataType.COUNTER32, DataType.GAUGE32, DataType.TIME})


def _integer_value(value: int, data_type: DataType) -> int:
    if data_type in _UINT32_TYPES:
        return value & 0xFFFFFFFF
    if data_type is DataType.COUNTER64:
        return value & 0xFFFFFFFFFFFFFFFF
    return value


def _decimal(value: int, unit: int) -> str:
    whole, fraction = divmod(value, unit)
    if not fraction:
        return str(whole)
    digits = len(str(unit)) - 1
    return f"{whole}.{fraction:0{digits}d}".rstrip("0")


def _format_duration(nanoseconds: int) -> str:
    """Render nanoseconds in the compact h/m/s/ms/µs/ns duration style."""
    if nanoseconds == 0:
        return "0s"
    sign = "-" if nanoseconds < 0 else ""
    ns = abs(nanoseconds)
    if ns < 1_000:
        return f"{sign}{ns}ns"
    if ns < 1_000_000:
        return f"{sign}{_decimal(ns, 1_000)}µs"
    if ns < 1_000_000_000:
        return f"{sign}{_decimal(ns, 1_000_000)}ms"
    seconds, remainder = divmod(ns, 1_000_000_000)
    hours, seconds = divmod(seconds, 3600)
    minutes, seconds = divmod(seconds, 60)
    text = f"{_decimal(seconds * 1_000_000_000 + remainder, 1_000_000_000)}s"
    if hours:
        return f"{sign}{hours}h{minutes}m{text}"
    if minutes:
        return f"{sign}{minutes}m{text}"
    return sign + text


@dataclass
class TypedValue:
    """The type and value of a variable received from an agent."""

    type: DataType | int
    value: Any = None

    def __str__(self) -> str:
        try:
            data_type = DataType(self.type)
        except ValueError:
            return f"unrecognised data type {int(self.type)}"
        if data_type in (DataType.INTEGER, DataType.COUNTER32, DataType.COUNTER64, DataType.GAUGE32):
            return str(int(self.value))
        if data_type is DataType.OCTET_STRING:
            return bytes(self.value).decode("utf-8", errors="replace")
        if data_type is DataType.OID:
            return str(ObjectIdentifier(self.value))
        if data_type is DataType.TIME:
            return _format_duration(int(self.value) * 10000)
        if data_type is DataType.IP_ADDRESS:
            return ".".join(str(octet) for octet in bytes(self.value))
        if data_type is DataType.OPAQUE:
            return bytes(self.value).hex()
        if data_type is DataType.END_OF_MIB:
            return "End of Mib"
        if data_type is DataType.NO_SUCH_OBJECT:
            return "No such Object"
        return "No such Instance"

    def oid(self) -> ObjectIdentifier:
        """Return the value as an object identifier; the type must be OID."""
        if self.type != DataType.OID:
            raise TypeError(f"non-OID data type {int(self.type)}")
        return ObjectIdentifier(self.value)

    def as_int(self) -> int:
        """Return the value as an int; the type must be integer based."""
        if self.type not in _INTEGER_TYPES:
            raise TypeError(f"non-integer data type {int(self.type)}")
        return int(self.value)


@dataclass
class Varbind:
    """A variable binding: an object identifier and its typed value."""

    oid: ObjectIdentifier
    typed_value: TypedValue


@dataclass
class PDU:
    """An SNMP PDU with resolved variable bindings."""

    request_id: int
    error: int = 0
    error_index: int = 0
    varbinds: list[Varbind] = field(default_factory=list)


def unmarshal_variable(raw: RawValue) -> TypedValue:
    """Resolve a raw variable binding value into a TypedValue."""
    data_type = _TYPE_BY_TAG.get((raw.cls, raw.tag))
    if data_type is None:
        raise BerError(f"unsupported class {raw.cls} tag {raw.tag}")
    if data_type in _INTEGER_TYPES:
        return TypedValue(data_type, _integer_value(decode_integer(raw), data_type))
    if data_type in _OCTET_TYPES:
        return TypedValue(data_type, decode_octet_string(raw))
    if data_type is DataType.OID:
        return TypedValue(data_type, decode_oid(raw))
    return TypedValue(data_type)