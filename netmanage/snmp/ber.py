"""Minimal BER encoding and decoding for the subset of ASN.1 used by SNMP."""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass

CLASS_UNIVERSAL = 0
CLASS_APPLICATION = 1
CLASS_CONTEXT_SPECIFIC = 2
CLASS_PRIVATE = 3

TAG_INTEGER = 0x02
TAG_OCTET_STRING = 0x04
TAG_NULL = 0x05
TAG_OID = 0x06
TAG_SEQUENCE = 0x10

# Identifier byte of a universal, constructed SEQUENCE.
SEQUENCE = 0x30

_HIGH_TAG = 0x1F
_OID_COMPONENT = re.compile(r"\d+")


class BerError(ValueError):
    """Raised when data cannot be encoded or decoded as BER."""


class ObjectIdentifier(tuple):
    """An ASN.1 object identifier: a tuple of non-negative integers."""

    __slots__ = ()

    def __new__(cls, components: Iterable[int] = ()) -> ObjectIdentifier:
        return super().__new__(cls, (int(c) for c in components))

    def __str__(self) -> str:
        return ".".join(map(str, self))

    def __repr__(self) -> str:
        return f"ObjectIdentifier({str(self)!r})"


@dataclass(frozen=True)
class RawValue:
    """A decoded but uninterpreted BER element."""

    cls: int
    constructed: bool
    tag: int
    content: bytes
    full_bytes: bytes


def parse_oid(text: str) -> ObjectIdentifier:
    """Parse dotted notation, ignoring leading and trailing dots."""
    parts = text.strip(".").split(".")
    for part in parts:
        if not _OID_COMPONENT.fullmatch(part):
            raise BerError(f"invalid OID component {part!r} in {text!r}")
    return ObjectIdentifier(int(part) for part in parts)


def encode_length(length: int) -> bytes:
    """Encode a definite length in the shortest form."""
    if length < 0:
        raise BerError(f"negative length {length}")
    if length < 0x80:
        return bytes([length])
    body = length.to_bytes((length.bit_length() + 7) // 8, "big")
    return bytes([0x80 | len(body)]) + body


def encode_tlv(tag: int, content: bytes) -> bytes:
    """Encode an element whose identifier is the single byte ``tag``."""
    if not 0 <= tag <= 0xFF:
        raise BerError(f"identifier {tag} does not fit in one byte")
    content = bytes(content)
    return bytes([tag]) + encode_length(len(content)) + content


def encode_integer(value: int) -> bytes:
    """Encode an INTEGER in minimal two's complement form."""
    size = (value + (value < 0)).bit_length() // 8 + 1
    return encode_tlv(TAG_INTEGER, value.to_bytes(size, "big", signed=True))


def encode_octet_string(value: bytes | bytearray | str) -> bytes:
    """Encode an OCTET STRING; text is encoded as UTF-8."""
    if isinstance(value, str):
        value = value.encode("utf-8")
    return encode_tlv(TAG_OCTET_STRING, bytes(value))


def encode_null() -> bytes:
    """Encode a NULL."""
    return encode_tlv(TAG_NULL, b"")


def _base128(value: int) -> bytes:
    groups = [value & 0x7F]
    value >>= 7
    while value:
        groups.append(0x80 | (value & 0x7F))
        value >>= 7
    return bytes(reversed(groups))


def encode_oid(oid: Iterable[int]) -> bytes:
    """Encode an OBJECT IDENTIFIER."""
    components = tuple(oid)
    if len(components) < 2:
        raise BerError("object identifier needs at least two components")
    if any(c < 0 for c in components):
        raise BerError("object identifier components must not be negative")
    first, second = components[0], components[1]
    if first > 2 or (first < 2 and second >= 40):
        raise BerError(f"invalid object identifier {ObjectIdentifier(components)}")
    body = b"".join(_base128(v) for v in (first * 40 + second, *components[2:]))
    return encode_tlv(TAG_OID, body)


def encode_sequence(elements: Iterable[bytes]) -> bytes:
    """Encode a SEQUENCE of already encoded elements."""
    return encode_tlv(SEQUENCE, b"".join(elements))


def decode(data: bytes) -> tuple[RawValue, bytes]:
    """Decode one element, returning it and the bytes that follow it."""
    data = bytes(data)
    if not data:
        raise BerError("truncated tag")
    first = data[0]
    cls = first >> 6
    constructed = bool(first & 0x20)
    tag = first & _HIGH_TAG
    pos = 1
    if tag == _HIGH_TAG:
        tag = 0
        while True:
            if pos >= len(data):
                raise BerError("truncated tag")
            byte = data[pos]
            pos += 1
            tag = (tag << 7) | (byte & 0x7F)
            if not byte & 0x80:
                break
    if pos >= len(data):
        raise BerError("truncated length")
    length_byte = data[pos]
    pos += 1
    if length_byte < 0x80:
        length = length_byte
    elif length_byte == 0x80:
        raise BerError("indefinite length is not supported")
    elif length_byte == 0xFF:
        raise BerError("invalid length byte 0xff")
    else:
        count = length_byte & 0x7F
        if pos + count > len(data):
            raise BerError("truncated length")
        length = int.from_bytes(data[pos : pos + count], "big")
        pos += count
    end = pos + length
    if end > len(data):
        raise BerError("data truncated")
    return RawValue(cls, constructed, tag, data[pos:end], data[:end]), data[end:]


def decode_integer(raw: RawValue) -> int:
    """Interpret an element's content as a two's complement integer."""
    if not raw.content:
        raise BerError("empty integer")
    return int.from_bytes(raw.content, "big", signed=True)


def decode_octet_string(raw: RawValue) -> bytes:
    """Interpret an element's content as octets, joining constructed parts."""
    if not raw.constructed:
        return raw.content
    return b"".join(decode_octet_string(part) for part in decode_sequence(raw))


def decode_oid(raw: RawValue) -> ObjectIdentifier:
    """Interpret an element's content as an object identifier."""
    if not raw.content:
        raise BerError("zero length object identifier")
    values: list[int] = []
    current = 0
    pending = False
    for byte in raw.content:
        current = (current << 7) | (byte & 0x7F)
        pending = bool(byte & 0x80)
        if not pending:
            values.append(current)
            current = 0
    if pending:
        raise BerError("truncated object identifier")
    head = values[0]
    if head < 40:
        prefix = (0, head)
    elif head < 80:
        prefix = (1, head - 40)
    else:
        prefix = (2, head - 80)
    return ObjectIdentifier((*prefix, *values[1:]))


def decode_sequence(raw: RawValue) -> list[RawValue]:
    """Decode the elements held in a constructed element."""
    if not raw.constructed:
        raise BerError(f"element with tag {raw.tag} is not constructed")
    elements = []
    rest = raw.content
    while rest:
        element, rest = decode(rest)
        elements.append(element)
    return elements