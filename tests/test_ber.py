import pytest

from netmanage.snmp.ber import (
    CLASS_CONTEXT_SPECIFIC,
    CLASS_UNIVERSAL,
    TAG_INTEGER,
    TAG_OCTET_STRING,
    TAG_SEQUENCE,
    BerError,
    ObjectIdentifier,
    decode,
    decode_integer,
    decode_octet_string,
    decode_oid,
    decode_sequence,
    encode_integer,
    encode_length,
    encode_null,
    encode_octet_string,
    encode_oid,
    encode_sequence,
    encode_tlv,
    parse_oid,
)

SYS_NAME_OID = bytes([0x06, 0x08, 0x2B, 0x06, 0x01, 0x02, 0x01, 0x01, 0x05, 0x00])
PUBLIC = bytes([0x04, 0x06, 0x70, 0x75, 0x62, 0x6C, 0x69, 0x63])


def test_encode_oid_matches_wire_format():
    assert encode_oid(parse_oid("1.3.6.1.2.1.1.5.0")) == SYS_NAME_OID


def test_encode_null_wire_format():
    assert encode_null() == b"\x05\x00"


def test_encode_integer_wire_format():
    assert encode_integer(123456) == bytes([0x02, 0x03, 0x01, 0xE2, 0x40])


def test_encode_octet_string_wire_format():
    assert encode_octet_string(b"public") == PUBLIC
    assert encode_octet_string("public") == PUBLIC


@pytest.mark.parametrize(
    "value", [0, 1, -1, 127, 128, -128, -129, 255, 256, 2**31 - 1, -(2**31), 2**40]
)
def test_integer_round_trip(value):
    raw, rest = decode(encode_integer(value))
    assert rest == b""
    assert raw.cls == CLASS_UNIVERSAL
    assert raw.tag == TAG_INTEGER
    assert raw.constructed is False
    assert decode_integer(raw) == value


def test_integer_encoding_is_minimal():
    for value in range(-300, 300):
        content = encode_integer(value)[2:]
        if len(content) > 1:
            redundant_zero = content[0] == 0x00 and content[1] < 0x80
            redundant_ones = content[0] == 0xFF and content[1] >= 0x80
            assert not (redundant_zero or redundant_ones)


@pytest.mark.parametrize(
    "text", ["1.3.6.1.2.1.1.5.0", "1.3.6.1.4.1.99999.1", "2.999.3", "0.39", "1.3.10"]
)
def test_oid_round_trip(text):
    raw, rest = decode(encode_oid(parse_oid(text)))
    assert rest == b""
    assert str(decode_oid(raw)) == text


def test_parse_oid_strips_dots():
    assert parse_oid(".1.3.6.") == (1, 3, 6)
    assert str(parse_oid("1.3.6.1")) == "1.3.6.1"


def test_object_identifier_behaves_as_tuple():
    oid = ObjectIdentifier([1, 3, 10])
    assert oid == (1, 3, 10)
    assert str(oid) == "1.3.10"


@pytest.mark.parametrize("text", ["", "1.a.3", "1..3", "1.-3"])
def test_parse_oid_rejects_invalid_text(text):
    with pytest.raises(BerError):
        parse_oid(text)


@pytest.mark.parametrize("oid", [(1,), (3, 1), (1, 40), (1, 3, -1)])
def test_encode_oid_rejects_invalid(oid):
    with pytest.raises(BerError):
        encode_oid(oid)


@pytest.mark.parametrize("size", [0, 1, 127, 128, 255, 256, 70000])
def test_length_round_trip(size):
    encoded = encode_tlv(TAG_OCTET_STRING, bytes(size))
    raw, rest = decode(encoded)
    assert rest == b""
    assert raw.content == bytes(size)
    assert raw.full_bytes == encoded
    length = encode_length(size)
    if size < 0x80:
        assert len(length) == 1
    else:
        assert length[0] & 0x80
        assert len(length) == 1 + (length[0] & 0x7F)


def test_encode_tlv_rejects_wide_identifier():
    with pytest.raises(BerError):
        encode_tlv(0x100, b"")


def test_decode_long_form_length_and_rest():
    raw, rest = decode(bytes([0x30, 0x82, 0x00, 0x03, 0x02, 0x01, 0x05]) + b"tail")
    assert rest == b"tail"
    assert raw.tag == TAG_SEQUENCE
    assert raw.constructed is True
    assert [decode_integer(e) for e in decode_sequence(raw)] == [5]


def test_decode_context_specific_element():
    raw, rest = decode(b"\x82\x00")
    assert rest == b""
    assert raw.cls == CLASS_CONTEXT_SPECIFIC
    assert raw.tag == 0x82 & 0x1F
    assert raw.content == b""


def test_decode_high_tag_number():
    raw, _ = decode(b"\x1f\x81\x00\x01z")
    assert raw.tag == 128
    assert raw.content == b"z"


@pytest.mark.parametrize(
    "data",
    [b"", b"\xff\xff\xff", b"\x04\x05ab", b"\x02\xff\x01\x02\x03", b"\x30\x80\x00\x00", b"\x04"],
)
def test_decode_rejects_malformed_data(data):
    with pytest.raises(BerError):
        decode(data)


def test_decode_integer_rejects_empty():
    raw, _ = decode(b"\x02\x00")
    with pytest.raises(BerError):
        decode_integer(raw)


@pytest.mark.parametrize("data", [b"\x06\x01\x81", b"\x06\x00"])
def test_decode_oid_rejects_malformed(data):
    raw, _ = decode(data)
    with pytest.raises(BerError):
        decode_oid(raw)


def test_decode_sequence_rejects_primitive():
    raw, _ = decode(encode_integer(7))
    with pytest.raises(BerError):
        decode_sequence(raw)


def test_sequence_round_trip():
    elements = [encode_integer(1), encode_octet_string(b"abc"), encode_null(), SYS_NAME_OID]
    raw, rest = decode(encode_sequence(elements))
    assert rest == b""
    assert raw.tag == TAG_SEQUENCE
    assert [element.full_bytes for element in decode_sequence(raw)] == elements


def test_constructed_octet_string_is_joined():
    raw, _ = decode(b"\x24\x07\x04\x02ab\x04\x01c")
    assert decode_octet_string(raw) == b"abc"