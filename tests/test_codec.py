"""Tests for the scan descriptor codec."""

import base64
import struct

import pytest

from scansplit import codec
from scansplit.codec import (
    ScanCodec,
    decode,
    decode_compressed,
    deserialize,
    encode,
    encode_compressed,
    encoded_sizes,
    serialize,
)
from scansplit.exceptions import (
    DecodeError,
    DecompressionError,
    InvalidEncodingError,
    MalformedPayloadError,
)
from scansplit.scan import INT32_MAX, INT64_MAX, ScanDescriptor, TimeRange

EMPTY_SCAN_PAYLOAD = (
    b"\x01"  # format version
    b"\x00"  # start_row
    b"\x00"  # stop_row
    b"\x00\x00\x00\x01"  # max_versions
    b"\x00\x00\x00\x01"  # caching
    b"\x01"  # cache_blocks
    b"\x00"  # no time range
    b"\x00\x00\x00\x00"  # family count
)


def _wide_scan() -> ScanDescriptor:
    return ScanDescriptor(
        start_row=b"",
        stop_row=b"",
        columns={(b"cf", b"col_%04d" % i) for i in range(200)},
    )


def _b64(payload: bytes) -> str:
    return base64.b64encode(payload).decode("ascii")


SCANS = [
    ScanDescriptor(),
    ScanDescriptor(b"a", b"b"),
    ScanDescriptor(b"\x00\xff", b"", columns={(b"m", None)}),
    ScanDescriptor(
        b"user#0100",
        b"user#0200",
        columns={(b"d", b"email"), (b"d", None), (b"d", b""), (b"m", b"x")},
        time_range=TimeRange(1000, 2000),
        max_versions=3,
        cache_blocks=False,
        caching=500,
    ),
    ScanDescriptor(
        time_range=TimeRange(0, INT64_MAX), max_versions=INT32_MAX, caching=INT32_MAX
    ),
    ScanDescriptor(b"k" * 300, b"l" * 300),
    _wide_scan(),
]


@pytest.mark.parametrize("scan", SCANS)
def test_plain_round_trip(scan):
    assert decode(encode(scan)) == scan


@pytest.mark.parametrize("scan", SCANS)
def test_compressed_round_trip(scan):
    assert decode_compressed(encode_compressed(scan)) == scan


def test_serialize_layout_of_default_scan():
    assert serialize(ScanDescriptor()) == EMPTY_SCAN_PAYLOAD
    assert encode(ScanDescriptor()) == _b64(EMPTY_SCAN_PAYLOAD)


def test_serialize_layout_with_rows_time_range_and_columns():
    scan = ScanDescriptor(
        b"a",
        b"bc",
        columns={(b"f", None), (b"f", b"q")},
        time_range=TimeRange(5, 9),
        max_versions=2,
        caching=7,
        cache_blocks=False,
    )
    assert serialize(scan) == (
        b"\x01"
        + b"\x01a"
        + b"\x02bc"
        + struct.pack(">i", 2)
        + struct.pack(">i", 7)
        + b"\x00"
        + b"\x01"
        + struct.pack(">q", 5)
        + struct.pack(">q", 9)
        + struct.pack(">i", 1)
        + b"\x01f"
        + b"\x01"
        + struct.pack(">i", 1)
        + b"\x01q"
    )


def test_long_keys_use_multi_byte_length_prefix():
    payload = serialize(ScanDescriptor(b"k" * 300, b""))
    # 300 = 0b10_0101100 -> 0xAC 0x02
    assert payload[1:3] == b"\xac\x02"
    assert deserialize(payload).start_row == b"k" * 300


def test_encoding_is_deterministic():
    first = ScanDescriptor(columns={(b"b", b"2"), (b"a", b"1"), (b"b", b"1")})
    second = ScanDescriptor(columns={(b"b", b"1"), (b"a", b"1"), (b"b", b"2")})
    assert encode(first) == encode(second)
    assert encode_compressed(first) == encode_compressed(second)


def test_encoded_text_is_transport_safe():
    allowed = set("ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789+/=")
    for scan in SCANS:
        assert set(encode(scan)) <= allowed
        assert set(encode_compressed(scan)) <= allowed


def test_compressed_not_larger_for_repetitive_scan():
    plain_size, compressed_size = encoded_sizes(_wide_scan())
    assert compressed_size < plain_size


def test_tiny_scan_compressed_stays_within_snappy_framing():
    scan = ScanDescriptor()
    plain_text = encode(scan)
    compressed_text = encode_compressed(scan)

    assert decode(plain_text) == scan
    assert decode_compressed(compressed_text) == scan
    # varint length preamble plus one literal tag
    assert len(base64.b64decode(compressed_text)) <= len(EMPTY_SCAN_PAYLOAD) + 2
    plain_size, compressed_size = encoded_sizes(scan)
    assert compressed_size <= plain_size + 4


def test_decode_tolerates_surrounding_whitespace():
    scan = ScanDescriptor(b"a", b"b")
    assert decode("  " + encode(scan) + "\n") == scan


# =============================================================================
# Failures
# =============================================================================


@pytest.mark.parametrize("text", ["not base64!", "abc", "QUJD\x00"])
def test_invalid_base64_raises_invalid_encoding(text):
    with pytest.raises(InvalidEncodingError) as exc_info:
        decode(text)
    assert exc_info.value.details["variant"] == "plain"


def test_invalid_base64_in_compressed_variant():
    with pytest.raises(InvalidEncodingError) as exc_info:
        decode_compressed("@@@@")
    assert exc_info.value.details["variant"] == "compressed"


def test_non_text_input_raises_invalid_encoding():
    with pytest.raises(InvalidEncodingError):
        decode(12345)


def test_unknown_format_version():
    with pytest.raises(MalformedPayloadError, match="version 2"):
        decode(_b64(b"\x02" + EMPTY_SCAN_PAYLOAD[1:]))


def test_empty_payload():
    with pytest.raises(MalformedPayloadError, match="Truncated"):
        decode("")


def test_truncated_payload():
    with pytest.raises(MalformedPayloadError, match="Truncated") as exc_info:
        decode(_b64(EMPTY_SCAN_PAYLOAD[:-2]))
    assert exc_info.value.details["offset"] == len(EMPTY_SCAN_PAYLOAD) - 4


def test_length_prefix_past_end_of_buffer():
    with pytest.raises(MalformedPayloadError, match="Invalid length prefix 127"):
        decode(_b64(b"\x01\x7fabc"))


def test_overlong_length_prefix():
    with pytest.raises(MalformedPayloadError, match="too long"):
        decode(_b64(b"\x01" + b"\x80" * 5 + b"\x00"))


def test_trailing_bytes():
    with pytest.raises(MalformedPayloadError, match="trailing"):
        decode(_b64(EMPTY_SCAN_PAYLOAD + b"\x00"))


def test_invalid_boolean_marker():
    payload = bytearray(EMPTY_SCAN_PAYLOAD)
    payload[11] = 7  # cache_blocks
    with pytest.raises(MalformedPayloadError, match="Invalid boolean 7"):
        decode(_b64(bytes(payload)))


def test_negative_family_count():
    payload = EMPTY_SCAN_PAYLOAD[:-4] + struct.pack(">i", -1)
    with pytest.raises(MalformedPayloadError, match="Negative family count"):
        decode(_b64(payload))


def test_payload_describing_invalid_scan():
    payload = b"\x01\x00\x00" + struct.pack(">i", 0) + EMPTY_SCAN_PAYLOAD[7:]
    with pytest.raises(MalformedPayloadError, match="valid scan") as exc_info:
        decode(_b64(payload))
    assert isinstance(exc_info.value.original_error, ValueError)


def test_inverted_rows_in_payload():
    payload = b"\x01\x01z\x01a" + EMPTY_SCAN_PAYLOAD[3:]
    with pytest.raises(MalformedPayloadError):
        decode(_b64(payload))


def test_corrupted_compressed_payload_is_decompression_error():
    with pytest.raises(DecompressionError) as exc_info:
        decode_compressed(_b64(b"\xff" * 6))
    assert exc_info.value.error_code == "DEC002"


def test_truncated_compressed_payload():
    raw = base64.b64decode(encode_compressed(_wide_scan()))
    with pytest.raises(DecompressionError):
        decode_compressed(_b64(raw[: len(raw) // 2]))


def test_compressed_payload_claiming_huge_size():
    with pytest.raises(DecompressionError, match="limit"):
        decode_compressed(_b64(b"\xff\xff\xff\xff\x0f" + b"\x00" * 8))


def test_empty_compressed_payload():
    with pytest.raises(DecompressionError, match="truncated"):
        decode_compressed("")


def test_corrupted_compressed_is_distinguishable_from_bad_base64():
    with pytest.raises(DecodeError) as corrupt:
        decode_compressed(_b64(b"\xff" * 6))
    with pytest.raises(DecodeError) as bad_text:
        decode_compressed("%%%%")
    assert type(corrupt.value) is DecompressionError
    assert type(bad_text.value) is InvalidEncodingError


def test_wrong_variant_fails(rich_scan):
    with pytest.raises(DecodeError):
        decode(encode_compressed(rich_scan))
    with pytest.raises(DecodeError):
        decode_compressed(encode(rich_scan))


# =============================================================================
# ScanCodec
# =============================================================================


def test_scan_codec_selects_variant(rich_scan):
    plain = ScanCodec(compressed=False)
    compressed = ScanCodec(compressed=True)

    assert plain.variant == "plain"
    assert compressed.variant == "compressed"
    assert plain.encode(rich_scan) == encode(rich_scan)
    assert compressed.encode(rich_scan) == encode_compressed(rich_scan)
    assert compressed.decode(compressed.encode(rich_scan)) == rich_scan
    assert repr(compressed) == "ScanCodec(compressed=True)"


def test_module_exports_decode_error():
    assert codec.DecodeError is DecodeError
