"""Scan descriptor codec.

Turns a ScanDescriptor into a base64 string that can be stored as a job
configuration value, and back. Two variants exist:

- plain: binary payload -> base64
- compressed: binary payload -> raw Snappy -> base64

The variant is NOT recorded in the text. Callers pass it out of band (see
``scansplit.scan.compressed``); decoding with the wrong variant fails with a
DecodeError or, rarely, yields a different descriptor.

BINARY LAYOUT (big-endian, fixed field order)
---------------------------------------------

    u8     format version (1)
    bytes  start_row                  (LEB128 length + data)
    bytes  stop_row
    i32    max_versions
    i32    caching
    u8     cache_blocks
    u8     has_time_range
    i64    time_range.start           (only if has_time_range)
    i64    time_range.end             (only if has_time_range)
    i32    family count
           per family, sorted:
             bytes  family
             u8     whole_family
             i32    qualifier count
             bytes  qualifier         (sorted)
"""

import base64
import struct
from typing import List, Tuple

import pyarrow as pa

from scansplit.exceptions import (
    DecodeError,
    DecompressionError,
    InvalidEncodingError,
    MalformedPayloadError,
)
from scansplit.scan import Column, ScanDescriptor, TimeRange

FORMAT_VERSION = 1

# Upper bound on the size a Snappy preamble may claim before we allocate.
MAX_DECOMPRESSED_BYTES = 64 * 1024 * 1024

_INT32 = struct.Struct(">i")
_INT64 = struct.Struct(">q")

_SNAPPY = pa.Codec("snappy")


# =============================================================================
# Binary payload
# =============================================================================


def _write_varint(out: bytearray, value: int) -> None:
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return


def _write_bytes(out: bytearray, value: bytes) -> None:
    _write_varint(out, len(value))
    out.extend(value)


def serialize(scan: ScanDescriptor) -> bytes:
    """Serialize a descriptor into the binary payload (no text transform)."""
    out = bytearray()
    out.append(FORMAT_VERSION)
    _write_bytes(out, scan.start_row)
    _write_bytes(out, scan.stop_row)
    out.extend(_INT32.pack(scan.max_versions))
    out.extend(_INT32.pack(scan.caching))
    out.append(1 if scan.cache_blocks else 0)

    if scan.time_range is None:
        out.append(0)
    else:
        out.append(1)
        out.extend(_INT64.pack(scan.time_range.start))
        out.extend(_INT64.pack(scan.time_range.end))

    families = scan.family_map()
    out.extend(_INT32.pack(len(families)))
    for family, whole, qualifiers in families:
        _write_bytes(out, family)
        out.append(1 if whole else 0)
        out.extend(_INT32.pack(len(qualifiers)))
        for qualifier in qualifiers:
            _write_bytes(out, qualifier)
    return bytes(out)


class _PayloadReader:
    """Cursor over a binary payload that raises MalformedPayloadError on overrun."""

    def __init__(self, data: bytes, variant: str) -> None:
        self.data = data
        self.variant = variant
        self.pos = 0

    def _fail(self, message: str) -> MalformedPayloadError:
        return MalformedPayloadError(message, variant=self.variant, offset=self.pos)

    def _take(self, size: int, what: str) -> bytes:
        end = self.pos + size
        if end > len(self.data):
            raise self._fail(
                f"Truncated {what}: need {size} byte(s), {len(self.data) - self.pos} left"
            )
        chunk = self.data[self.pos:end]
        self.pos = end
        return chunk

    def u8(self, what: str) -> int:
        return self._take(1, what)[0]

    def flag(self, what: str) -> bool:
        value = self.u8(what)
        if value > 1:
            raise self._fail(f"Invalid boolean {value} for {what}")
        return value == 1

    def i32(self, what: str) -> int:
        return _INT32.unpack(self._take(4, what))[0]

    def count(self, what: str) -> int:
        value = self.i32(what)
        if value < 0:
            raise self._fail(f"Negative {what}: {value}")
        return value

    def i64(self, what: str) -> int:
        return _INT64.unpack(self._take(8, what))[0]

    def varint(self, what: str) -> int:
        result = 0
        for shift in range(0, 35, 7):
            byte = self.u8(what)
            result |= (byte & 0x7F) << shift
            if not byte & 0x80:
                return result
        raise self._fail(f"Length prefix for {what} is too long")

    def bytes_field(self, what: str) -> bytes:
        length = self.varint(f"{what} length")
        if length > len(self.data) - self.pos:
            raise self._fail(
                f"Invalid length prefix {length} for {what}: only {len(self.data) - self.pos} byte(s) left"
            )
        return self._take(length, what)

    def finish(self) -> None:
        if self.pos != len(self.data):
            raise self._fail(f"{len(self.data) - self.pos} trailing byte(s) after scan")


def deserialize(payload: bytes, variant: str = "plain") -> ScanDescriptor:
    """Parse a binary payload produced by serialize()."""
    reader = _PayloadReader(payload, variant)
    version = reader.u8("format version")
    if version != FORMAT_VERSION:
        raise MalformedPayloadError(
            f"Unsupported scan format version {version}", variant=variant, offset=0
        )

    start_row = reader.bytes_field("start_row")
    stop_row = reader.bytes_field("stop_row")
    max_versions = reader.i32("max_versions")
    caching = reader.i32("caching")
    cache_blocks = reader.flag("cache_blocks")

    time_bounds = None
    if reader.flag("time range marker"):
        time_bounds = (reader.i64("time range start"), reader.i64("time range end"))

    columns: List[Column] = []
    for _ in range(reader.count("family count")):
        family = reader.bytes_field("family")
        if reader.flag("whole family marker"):
            columns.append((family, None))
        for _ in range(reader.count("qualifier count")):
            columns.append((family, reader.bytes_field("qualifier")))
    reader.finish()

    try:
        return ScanDescriptor(
            start_row=start_row,
            stop_row=stop_row,
            columns=frozenset(columns),
            time_range=TimeRange(*time_bounds) if time_bounds is not None else None,
            max_versions=max_versions,
            cache_blocks=cache_blocks,
            caching=caching,
        )
    except ValueError as exc:
        raise MalformedPayloadError(
            f"Payload does not describe a valid scan: {exc}",
            variant=variant,
            original_error=exc,
        ) from exc


# =============================================================================
# Text transform and compression
# =============================================================================


def _to_text(payload: bytes) -> str:
    return base64.b64encode(payload).decode("ascii")


def _from_text(text: str, variant: str) -> bytes:
    if not isinstance(text, (str, bytes)):
        raise InvalidEncodingError(
            f"Encoded scan must be text, got {type(text).__name__}", variant=variant
        )
    try:
        return base64.b64decode(text.strip(), validate=True)
    except ValueError as exc:  # binascii.Error and non-ASCII input
        raise InvalidEncodingError(
            f"Encoded scan is not valid base64: {exc}", variant=variant, original_error=exc
        ) from exc


def _snappy_uncompressed_length(payload: bytes) -> int:
    """Read the little-endian varint length preamble of a raw Snappy block."""
    result = 0
    for index, shift in enumerate(range(0, 35, 7)):
        if index >= len(payload):
            raise DecompressionError(
                "Compressed scan is truncated inside its length preamble",
                variant="compressed",
            )
        byte = payload[index]
        result |= (byte & 0x7F) << shift
        if not byte & 0x80:
            if result > MAX_DECOMPRESSED_BYTES:
                raise DecompressionError(
                    f"Compressed scan claims {result} bytes, limit is {MAX_DECOMPRESSED_BYTES}",
                    variant="compressed",
                )
            return result
    raise DecompressionError(
        "Compressed scan has an invalid length preamble", variant="compressed"
    )


def _compress(payload: bytes) -> bytes:
    return _SNAPPY.compress(payload, asbytes=True)


def _decompress(payload: bytes) -> bytes:
    size = _snappy_uncompressed_length(payload)
    try:
        return _SNAPPY.decompress(payload, decompressed_size=size, asbytes=True)
    except (pa.ArrowException, OSError, ValueError) as exc:
        raise DecompressionError(
            f"Compressed scan is corrupt: {exc}", variant="compressed", original_error=exc
        ) from exc


# =============================================================================
# Public API
# =============================================================================


def encode(scan: ScanDescriptor) -> str:
    """Encode a descriptor as plain base64 text."""
    return _to_text(serialize(scan))


def encode_compressed(scan: ScanDescriptor) -> str:
    """Encode a descriptor as Snappy-compressed base64 text."""
    return _to_text(_compress(serialize(scan)))


def decode(text: str) -> ScanDescriptor:
    """Inverse of encode().

    Raises:
        InvalidEncodingError: text is not base64
        MalformedPayloadError: payload does not parse into a descriptor
    """
    return deserialize(_from_text(text, "plain"), "plain")


def decode_compressed(text: str) -> ScanDescriptor:
    """Inverse of encode_compressed().

    Raises:
        InvalidEncodingError: text is not base64
        DecompressionError: Snappy payload is corrupt or truncated
        MalformedPayloadError: decompressed payload does not parse
    """
    return deserialize(_decompress(_from_text(text, "compressed")), "compressed")


class ScanCodec:
    """Codec bound to one variant, chosen by the out-of-band compression flag.

    Example:
        codec = ScanCodec(compressed=conf.get_bool(SCAN_COMPRESSED, False))
        scans = [codec.decode(text) for text in encoded]
    """

    def __init__(self, compressed: bool = False) -> None:
        self.compressed = compressed

    @property
    def variant(self) -> str:
        return "compressed" if self.compressed else "plain"

    def encode(self, scan: ScanDescriptor) -> str:
        return encode_compressed(scan) if self.compressed else encode(scan)

    def decode(self, text: str) -> ScanDescriptor:
        return decode_compressed(text) if self.compressed else decode(text)

    def __repr__(self) -> str:
        return f"ScanCodec(compressed={self.compressed})"


def encoded_sizes(scan: ScanDescriptor) -> Tuple[int, int]:
    """Return ``(plain_length, compressed_length)`` of the encoded text."""
    return len(encode(scan)), len(encode_compressed(scan))


__all__ = [
    "FORMAT_VERSION",
    "ScanCodec",
    "DecodeError",
    "serialize",
    "deserialize",
    "encode",
    "encode_compressed",
    "decode",
    "decode_compressed",
    "encoded_sizes",
]
