"""Scan descriptors: the logical range reads a job is built from.

A ScanDescriptor names a half-open row range ``[start_row, stop_row)`` plus the
column, version and caching options every split cut from it inherits.
Empty row keys mean "beginning of table" and "end of table".
"""

from __future__ import annotations

import dataclasses
import string
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Tuple, Union

INT32_MAX = 2**31 - 1
INT64_MAX = 2**63 - 1

DEFAULT_MAX_VERSIONS = 1
DEFAULT_CACHING = 1

Column = Tuple[bytes, Optional[bytes]]
BytesLike = Union[bytes, bytearray, str]


def to_string_binary(value: bytes) -> str:
    """Render row keys as printable text, escaping other bytes as ``\\xNN``.

    Printable ASCII is kept as-is except the backslash, so the output can
    always be parsed back with to_bytes_binary().
    """
    out: List[str] = []
    for byte in value:
        if 0x20 <= byte <= 0x7E and byte != 0x5C:
            out.append(chr(byte))
        else:
            out.append(f"\\x{byte:02X}")
    return "".join(out)


def to_bytes_binary(text: str) -> bytes:
    """Inverse of to_string_binary(). Unknown escapes are kept literally."""
    out = bytearray()
    i = 0
    while i < len(text):
        ch = text[i]
        hex_digits = text[i + 2 : i + 4]
        if (
            ch == "\\"
            and text[i + 1 : i + 2] == "x"
            and len(hex_digits) == 2
            and all(c in string.hexdigits for c in hex_digits)
        ):
            out.append(int(hex_digits, 16))
            i += 4
            continue
        out.extend(ch.encode("utf-8"))
        i += 1
    return bytes(out)


def _as_bytes(value: BytesLike) -> bytes:
    if isinstance(value, str):
        return to_bytes_binary(value)
    return bytes(value)


def parse_column(text: str) -> Column:
    """Parse ``family:qualifier`` (or bare ``family``) into a column pair."""
    family, sep, qualifier = text.partition(":")
    if not family:
        raise ValueError(f"Column '{text}' has an empty family")
    if not sep:
        return to_bytes_binary(family), None
    return to_bytes_binary(family), to_bytes_binary(qualifier)


def format_column(column: Column) -> str:
    family, qualifier = column
    if qualifier is None:
        return to_string_binary(family)
    return f"{to_string_binary(family)}:{to_string_binary(qualifier)}"


@dataclass(frozen=True)
class TimeRange:
    """Half-open timestamp range ``[start, end)``."""

    start: int = 0
    end: int = INT64_MAX

    def __post_init__(self) -> None:
        if not 0 <= self.start <= INT64_MAX or not 0 <= self.end <= INT64_MAX:
            raise ValueError(f"Timestamps must be within [0, {INT64_MAX}]: {self.start}, {self.end}")
        if self.start > self.end:
            raise ValueError(f"Time range start {self.start} is after end {self.end}")

    @classmethod
    def at(cls, timestamp: int) -> "TimeRange":
        """Range selecting exactly one timestamp."""
        return cls(timestamp, timestamp + 1)


@dataclass(frozen=True)
class ScanDescriptor:
    """One logical range read.

    Example:
        scan = ScanDescriptor(
            start_row=b"user#0100",
            stop_row=b"user#0200",
            columns={(b"d", b"email"), (b"m", None)},
            max_versions=3,
        )
    """

    start_row: bytes = b""
    stop_row: bytes = b""
    columns: FrozenSet[Column] = field(default_factory=frozenset)
    time_range: Optional[TimeRange] = None
    max_versions: int = DEFAULT_MAX_VERSIONS
    cache_blocks: bool = True
    caching: int = DEFAULT_CACHING

    def __post_init__(self) -> None:
        object.__setattr__(self, "start_row", _as_bytes(self.start_row))
        object.__setattr__(self, "stop_row", _as_bytes(self.stop_row))
        object.__setattr__(self, "columns", _normalize_columns(self.columns))

        if self.start_row and self.stop_row and self.start_row > self.stop_row:
            raise ValueError(
                f"start_row {to_string_binary(self.start_row)!r} sorts after "
                f"stop_row {to_string_binary(self.stop_row)!r}"
            )
        if isinstance(self.max_versions, bool) or not 1 <= self.max_versions <= INT32_MAX:
            raise ValueError(f"max_versions must be a positive 32-bit integer, got {self.max_versions!r}")
        if isinstance(self.caching, bool) or not 1 <= self.caching <= INT32_MAX:
            raise ValueError(f"caching must be a positive 32-bit integer, got {self.caching!r}")
        if not isinstance(self.cache_blocks, bool):
            raise ValueError(f"cache_blocks must be a boolean, got {self.cache_blocks!r}")

    def with_range(self, start_row: bytes, stop_row: bytes) -> "ScanDescriptor":
        """Copy of this scan narrowed to another row range."""
        return dataclasses.replace(self, start_row=start_row, stop_row=stop_row)

    def family_map(self) -> List[Tuple[bytes, bool, List[bytes]]]:
        """Columns grouped by family, sorted.

        Each entry is ``(family, whole_family, qualifiers)``; ``whole_family``
        is set when the family was selected without a qualifier.
        """
        grouped: Dict[bytes, Tuple[bool, List[bytes]]] = {}
        for family, qualifier in self.columns:
            whole, qualifiers = grouped.get(family, (False, []))
            if qualifier is None:
                whole = True
            else:
                qualifiers.append(qualifier)
            grouped[family] = (whole, qualifiers)
        return [
            (family, whole, sorted(qualifiers))
            for family, (whole, qualifiers) in sorted(grouped.items())
        ]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScanDescriptor":
        """Create a ScanDescriptor from a job file mapping.

        Row keys use the escaped text form of to_string_binary(); columns are
        ``family:qualifier`` or ``family`` strings.
        """
        time_range: Optional[TimeRange] = None
        raw_range = data.get("time_range")
        if raw_range is not None:
            if isinstance(raw_range, dict):
                time_range = TimeRange(
                    int(raw_range.get("start", 0)), int(raw_range.get("end", INT64_MAX))
                )
            else:
                start, end = raw_range
                time_range = TimeRange(int(start), int(end))
        elif data.get("timestamp") is not None:
            time_range = TimeRange.at(int(data["timestamp"]))

        return cls(
            start_row=str(data.get("start_row") or ""),
            stop_row=str(data.get("stop_row") or ""),
            columns=frozenset(parse_column(str(c)) for c in data.get("columns") or []),
            time_range=time_range,
            max_versions=int(data.get("max_versions", DEFAULT_MAX_VERSIONS)),
            cache_blocks=_parse_flag(data.get("cache_blocks", True), "cache_blocks"),
            caching=int(data.get("caching", DEFAULT_CACHING)),
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "start_row": to_string_binary(self.start_row),
            "stop_row": to_string_binary(self.stop_row),
            "columns": sorted(format_column(c) for c in self.columns),
            "max_versions": self.max_versions,
            "cache_blocks": self.cache_blocks,
            "caching": self.caching,
        }
        if self.time_range is not None:
            data["time_range"] = {"start": self.time_range.start, "end": self.time_range.end}
        return data


def _parse_flag(value: Any, name: str) -> bool:
    """Accept a bool or the text "true"/"false" in any case."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized == "true":
            return True
        if normalized == "false":
            return False
    raise ValueError(f"{name} must be true or false, got {value!r}")


def _normalize_columns(columns: Iterable[Tuple[BytesLike, Optional[BytesLike]]]) -> FrozenSet[Column]:
    normalized = set()
    for family, qualifier in columns:
        family_bytes = _as_bytes(family)
        if not family_bytes:
            raise ValueError("Column family must not be empty")
        normalized.add((family_bytes, None if qualifier is None else _as_bytes(qualifier)))
    return frozenset(normalized)
