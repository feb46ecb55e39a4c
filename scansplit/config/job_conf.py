"""String-keyed job configuration and the scan keys stored in it.

The processing framework only moves strings between the submitting process
and its tasks, so scans travel as encoded values under indexed keys:

    scansplit.input.table      = events
    scansplit.scan.count       = 3
    scansplit.scan.0           = AQRhYWFhBGJiYmIAAAAB...
    scansplit.scan.1           = ...
    scansplit.scan.2           = ...
    scansplit.scan.compressed  = false

Without ``scansplit.scan.count`` the job has exactly one scan under the legacy
``scansplit.scan`` key. When that is missing too, the scan may be described
field by field with the ``scansplit.scan.row.start`` family of keys.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence

from scansplit import codec
from scansplit.exceptions import ConfigurationError
from scansplit.scan import INT64_MAX, ScanDescriptor, TimeRange, parse_column, to_bytes_binary

logger = logging.getLogger(__name__)

INPUT_TABLE = "scansplit.input.table"
SCAN = "scansplit.scan"
SCAN_COUNT = "scansplit.scan.count"
SCAN_COMPRESSED = "scansplit.scan.compressed"

# Per-field scan parameters, read only when no encoded scan is configured.
SCAN_ROW_START = "scansplit.scan.row.start"
SCAN_ROW_STOP = "scansplit.scan.row.stop"
SCAN_COLUMN_FAMILY = "scansplit.scan.column.family"
SCAN_COLUMNS = "scansplit.scan.columns"
SCAN_TIMESTAMP = "scansplit.scan.timestamp"
SCAN_TIMERANGE_START = "scansplit.scan.timerange.start"
SCAN_TIMERANGE_END = "scansplit.scan.timerange.end"
SCAN_MAXVERSIONS = "scansplit.scan.maxversions"
SCAN_CACHEBLOCKS = "scansplit.scan.cacheblocks"
SCAN_CACHEDROWS = "scansplit.scan.cachedrows"

SCAN_PARAMETER_KEYS = (
    SCAN_ROW_START,
    SCAN_ROW_STOP,
    SCAN_COLUMN_FAMILY,
    SCAN_COLUMNS,
    SCAN_TIMESTAMP,
    SCAN_TIMERANGE_START,
    SCAN_TIMERANGE_END,
    SCAN_MAXVERSIONS,
    SCAN_CACHEBLOCKS,
    SCAN_CACHEDROWS,
)


def scan_key(index: int) -> str:
    """Key holding the encoded scan at ``index``."""
    return f"{SCAN}.{index}"


class JobConfiguration:
    """Flat string-to-string job configuration.

    Values are stored as strings; booleans are written as ``true``/``false``.

    Example:
        conf = JobConfiguration({INPUT_TABLE: "events"})
        conf.set(SCAN_COUNT, 2)
        conf.get_int(SCAN_COUNT)  # 2
    """

    def __init__(self, values: Optional[Mapping[str, Any]] = None) -> None:
        self._values: Dict[str, str] = {}
        for key, value in (values or {}).items():
            self.set(key, value)

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self._values.get(key, default)

    def set(self, key: str, value: Any) -> None:
        if value is None:
            raise ConfigurationError("Configuration values must not be None", key=key)
        if isinstance(value, bool):
            value = "true" if value else "false"
        self._values[str(key)] = str(value)

    def unset(self, key: str) -> None:
        self._values.pop(key, None)

    def get_int(self, key: str, default: Optional[int] = None) -> Optional[int]:
        raw = self._values.get(key)
        if raw is None:
            return default
        try:
            return int(raw.strip())
        except ValueError as exc:
            raise ConfigurationError(
                f"Expected an integer for '{key}', got {raw!r}", key=key, original_error=exc
            ) from exc

    def get_bool(self, key: str, default: bool = False) -> bool:
        """Return ``true``/``false`` (any case) as a bool; anything else yields default."""
        raw = self._values.get(key)
        if raw is None:
            return default
        normalized = raw.strip().lower()
        if normalized == "true":
            return True
        if normalized == "false":
            return False
        return default

    def as_dict(self) -> Dict[str, str]:
        return dict(self._values)

    def __contains__(self, key: object) -> bool:
        return key in self._values

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._values))

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"JobConfiguration({len(self._values)} keys)"


def write_scan_set(
    conf: JobConfiguration,
    scans: Sequence[ScanDescriptor],
    compress: Optional[bool] = None,
    max_value_length: Optional[int] = None,
) -> bool:
    """Store ``scans`` in ``conf`` as an indexed scan set.

    Args:
        conf: Configuration to write into
        scans: Scans in the order splits should be produced
        compress: Force the compressed (True) or plain (False) variant. None
            compresses only when some plain value exceeds max_value_length.
        max_value_length: Largest value the configuration transport accepts

    Returns:
        Whether the compressed variant was written

    Raises:
        ConfigurationError: No scans given, or an encoded value is still
            longer than max_value_length
    """
    if not scans:
        raise ConfigurationError("At least one scan is required", key=SCAN_COUNT)

    encoded = [codec.encode(scan) for scan in scans]
    if compress is None:
        compress = max_value_length is not None and any(
            len(text) > max_value_length for text in encoded
        )
        if compress:
            logger.info(
                "Plain scan encoding exceeds %d characters; compressing all %d scans",
                max_value_length,
                len(scans),
            )
    if compress:
        encoded = [codec.encode_compressed(scan) for scan in scans]

    if max_value_length is not None:
        for index, text in enumerate(encoded):
            if len(text) > max_value_length:
                raise ConfigurationError(
                    f"Encoded scan is {len(text)} characters, limit is {max_value_length}",
                    key=scan_key(index),
                    index=index,
                )

    previous_count = conf.get_int(SCAN_COUNT, 0) or 0
    for index in range(len(encoded), previous_count):
        conf.unset(scan_key(index))

    conf.set(SCAN_COUNT, len(encoded))
    for index, text in enumerate(encoded):
        conf.set(scan_key(index), text)
    conf.set(SCAN_COMPRESSED, compress)

    logger.debug("Wrote %d scan(s) to configuration (compressed=%s)", len(encoded), compress)
    return compress


def has_scan_parameters(conf: JobConfiguration) -> bool:
    return any(key in conf for key in SCAN_PARAMETER_KEYS)


def scan_from_parameters(conf: JobConfiguration) -> Optional[ScanDescriptor]:
    """Build a scan from the per-field ``scansplit.scan.*`` keys.

    Returns None when none of those keys are set. Block caching defaults to
    off in this form.
    """
    if not has_scan_parameters(conf):
        return None

    columns: List = []
    family = conf.get(SCAN_COLUMN_FAMILY)
    if family:
        columns.append((to_bytes_binary(family), None))
    for column in (conf.get(SCAN_COLUMNS) or "").split():
        try:
            columns.append(parse_column(column))
        except ValueError as exc:
            raise ConfigurationError(str(exc), key=SCAN_COLUMNS, original_error=exc) from exc

    time_range = None
    timestamp = conf.get_int(SCAN_TIMESTAMP)
    range_start = conf.get_int(SCAN_TIMERANGE_START)
    range_end = conf.get_int(SCAN_TIMERANGE_END)

    try:
        if timestamp is not None:
            time_range = TimeRange.at(timestamp)
        elif range_start is not None or range_end is not None:
            time_range = TimeRange(
                range_start if range_start is not None else 0,
                range_end if range_end is not None else INT64_MAX,
            )

        return ScanDescriptor(
            start_row=to_bytes_binary(conf.get(SCAN_ROW_START) or ""),
            stop_row=to_bytes_binary(conf.get(SCAN_ROW_STOP) or ""),
            columns=frozenset(columns),
            time_range=time_range,
            max_versions=conf.get_int(SCAN_MAXVERSIONS, 1),
            cache_blocks=conf.get_bool(SCAN_CACHEBLOCKS, False),
            caching=conf.get_int(SCAN_CACHEDROWS, 1),
        )
    except ValueError as exc:
        raise ConfigurationError(
            f"Scan parameters do not describe a valid scan: {exc}", original_error=exc
        ) from exc
