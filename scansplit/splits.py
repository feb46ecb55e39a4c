"""Splits and per-scan split computation.

A Split is the part of one scan that falls inside one partition. The
RangeSplitter computes the splits of a single scan by asking a
PartitioningService for the table's partitions, checking the answer is a
consistent layout, and intersecting the scan's row range with each partition.

INTERSECTION
------------

    partitions:  [""  , "g")  ["g" , "p")  ["p" , ""  )
    scan:              ["c"        ,        "r")

    splits:      ["c" , "g")  ["g" , "p")  ["p" , "r")

The split start is the later of scan start and partition start; the split
stop is the earlier of scan stop and partition end, where empty keys are
unbounded.

CONSISTENCY CHECKS
------------------

The partition list must be non-empty and hold only Partition objects with
bytes keys. Each partition's range must be non-empty, neighbours must share
a boundary (no gaps, overlaps or reordering) and the list must cover the
whole scan range. Anything else is reported as SplitComputationError rather
than producing a work list with holes in it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from scansplit.exceptions import SplitComputationError
from scansplit.logging_config import get_logger
from scansplit.partitioning.base import Partition, PartitioningService, overlaps
from scansplit.scan import ScanDescriptor, format_column, to_string_binary


@dataclass(frozen=True)
class Split:
    """One unit of parallel work.

    ``scan`` is the parent scan narrowed to this split's row range; columns,
    time range, versions and caching hints are the parent's.
    """

    table: str
    scan_index: int
    scan: ScanDescriptor
    partition: Partition

    @property
    def start_row(self) -> bytes:
        return self.scan.start_row

    @property
    def stop_row(self) -> bytes:
        return self.scan.stop_row

    @property
    def locations(self) -> Tuple[str, ...]:
        return self.partition.locations

    @property
    def location(self) -> Optional[str]:
        return self.partition.location

    def to_record(self) -> Dict[str, Any]:
        """Flat row for manifests and logs; keys in escaped text form."""
        time_range = self.scan.time_range
        return {
            "scan_index": self.scan_index,
            "table": self.table,
            "partition": self.partition.name,
            "start_row": to_string_binary(self.start_row),
            "stop_row": to_string_binary(self.stop_row),
            "locations": ",".join(self.locations),
            "columns": " ".join(sorted(format_column(c) for c in self.scan.columns)),
            "max_versions": self.scan.max_versions,
            "cache_blocks": self.scan.cache_blocks,
            "caching": self.scan.caching,
            "time_range_start": time_range.start if time_range else None,
            "time_range_end": time_range.end if time_range else None,
        }

    def __str__(self) -> str:
        return (
            f"{self.table}#{self.scan_index} [{to_string_binary(self.start_row)!r}, "
            f"{to_string_binary(self.stop_row)!r}) on {self.partition.name}"
        )


def intersect(scan: ScanDescriptor, partition: Partition) -> Optional[Tuple[bytes, bytes]]:
    """Row range shared by ``scan`` and ``partition``, or None if disjoint."""
    if not overlaps(partition, scan.start_row, scan.stop_row):
        return None

    start = max(scan.start_row, partition.start_key)
    if not scan.stop_row:
        stop = partition.end_key
    elif not partition.end_key:
        stop = scan.stop_row
    else:
        stop = min(scan.stop_row, partition.end_key)
    return start, stop


def _check_partition_type(
    partition: Any, position: int, table: str, scan_index: Optional[int]
) -> None:
    if not isinstance(partition, Partition):
        raise SplitComputationError(
            f"Partitioning service returned {type(partition).__name__} at position {position}, "
            "expected Partition",
            table=table,
            scan_index=scan_index,
        )
    for attr in ("start_key", "end_key"):
        value = getattr(partition, attr)
        if not isinstance(value, bytes):
            raise SplitComputationError(
                f"Partition {partition.name!r} has a {type(value).__name__} {attr}, expected bytes",
                table=table,
                scan_index=scan_index,
                partition=partition.name,
            )


def validate_partitions(
    partitions: Sequence[Partition],
    scan: ScanDescriptor,
    table: str,
    scan_index: Optional[int] = None,
) -> None:
    """Raise SplitComputationError unless ``partitions`` is a consistent layout covering ``scan``."""
    if not partitions:
        raise SplitComputationError(
            "Partitioning service returned no partitions", table=table, scan_index=scan_index
        )

    for position, partition in enumerate(partitions):
        _check_partition_type(partition, position, table, scan_index)

    for position, partition in enumerate(partitions):
        if partition.end_key and partition.end_key <= partition.start_key:
            raise SplitComputationError(
                f"Partition has an empty or inverted range: {partition}",
                table=table,
                scan_index=scan_index,
                partition=partition.name,
            )
        if position == len(partitions) - 1:
            break
        following = partitions[position + 1]
        if not partition.end_key:
            raise SplitComputationError(
                f"Unbounded partition {partition} is followed by {following}",
                table=table,
                scan_index=scan_index,
                partition=partition.name,
            )
        if partition.end_key != following.start_key:
            raise SplitComputationError(
                f"Partitions are not contiguous: {partition} then {following}",
                table=table,
                scan_index=scan_index,
                partition=following.name,
            )

    first, last = partitions[0], partitions[-1]
    covers_start = not first.start_key or (scan.start_row and first.start_key <= scan.start_row)
    covers_stop = not last.end_key or (scan.stop_row and scan.stop_row <= last.end_key)
    if not (covers_start and covers_stop):
        raise SplitComputationError(
            f"Partitions [{to_string_binary(first.start_key)!r}, {to_string_binary(last.end_key)!r}) "
            f"do not cover scan range [{to_string_binary(scan.start_row)!r}, "
            f"{to_string_binary(scan.stop_row)!r})",
            table=table,
            scan_index=scan_index,
        )


class RangeSplitter:
    """Compute the splits of one scan from a partitioning service.

    Example:
        splitter = RangeSplitter(StaticPartitionMap.from_split_keys("t", [b"m"]))
        splitter.splits_for("t", ScanDescriptor(b"a", b"z"), scan_index=0)
        # -> 2 splits: [a, m) and [m, z)
    """

    def __init__(self, service: PartitioningService) -> None:
        self.service = service

    def splits_for(self, table: str, scan: ScanDescriptor, scan_index: int = 0) -> List[Split]:
        """Splits of ``scan`` in the order the service listed the partitions.

        Raises:
            SplitComputationError: The service failed or answered with an
                inconsistent partition list
        """
        try:
            partitions = list(self.service.partitions_for(table, scan.start_row, scan.stop_row))
        except SplitComputationError as exc:
            if exc.details.get("scan_index") is None:
                exc.details["scan_index"] = scan_index
            raise
        except Exception as exc:
            raise SplitComputationError(
                f"Partitioning service failed: {exc}",
                table=table,
                scan_index=scan_index,
                original_error=exc,
            ) from exc

        validate_partitions(partitions, scan, table, scan_index)

        splits: List[Split] = []
        for partition in partitions:
            bounds = intersect(scan, partition)
            if bounds is None:
                continue
            splits.append(
                Split(
                    table=table,
                    scan_index=scan_index,
                    scan=scan.with_range(*bounds),
                    partition=partition,
                )
            )

        log = get_logger(__name__, extra={"table": table, "scan_index": scan_index})
        log.debug(
            "Scan %d on %s touches %d of %d partition(s)",
            scan_index,
            table,
            len(splits),
            len(partitions),
        )
        return splits
