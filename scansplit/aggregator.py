"""Multi-scan split aggregation.

Turns the scan set configured for a job into the job's full, ordered split
list:

    configuration strings
        -> ScanSet                      (declared count + encoded entries)
        -> initialize()                 (decode every entry, fail on any gap)
        -> AggregatorState              (immutable decoded scans)
        -> SplitAggregator.compute_splits()
        -> [Split, ...]                 (scan order, then partition order)

Splits are concatenated, never merged: two overlapping scans produce
overlapping splits. Any failure raises and no partial list is returned, so a
job never silently skips a range.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple, Union

from scansplit import codec
from scansplit.config.job_conf import (
    INPUT_TABLE,
    SCAN,
    SCAN_COMPRESSED,
    SCAN_COUNT,
    JobConfiguration,
    scan_from_parameters,
    scan_key,
)
from scansplit.exceptions import ConfigurationError, DecodeError
from scansplit.logging_config import log_performance
from scansplit.partitioning.base import PartitioningService
from scansplit.scan import ScanDescriptor
from scansplit.splits import RangeSplitter, Split

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScanSet:
    """Encoded scans for one job with their declared count.

    ``entries[i]`` is None when index ``i`` was declared but not provided.
    """

    declared_count: int
    entries: Tuple[Optional[str], ...]
    legacy: bool = False

    @classmethod
    def from_configuration(cls, conf: JobConfiguration, compressed: Optional[bool] = None) -> "ScanSet":
        """Read the scan set from ``conf``.

        With ``scansplit.scan.count`` set, entries come from the indexed keys.
        Without it the job has one scan: the ``scansplit.scan`` value, or one
        built from the per-field scan keys (encoded with the configured
        variant so it goes through the same decode path).
        """
        count = conf.get_int(SCAN_COUNT)
        if count is not None:
            entries = tuple(conf.get(scan_key(index)) for index in range(max(count, 0)))
            return cls(declared_count=count, entries=entries)

        entry = conf.get(SCAN)
        if entry is None:
            scan = scan_from_parameters(conf)
            if scan is not None:
                if compressed is None:
                    compressed = conf.get_bool(SCAN_COMPRESSED, False)
                entry = codec.ScanCodec(compressed).encode(scan)
        return cls(declared_count=1, entries=(entry,), legacy=True)

    def __len__(self) -> int:
        return self.declared_count


@dataclass(frozen=True)
class AggregatorState:
    """Decoded scans, ready for split computation."""

    scans: Tuple[ScanDescriptor, ...]
    compressed: bool = False

    @property
    def default_scan(self) -> ScanDescriptor:
        """First scan; stands in wherever a single scan is expected."""
        return self.scans[0]

    def __len__(self) -> int:
        return len(self.scans)


def initialize(scan_set: ScanSet, use_compression: bool) -> AggregatorState:
    """Decode every scan of ``scan_set`` in order.

    Raises:
        ConfigurationError: The declared count is not positive, an entry is
            missing, or an entry does not decode
    """
    if scan_set.declared_count <= 0:
        raise ConfigurationError(
            f"Scan count must be positive, got {scan_set.declared_count}", key=SCAN_COUNT
        )

    scan_codec = codec.ScanCodec(compressed=use_compression)
    scans: List[ScanDescriptor] = []
    for index in range(scan_set.declared_count):
        key = SCAN if scan_set.legacy else scan_key(index)
        entry = scan_set.entries[index] if index < len(scan_set.entries) else None
        if entry is None:
            raise ConfigurationError(
                f"No scan configured for declared index {index}", key=key, index=index
            )
        try:
            scans.append(scan_codec.decode(entry))
        except DecodeError as exc:
            raise ConfigurationError(
                f"Scan {index} could not be decoded ({scan_codec.variant}): {exc.message}",
                key=key,
                index=index,
                original_error=exc,
            ) from exc

    logger.info("Initialized %d scan(s) (%s encoding)", len(scans), scan_codec.variant)
    return AggregatorState(scans=tuple(scans), compressed=use_compression)


def initialize_from_configuration(conf: JobConfiguration) -> AggregatorState:
    """Read the scan set and compression flag from ``conf`` and initialize."""
    compressed = conf.get_bool(SCAN_COMPRESSED, False)
    return initialize(ScanSet.from_configuration(conf, compressed), compressed)


@dataclass(frozen=True)
class SplitContext:
    """What split computation needs to know about the job."""

    table: str

    @classmethod
    def from_configuration(cls, conf: JobConfiguration) -> "SplitContext":
        table = conf.get(INPUT_TABLE)
        if not table:
            raise ConfigurationError("Input table is not configured", key=INPUT_TABLE)
        return cls(table=table)


class SplitAggregator:
    """Concatenate the splits of every scan in a job.

    Args:
        splitter: Per-scan split computation (or a PartitioningService, which
            is wrapped in a RangeSplitter)
        max_workers: Look up partitions for up to this many scans at once.
            Output order does not depend on it.

    Example:
        aggregator = SplitAggregator(StaticPartitionMap.from_split_keys("t", [b"m"]))
        state = initialize_from_configuration(conf)
        splits = aggregator.compute_splits(state, SplitContext("t"))
    """

    def __init__(self, splitter: Union[RangeSplitter, PartitioningService], max_workers: int = 1) -> None:
        if isinstance(splitter, PartitioningService):
            splitter = RangeSplitter(splitter)
        self.splitter: RangeSplitter = splitter
        self.max_workers = max(1, max_workers)

    def compute_splits(self, state: AggregatorState, context: SplitContext) -> List[Split]:
        """Splits of every scan, scan order first, then partition order.

        Raises:
            SplitComputationError: Splits could not be computed for some scan;
                no splits are returned in that case
        """
        started = time.perf_counter()
        if self.max_workers > 1 and len(state.scans) > 1:
            per_scan = self._compute_parallel(state.scans, context)
        else:
            per_scan = [
                self._splits_for(context, index, scan)
                for index, scan in enumerate(state.scans)
            ]

        splits: List[Split] = []
        for local_splits in per_scan:
            splits.extend(local_splits)

        log_performance(
            logger,
            "compute_splits",
            time.perf_counter() - started,
            table=context.table,
            scans=len(state.scans),
            splits=len(splits),
        )
        return splits

    def _splits_for(self, context: SplitContext, index: int, scan: ScanDescriptor) -> List[Split]:
        try:
            return self.splitter.splits_for(context.table, scan, index)
        except Exception:
            logger.error("Split computation failed for scan %d of %s", index, context.table)
            raise

    def _compute_parallel(
        self, scans: Sequence[ScanDescriptor], context: SplitContext
    ) -> List[List[Split]]:
        logger.info("Computing splits for %d scans with %d workers", len(scans), self.max_workers)
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures: List[Future] = [
                executor.submit(self._splits_for, context, index, scan)
                for index, scan in enumerate(scans)
            ]
            results: List[List[Split]] = []
            try:
                for future in futures:
                    results.append(future.result())
            except BaseException:
                for future in futures:
                    future.cancel()
                raise
        return results
