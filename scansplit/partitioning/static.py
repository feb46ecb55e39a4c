"""Partitioning service backed by a fixed partition layout.

Useful for local planning, tests and tables whose region boundaries are
known up front (pre-split tables).
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

from scansplit.exceptions import SplitComputationError
from scansplit.partitioning.base import (
    Partition,
    PartitioningService,
    overlaps,
    register_partitioning,
)
from scansplit.scan import to_bytes_binary

logger = logging.getLogger(__name__)


@register_partitioning("static")
class StaticPartitionMap(PartitioningService):
    """Serve partitions from an in-memory layout per table.

    Example:
        service = StaticPartitionMap.from_split_keys(
            "events", [b"g", b"p"], locations=["rs1", "rs2"]
        )
        service.partitions_for("events", b"a", b"h")  # all three partitions
    """

    def __init__(self, tables: Mapping[str, Sequence[Partition]]) -> None:
        self.tables: Dict[str, List[Partition]] = {
            table: list(partitions) for table, partitions in tables.items()
        }

    @classmethod
    def from_split_keys(
        cls,
        table: str,
        split_keys: Sequence[bytes],
        locations: Optional[Sequence[str]] = None,
    ) -> "StaticPartitionMap":
        """Layout of a table pre-split at ``split_keys``.

        ``n`` split keys give ``n + 1`` partitions; locations are assigned
        round-robin.
        """
        boundaries = [b""] + sorted(split_keys) + [b""]
        partitions = []
        for index in range(len(boundaries) - 1):
            hosts = (locations[index % len(locations)],) if locations else ()
            partitions.append(
                Partition(
                    name=f"{table},{index:05d}",
                    start_key=boundaries[index],
                    end_key=boundaries[index + 1],
                    locations=hosts,
                )
            )
        return cls({table: partitions})

    @classmethod
    def from_config(cls, cfg: Dict[str, Any], table: str) -> "StaticPartitionMap":
        """Build from ``partitions:`` entries or ``split_keys:`` plus ``locations:``."""
        if cfg.get("partitions"):
            partitions = [
                Partition.from_dict(item, default_name=f"{table},{index:05d}")
                for index, item in enumerate(cfg["partitions"])
            ]
            return cls({table: partitions})
        split_keys = [to_bytes_binary(str(key)) for key in cfg.get("split_keys") or []]
        return cls.from_split_keys(table, split_keys, cfg.get("locations"))

    def partitions_for(self, table: str, start_row: bytes, stop_row: bytes) -> List[Partition]:
        partitions = self.tables.get(table)
        if partitions is None:
            raise SplitComputationError(f"No partition layout for table '{table}'", table=table)
        logger.debug(
            "Static layout for %s: %d partition(s), %d touched by the requested range",
            table,
            len(partitions),
            sum(1 for p in partitions if overlaps(p, start_row, stop_row)),
        )
        return list(partitions)
