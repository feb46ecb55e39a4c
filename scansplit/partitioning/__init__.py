"""Partitioning services: where a table's partitions are and who serves them."""

from .base import (
    PARTITIONING_REGISTRY,
    Partition,
    PartitioningService,
    build_partitioning_service,
    list_partitioning_types,
    overlaps,
    register_partitioning,
)
from .rest import RestPartitioningService
from .static import StaticPartitionMap

__all__ = [
    "PARTITIONING_REGISTRY",
    "Partition",
    "PartitioningService",
    "build_partitioning_service",
    "list_partitioning_types",
    "overlaps",
    "register_partitioning",
    "RestPartitioningService",
    "StaticPartitionMap",
]
