"""Partitioning service interface.

A partitioning service knows how a table's sorted key space is divided into
partitions and which host serves each one. Split computation asks it, once
per scan, for the partitions a row range touches.

Service Registration:
    Use the @register_partitioning decorator so job files can select a
    service by name:

    @register_partitioning("static")
    class StaticPartitionMap(PartitioningService):
        ...

    build_partitioning_service({"type": "static", ...}, table) then creates it.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple, Type

from scansplit.exceptions import ConfigurationError
from scansplit.scan import to_bytes_binary, to_string_binary


@dataclass(frozen=True)
class Partition:
    """A contiguous key range ``[start_key, end_key)`` served from one place.

    Empty keys are unbounded: an empty start_key is the beginning of the
    table and an empty end_key is its end.
    """

    name: str
    start_key: bytes = b""
    end_key: bytes = b""
    locations: Tuple[str, ...] = ()

    @property
    def location(self) -> Optional[str]:
        """Preferred location, if any."""
        return self.locations[0] if self.locations else None

    @classmethod
    def from_dict(cls, data: Dict[str, Any], default_name: str = "") -> "Partition":
        """Create a Partition from a job file mapping (keys in escaped text form)."""
        locations = data.get("locations")
        if locations is None:
            locations = [data["location"]] if data.get("location") else []
        if isinstance(locations, str):
            locations = [locations]
        return cls(
            name=str(data.get("name") or default_name),
            start_key=to_bytes_binary(str(data.get("start") or "")),
            end_key=to_bytes_binary(str(data.get("end") or "")),
            locations=tuple(str(loc) for loc in locations),
        )

    def __str__(self) -> str:
        return (
            f"{self.name}[{to_string_binary(self.start_key)!r}, "
            f"{to_string_binary(self.end_key)!r})@{','.join(self.locations) or '-'}"
        )


def overlaps(partition: Partition, start_row: bytes, stop_row: bytes) -> bool:
    """Whether ``[start_row, stop_row)`` touches ``partition``.

    Empty row keys are unbounded. A scan whose stop row equals the
    partition's start key does not touch it.
    """
    starts_before_end = not start_row or not partition.end_key or start_row < partition.end_key
    stops_after_start = not stop_row or stop_row > partition.start_key
    return starts_before_end and stops_after_start


class PartitioningService(ABC):
    """Maps a row range of a table to the ordered partitions it intersects."""

    @abstractmethod
    def partitions_for(self, table: str, start_row: bytes, stop_row: bytes) -> List[Partition]:
        """Return partitions of ``table`` covering ``[start_row, stop_row)``, in key order.

        Implementations may return more partitions than the range touches
        (for example the whole table); callers drop the ones that do not
        intersect. Any exception signals the service could not answer.
        """
        ...

    @classmethod
    def from_config(cls, cfg: Dict[str, Any], table: str) -> "PartitioningService":
        raise NotImplementedError(f"{cls.__name__} cannot be built from a job file")


# =============================================================================
# Service Registry
# =============================================================================

PARTITIONING_REGISTRY: Dict[str, Type[PartitioningService]] = {}


def register_partitioning(service_type: str) -> Callable[[Type[PartitioningService]], Type[PartitioningService]]:
    """Decorator to register a partitioning service class under ``service_type``."""
    def decorator(cls: Type[PartitioningService]) -> Type[PartitioningService]:
        PARTITIONING_REGISTRY[service_type] = cls
        return cls
    return decorator


def list_partitioning_types() -> List[str]:
    return sorted(PARTITIONING_REGISTRY)


def build_partitioning_service(cfg: Dict[str, Any], table: str) -> PartitioningService:
    """Instantiate the service named by ``cfg["type"]`` for ``table``.

    Raises:
        ConfigurationError: Unknown or missing type, or invalid settings
    """
    service_type = cfg.get("type")
    if not service_type:
        raise ConfigurationError("partitioning.type is required", key="partitioning.type")

    service_cls = PARTITIONING_REGISTRY.get(str(service_type))
    if service_cls is None:
        raise ConfigurationError(
            f"Unknown partitioning type '{service_type}'. "
            f"Available: {', '.join(list_partitioning_types())}",
            key="partitioning.type",
        )
    try:
        return service_cls.from_config(cfg, table)
    except (KeyError, TypeError, ValueError) as exc:
        raise ConfigurationError(
            f"Invalid '{service_type}' partitioning settings: {exc}",
            key="partitioning",
            original_error=exc,
        ) from exc
