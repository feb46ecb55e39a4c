"""Pytest configuration and fixtures."""

import logging
import sys
from pathlib import Path
from typing import List

import pytest

# Ensure project root is on sys.path so scansplit_plan can be imported
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from scansplit.partitioning.base import Partition  # noqa: E402
from scansplit.partitioning.static import StaticPartitionMap  # noqa: E402
from scansplit.scan import ScanDescriptor, TimeRange  # noqa: E402


@pytest.fixture
def restore_root_logger():
    """Undo setup_logging() changes to the root logger after the test."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield root
    for handler in list(root.handlers):
        if handler not in handlers:
            handler.close()
            root.removeHandler(handler)
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)


@pytest.fixture
def three_partitions() -> List[Partition]:
    """Table split at "g" and "p": ["", "g"), ["g", "p"), ["p", "")."""
    return [
        Partition("events,00000", b"", b"g", ("rs1",)),
        Partition("events,00001", b"g", b"p", ("rs2",)),
        Partition("events,00002", b"p", b"", ("rs3",)),
    ]


@pytest.fixture
def static_service(three_partitions) -> StaticPartitionMap:
    return StaticPartitionMap({"events": three_partitions})


@pytest.fixture
def rich_scan() -> ScanDescriptor:
    return ScanDescriptor(
        start_row=b"user#0100",
        stop_row=b"user#0200",
        columns={(b"d", b"email"), (b"d", b"name"), (b"m", None)},
        time_range=TimeRange(1000, 2000),
        max_versions=3,
        cache_blocks=False,
        caching=500,
    )
