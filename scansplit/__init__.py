"""Split planning for multi-range scans over partitioned, sorted tables.

Layer Structure:
    scansplit.scan           - Scan descriptors
    scansplit.codec          - Scan <-> configuration string codec
    scansplit.config         - Job configuration and job files
    scansplit.partitioning   - Partition layouts and lookup services
    scansplit.splits         - Per-scan split computation
    scansplit.aggregator     - Multi-scan split aggregation
    scansplit.manifest       - Split manifest export
"""

__version__ = "1.0.0"

from scansplit.aggregator import (
    AggregatorState,
    ScanSet,
    SplitAggregator,
    SplitContext,
    initialize,
    initialize_from_configuration,
)
from scansplit.codec import (
    ScanCodec,
    decode,
    decode_compressed,
    encode,
    encode_compressed,
)
from scansplit.exceptions import (
    ConfigurationError,
    DecodeError,
    DecompressionError,
    InvalidEncodingError,
    MalformedPayloadError,
    ScanSplitError,
    SplitComputationError,
)
from scansplit.scan import ScanDescriptor, TimeRange
from scansplit.splits import RangeSplitter, Split

__all__ = [
    "__version__",
    # scans
    "ScanDescriptor",
    "TimeRange",
    # codec
    "ScanCodec",
    "encode",
    "encode_compressed",
    "decode",
    "decode_compressed",
    # splits
    "Split",
    "RangeSplitter",
    "ScanSet",
    "AggregatorState",
    "SplitContext",
    "SplitAggregator",
    "initialize",
    "initialize_from_configuration",
    # errors
    "ScanSplitError",
    "DecodeError",
    "InvalidEncodingError",
    "DecompressionError",
    "MalformedPayloadError",
    "ConfigurationError",
    "SplitComputationError",
]
