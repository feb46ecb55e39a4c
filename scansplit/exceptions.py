"""Custom exception classes for scansplit.

This module provides specific exception types so callers can tell decode,
configuration and split computation failures apart.
"""

from typing import Optional, Dict, Any


class ScanSplitError(Exception):
    """Base exception for all scansplit errors."""

    error_code: str = "ERR000"  # Override in subclasses

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None, error_code: Optional[str] = None):
        """
        Initialize scansplit exception.

        Args:
            message: Human-readable error message
            details: Optional dictionary with additional context
            error_code: Optional error code override
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if error_code:
            self.error_code = error_code

    def __str__(self) -> str:
        """Return string representation with error code and details."""
        parts = [f"[{self.error_code}] {self.message}"]
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            parts.append(f"({detail_str})")
        return " ".join(parts)


class DecodeError(ScanSplitError):
    """Raised when an encoded scan cannot be turned back into a descriptor.

    Subclasses identify the stage that failed; catch DecodeError to handle
    all of them.
    """

    error_code = "DEC000"

    def __init__(
        self,
        message: str,
        variant: Optional[str] = None,
        offset: Optional[int] = None,
        original_error: Optional[Exception] = None
    ):
        """
        Initialize decode error.

        Args:
            message: Description of decode failure
            variant: Encoding variant being decoded (plain, compressed)
            offset: Byte offset in the binary payload where parsing stopped
            original_error: Original exception that caused this error
        """
        details: Dict[str, Any] = {}
        if variant:
            details['variant'] = variant
        if offset is not None:
            details['offset'] = offset
        if original_error:
            details['original_error'] = str(original_error)
            details['error_type'] = type(original_error).__name__

        super().__init__(message, details)
        self.original_error = original_error


class InvalidEncodingError(DecodeError):
    """Raised when the text is not valid base64."""

    error_code = "DEC001"


class DecompressionError(DecodeError):
    """Raised when a compressed payload is corrupt or truncated."""

    error_code = "DEC002"


class MalformedPayloadError(DecodeError):
    """Raised when the binary payload does not parse into a descriptor.

    Examples:
        - Truncated field
        - Length prefix running past the end of the buffer
        - Unknown format version
        - Trailing bytes after the last field
    """

    error_code = "DEC003"


class ConfigurationError(ScanSplitError):
    """Raised when the job configuration cannot produce a scan set.

    Examples:
        - Missing or zero scan count
        - Missing encoded scan at a declared index
        - Non-numeric value for an integer key
        - An encoded scan that fails to decode
    """

    error_code = "CFG001"

    def __init__(
        self,
        message: str,
        key: Optional[str] = None,
        index: Optional[int] = None,
        config_path: Optional[str] = None,
        original_error: Optional[Exception] = None
    ):
        """
        Initialize configuration error.

        Args:
            message: Description of configuration failure
            key: Configuration key that caused the error
            index: Scan index that caused the error
            config_path: Path to job file that failed to load
            original_error: Original exception that caused this error
        """
        details: Dict[str, Any] = {}
        if key:
            details['config_key'] = key
        if index is not None:
            details['scan_index'] = index
        if config_path:
            details['config_path'] = config_path
        if original_error:
            details['original_error'] = str(original_error)
            details['error_type'] = type(original_error).__name__

        super().__init__(message, details)
        self.original_error = original_error


class SplitComputationError(ScanSplitError):
    """Raised when splits cannot be computed for a scan.

    Examples:
        - Partitioning service unreachable
        - Partition list empty, unordered, overlapping or with gaps
        - Partitions that do not cover the scanned range
    """

    error_code = "SPL001"

    def __init__(
        self,
        message: str,
        table: Optional[str] = None,
        scan_index: Optional[int] = None,
        partition: Optional[str] = None,
        original_error: Optional[Exception] = None
    ):
        """
        Initialize split computation error.

        Args:
            message: Description of split computation failure
            table: Table whose partitions were requested
            scan_index: Index of the scan being split
            partition: Partition name involved in the failure
            original_error: Original exception that caused this error
        """
        details: Dict[str, Any] = {}
        if table:
            details['table'] = table
        if scan_index is not None:
            details['scan_index'] = scan_index
        if partition:
            details['partition'] = partition
        if original_error:
            details['original_error'] = str(original_error)
            details['error_type'] = type(original_error).__name__

        super().__init__(message, details)
        self.original_error = original_error
