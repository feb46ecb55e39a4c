"""Job configuration: string store, scan keys and YAML job files."""

from .job_conf import (
    INPUT_TABLE,
    SCAN,
    SCAN_COUNT,
    SCAN_COMPRESSED,
    JobConfiguration,
    scan_from_parameters,
    scan_key,
    write_scan_set,
)
from .loader import JobSpec, expand_env, load_job

__all__ = [
    "INPUT_TABLE",
    "SCAN",
    "SCAN_COUNT",
    "SCAN_COMPRESSED",
    "JobConfiguration",
    "scan_from_parameters",
    "scan_key",
    "write_scan_set",
    "JobSpec",
    "expand_env",
    "load_job",
]
