"""YAML job file loading.

A job file describes the input table, the scans to split and where partition
boundaries come from:

```yaml
table: events
compress: null            # true | false | null (decide from max_value_length)
max_value_length: 65536
workers: 1
partitioning:
  type: static
  partitions:
    - {name: r1, start: "", end: "g", locations: [rs1.example.com]}
    - {name: r2, start: "g", end: "", locations: [rs2.example.com]}
scans:
  - {start_row: "a", stop_row: "c", columns: ["d:email", "m"]}
  - {start_row: "k", stop_row: "p", max_versions: 3}
configuration:            # raw keys copied into the job configuration
  scansplit.scan.cachedrows: "500"
```

String values may reference the environment as ``${VAR}`` or
``${VAR:default}``; ``$${`` produces a literal ``${``.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from scansplit.config.job_conf import (
    INPUT_TABLE,
    SCAN_COMPRESSED,
    JobConfiguration,
    write_scan_set,
)
from scansplit.exceptions import ConfigurationError
from scansplit.scan import ScanDescriptor

logger = logging.getLogger(__name__)

_ENV_VAR_PATTERN = re.compile(r"\$(\$?)\{([^}:]+)(?::([^}]*))?\}")


def expand_env(value: Any, source: Optional[str] = None) -> Any:
    """Recursively expand ``${VAR}`` references in strings, lists and mappings.

    Raises:
        ConfigurationError: A referenced variable is unset and has no default
    """
    if isinstance(value, str):

        def replacer(match: "re.Match[str]") -> str:
            escaped, var_name, default_value = match.groups()
            if escaped:
                return match.group(0)[1:]
            env_value = os.environ.get(var_name)
            if env_value is not None:
                return env_value
            if default_value is not None:
                return default_value
            raise ConfigurationError(
                f"Environment variable '{var_name}' is not set and no default provided",
                config_path=source,
            )

        return _ENV_VAR_PATTERN.sub(replacer, value)
    if isinstance(value, dict):
        return {k: expand_env(v, source) for k, v in value.items()}
    if isinstance(value, list):
        return [expand_env(item, source) for item in value]
    return value


@dataclass
class JobSpec:
    """Parsed job file."""

    table: Optional[str]
    scans: List[ScanDescriptor] = field(default_factory=list)
    compress: Optional[bool] = None
    max_value_length: Optional[int] = None
    workers: int = 1
    partitioning: Dict[str, Any] = field(default_factory=dict)
    configuration: Dict[str, str] = field(default_factory=dict)
    source_path: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any], source_path: Optional[str] = None) -> "JobSpec":
        """Create a JobSpec from a job file mapping."""
        raw_scans = data.get("scans") or []
        if not isinstance(raw_scans, list):
            raise ConfigurationError("'scans' must be a list", config_path=source_path)

        scans: List[ScanDescriptor] = []
        for index, item in enumerate(raw_scans):
            if not isinstance(item, dict):
                raise ConfigurationError(
                    "Each entry in 'scans' must be a mapping", index=index, config_path=source_path
                )
            try:
                scans.append(ScanDescriptor.from_dict(item))
            except (TypeError, ValueError) as exc:
                raise ConfigurationError(
                    f"Invalid scan: {exc}", index=index, config_path=source_path, original_error=exc
                ) from exc

        configuration = data.get("configuration") or {}
        if not isinstance(configuration, dict):
            raise ConfigurationError("'configuration' must be a mapping", config_path=source_path)

        table = data.get("table") or configuration.get(INPUT_TABLE)
        if not table:
            raise ConfigurationError(
                "Job file must name the input table ('table')", key=INPUT_TABLE, config_path=source_path
            )

        compress = data.get("compress")
        if compress is not None and not isinstance(compress, bool):
            raise ConfigurationError("'compress' must be true, false or null", config_path=source_path)

        partitioning = data.get("partitioning") or {}
        if not isinstance(partitioning, dict):
            raise ConfigurationError("'partitioning' must be a mapping", config_path=source_path)

        max_value_length = data.get("max_value_length")
        return cls(
            table=str(table),
            scans=scans,
            compress=compress,
            max_value_length=(
                _int_setting(max_value_length, "max_value_length", source_path)
                if max_value_length is not None
                else None
            ),
            workers=_int_setting(data.get("workers", 1), "workers", source_path),
            partitioning=partitioning,
            configuration={str(k): _conf_value(v) for k, v in configuration.items()},
            source_path=source_path,
        )

    def to_configuration(self) -> JobConfiguration:
        """Build the job configuration a submitting process would ship to tasks."""
        conf = JobConfiguration(self.configuration)
        if self.table:
            conf.set(INPUT_TABLE, self.table)
        if self.scans:
            write_scan_set(conf, self.scans, self.compress, self.max_value_length)
        elif self.compress is not None:
            conf.set(SCAN_COMPRESSED, self.compress)
        return conf


def _int_setting(value: Any, key: str, source_path: Optional[str]) -> int:
    if isinstance(value, bool):
        raise ConfigurationError(
            f"'{key}' must be an integer, got {value!r}", key=key, config_path=source_path
        )
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(
            f"'{key}' must be an integer, got {value!r}",
            key=key,
            config_path=source_path,
            original_error=exc,
        ) from exc


def _conf_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def load_job(path: Union[str, Path], *, enable_env_substitution: bool = True) -> JobSpec:
    """Load and validate a job file.

    Raises:
        ConfigurationError: File missing, invalid YAML or invalid content
    """
    path = str(path)
    logger.info("Loading job file from %s", path)

    if not Path(path).exists():
        raise ConfigurationError(f"Job file not found: {path}", config_path=path)

    try:
        with open(path, "r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle)
    except yaml.YAMLError as exc:
        raise ConfigurationError(
            f"Invalid YAML in job file: {exc}", config_path=path, original_error=exc
        ) from exc

    if not isinstance(data, dict):
        raise ConfigurationError("Job file must be a YAML mapping", config_path=path)

    if enable_env_substitution:
        data = expand_env(data, source=path)

    return JobSpec.from_dict(data, source_path=path)
