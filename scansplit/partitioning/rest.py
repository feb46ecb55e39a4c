"""Partitioning service backed by a REST gateway's region listing.

Requests ``GET {base_url}/{table}/regions`` with ``Accept: application/json``
and expects the HBase REST schema:

    {
        "name": "events",
        "Region": [
            {"name": "events,,1700000000000.5f3c.", "startKey": "", "endKey": "Zw==",
             "location": "rs1.example.com:16020", "id": 1700000000000},
            {"name": "events,g,1700000000000.8a1d.", "startKey": "Zw==", "endKey": "",
             "location": "rs2.example.com:16020", "id": 1700000000000}
        ]
    }

Row keys are base64 encoded. Connection errors and timeouts are retried per
the configured RetryPolicy; HTTP error statuses are not.
"""

import base64
import binascii
import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import requests

from scansplit.exceptions import SplitComputationError
from scansplit.partitioning.base import Partition, PartitioningService, register_partitioning
from scansplit.resilience import RetryPolicy, call_with_retry

logger = logging.getLogger(__name__)


@register_partitioning("rest")
class RestPartitioningService(PartitioningService):
    """Look up partitions through a REST gateway."""

    def __init__(
        self,
        base_url: str,
        timeout_seconds: float = 30.0,
        headers: Optional[Dict[str, str]] = None,
        retry_policy: Optional[RetryPolicy] = None,
        session: Optional[requests.Session] = None,
    ):
        """
        Args:
            base_url: Gateway root, e.g. ``http://rest.example.com:8080``
            timeout_seconds: Per-request timeout
            headers: Extra headers sent with every request
            retry_policy: Retry settings for transport errors
            session: Session to reuse (a new one is created if omitted)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.headers = {"Accept": "application/json", **(headers or {})}
        self.retry_policy = retry_policy or RetryPolicy(
            retry_exceptions=(requests.exceptions.ConnectionError, requests.exceptions.Timeout)
        )
        self.session = session or requests.Session()

    @classmethod
    def from_config(cls, cfg: Dict[str, Any], table: str) -> "RestPartitioningService":
        return cls(
            base_url=cfg["base_url"],
            timeout_seconds=float(cfg.get("timeout_seconds", 30)),
            headers=cfg.get("headers"),
            retry_policy=RetryPolicy(
                max_attempts=int(cfg.get("max_attempts", 3)),
                backoff_seconds=float(cfg.get("backoff_seconds", 1.0)),
                retry_exceptions=(requests.exceptions.ConnectionError, requests.exceptions.Timeout),
            ),
        )

    def _fetch(self, url: str) -> Any:
        logger.debug("Requesting region list from %s", url)
        resp = self.session.get(url, headers=self.headers, timeout=self.timeout_seconds)
        resp.raise_for_status()
        return resp.json()

    def partitions_for(self, table: str, start_row: bytes, stop_row: bytes) -> List[Partition]:
        url = f"{self.base_url}/{quote(table, safe='')}/regions"
        payload = call_with_retry(
            self._fetch, url, policy=self.retry_policy, operation=f"region lookup for {table}"
        )
        return self._parse_regions(table, payload)

    def _parse_regions(self, table: str, payload: Any) -> List[Partition]:
        if not isinstance(payload, dict) or not isinstance(payload.get("Region"), list):
            raise SplitComputationError(
                "Region listing is missing the 'Region' array", table=table
            )

        partitions: List[Partition] = []
        for index, region in enumerate(payload["Region"]):
            try:
                location = region.get("location")
                partitions.append(
                    Partition(
                        name=str(region.get("name") or f"{table},{index:05d}"),
                        start_key=_decode_key(region.get("startKey")),
                        end_key=_decode_key(region.get("endKey")),
                        locations=(str(location),) if location else (),
                    )
                )
            except (AttributeError, binascii.Error, ValueError) as exc:
                raise SplitComputationError(
                    f"Malformed region entry at position {index}: {exc}",
                    table=table,
                    original_error=exc,
                ) from exc

        logger.debug("Gateway returned %d region(s) for %s", len(partitions), table)
        return partitions


def _decode_key(value: Optional[str]) -> bytes:
    if not value:
        return b""
    return base64.b64decode(value, validate=True)
