"""
CRM Metrics Extraction

Fetches the daily metrics report from the CRM endpoint and parses it
into a read-only payload keyed by filter number.
"""

import json
import logging
from types import MappingProxyType
from typing import Any, Mapping, Optional

import requests

from report_etl.errors import TransientFetchError

logger = logging.getLogger(__name__)

MetricPayload = Mapping[str, Any]


class MetricsFetcher:
    """
    Fetches the raw metrics document from the CRM.

    One blocking GET per call, bounded by a timeout, never retried.
    """

    def __init__(
        self,
        api_url: str,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize metrics fetcher.

        Args:
            api_url: Full URL of the CRM report endpoint
            timeout: Request timeout in seconds
            session: Optional requests session

        Raises:
            ValueError: If api_url is empty
        """
        if not api_url:
            raise ValueError("CRM API URL is not configured properly")
        self.api_url = api_url
        self.timeout = timeout
        self.session = session or requests.Session()
        logger.info("MetricsFetcher initialized")

    def fetch(self) -> str:
        """
        Fetch the metrics document.

        Returns:
            Response body as text

        Raises:
            TransientFetchError: If the request fails or returns a non-2xx status
        """
        try:
            response = self.session.get(self.api_url, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"Error fetching data from CRM API: {e}")
            raise TransientFetchError(
                "Error fetching data from CRM API", cause=e
            ) from e

        if not 200 <= response.status_code < 300:
            logger.error(f"Request failed with code: {response.status_code}")
            raise TransientFetchError(
                f"Unexpected response from CRM API: HTTP {response.status_code}"
            )

        body = response.text
        logger.debug(f"Received response: {body}")
        return body


def _freeze(value: Any) -> Any:
    if isinstance(value, dict):
        return MappingProxyType({str(k): _freeze(v) for k, v in value.items()})
    if isinstance(value, list):
        return tuple(_freeze(v) for v in value)
    return value


def parse_payload(text: str) -> MetricPayload:
    """
    Parse the CRM response body into a read-only metrics payload.

    Args:
        text: JSON text; a top-level object keyed by filter number

    Returns:
        Read-only mapping; nested per-manager objects are read-only too

    Raises:
        TransientFetchError: If the text is not a JSON object
    """
    try:
        document = json.loads(text)
    except (TypeError, ValueError) as e:
        raise TransientFetchError(
            "CRM API returned invalid JSON",
            component="JobOrchestrator",
            operation="parse_payload",
            cause=e,
        ) from e

    if not isinstance(document, dict):
        raise TransientFetchError(
            f"CRM API returned {type(document).__name__} instead of an object",
            component="JobOrchestrator",
            operation="parse_payload",
        )

    if not document:
        logger.warning("CRM API returned an empty payload")

    payload = _freeze(document)
    logger.info(f"Received data for {len(payload)} filters")
    return payload
