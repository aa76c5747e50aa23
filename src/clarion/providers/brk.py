"""
Provider for the on-chain analytics "vecs" API (bitcoin research kit).

Every call raises MetricFetchError on HTTP status errors, transport errors
(including timeouts) and malformed payloads.
"""
from typing import Any, List, Optional, Tuple

import httpx

from clarion.config import settings
from clarion.core.logging import logger


class MetricFetchError(ValueError):
    """Raised when a metric cannot be fetched or its payload is invalid."""

    def __init__(self, metric: str, message: str):
        self.metric = metric
        super().__init__(f"Failed to fetch {metric}: {message}")


class BrkClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.API_BASE_URL).rstrip("/")
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout if timeout is not None else settings.HTTP_TIMEOUT_SECONDS,
            transport=transport,
        )

    async def aclose(self):
        await self.client.aclose()

    async def __aenter__(self) -> "BrkClient":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()

    async def _get_json(self, metric: str, endpoint: str, params: Optional[dict] = None) -> Any:
        try:
            response = await self.client.get(endpoint, params=params)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            raise MetricFetchError(
                metric, f"{e.response.status_code} {e.response.reason_phrase}"
            ) from e
        except httpx.RequestError as e:
            raise MetricFetchError(metric, f"Network Error: {e}") from e
        except ValueError as e:
            # response.json() on a non-JSON body
            raise MetricFetchError(metric, f"Invalid JSON: {e}") from e

    async def query_metric(self, metric: str) -> Tuple[List[str], List[Any]]:
        """
        Fetch `[dates, values]` for a single metric on the date index.
        """
        params = {"index": "dateindex", "ids": f"date,{metric}", "format": "json"}
        logger.debug(f"Fetching {metric} from {self.base_url}/api/vecs/query")
        data = await self._get_json(metric, "/api/vecs/query", params=params)

        if not isinstance(data, list) or len(data) < 2:
            raise MetricFetchError(metric, "Invalid data format")

        dates, values = data[0], data[1]
        if not isinstance(dates, list) or not isinstance(values, list):
            raise MetricFetchError(metric, "Invalid data format")
        return dates, values

    async def fetch_vec(self, metric: str) -> List[Any]:
        """Fetch the raw value vector of a metric without its date axis."""
        data = await self._get_json(metric, f"/api/vecs/dateindex-to-{metric}")
        if not isinstance(data, list):
            raise MetricFetchError(metric, "Invalid data format")
        return data

    async def latest_date(self) -> str:
        data = await self._get_json("date", "/api/vecs/dateindex-to-date", params={"from": -1})
        if isinstance(data, list) and len(data) == 1:
            data = data[0]
        if not isinstance(data, str):
            raise MetricFetchError("date", "Invalid date format received")
        return data
