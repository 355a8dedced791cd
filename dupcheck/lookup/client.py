import time
from typing import Any, Dict, Optional

import httpx

from dupcheck.settings import settings
from dupcheck.observability.logging import log
import dupcheck.observability.metrics as metrics


class RemoteLookup:
    """
    Async client for one duplicate-search endpoint.

    POST {LOOKUP_BASE_URL}{path} with the criteria mapping as JSON body
    (exact field names of the profile). Returns the decoded JSON as-is;
    envelope unwrapping is the caller's job (see lookup.extract).
    Transport errors and non-2xx responses raise.
    """

    def __init__(
        self,
        path: str,
        *,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.path = path
        self.base_url = (base_url if base_url is not None else settings.LOOKUP_BASE_URL).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.LOOKUP_API_KEY
        self.timeout = float(timeout if timeout is not None else settings.LOOKUP_TIMEOUT_SEC)
        self._transport = transport

    @property
    def url(self) -> str:
        return f"{self.base_url}{self.path}"

    def _headers(self) -> dict:
        h = {"Content-Type": "application/json"}
        if self.api_key:
            h["x-api-key"] = self.api_key
        return h

    async def __call__(self, criteria: Dict[str, str]) -> Any:
        if not self.base_url:
            raise RuntimeError("LOOKUP_BASE_URL is not set")

        metrics.increment_lookup_issued()
        start = time.time()
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(self.url, json=dict(criteria), headers=self._headers())
            resp.raise_for_status()
            data = resp.json()
        except Exception as e:
            metrics.increment_lookup_failed()
            log(
                event="lookup_http_error",
                url=self.url,
                elapsedMs=int((time.time() - start) * 1000),
                errorType=type(e).__name__,
                error=str(e)[:300],
            )
            raise

        metrics.record_lookup_latency(int((time.time() - start) * 1000))
        return data
