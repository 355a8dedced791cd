"""
Advance-signal webhook
----------------------
Tells the hosting workflow that a duplicate-check session advanced, and how
(countdown, row selection or create-new). Delivery is fire-and-forget from
the session's point of view: the advance already happened, so failures are
logged and counted but never raised.
"""
import time
from typing import Optional, Tuple

import httpx

from dupcheck.settings import settings
from dupcheck.observability.logging import log
import dupcheck.observability.metrics as metrics


def build_advance_payload(snapshot) -> dict:
    return {
        "sessionId": snapshot.sessionId,
        "profile": snapshot.profile,
        "source": snapshot.advanceSource,
        "selectedExisting": bool(snapshot.selectedExisting),
        "selectedAccountId": snapshot.selectedAccountId or "",
    }


async def send_advance_notification(
    payload: dict,
    *,
    url: Optional[str] = None,
    timeout: Optional[float] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Tuple[bool, int, Optional[str]]:
    """Returns (success, status_code, error). status_code is 0 when no response arrived."""
    url = url if url is not None else settings.ADVANCE_WEBHOOK_URL
    if not url:
        log(event="advance_webhook_skipped_no_url", sessionId=payload.get("sessionId"))
        return False, 0, "no_url"

    timeout = float(timeout if timeout is not None else settings.ADVANCE_WEBHOOK_TIMEOUT_SEC)
    start = time.time()
    try:
        async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
            resp = await client.post(url, json=payload)
    except Exception as e:
        metrics.increment_webhook_failed()
        log(
            event="advance_webhook_exception",
            sessionId=payload.get("sessionId"),
            elapsedMs=int((time.time() - start) * 1000),
            errorType=type(e).__name__,
            error=str(e)[:500],
        )
        return False, 0, f"{type(e).__name__}:{str(e)[:200]}"

    elapsed_ms = int((time.time() - start) * 1000)
    if 200 <= resp.status_code < 300:
        log(
            event="advance_webhook_success",
            sessionId=payload.get("sessionId"),
            statusCode=int(resp.status_code),
            elapsedMs=elapsed_ms,
        )
        return True, int(resp.status_code), None

    metrics.increment_webhook_failed()
    log(
        event="advance_webhook_failed",
        sessionId=payload.get("sessionId"),
        statusCode=int(resp.status_code),
        elapsedMs=elapsed_ms,
        responseText=(resp.text or "")[:500],
    )
    return False, int(resp.status_code), f"non_2xx:{resp.status_code}"
