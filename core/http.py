# core/http.py
from typing import Any, Callable, Dict, Optional, Tuple
import httpx
from config.settings import settings
from util.errors import ExternalApiError, TransientPollError

ClientFactory = Callable[[], httpx.AsyncClient]


def default_client_factory() -> httpx.AsyncClient:
    return httpx.AsyncClient(
        timeout=httpx.Timeout(settings.HTTP_TIMEOUT_SECONDS, connect=5.0),
        follow_redirects=True,
    )


def bearer(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def provider_message(res: httpx.Response) -> Optional[str]:
    """
    Dig the human-readable error out of a provider response body.
    Providers disagree on the shape; the usual suspects are tried in order.
    """
    try:
        body: Any = res.json()
    except ValueError:
        text = (res.text or "").strip()
        return text[:500] or None

    if isinstance(body, dict):
        err = body.get("error")
        if isinstance(err, dict):
            msg = err.get("message") or err.get("code")
            if msg:
                return str(msg)
        elif isinstance(err, str) and err:
            return err
        for key in ("error_message", "message", "msg", "error_description", "name"):
            if body.get(key):
                return str(body[key])
    return None


def raise_for_provider(res: httpx.Response, provider: str, action: str) -> None:
    """Raise ExternalApiError for non-2xx, carrying the provider's own message."""
    if res.is_success:
        return
    detail = provider_message(res) or res.reason_phrase or f"HTTP {res.status_code}"
    raise ExternalApiError(
        f"{action}: {detail}", provider=provider, upstream_status=res.status_code
    )


def raise_for_poll(res: httpx.Response, provider: str, action: str) -> None:
    """Status checks: a non-2xx is a transient miss, not a verdict on the job."""
    if res.is_success:
        return
    detail = provider_message(res) or res.reason_phrase or f"HTTP {res.status_code}"
    raise TransientPollError(
        f"{action}: {detail}", provider=provider, upstream_status=res.status_code
    )


def json_or_empty(res: httpx.Response) -> Dict[str, Any]:
    try:
        data = res.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {"data": data}


async def fetch_bytes(http: ClientFactory, url: str, provider: str = "media") -> Tuple[bytes, Optional[str]]:
    """Download a remote asset; returns (body, content-type)."""
    async with http() as client:
        res = await client.get(url)
    raise_for_provider(res, provider, f"Failed to fetch {url}")
    return res.content, res.headers.get("content-type")
