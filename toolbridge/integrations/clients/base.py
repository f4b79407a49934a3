"""
Shared plumbing for the outbound REST clients
"""
import logging
import time
from typing import Any, Dict, Optional

import httpx

logger = logging.getLogger(__name__)

# Seconds before expires_at at which an OAuth access token counts as expired
TOKEN_EXPIRY_MARGIN = 300


class RestClient:
    """Opens a short-lived httpx.AsyncClient per call and raises on non-2xx responses"""

    def __init__(self, timeout: float = 10.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.timeout = timeout
        self.transport = transport

    def _client(self, **kwargs) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport, **kwargs)

    async def _send(
        self,
        method: str,
        url: str,
        *,
        auth: Optional[Any] = None,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Any] = None,
        data: Optional[Dict[str, Any]] = None,
        follow_redirects: bool = False,
        raise_for_status: bool = True,
    ) -> httpx.Response:
        """Raw response, for callers that need headers, redirects or non-JSON bodies"""
        async with self._client(auth=auth, follow_redirects=follow_redirects) as client:
            response = await client.request(method, url, headers=headers, params=params, json=json, data=data)
            if raise_for_status:
                response.raise_for_status()
            return response

    async def _request(
        self,
        method: str,
        url: str,
        *,
        auth: Optional[Any] = None,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Any] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> Any:
        response = await self._send(method, url, auth=auth, headers=headers, params=params, json=json, data=data)

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError:
            return {"content": response.text}

    @staticmethod
    def _base_url(url: str) -> str:
        url = (url or "").strip().rstrip("/")
        if not url:
            raise ValueError("Instance URL is required")
        if not url.startswith(("http://", "https://")):
            url = f"https://{url}"
        return url


def drop_none(values: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in values.items() if value is not None}


def token_expired(credentials: Dict[str, Any], margin: int = 0) -> bool:
    """True when the bag carries expires_at (epoch seconds) and that moment, minus margin, has passed"""
    expires_at = credentials.get("expires_at")
    if not expires_at:
        return False
    try:
        return time.time() >= float(expires_at) - margin
    except (TypeError, ValueError):
        return True
