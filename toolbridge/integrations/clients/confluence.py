"""
Confluence Cloud REST client
"""
from typing import Any, Dict, Optional

from .base import RestClient


class ConfluenceClient(RestClient):
    """Thin wrapper around the Confluence content API"""

    def _api(self, credentials: Dict[str, Any], path: str) -> str:
        base = self._base_url(credentials.get("url"))
        # Cloud sites serve the API below /wiki; accept URLs with or without it
        if not base.endswith("/wiki"):
            base = f"{base}/wiki"
        return f"{base}/rest/api{path}"

    @staticmethod
    def _auth(credentials: Dict[str, Any]):
        return (credentials.get("username", ""), credentials.get("api_token", ""))

    async def test_connection(self, credentials: Dict[str, Any]) -> bool:
        await self._request("GET", self._api(credentials, "/user/current"), auth=self._auth(credentials))
        return True

    async def search(self, credentials: Dict[str, Any], query: str, limit: int = 25) -> Dict[str, Any]:
        # Plain text is wrapped into CQL, anything with an operator is passed through
        cql = query if any(op in query for op in ("=", "~")) else f'text ~ "{query}"'
        return await self._request(
            "GET",
            self._api(credentials, "/content/search"),
            auth=self._auth(credentials),
            params={"cql": cql, "limit": limit},
        )

    async def get_page(self, credentials: Dict[str, Any], page_id: str) -> Dict[str, Any]:
        return await self._request(
            "GET",
            self._api(credentials, f"/content/{page_id}"),
            auth=self._auth(credentials),
            params={"expand": "body.storage,version,space"},
        )

    async def get_comments(self, credentials: Dict[str, Any], page_id: str) -> Dict[str, Any]:
        return await self._request(
            "GET",
            self._api(credentials, f"/content/{page_id}/child/comment"),
            auth=self._auth(credentials),
            params={"expand": "body.storage"},
        )

    async def create_page(
        self,
        credentials: Dict[str, Any],
        space_key: str,
        title: str,
        body: str,
        parent_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "type": "page",
            "title": title,
            "space": {"key": space_key},
            "body": {"storage": {"value": body, "representation": "storage"}},
        }
        if parent_id:
            payload["ancestors"] = [{"id": str(parent_id)}]
        return await self._request("POST", self._api(credentials, "/content"), auth=self._auth(credentials), json=payload)

    async def update_page(self, credentials: Dict[str, Any], page_id: str, body: str, title: Optional[str] = None) -> Dict[str, Any]:
        current = await self.get_page(credentials, page_id)
        payload = {
            "id": str(page_id),
            "type": "page",
            "title": title or current.get("title"),
            "version": {"number": int(current.get("version", {}).get("number", 0)) + 1},
            "body": {"storage": {"value": body, "representation": "storage"}},
        }
        return await self._request("PUT", self._api(credentials, f"/content/{page_id}"), auth=self._auth(credentials), json=payload)
