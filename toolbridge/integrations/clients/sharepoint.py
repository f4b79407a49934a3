"""
SharePoint client (Microsoft Graph)

Access tokens come from the Microsoft OAuth flow run outside this service. When
the bag says the token has expired, it is refreshed against the tenant's token
endpoint and the new values are written back into the same bag, so the caller
can persist them.
"""
import logging
import time
from typing import Any, Dict, Optional

import httpx

from .base import RestClient, token_expired

logger = logging.getLogger(__name__)

GRAPH_API_URL = "https://graph.microsoft.com/v1.0"
TOKEN_URL = "https://login.microsoftonline.com/{tenant_id}/oauth2/v2.0/token"
GRAPH_SCOPE = "https://graph.microsoft.com/.default offline_access"

FILE_FIELDS = "id,name,size,lastModifiedDateTime,file,folder,webUrl"


class SharePointClient(RestClient):

    def __init__(self, timeout: float = 10.0, transport: Optional[httpx.AsyncBaseTransport] = None,
                 client_id: str = "", client_secret: str = ""):
        super().__init__(timeout, transport)
        self.client_id = client_id
        self.client_secret = client_secret

    async def ensure_token(self, credentials: Dict[str, Any]) -> None:
        if not token_expired(credentials):
            return
        if not credentials.get("refresh_token"):
            raise ValueError("SharePoint token expired and no refresh token available")

        logger.info("Refreshing expired SharePoint access token")
        form = {
            "client_id": credentials.get("client_id") or self.client_id,
            "client_secret": credentials.get("client_secret") or self.client_secret,
            "refresh_token": credentials["refresh_token"],
            "grant_type": "refresh_token",
            "scope": GRAPH_SCOPE,
        }
        token = await self._request("POST", TOKEN_URL.format(tenant_id=credentials.get("tenant_id", "common")), data=form)
        if not token.get("access_token"):
            raise ValueError("SharePoint token refresh returned no access token")

        credentials["access_token"] = token["access_token"]
        if token.get("refresh_token"):
            credentials["refresh_token"] = token["refresh_token"]
        credentials["expires_at"] = int(time.time()) + int(token.get("expires_in", 3600))

    def _headers(self, credentials: Dict[str, Any]) -> Dict[str, str]:
        return {"Authorization": f"Bearer {credentials.get('access_token', '')}"}

    async def _call(self, method: str, path: str, credentials: Dict[str, Any], json: Optional[Dict[str, Any]] = None,
                    params: Optional[Dict[str, Any]] = None) -> Any:
        await self.ensure_token(credentials)
        return await self._request(method, f"{GRAPH_API_URL}{path}", headers=self._headers(credentials), json=json, params=params)

    async def test_connection(self, credentials: Dict[str, Any]) -> bool:
        await self._call("GET", "/me", credentials)
        return True

    async def search(self, credentials: Dict[str, Any], kql: str, limit: int = 25) -> Dict[str, Any]:
        body = {
            "requests": [{
                "entityTypes": ["driveItem", "listItem", "site"],
                "query": {"queryString": kql},
                "from": 0,
                "size": min(max(limit, 1), 50),
            }]
        }
        return await self._call("POST", "/search/query", credentials, json=body)

    async def get_item(self, credentials: Dict[str, Any], site_id: str, item_id: str, drive_id: Optional[str] = None) -> Dict[str, Any]:
        if drive_id:
            return await self._call("GET", f"/drives/{drive_id}/items/{item_id}", credentials)
        return await self._call("GET", f"/sites/{site_id}/drive/items/{item_id}", credentials)

    async def get_item_text(self, credentials: Dict[str, Any], site_id: str, item_id: str, drive_id: Optional[str] = None) -> str:
        await self.ensure_token(credentials)
        path = f"/drives/{drive_id}/items/{item_id}/content" if drive_id else f"/sites/{site_id}/drive/items/{item_id}/content"
        response = await self._send("GET", f"{GRAPH_API_URL}{path}", headers=self._headers(credentials), follow_redirects=True)
        return response.text

    async def get_page(self, credentials: Dict[str, Any], site_id: str, page_id: str) -> Dict[str, Any]:
        return await self._call("GET", f"/sites/{site_id}/pages/{page_id}", credentials, params={"$expand": "canvasLayout"})

    async def list_files(self, credentials: Dict[str, Any], site_id: str, path: Optional[str] = None) -> Dict[str, Any]:
        path = (path or "").strip("/")
        endpoint = f"/sites/{site_id}/drive/root:/{path}:/children" if path else f"/sites/{site_id}/drive/root/children"
        return await self._call("GET", endpoint, credentials, params={"$select": FILE_FIELDS, "$top": 100})

    async def download_url(self, credentials: Dict[str, Any], site_id: str, item_id: str) -> Optional[str]:
        """Pre-authenticated URL Graph redirects /content requests to"""
        await self.ensure_token(credentials)
        response = await self._send(
            "GET", f"{GRAPH_API_URL}/sites/{site_id}/drive/items/{item_id}/content",
            headers=self._headers(credentials), raise_for_status=False,
        )
        if response.status_code >= 400:
            response.raise_for_status()
        return response.headers.get("location")

    async def get_list_items(self, credentials: Dict[str, Any], site_id: str, list_id: str,
                             filter: Optional[str] = None, orderby: Optional[str] = None) -> Dict[str, Any]:
        params: Dict[str, Any] = {"$expand": "fields", "$top": 100}
        if filter:
            params["$filter"] = filter
        if orderby:
            params["$orderby"] = orderby
        return await self._call("GET", f"/sites/{site_id}/lists/{list_id}/items", credentials, params=params)
