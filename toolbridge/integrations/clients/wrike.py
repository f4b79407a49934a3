"""
Wrike REST client (API v4)

Wrike answers every call with {"kind": ..., "data": [...]}. Tokens are
refreshed shortly before they expire and written back into the bag.
"""
import logging
import time
from typing import Any, Dict, List, Optional

import httpx

from .base import TOKEN_EXPIRY_MARGIN, RestClient, drop_none, token_expired

logger = logging.getLogger(__name__)

TOKEN_URL = "https://login.wrike.com/oauth2/token"
DEFAULT_HOST = "www.wrike.com"


class WrikeClient(RestClient):

    def __init__(self, timeout: float = 10.0, transport: Optional[httpx.AsyncBaseTransport] = None,
                 client_id: str = "", client_secret: str = ""):
        super().__init__(timeout, transport)
        self.client_id = client_id
        self.client_secret = client_secret

    async def ensure_token(self, credentials: Dict[str, Any]) -> None:
        if not token_expired(credentials, TOKEN_EXPIRY_MARGIN):
            return
        if not credentials.get("refresh_token"):
            raise ValueError("Wrike token expired and no refresh token available")

        logger.info("Refreshing expiring Wrike access token")
        token = await self._request("POST", TOKEN_URL, data={
            "grant_type": "refresh_token",
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "refresh_token": credentials["refresh_token"],
        })
        if not token.get("access_token"):
            raise ValueError("Wrike token refresh returned no access token")

        credentials["access_token"] = token["access_token"]
        if token.get("refresh_token"):
            credentials["refresh_token"] = token["refresh_token"]
        credentials["expires_at"] = int(time.time()) + int(token.get("expires_in", 3600))
        if token.get("host"):
            credentials["host"] = token["host"]

    @staticmethod
    def _api(credentials: Dict[str, Any], path: str) -> str:
        host = credentials.get("host") or DEFAULT_HOST
        return f"https://{host}/api/v4{path}"

    async def _call(self, method: str, path: str, credentials: Dict[str, Any], json: Optional[Dict[str, Any]] = None,
                    params: Optional[Dict[str, Any]] = None) -> Any:
        await self.ensure_token(credentials)
        headers = {"Authorization": f"Bearer {credentials.get('access_token', '')}"}
        return await self._request(method, self._api(credentials, path), headers=headers, json=json, params=params)

    async def test_connection(self, credentials: Dict[str, Any]) -> bool:
        await self._call("GET", "/contacts", credentials, params={"me": "true"})
        return True

    async def search_tasks(self, credentials: Dict[str, Any], title: Optional[str] = None, status: Optional[str] = None,
                           folder_id: Optional[str] = None, limit: int = 100) -> Dict[str, Any]:
        params = drop_none({"title": title, "status": status, "pageSize": min(max(limit, 1), 1000)})
        path = f"/folders/{folder_id}/tasks" if folder_id else "/tasks"
        return await self._call("GET", path, credentials, params=params)

    async def get_task(self, credentials: Dict[str, Any], task_id: str) -> Dict[str, Any]:
        return await self._call("GET", f"/tasks/{task_id}", credentials)

    async def create_task(self, credentials: Dict[str, Any], folder_id: str, body: Dict[str, Any]) -> Dict[str, Any]:
        return await self._call("POST", f"/folders/{folder_id}/tasks", credentials, json=body)

    async def update_task(self, credentials: Dict[str, Any], task_id: str, body: Dict[str, Any]) -> Dict[str, Any]:
        return await self._call("PUT", f"/tasks/{task_id}", credentials, json=body)

    async def get_task_comments(self, credentials: Dict[str, Any], task_id: str) -> Dict[str, Any]:
        return await self._call("GET", f"/tasks/{task_id}/comments", credentials)

    async def add_comment(self, credentials: Dict[str, Any], task_id: str, text: str) -> Dict[str, Any]:
        return await self._call("POST", f"/tasks/{task_id}/comments", credentials, json={"text": text})

    async def list_folders(self, credentials: Dict[str, Any]) -> Dict[str, Any]:
        return await self._call("GET", "/folders", credentials)

    async def get_folder(self, credentials: Dict[str, Any], folder_id: str) -> Dict[str, Any]:
        return await self._call("GET", f"/folders/{folder_id}", credentials)

    async def list_contacts(self, credentials: Dict[str, Any]) -> Dict[str, Any]:
        return await self._call("GET", "/contacts", credentials)

    async def get_contact(self, credentials: Dict[str, Any], contact_id: str) -> Dict[str, Any]:
        return await self._call("GET", f"/contacts/{contact_id}", credentials)

    async def log_time(self, credentials: Dict[str, Any], task_id: str, hours: float, tracked_date: str,
                       comment: Optional[str] = None) -> Dict[str, Any]:
        body = drop_none({"hours": hours, "trackedDate": tracked_date, "comment": comment})
        return await self._call("POST", f"/tasks/{task_id}/timelogs", credentials, json=body)

    async def get_timelogs(self, credentials: Dict[str, Any], task_id: str) -> Dict[str, Any]:
        return await self._call("GET", f"/tasks/{task_id}/timelogs", credentials)


def task_body(parameters: Dict[str, Any]) -> Dict[str, Any]:
    """Tool parameters mapped to Wrike's task fields"""
    body: Dict[str, Any] = drop_none({
        "title": parameters.get("title"),
        "description": parameters.get("description"),
        "status": parameters.get("status"),
    })
    assignees: Optional[List[str]] = parameters.get("assignees")
    if assignees:
        body["responsibles"] = [assignees] if isinstance(assignees, str) else list(assignees)
    dates = drop_none({"start": parameters.get("startDate"), "due": parameters.get("dueDate")})
    if dates:
        body["dates"] = dates
    return body
