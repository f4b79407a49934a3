"""
Trello REST client
"""
from typing import Any, Dict, Optional

from .base import RestClient, drop_none

TRELLO_API_URL = "https://api.trello.com/1"


class TrelloClient(RestClient):
    """Trello authenticates with key/token query parameters"""

    async def _call(self, method: str, path: str, credentials: Dict[str, Any], params: Optional[Dict[str, Any]] = None) -> Any:
        query = {"key": credentials.get("api_key", ""), "token": credentials.get("api_token", "")}
        query.update(drop_none(params or {}))
        return await self._request(method, f"{TRELLO_API_URL}{path}", params=query)

    async def test_connection(self, credentials: Dict[str, Any]) -> bool:
        await self._call("GET", "/members/me", credentials)
        return True

    async def search(self, credentials: Dict[str, Any], query: str, max_results: int = 50) -> Dict[str, Any]:
        return await self._call("GET", "/search", credentials, {
            "query": query,
            "modelTypes": "cards,boards,lists",
            "cards_limit": max_results,
            "boards_limit": 25,
        })

    async def get_boards(self, credentials: Dict[str, Any]) -> Any:
        return await self._call("GET", "/members/me/boards", credentials, {"filter": "open", "fields": "name,desc,url,closed"})

    async def get_board_lists(self, credentials: Dict[str, Any], board_id: str) -> Any:
        return await self._call("GET", f"/boards/{board_id}/lists", credentials, {"filter": "open"})

    async def get_list_cards(self, credentials: Dict[str, Any], list_id: str) -> Any:
        return await self._call("GET", f"/lists/{list_id}/cards", credentials)

    async def get_card(self, credentials: Dict[str, Any], card_id: str) -> Dict[str, Any]:
        return await self._call("GET", f"/cards/{card_id}", credentials, {"members": "true", "checklists": "all"})

    async def create_card(
        self,
        credentials: Dict[str, Any],
        list_id: str,
        name: str,
        desc: Optional[str] = None,
        due: Optional[str] = None,
    ) -> Dict[str, Any]:
        return await self._call("POST", "/cards", credentials, {"idList": list_id, "name": name, "desc": desc, "due": due})

    async def add_comment(self, credentials: Dict[str, Any], card_id: str, text: str) -> Dict[str, Any]:
        return await self._call("POST", f"/cards/{card_id}/actions/comments", credentials, {"text": text})
