"""
Trello connector
"""
from typing import Any, Dict, List, Optional

from ..base import CredentialField, ToolDefinition, UserConnector, param, tool
from ..clients.trello import TrelloClient


class TrelloConnector(UserConnector):
    type = "trello"
    name = "Trello"

    def __init__(self, client: Optional[TrelloClient] = None):
        self.client = client or TrelloClient()

    def tools(self) -> List[ToolDefinition]:
        return [
            tool(
                "trello_search",
                "Search Trello boards, lists and cards",
                param("query", required=True, description="Search text"),
                param("maxResults", "integer", description="Maximum number of cards", default=50),
            ),
            tool("trello_get_boards", "List the open boards of the connected account"),
            tool(
                "trello_get_board_lists",
                "Get the open lists of a board",
                param("boardId", required=True, description="Board id"),
            ),
            tool(
                "trello_get_list_cards",
                "Get the cards in a list",
                param("listId", required=True, description="List id"),
            ),
            tool(
                "trello_get_card",
                "Get a card with members and checklists",
                param("cardId", required=True, description="Card id"),
            ),
            tool(
                "trello_create_card",
                "Create a card in a list",
                param("listId", required=True, description="Id of the list to add the card to"),
                param("name", required=True, description="Card title"),
                param("desc", description="Card description"),
                param("due", description="Due date (ISO 8601)"),
            ),
            tool(
                "trello_add_comment",
                "Comment on a card",
                param("cardId", required=True, description="Card id"),
                param("text", required=True, description="Comment text"),
            ),
        ]

    def credential_fields(self) -> List[CredentialField]:
        return [
            CredentialField("api_key", "text", "API Key", help_text="Your key from https://trello.com/power-ups/admin"),
            CredentialField("api_token", "password", "API Token", help_text="Token generated for the API key"),
        ]

    async def execute_tool(self, tool_name: str, parameters: Dict[str, Any], credentials: Optional[Dict[str, Any]] = None) -> Any:
        credentials = self._check_credentials(credentials)

        if tool_name == "trello_search":
            self._require(parameters, "query")
            return await self.client.search(credentials, parameters["query"], int(parameters.get("maxResults", 50)))
        elif tool_name == "trello_get_boards":
            return await self.client.get_boards(credentials)
        elif tool_name == "trello_get_board_lists":
            self._require(parameters, "boardId")
            return await self.client.get_board_lists(credentials, parameters["boardId"])
        elif tool_name == "trello_get_list_cards":
            self._require(parameters, "listId")
            return await self.client.get_list_cards(credentials, parameters["listId"])
        elif tool_name == "trello_get_card":
            self._require(parameters, "cardId")
            return await self.client.get_card(credentials, parameters["cardId"])
        elif tool_name == "trello_create_card":
            self._require(parameters, "listId", "name")
            return await self.client.create_card(
                credentials,
                parameters["listId"],
                parameters["name"],
                desc=parameters.get("desc"),
                due=parameters.get("due"),
            )
        elif tool_name == "trello_add_comment":
            self._require(parameters, "cardId", "text")
            return await self.client.add_comment(credentials, parameters["cardId"], parameters["text"])
        else:
            raise ValueError(f"Unknown tool: {tool_name}")
