"""
Confluence connector
"""
from typing import Any, Dict, List, Optional

from ..base import CredentialField, PersonalizedSkill, ToolDefinition, UserConnector, param, tool
from ..clients.confluence import ConfluenceClient


class ConfluenceConnector(UserConnector, PersonalizedSkill):
    type = "confluence"
    name = "Confluence"

    def __init__(self, client: Optional[ConfluenceClient] = None):
        self.client = client or ConfluenceClient()

    def tools(self) -> List[ToolDefinition]:
        return [
            tool(
                "confluence_search",
                "Search Confluence pages by text or CQL",
                param("query", required=True, description="Search text or a CQL expression"),
                param("limit", "integer", description="Maximum number of results", default=25),
            ),
            tool(
                "confluence_get_page",
                "Get a Confluence page including its storage-format body",
                param("pageId", required=True, description="Page id"),
            ),
            tool(
                "confluence_get_comments",
                "Get the comments of a Confluence page",
                param("pageId", required=True, description="Page id"),
            ),
            tool(
                "confluence_create_page",
                "Create a Confluence page",
                param("spaceKey", required=True, description="Space key"),
                param("title", required=True, description="Page title"),
                param("body", required=True, description="Page body in Confluence storage format (XHTML)"),
                param("parentId", description="Id of the parent page"),
            ),
            tool(
                "confluence_update_page",
                "Replace the body (and optionally the title) of a Confluence page",
                param("pageId", required=True, description="Page id"),
                param("body", required=True, description="New body in Confluence storage format (XHTML)"),
                param("title", description="New title; the current title is kept when omitted"),
            ),
        ]

    def credential_fields(self) -> List[CredentialField]:
        return [
            CredentialField("url", "url", "Confluence URL", placeholder="https://your-domain.atlassian.net/wiki",
                            help_text="Your Confluence Cloud URL"),
            CredentialField("username", "email", "Email", placeholder="your-email@example.com"),
            CredentialField("api_token", "password", "API Token",
                            help_text="Create one at https://id.atlassian.com/manage-profile/security/api-tokens"),
        ]

    def describe_instance(self, credentials: Optional[Dict[str, Any]]) -> Optional[str]:
        return (credentials or {}).get("url") or None

    async def execute_tool(self, tool_name: str, parameters: Dict[str, Any], credentials: Optional[Dict[str, Any]] = None) -> Any:
        credentials = self._check_credentials(credentials)

        if tool_name == "confluence_search":
            self._require(parameters, "query")
            return await self.client.search(credentials, parameters["query"], int(parameters.get("limit", 25)))
        elif tool_name == "confluence_get_page":
            self._require(parameters, "pageId")
            return await self.client.get_page(credentials, str(parameters["pageId"]))
        elif tool_name == "confluence_get_comments":
            self._require(parameters, "pageId")
            return await self.client.get_comments(credentials, str(parameters["pageId"]))
        elif tool_name == "confluence_create_page":
            self._require(parameters, "spaceKey", "title", "body")
            return await self.client.create_page(
                credentials,
                parameters["spaceKey"],
                parameters["title"],
                parameters["body"],
                parent_id=parameters.get("parentId"),
            )
        elif tool_name == "confluence_update_page":
            self._require(parameters, "pageId", "body")
            return await self.client.update_page(
                credentials, str(parameters["pageId"]), parameters["body"], title=parameters.get("title")
            )
        else:
            raise ValueError(f"Unknown tool: {tool_name}")

    def system_prompt(self, configuration=None) -> str:
        config_id = configuration.id if configuration is not None else "XXX"
        instance = configuration.instance_name if configuration is not None else self.name
        return (
            f"You can read and write the Confluence space(s) of \"{instance}\" through {len(self.tools())} tools. "
            f"Tool ids carry the configuration suffix _{config_id} (e.g. confluence_search_{config_id}).\n"
            "- Use confluence_search first; plain words are searched as text, CQL is passed through.\n"
            "- Page bodies are Confluence storage format (XHTML). Fetch a page before updating it.\n"
            "- confluence_update_page replaces the whole body; include the content you want to keep."
        )
