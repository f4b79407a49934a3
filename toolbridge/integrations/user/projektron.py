"""
Projektron BCS connector

Credentials are a browser session copied from a logged-in Projektron tab, so
they expire whenever that session does.
"""
from typing import Any, Dict, List, Optional

from ..base import CredentialField, ToolDefinition, UserConnector, tool
from ..clients.projektron import ProjektronClient


class ProjektronConnector(UserConnector):
    type = "projektron"
    name = "Projektron"

    def __init__(self, client: Optional[ProjektronClient] = None):
        self.client = client or ProjektronClient()

    def tools(self) -> List[ToolDefinition]:
        return [
            tool(
                "projektron_get_all_tasks",
                "List the Projektron projects and tasks visible to the user, with effort booking links",
            ),
        ]

    def credential_fields(self) -> List[CredentialField]:
        return [
            CredentialField("domain", "url", "Projektron URL", placeholder="https://projektron.example.com",
                            help_text="Base URL of your Projektron BCS installation (https only)"),
            CredentialField("username", "text", "Username"),
            CredentialField("csrf_token", "password", "CSRF Token",
                            help_text="Value of the CSRF_Token cookie of a logged-in browser session"),
            CredentialField("jsessionid", "password", "JSESSIONID",
                            help_text="Value of the JSESSIONID cookie of the same session"),
        ]

    def describe_instance(self, credentials: Optional[Dict[str, Any]]) -> Optional[str]:
        return (credentials or {}).get("domain") or None

    async def execute_tool(self, tool_name: str, parameters: Dict[str, Any], credentials: Optional[Dict[str, Any]] = None) -> Any:
        credentials = self._check_credentials(credentials)

        if tool_name == "projektron_get_all_tasks":
            tasks = await self.client.get_all_tasks(credentials)
            return {"success": True, "count": len(tasks), "tasks": tasks}
        else:
            raise ValueError(f"Unknown tool: {tool_name}")
