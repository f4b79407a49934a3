"""
HubSpot connector

Credentials come from the OAuth flow run outside this service; the resulting
bag holds at least access_token.
"""
from typing import Any, Dict, List, Optional

from ..base import CredentialField, ToolDefinition, UserConnector, param, tool
from ..clients.hubspot import HubSpotClient


class HubSpotConnector(UserConnector):
    type = "hubspot"
    name = "HubSpot"

    def __init__(self, client: Optional[HubSpotClient] = None):
        self.client = client or HubSpotClient()

    def tools(self) -> List[ToolDefinition]:
        return [
            tool(
                "hubspot_search_contacts",
                "Search CRM contacts by name, email or company",
                param("query", required=True, description="Search text"),
                param("limit", "integer", description="Maximum number of results", default=20),
            ),
            tool(
                "hubspot_get_contact",
                "Get a CRM contact",
                param("contactId", required=True, description="Contact id"),
            ),
            tool(
                "hubspot_create_contact",
                "Create a CRM contact",
                param("email", required=True, description="Email address"),
                param("firstname", description="First name"),
                param("lastname", description="Last name"),
                param("company", description="Company name"),
                param("phone", description="Phone number"),
            ),
            tool(
                "hubspot_search_deals",
                "Search CRM deals",
                param("query", required=True, description="Search text"),
                param("limit", "integer", description="Maximum number of results", default=20),
            ),
            tool(
                "hubspot_get_deal",
                "Get a CRM deal",
                param("dealId", required=True, description="Deal id"),
            ),
        ]

    def credential_fields(self) -> List[CredentialField]:
        return [
            CredentialField("oauth", "oauth", "Connect with HubSpot",
                            help_text="Authorise access to your HubSpot account"),
        ]

    def required_credential_keys(self) -> List[str]:
        # The oauth field stands for the flow; the bag it produces carries the token
        return ["access_token"]

    async def execute_tool(self, tool_name: str, parameters: Dict[str, Any], credentials: Optional[Dict[str, Any]] = None) -> Any:
        credentials = self._check_credentials(credentials)
        if not credentials.get("access_token"):
            raise ValueError("HubSpot credentials are missing access_token")

        if tool_name == "hubspot_search_contacts":
            self._require(parameters, "query")
            return await self.client.search_contacts(credentials, parameters["query"], int(parameters.get("limit", 20)))
        elif tool_name == "hubspot_get_contact":
            self._require(parameters, "contactId")
            return await self.client.get_contact(credentials, str(parameters["contactId"]))
        elif tool_name == "hubspot_create_contact":
            self._require(parameters, "email")
            properties = {
                key: parameters[key]
                for key in ("email", "firstname", "lastname", "company", "phone")
                if parameters.get(key)
            }
            return await self.client.create_contact(credentials, properties)
        elif tool_name == "hubspot_search_deals":
            self._require(parameters, "query")
            return await self.client.search_deals(credentials, parameters["query"], int(parameters.get("limit", 20)))
        elif tool_name == "hubspot_get_deal":
            self._require(parameters, "dealId")
            return await self.client.get_deal(credentials, str(parameters["dealId"]))
        else:
            raise ValueError(f"Unknown tool: {tool_name}")
