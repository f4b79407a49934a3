"""
SAP Analytics Cloud connector

Read-only access to models and stories through the data export API.
"""
from typing import Any, Dict, List, Optional

from ..base import CredentialField, PersonalizedSkill, ToolDefinition, UserConnector, param, tool
from ..clients.sap_sac import SapSacClient, parse_model_metadata


class SapSacConnector(UserConnector, PersonalizedSkill):
    type = "sap_sac"
    name = "SAP Analytics Cloud"

    def __init__(self, client: Optional[SapSacClient] = None):
        self.client = client or SapSacClient()

    def tools(self) -> List[ToolDefinition]:
        return [
            tool("sac_list_models", "List the analytic models available for data export"),
            tool(
                "sac_get_model_metadata",
                "Describe the dimensions and measures of a model",
                param("model_id", required=True, description="Model (provider) id"),
            ),
            tool(
                "sac_query_model_data",
                "Query the data of a model",
                param("model_id", required=True, description="Model (provider) id"),
                param("filter", description="OData $filter expression"),
                param("select", description="Comma separated list of columns"),
                param("top", "integer", description="Page size", default=100),
                param("skip", "integer", description="Number of rows to skip", default=0),
            ),
            tool(
                "sac_get_dimension_members",
                "List the members of a model dimension",
                param("model_id", required=True, description="Model (provider) id"),
                param("dimension", required=True, description="Dimension name, e.g. Account"),
                param("top", "integer", description="Page size", default=100),
                param("skip", "integer", description="Number of members to skip", default=0),
            ),
            tool(
                "sac_list_stories",
                "List stories",
                param("top", "integer", description="Page size", default=50),
                param("skip", "integer", description="Number of stories to skip", default=0),
            ),
            tool(
                "sac_get_story",
                "Get a story",
                param("story_id", required=True, description="Story id"),
            ),
        ]

    def credential_fields(self) -> List[CredentialField]:
        return [
            CredentialField("tenant_url", "url", "Tenant URL", placeholder="https://mytenant.eu10.hcs.cloud.sap",
                            help_text="URL of your SAP Analytics Cloud tenant"),
            CredentialField("auth_mode", "select", "Authentication", required=False,
                            options={"client_credentials": "OAuth client (client credentials)"}),
            CredentialField("client_id", "text", "OAuth Client ID",
                            conditional_on="auth_mode", conditional_value="client_credentials"),
            CredentialField("client_secret", "password", "OAuth Client Secret",
                            conditional_on="auth_mode", conditional_value="client_credentials"),
        ]

    def describe_instance(self, credentials: Optional[Dict[str, Any]]) -> Optional[str]:
        return (credentials or {}).get("tenant_url") or None

    def system_prompt(self, configuration=None) -> str:
        return (
            "You can read SAP Analytics Cloud models. Call sac_list_models first, then "
            "sac_get_model_metadata to learn dimensions and measures before querying data."
        )

    async def execute_tool(self, tool_name: str, parameters: Dict[str, Any], credentials: Optional[Dict[str, Any]] = None) -> Any:
        credentials = self._check_credentials(credentials)
        if credentials.get("auth_mode", "client_credentials") != "client_credentials":
            raise ValueError(f"Unsupported SAP Analytics Cloud auth mode: {credentials['auth_mode']}")

        if tool_name == "sac_list_models":
            models = await self.client.list_models(credentials)
            return {"models": models, "count": len(models)}
        elif tool_name == "sac_get_model_metadata":
            self._require(parameters, "model_id")
            metadata = await self.client.model_metadata(credentials, parameters["model_id"])
            return parse_model_metadata(metadata, parameters["model_id"])
        elif tool_name == "sac_query_model_data":
            self._require(parameters, "model_id")
            return await self.client.query_model(
                credentials, parameters["model_id"],
                filter=parameters.get("filter"),
                select=parameters.get("select"),
                top=int(parameters.get("top", 100)),
                skip=int(parameters.get("skip", 0)),
            )
        elif tool_name == "sac_get_dimension_members":
            self._require(parameters, "model_id", "dimension")
            return await self.client.dimension_members(
                credentials, parameters["model_id"], parameters["dimension"],
                top=int(parameters.get("top", 100)), skip=int(parameters.get("skip", 0)),
            )
        elif tool_name == "sac_list_stories":
            return await self.client.list_stories(
                credentials, top=int(parameters.get("top", 50)), skip=int(parameters.get("skip", 0)),
            )
        elif tool_name == "sac_get_story":
            self._require(parameters, "story_id")
            return await self.client.get_story(credentials, parameters["story_id"])
        else:
            raise ValueError(f"Unknown tool: {tool_name}")
