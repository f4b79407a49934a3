"""
SharePoint connector

The bag comes from the Microsoft OAuth flow: access_token, tenant_id and
usually refresh_token plus expires_at. Expired tokens are refreshed in the bag
before the call.
"""
from typing import Any, Dict, List, Optional

from ..base import CredentialField, PersonalizedSkill, ToolDefinition, UserConnector, param, tool
from ..clients.sharepoint import SharePointClient

TEXT_MIME_PREFIXES = ("text/",)
TEXT_MIME_TYPES = ("application/json", "application/xml", "application/javascript", "application/x-yaml")
MAX_DOCUMENT_LENGTH = 50000


def _is_text(mime_type: Optional[str]) -> bool:
    mime_type = (mime_type or "").split(";")[0].strip().lower()
    return mime_type.startswith(TEXT_MIME_PREFIXES) or mime_type in TEXT_MIME_TYPES


class SharePointConnector(UserConnector, PersonalizedSkill):
    type = "sharepoint"
    name = "SharePoint"

    def __init__(self, client: Optional[SharePointClient] = None):
        self.client = client or SharePointClient()

    def tools(self) -> List[ToolDefinition]:
        return [
            tool(
                "sharepoint_search",
                "Search SharePoint documents, list items and sites with KQL",
                param("kql", required=True, description="KQL query, e.g. filetype:docx AND budget"),
                param("limit", "integer", description="Maximum number of hits (at most 50)", default=25),
            ),
            tool(
                "sharepoint_read_document",
                "Read the text content of a document stored in SharePoint",
                param("siteId", required=True, description="Site id"),
                param("itemId", required=True, description="Drive item id"),
                param("driveId", description="Drive id when the item is not in the default library"),
                param("maxLength", "integer", description="Maximum number of characters to return", default=5000),
            ),
            tool(
                "sharepoint_read_page",
                "Read a SharePoint site page including its canvas layout",
                param("siteId", required=True, description="Site id"),
                param("pageId", required=True, description="Page id"),
            ),
            tool(
                "sharepoint_list_files",
                "List files and folders of a document library folder",
                param("siteId", required=True, description="Site id"),
                param("path", description="Folder path relative to the library root; empty for the root"),
            ),
            tool(
                "sharepoint_download_file",
                "Get file metadata and a temporary download URL",
                param("siteId", required=True, description="Site id"),
                param("itemId", required=True, description="Drive item id"),
            ),
            tool(
                "sharepoint_get_list_items",
                "Get the items of a SharePoint list",
                param("siteId", required=True, description="Site id"),
                param("listId", required=True, description="List id"),
                param("filters", "object", description="Optional OData 'filter' and 'orderby' expressions"),
            ),
        ]

    def credential_fields(self) -> List[CredentialField]:
        return [
            CredentialField("oauth", "oauth", "Connect with Microsoft",
                            help_text="Authorise access to your Microsoft 365 tenant"),
        ]

    def required_credential_keys(self) -> List[str]:
        return ["access_token", "tenant_id"]

    def system_prompt(self, configuration=None) -> str:
        return (
            "You can search and read the organisation's SharePoint content. Start with sharepoint_search "
            "using KQL, then read hits with sharepoint_read_document or sharepoint_read_page using the "
            "siteId and itemId from the search results."
        )

    async def execute_tool(self, tool_name: str, parameters: Dict[str, Any], credentials: Optional[Dict[str, Any]] = None) -> Any:
        credentials = self._check_credentials(credentials)
        if not credentials.get("access_token"):
            raise ValueError("SharePoint credentials are missing access_token")

        if tool_name == "sharepoint_search":
            self._require(parameters, "kql")
            return await self.client.search(credentials, parameters["kql"], int(parameters.get("limit", 25)))
        elif tool_name == "sharepoint_read_document":
            self._require(parameters, "siteId", "itemId")
            return await self._read_document(credentials, parameters)
        elif tool_name == "sharepoint_read_page":
            self._require(parameters, "siteId", "pageId")
            return await self.client.get_page(credentials, parameters["siteId"], parameters["pageId"])
        elif tool_name == "sharepoint_list_files":
            self._require(parameters, "siteId")
            return await self.client.list_files(credentials, parameters["siteId"], parameters.get("path"))
        elif tool_name == "sharepoint_download_file":
            self._require(parameters, "siteId", "itemId")
            metadata = await self.client.get_item(credentials, parameters["siteId"], parameters["itemId"])
            url = await self.client.download_url(credentials, parameters["siteId"], parameters["itemId"])
            return {
                "metadata": metadata,
                "downloadUrl": url or metadata.get("@microsoft.graph.downloadUrl"),
                "name": metadata.get("name"),
                "size": metadata.get("size"),
                "mimeType": (metadata.get("file") or {}).get("mimeType"),
            }
        elif tool_name == "sharepoint_get_list_items":
            self._require(parameters, "siteId", "listId")
            filters = parameters.get("filters") or {}
            if not isinstance(filters, dict):
                raise ValueError("filters must be an object with optional 'filter' and 'orderby'")
            return await self.client.get_list_items(
                credentials, parameters["siteId"], parameters["listId"],
                filter=filters.get("filter"), orderby=filters.get("orderby"),
            )
        else:
            raise ValueError(f"Unknown tool: {tool_name}")

    async def _read_document(self, credentials: Dict[str, Any], parameters: Dict[str, Any]) -> Dict[str, Any]:
        max_length = min(int(parameters.get("maxLength", 5000)), MAX_DOCUMENT_LENGTH)
        site_id, item_id, drive_id = parameters["siteId"], parameters["itemId"], parameters.get("driveId")

        metadata = await self.client.get_item(credentials, site_id, item_id, drive_id)
        mime_type = (metadata.get("file") or {}).get("mimeType")
        result = {
            "id": metadata.get("id", item_id),
            "name": metadata.get("name"),
            "mimeType": mime_type,
            "webUrl": metadata.get("webUrl"),
        }
        if not _is_text(mime_type):
            # Binary formats are not converted here; the caller can download them
            result["content"] = None
            result["message"] = f"Document type {mime_type or 'unknown'} cannot be read as text, use sharepoint_download_file"
            return result

        text = await self.client.get_item_text(credentials, site_id, item_id, drive_id)
        result["content"] = text[:max_length]
        result["truncated"] = len(text) > max_length
        return result
