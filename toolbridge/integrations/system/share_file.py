"""
system.share_file - upload bytes and get a signed download URL
"""
from typing import Any, Dict, List, Optional

from ..base import SystemConnector, ToolDefinition, param, tool
from ...services.file_share import FileShareService


class ShareFileConnector(SystemConnector):
    type = "system.share_file"
    name = "Share File"

    def __init__(self, file_share: Optional[FileShareService] = None):
        self.file_share = file_share or FileShareService()

    def tools(self) -> List[ToolDefinition]:
        return [
            tool(
                "share_file",
                "Upload and share a file. Returns a signed URL that can be used to access the file.",
                param("binaryData", required=True, description="Base64 encoded file content"),
                param("fileName", description="Original file name (optional, for reference only)"),
                param("contentType", description="MIME type of the file"),
            )
        ]

    async def execute_tool(self, tool_name: str, parameters: Dict[str, Any], credentials: Optional[Dict[str, Any]] = None) -> Any:
        if tool_name != "share_file":
            raise ValueError(f"Unknown tool: {tool_name}")

        binary_data = parameters.get("binaryData")
        if not binary_data:
            raise ValueError("binaryData parameter is required")

        return await self.file_share.share_file(
            binary_data,
            parameters.get("contentType") or "application/octet-stream",
            parameters.get("organisationUuid", ""),
            file_name=parameters.get("fileName"),
        )
