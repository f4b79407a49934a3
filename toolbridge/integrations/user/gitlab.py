"""
GitLab connector (gitlab.com and self-hosted instances)
"""
from typing import Any, Dict, List, Optional

from ..base import CredentialField, ToolDefinition, UserConnector, param, tool
from ..clients.gitlab import GitLabClient

_PROJECT = param("project", required=True, description="Project id or path, e.g. group/project")


class GitLabConnector(UserConnector):
    type = "gitlab"
    name = "GitLab"

    def __init__(self, client: Optional[GitLabClient] = None):
        self.client = client or GitLabClient()

    def tools(self) -> List[ToolDefinition]:
        return [
            tool(
                "gitlab_list_projects",
                "List projects the token can see",
                param("membership", "boolean", description="Only projects the user is a member of", default=True),
                param("perPage", "integer", description="Page size", default=20),
            ),
            tool("gitlab_get_project", "Get project details", _PROJECT),
            tool(
                "gitlab_get_file_content",
                "Read a file from a repository",
                _PROJECT,
                param("filePath", required=True, description="Path of the file in the repository"),
                param("ref", description="Branch, tag or commit; defaults to HEAD"),
            ),
            tool("gitlab_list_branches", "List repository branches", _PROJECT),
            tool(
                "gitlab_search_merge_requests",
                "List merge requests of a project",
                _PROJECT,
                param("state", description="opened, closed, merged or all"),
                param("scope", description="created_by_me, assigned_to_me or all"),
            ),
            tool(
                "gitlab_get_merge_request",
                "Get a merge request",
                _PROJECT,
                param("mergeRequestIid", "integer", required=True, description="Merge request IID"),
            ),
            tool(
                "gitlab_add_merge_request_note",
                "Comment on a merge request",
                _PROJECT,
                param("mergeRequestIid", "integer", required=True, description="Merge request IID"),
                param("body", required=True, description="Comment text (Markdown)"),
            ),
        ]

    def credential_fields(self) -> List[CredentialField]:
        return [
            CredentialField("gitlab_url", "url", "GitLab URL", placeholder="https://gitlab.com",
                            help_text="gitlab.com or the URL of your self-hosted instance"),
            CredentialField("access_token", "password", "Personal Access Token",
                            help_text="Token with the read_api (or api for write tools) scope"),
        ]

    def describe_instance(self, credentials: Optional[Dict[str, Any]]) -> Optional[str]:
        return (credentials or {}).get("gitlab_url") or None

    async def execute_tool(self, tool_name: str, parameters: Dict[str, Any], credentials: Optional[Dict[str, Any]] = None) -> Any:
        credentials = self._check_credentials(credentials)

        if tool_name == "gitlab_list_projects":
            membership = parameters.get("membership", True)
            return await self.client.list_projects(credentials, membership, int(parameters.get("perPage", 20)))
        elif tool_name == "gitlab_get_project":
            self._require(parameters, "project")
            return await self.client.get_project(credentials, parameters["project"])
        elif tool_name == "gitlab_get_file_content":
            self._require(parameters, "project", "filePath")
            return await self.client.get_file_content(
                credentials, parameters["project"], parameters["filePath"], ref=parameters.get("ref")
            )
        elif tool_name == "gitlab_list_branches":
            self._require(parameters, "project")
            return await self.client.list_branches(credentials, parameters["project"])
        elif tool_name == "gitlab_search_merge_requests":
            self._require(parameters, "project")
            return await self.client.search_merge_requests(
                credentials, parameters["project"], state=parameters.get("state"), scope=parameters.get("scope")
            )
        elif tool_name == "gitlab_get_merge_request":
            self._require(parameters, "project", "mergeRequestIid")
            return await self.client.get_merge_request(credentials, parameters["project"], parameters["mergeRequestIid"])
        elif tool_name == "gitlab_add_merge_request_note":
            self._require(parameters, "project", "mergeRequestIid", "body")
            return await self.client.add_merge_request_note(
                credentials, parameters["project"], parameters["mergeRequestIid"], parameters["body"]
            )
        else:
            raise ValueError(f"Unknown tool: {tool_name}")
