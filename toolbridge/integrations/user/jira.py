"""
Jira connector
"""
from typing import Any, Dict, List, Optional

from ..base import CredentialField, PersonalizedSkill, ToolDefinition, UserConnector, param, tool
from ..clients.jira import JiraClient


class JiraConnector(UserConnector, PersonalizedSkill):
    type = "jira"
    name = "Jira"

    def __init__(self, client: Optional[JiraClient] = None):
        self.client = client or JiraClient()

    def tools(self) -> List[ToolDefinition]:
        return [
            tool(
                "jira_search",
                "Search Jira issues with JQL",
                param("jql", required=True, description="JQL query, e.g. project = ABC AND status = 'In Progress'"),
                param("maxResults", "integer", description="Maximum number of issues to return", default=50),
            ),
            tool(
                "jira_get_issue",
                "Get a Jira issue with all fields",
                param("issueKey", required=True, description="Issue key, e.g. ABC-123"),
            ),
            tool(
                "jira_add_comment",
                "Add a comment to a Jira issue",
                param("issueKey", required=True, description="Issue key, e.g. ABC-123"),
                param("comment", required=True, description="Comment text"),
            ),
            tool(
                "jira_get_available_transitions",
                "List the workflow transitions currently available for an issue",
                param("issueKey", required=True, description="Issue key, e.g. ABC-123"),
            ),
            tool(
                "jira_transition_issue",
                "Move an issue through its workflow (use jira_get_available_transitions first)",
                param("issueKey", required=True, description="Issue key, e.g. ABC-123"),
                param("transitionId", required=True, description="Id of the transition to perform"),
            ),
            tool(
                "jira_create_issue",
                "Create a new Jira issue",
                param("projectKey", required=True, description="Project key, e.g. ABC"),
                param("summary", required=True, description="Issue summary"),
                param("issueType", description="Issue type name", default="Task"),
                param("description", description="Plain text description"),
            ),
            tool(
                "jira_get_myself",
                "Get the Jira account the integration is connected as",
            ),
        ]

    def credential_fields(self) -> List[CredentialField]:
        return [
            CredentialField("url", "url", "Jira URL", placeholder="https://your-domain.atlassian.net",
                            help_text="Your Jira Cloud instance URL"),
            CredentialField("username", "email", "Email", placeholder="your-email@example.com",
                            help_text="Email address of your Atlassian account"),
            CredentialField("api_token", "password", "API Token",
                            help_text="Create one at https://id.atlassian.com/manage-profile/security/api-tokens"),
        ]

    def describe_instance(self, credentials: Optional[Dict[str, Any]]) -> Optional[str]:
        return (credentials or {}).get("url") or None

    async def execute_tool(self, tool_name: str, parameters: Dict[str, Any], credentials: Optional[Dict[str, Any]] = None) -> Any:
        credentials = self._check_credentials(credentials)

        if tool_name == "jira_search":
            self._require(parameters, "jql")
            return await self.client.search(credentials, parameters["jql"], int(parameters.get("maxResults", 50)))
        elif tool_name == "jira_get_issue":
            self._require(parameters, "issueKey")
            return await self.client.get_issue(credentials, parameters["issueKey"])
        elif tool_name == "jira_add_comment":
            self._require(parameters, "issueKey", "comment")
            return await self.client.add_comment(credentials, parameters["issueKey"], parameters["comment"])
        elif tool_name == "jira_get_available_transitions":
            self._require(parameters, "issueKey")
            return await self.client.get_transitions(credentials, parameters["issueKey"])
        elif tool_name == "jira_transition_issue":
            self._require(parameters, "issueKey", "transitionId")
            return await self.client.transition_issue(credentials, parameters["issueKey"], parameters["transitionId"])
        elif tool_name == "jira_create_issue":
            self._require(parameters, "projectKey", "summary")
            return await self.client.create_issue(
                credentials,
                parameters["projectKey"],
                parameters["summary"],
                issue_type=parameters.get("issueType") or "Task",
                description=parameters.get("description"),
            )
        elif tool_name == "jira_get_myself":
            return await self.client.get_myself(credentials)
        else:
            raise ValueError(f"Unknown tool: {tool_name}")

    def system_prompt(self, configuration=None) -> str:
        config_id = configuration.id if configuration is not None else "XXX"
        instance = configuration.instance_name if configuration is not None else self.name
        return (
            f"You can work with the Jira instance \"{instance}\" through {len(self.tools())} tools. "
            f"Tool ids carry the configuration suffix _{config_id} (e.g. jira_search_{config_id}).\n"
            "- Find issues with jira_search using JQL; prefer narrow queries (project, status, assignee = currentUser()).\n"
            "- Read an issue with jira_get_issue before changing it.\n"
            "- To change status, call jira_get_available_transitions and pass the returned id to jira_transition_issue.\n"
            "- Comments are plain text; keep them short and reference issue keys explicitly."
        )
