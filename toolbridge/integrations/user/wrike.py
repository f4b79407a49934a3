"""
Wrike connector
"""
from datetime import date
from typing import Any, Dict, List, Optional

from ..base import CredentialField, PersonalizedSkill, ToolDefinition, UserConnector, param, tool
from ..clients.wrike import WrikeClient, task_body


class WrikeConnector(UserConnector, PersonalizedSkill):
    type = "wrike"
    name = "Wrike"

    def __init__(self, client: Optional[WrikeClient] = None):
        self.client = client or WrikeClient()

    def tools(self) -> List[ToolDefinition]:
        return [
            tool(
                "wrike_search_tasks",
                "Search Wrike tasks, optionally inside one folder or project",
                param("title", description="Text contained in the task title"),
                param("status", description="Active, Completed, Deferred or Cancelled"),
                param("folderId", description="Restrict the search to this folder or project"),
                param("limit", "integer", description="Maximum number of tasks", default=100),
            ),
            tool(
                "wrike_get_task",
                "Get a Wrike task",
                param("taskId", required=True, description="Task id"),
            ),
            tool(
                "wrike_create_task",
                "Create a task in a folder or project",
                param("folderId", required=True, description="Folder or project id"),
                param("title", required=True, description="Task title"),
                param("description", description="Task description"),
                param("status", description="Active, Completed, Deferred or Cancelled"),
                param("assignees", "array", description="Contact ids of the assignees"),
                param("startDate", description="Start date, YYYY-MM-DD"),
                param("dueDate", description="Due date, YYYY-MM-DD"),
            ),
            tool(
                "wrike_update_task",
                "Update a Wrike task",
                param("taskId", required=True, description="Task id"),
                param("title", description="Task title"),
                param("description", description="Task description"),
                param("status", description="Active, Completed, Deferred or Cancelled"),
                param("assignees", "array", description="Contact ids of the assignees"),
                param("startDate", description="Start date, YYYY-MM-DD"),
                param("dueDate", description="Due date, YYYY-MM-DD"),
            ),
            tool(
                "wrike_get_task_comments",
                "List the comments of a task",
                param("taskId", required=True, description="Task id"),
            ),
            tool(
                "wrike_add_comment",
                "Add a comment to a task",
                param("taskId", required=True, description="Task id"),
                param("text", required=True, description="Comment text"),
            ),
            tool("wrike_list_folders", "List folders and projects of the account"),
            tool(
                "wrike_get_folder",
                "Get a folder or project",
                param("folderId", required=True, description="Folder or project id"),
            ),
            tool(
                "wrike_get_folder_tasks",
                "List the tasks of a folder or project",
                param("folderId", required=True, description="Folder or project id"),
                param("limit", "integer", description="Maximum number of tasks", default=100),
            ),
            tool("wrike_list_contacts", "List the contacts (users and groups) of the account"),
            tool(
                "wrike_get_contact",
                "Get a contact",
                param("contactId", required=True, description="Contact id"),
            ),
            tool(
                "wrike_log_time",
                "Log time spent on a task",
                param("taskId", required=True, description="Task id"),
                param("hours", "number", required=True, description="Whole or fractional hours"),
                param("minutes", "integer", description="Additional minutes"),
                param("comment", description="Timelog comment"),
                param("trackedDate", description="Date the time was spent, YYYY-MM-DD; defaults to today"),
            ),
            tool(
                "wrike_get_timelogs",
                "List the timelogs of a task",
                param("taskId", required=True, description="Task id"),
            ),
        ]

    def credential_fields(self) -> List[CredentialField]:
        return [
            CredentialField("oauth", "oauth", "Wrike OAuth", help_text="Authorise access to your Wrike account"),
        ]

    def required_credential_keys(self) -> List[str]:
        return ["access_token"]

    def describe_instance(self, credentials: Optional[Dict[str, Any]]) -> Optional[str]:
        return (credentials or {}).get("host") or None

    def system_prompt(self, configuration=None) -> str:
        return (
            "You can manage Wrike tasks. Use wrike_list_folders to find projects, wrike_search_tasks "
            "to find tasks and wrike_log_time to book hours on a task."
        )

    async def execute_tool(self, tool_name: str, parameters: Dict[str, Any], credentials: Optional[Dict[str, Any]] = None) -> Any:
        credentials = self._check_credentials(credentials)
        if not credentials.get("access_token"):
            raise ValueError("Wrike credentials are missing access_token")

        if tool_name == "wrike_search_tasks":
            return await self.client.search_tasks(
                credentials,
                title=parameters.get("title"),
                status=parameters.get("status"),
                folder_id=parameters.get("folderId"),
                limit=int(parameters.get("limit", 100)),
            )
        elif tool_name == "wrike_get_task":
            self._require(parameters, "taskId")
            return await self.client.get_task(credentials, parameters["taskId"])
        elif tool_name == "wrike_create_task":
            self._require(parameters, "folderId", "title")
            return await self.client.create_task(credentials, parameters["folderId"], task_body(parameters))
        elif tool_name == "wrike_update_task":
            self._require(parameters, "taskId")
            return await self.client.update_task(credentials, parameters["taskId"], task_body(parameters))
        elif tool_name == "wrike_get_task_comments":
            self._require(parameters, "taskId")
            return await self.client.get_task_comments(credentials, parameters["taskId"])
        elif tool_name == "wrike_add_comment":
            self._require(parameters, "taskId", "text")
            return await self.client.add_comment(credentials, parameters["taskId"], parameters["text"])
        elif tool_name == "wrike_list_folders":
            return await self.client.list_folders(credentials)
        elif tool_name == "wrike_get_folder":
            self._require(parameters, "folderId")
            return await self.client.get_folder(credentials, parameters["folderId"])
        elif tool_name == "wrike_get_folder_tasks":
            self._require(parameters, "folderId")
            return await self.client.search_tasks(
                credentials, folder_id=parameters["folderId"], limit=int(parameters.get("limit", 100)),
            )
        elif tool_name == "wrike_list_contacts":
            return await self.client.list_contacts(credentials)
        elif tool_name == "wrike_get_contact":
            self._require(parameters, "contactId")
            return await self.client.get_contact(credentials, parameters["contactId"])
        elif tool_name == "wrike_log_time":
            self._require(parameters, "taskId", "hours")
            hours = float(parameters["hours"]) + int(parameters.get("minutes") or 0) / 60
            if hours <= 0:
                raise ValueError("hours must be greater than zero")
            tracked_date = parameters.get("trackedDate") or date.today().isoformat()
            return await self.client.log_time(
                credentials, parameters["taskId"], round(hours, 2), tracked_date, parameters.get("comment"),
            )
        elif tool_name == "wrike_get_timelogs":
            self._require(parameters, "taskId")
            return await self.client.get_timelogs(credentials, parameters["taskId"])
        else:
            raise ValueError(f"Unknown tool: {tool_name}")
