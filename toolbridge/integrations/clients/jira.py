"""
Jira Cloud REST client
"""
from typing import Any, Dict, List, Optional

from .base import RestClient, drop_none


def _adf(text: str) -> Dict[str, Any]:
    """Wrap plain text into an Atlassian Document Format body"""
    return {
        "type": "doc",
        "version": 1,
        "content": [{"type": "paragraph", "content": [{"type": "text", "text": text}]}],
    }


class JiraClient(RestClient):
    """Thin wrapper around /rest/api/3"""

    def _api(self, credentials: Dict[str, Any], path: str) -> str:
        return f"{self._base_url(credentials.get('url'))}/rest/api/3{path}"

    @staticmethod
    def _auth(credentials: Dict[str, Any]):
        return (credentials.get("username", ""), credentials.get("api_token", ""))

    async def test_connection(self, credentials: Dict[str, Any]) -> bool:
        await self.get_myself(credentials)
        return True

    async def get_myself(self, credentials: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("GET", self._api(credentials, "/myself"), auth=self._auth(credentials))

    async def search(self, credentials: Dict[str, Any], jql: str, max_results: int = 50, fields: Optional[List[str]] = None) -> Dict[str, Any]:
        body = drop_none({
            "jql": jql,
            "maxResults": max_results,
            "fields": fields or ["summary", "status", "assignee", "priority", "updated"],
        })
        return await self._request("POST", self._api(credentials, "/search/jql"), auth=self._auth(credentials), json=body)

    async def get_issue(self, credentials: Dict[str, Any], issue_key: str) -> Dict[str, Any]:
        return await self._request("GET", self._api(credentials, f"/issue/{issue_key}"), auth=self._auth(credentials))

    async def add_comment(self, credentials: Dict[str, Any], issue_key: str, comment: str) -> Dict[str, Any]:
        return await self._request(
            "POST",
            self._api(credentials, f"/issue/{issue_key}/comment"),
            auth=self._auth(credentials),
            json={"body": _adf(comment)},
        )

    async def get_transitions(self, credentials: Dict[str, Any], issue_key: str) -> Dict[str, Any]:
        return await self._request("GET", self._api(credentials, f"/issue/{issue_key}/transitions"), auth=self._auth(credentials))

    async def transition_issue(self, credentials: Dict[str, Any], issue_key: str, transition_id: str) -> Dict[str, Any]:
        await self._request(
            "POST",
            self._api(credentials, f"/issue/{issue_key}/transitions"),
            auth=self._auth(credentials),
            json={"transition": {"id": str(transition_id)}},
        )
        return {"success": True, "issue_key": issue_key, "transition_id": str(transition_id)}

    async def create_issue(
        self,
        credentials: Dict[str, Any],
        project_key: str,
        summary: str,
        issue_type: str = "Task",
        description: Optional[str] = None,
    ) -> Dict[str, Any]:
        fields: Dict[str, Any] = {
            "project": {"key": project_key},
            "summary": summary,
            "issuetype": {"name": issue_type},
        }
        if description:
            fields["description"] = _adf(description)
        return await self._request("POST", self._api(credentials, "/issue"), auth=self._auth(credentials), json={"fields": fields})
