"""
GitLab REST client (gitlab.com or self-hosted)
"""
from typing import Any, Dict, Optional
from urllib.parse import quote, urlparse

from .base import RestClient, drop_none


def normalize_gitlab_url(url: str) -> str:
    """Validate and normalise an instance URL; gitlab.com must be reached over https"""
    url = (url or "").strip().rstrip("/")
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https"):
        raise ValueError(f"GitLab URL must use HTTP or HTTPS protocol. Got: '{parsed.scheme}'")
    if not parsed.netloc:
        raise ValueError("GitLab URL must include a valid domain name")
    if parsed.scheme != "https" and "gitlab.com" in parsed.netloc:
        raise ValueError(f"GitLab URL must use HTTPS for security. Got: '{url}'")
    return url


def project_ref(project: Any) -> str:
    """Numeric ids pass through, "namespace/project" paths are URL-encoded"""
    project = str(project)
    if project.isdigit():
        return project
    return quote(project, safe="")


class GitLabClient(RestClient):
    """Thin wrapper around /api/v4"""

    async def _call(
        self,
        method: str,
        path: str,
        credentials: Dict[str, Any],
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> Any:
        url = f"{normalize_gitlab_url(credentials.get('gitlab_url'))}/api/v4{path}"
        headers = {"PRIVATE-TOKEN": credentials.get("access_token", "")}
        return await self._request(method, url, headers=headers, params=drop_none(params or {}), json=json)

    async def test_connection(self, credentials: Dict[str, Any]) -> bool:
        await self._call("GET", "/user", credentials)
        return True

    async def list_projects(self, credentials: Dict[str, Any], membership: Optional[bool] = True, per_page: int = 20) -> Any:
        params = {"per_page": per_page, "order_by": "last_activity_at"}
        if membership is not None:
            params["membership"] = "true" if membership else "false"
        return await self._call("GET", "/projects", credentials, params)

    async def get_project(self, credentials: Dict[str, Any], project: str) -> Dict[str, Any]:
        return await self._call("GET", f"/projects/{project_ref(project)}", credentials)

    async def get_file_content(self, credentials: Dict[str, Any], project: str, file_path: str, ref: Optional[str] = None) -> Dict[str, Any]:
        path = f"/projects/{project_ref(project)}/repository/files/{quote(file_path, safe='')}"
        return await self._call("GET", path, credentials, {"ref": ref or "HEAD"})

    async def list_branches(self, credentials: Dict[str, Any], project: str) -> Any:
        return await self._call("GET", f"/projects/{project_ref(project)}/repository/branches", credentials)

    async def search_merge_requests(
        self,
        credentials: Dict[str, Any],
        project: str,
        state: Optional[str] = None,
        scope: Optional[str] = None,
    ) -> Any:
        return await self._call(
            "GET",
            f"/projects/{project_ref(project)}/merge_requests",
            credentials,
            {"state": state, "scope": scope},
        )

    async def get_merge_request(self, credentials: Dict[str, Any], project: str, merge_request_iid: int) -> Dict[str, Any]:
        return await self._call("GET", f"/projects/{project_ref(project)}/merge_requests/{int(merge_request_iid)}", credentials)

    async def add_merge_request_note(self, credentials: Dict[str, Any], project: str, merge_request_iid: int, body: str) -> Dict[str, Any]:
        return await self._call(
            "POST",
            f"/projects/{project_ref(project)}/merge_requests/{int(merge_request_iid)}/notes",
            credentials,
            json={"body": body},
        )
