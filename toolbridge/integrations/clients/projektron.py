"""
Projektron BCS client

Projektron has no public API for this; the client replays a browser session
(CSRF token plus JSESSIONID cookie) and scrapes the project browser page.
"""
import re
from typing import Any, Dict, List

from bs4 import BeautifulSoup

from .base import RestClient

PROJECT_BROWSER_PATH = "/bcs/projectbrowser/main/display"
PROJECT_BROWSER_PARAMS = {"oid": "3_JProjects", "default,default,sourcechoice,tab": "projecttree"}
BOOKING_PATH = "/bcs/taskdetail/effortrecording/edit"
USER_AGENT = "Mozilla/5.0 (compatible; ToolBridge)"

OID_PATTERN = re.compile(r"oid=([0-9]+_J(?:Task|Project))", re.IGNORECASE)


class ProjektronSessionError(Exception):
    """The stored browser session is no longer valid"""


class ProjektronClient(RestClient):

    @staticmethod
    def _domain(credentials: Dict[str, Any]) -> str:
        domain = RestClient._base_url(credentials.get("domain"))
        if not domain.startswith("https://"):
            raise ValueError("Projektron domain must use https")
        return domain

    @staticmethod
    def _headers(credentials: Dict[str, Any]) -> Dict[str, str]:
        cookie = f"CSRF_Token={credentials.get('csrf_token', '')}; JSESSIONID={credentials.get('jsessionid', '')}"
        return {"Cookie": cookie, "User-Agent": USER_AGENT}

    async def _project_browser(self, credentials: Dict[str, Any]) -> str:
        domain = self._domain(credentials)
        response = await self._send(
            "GET", f"{domain}{PROJECT_BROWSER_PATH}", headers=self._headers(credentials),
            params=PROJECT_BROWSER_PARAMS, follow_redirects=True,
        )
        html = response.text
        lowered = html.lower()
        if "projectbrowser" not in lowered and "login" in lowered:
            raise ProjektronSessionError("Authentication failed: Projektron session expired, update csrf_token and jsessionid")
        return html

    async def test_connection(self, credentials: Dict[str, Any]) -> bool:
        await self._project_browser(credentials)
        return True

    async def get_all_tasks(self, credentials: Dict[str, Any]) -> List[Dict[str, Any]]:
        html = await self._project_browser(credentials)
        return parse_tasks(html, self._domain(credentials))


def parse_tasks(html: str, domain: str) -> List[Dict[str, Any]]:
    """Tasks and projects linked from the project tree, one entry per oid"""
    soup = BeautifulSoup(html, "html.parser")
    tasks: List[Dict[str, Any]] = []
    seen = set()
    for link in soup.select('a[href*="oid="]'):
        match = OID_PATTERN.search(link.get("href", ""))
        if not match:
            continue
        oid = match.group(1)
        if oid in seen:
            continue
        seen.add(oid)
        tasks.append({
            "oid": oid,
            "name": link.get_text(strip=True) or link.get("title", ""),
            "type": "task" if "_jtask" in oid.lower() else "project",
            "booking_url": f"{domain}{BOOKING_PATH}?oid={oid}",
        })
    return tasks
