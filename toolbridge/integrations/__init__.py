"""
Connectors and their registry

build_registry() is the single place where every shipped connector is wired
to its outbound client.
"""
from typing import Optional

import httpx

from .base import (
    Connector,
    CredentialField,
    PersonalizedSkill,
    SystemConnector,
    ToolDefinition,
    ToolParameter,
    UserConnector,
)
from .registry import ConnectorRegistry
from .clients import (
    ConfluenceClient,
    GitLabClient,
    HubSpotClient,
    JiraClient,
    ProjektronClient,
    SapC4CClient,
    SapSacClient,
    SharePointClient,
    TrelloClient,
    WrikeClient,
)
from .system.share_file import ShareFileConnector
from .user.confluence import ConfluenceConnector
from .user.gitlab import GitLabConnector
from .user.hubspot import HubSpotConnector
from .user.jira import JiraConnector
from .user.projektron import ProjektronConnector
from .user.sap_c4c import SapC4CConnector
from .user.sap_sac import SapSacConnector
from .user.sharepoint import SharePointConnector
from .user.trello import TrelloConnector
from .user.wrike import WrikeConnector


def build_registry(
    settings=None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    file_share=None,
) -> ConnectorRegistry:
    """Registry with every shipped connector; the caller freezes it"""
    if settings is None:
        from ..core.config import settings

    if file_share is None:
        from ..services.file_share import FileShareService
        file_share = FileShareService(
            base_path=settings.SHARED_FILES_PATH,
            base_url=settings.BASE_URL,
            ttl=settings.SHARED_FILE_TTL,
        )

    timeout = settings.OUTBOUND_TIMEOUT
    return ConnectorRegistry([
        ShareFileConnector(file_share),
        JiraConnector(JiraClient(timeout, transport)),
        ConfluenceConnector(ConfluenceClient(timeout, transport)),
        TrelloConnector(TrelloClient(timeout, transport)),
        GitLabConnector(GitLabClient(timeout, transport)),
        HubSpotConnector(HubSpotClient(timeout, transport)),
        SharePointConnector(SharePointClient(
            timeout, transport, settings.SHAREPOINT_CLIENT_ID, settings.SHAREPOINT_CLIENT_SECRET,
        )),
        WrikeConnector(WrikeClient(timeout, transport, settings.WRIKE_CLIENT_ID, settings.WRIKE_CLIENT_SECRET)),
        ProjektronConnector(ProjektronClient(timeout, transport)),
        SapC4CConnector(SapC4CClient(timeout, transport)),
        SapSacConnector(SapSacClient(timeout, transport)),
    ])


__all__ = [
    "Connector",
    "ConnectorRegistry",
    "CredentialField",
    "PersonalizedSkill",
    "SystemConnector",
    "ToolDefinition",
    "ToolParameter",
    "UserConnector",
    "build_registry",
]
