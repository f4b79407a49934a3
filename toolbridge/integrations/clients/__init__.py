# Outbound REST clients used by the user connectors
from .base import RestClient
from .jira import JiraClient
from .confluence import ConfluenceClient
from .trello import TrelloClient
from .gitlab import GitLabClient
from .hubspot import HubSpotClient
from .sharepoint import SharePointClient
from .wrike import WrikeClient
from .projektron import ProjektronClient
from .sap_c4c import SapC4CClient
from .sap_sac import SapSacClient

__all__ = [
    "RestClient",
    "JiraClient",
    "ConfluenceClient",
    "TrelloClient",
    "GitLabClient",
    "HubSpotClient",
    "SharePointClient",
    "WrikeClient",
    "ProjektronClient",
    "SapC4CClient",
    "SapSacClient",
]
