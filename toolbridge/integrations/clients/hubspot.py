"""
HubSpot CRM client

The OAuth dance happens elsewhere; this client only spends the access token
found in the credential bag.
"""
from typing import Any, Dict, List, Optional

from .base import RestClient

HUBSPOT_API_URL = "https://api.hubapi.com"

CONTACT_PROPERTIES = [
    "firstname", "lastname", "email", "phone", "company", "jobtitle",
    "lifecyclestage", "hs_lead_status", "createdate", "lastmodifieddate",
]
DEAL_PROPERTIES = [
    "dealname", "amount", "dealstage", "pipeline", "closedate",
    "hubspot_owner_id", "createdate", "lastmodifieddate",
]


class HubSpotClient(RestClient):

    async def _call(self, method: str, path: str, credentials: Dict[str, Any], json: Optional[Dict[str, Any]] = None,
                    params: Optional[Dict[str, Any]] = None) -> Any:
        headers = {"Authorization": f"Bearer {credentials.get('access_token', '')}"}
        return await self._request(method, f"{HUBSPOT_API_URL}{path}", headers=headers, json=json, params=params)

    async def test_connection(self, credentials: Dict[str, Any]) -> bool:
        await self._call("GET", "/account-info/v3/details", credentials)
        return True

    async def _search(self, credentials: Dict[str, Any], object_type: str, query: str, limit: int, properties: List[str]) -> Dict[str, Any]:
        payload = {"query": query, "limit": limit, "properties": properties}
        return await self._call("POST", f"/crm/v3/objects/{object_type}/search", credentials, json=payload)

    async def search_contacts(self, credentials: Dict[str, Any], query: str, limit: int = 20) -> Dict[str, Any]:
        return await self._search(credentials, "contacts", query, limit, CONTACT_PROPERTIES)

    async def get_contact(self, credentials: Dict[str, Any], contact_id: str) -> Dict[str, Any]:
        return await self._call(
            "GET", f"/crm/v3/objects/contacts/{contact_id}", credentials,
            params={"properties": ",".join(CONTACT_PROPERTIES)},
        )

    async def create_contact(self, credentials: Dict[str, Any], properties: Dict[str, Any]) -> Dict[str, Any]:
        return await self._call("POST", "/crm/v3/objects/contacts", credentials, json={"properties": properties})

    async def search_deals(self, credentials: Dict[str, Any], query: str, limit: int = 20) -> Dict[str, Any]:
        return await self._search(credentials, "deals", query, limit, DEAL_PROPERTIES)

    async def get_deal(self, credentials: Dict[str, Any], deal_id: str) -> Dict[str, Any]:
        return await self._call(
            "GET", f"/crm/v3/objects/deals/{deal_id}", credentials,
            params={"properties": ",".join(DEAL_PROPERTIES)},
        )
