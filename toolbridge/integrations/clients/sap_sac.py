"""
SAP Analytics Cloud client

Uses an OAuth client registered in the SAC tenant (client_credentials grant).
The token endpoint lives on the tenant's authentication host, derived from
the tenant URL; the token and its expiry are cached in the bag.
"""
import logging
import re
import time
from typing import Any, Dict, List, Optional

from bs4 import BeautifulSoup

from .base import TOKEN_EXPIRY_MARGIN, RestClient, drop_none, token_expired

logger = logging.getLogger(__name__)

TENANT_HOST_PATTERN = re.compile(
    r"^(?P<tenant>[^.]+)\.(?P<region>[^.]+)\.(?:hcs\.cloud\.sap|sapanalytics\.cloud)$", re.IGNORECASE,
)
PROVIDERS_PATH = "/api/v1/dataexport/administration/Namespaces(NamespaceID='sac')/Providers"
PROVIDER_PATH = "/api/v1/dataexport/providers/sac/{model_id}"
NUMERIC_EDM_TYPES = ("edm.decimal", "edm.double", "edm.int32", "edm.int64", "edm.single", "edm.int16")


def token_url(tenant_url: str) -> str:
    """https://<tenant>.authentication.<region>.hana.ondemand.com/oauth/token for a tenant URL"""
    host = RestClient._base_url(tenant_url).split("://", 1)[1].split("/", 1)[0]
    match = TENANT_HOST_PATTERN.match(host)
    if not match:
        raise ValueError(f"Cannot derive the SAC token URL from tenant URL {tenant_url}")
    return f"https://{match.group('tenant')}.authentication.{match.group('region')}.hana.ondemand.com/oauth/token"


class SapSacClient(RestClient):

    async def ensure_token(self, credentials: Dict[str, Any]) -> None:
        if credentials.get("access_token") and not token_expired(credentials, TOKEN_EXPIRY_MARGIN):
            return

        logger.info("Requesting SAP Analytics Cloud access token")
        token = await self._request(
            "POST", token_url(credentials.get("tenant_url", "")),
            auth=(credentials.get("client_id", ""), credentials.get("client_secret", "")),
            data={"grant_type": "client_credentials"},
        )
        if not token.get("access_token"):
            raise ValueError("SAP Analytics Cloud token request returned no access token")
        credentials["access_token"] = token["access_token"]
        credentials["expires_at"] = int(time.time()) + int(token.get("expires_in", 3600))

    async def _get(self, credentials: Dict[str, Any], path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        await self.ensure_token(credentials)
        headers = {"Authorization": f"Bearer {credentials['access_token']}", "x-sap-sac-custom-auth": "true"}
        return await self._request("GET", f"{self._base_url(credentials.get('tenant_url'))}{path}",
                                   headers=headers, params=params)

    async def test_connection(self, credentials: Dict[str, Any]) -> bool:
        await self._get(credentials, f"{PROVIDERS_PATH}/")
        return True

    async def list_models(self, credentials: Dict[str, Any]) -> List[Dict[str, Any]]:
        payload = await self._get(credentials, f"{PROVIDERS_PATH}/")
        return [
            {
                "id": provider.get("ProviderID"),
                "name": provider.get("ProviderName"),
                "description": provider.get("Description"),
                "namespace": provider.get("NamespaceID"),
            }
            for provider in payload.get("value", [])
        ]

    async def model_metadata(self, credentials: Dict[str, Any], model_id: str) -> str:
        await self.ensure_token(credentials)
        response = await self._send(
            "GET", f"{self._base_url(credentials.get('tenant_url'))}{PROVIDER_PATH.format(model_id=model_id)}/$metadata",
            headers={"Authorization": f"Bearer {credentials['access_token']}", "x-sap-sac-custom-auth": "true"},
        )
        return response.text

    async def query_model(self, credentials: Dict[str, Any], model_id: str, filter: Optional[str] = None,
                          select: Optional[str] = None, top: int = 100, skip: int = 0) -> Dict[str, Any]:
        params = drop_none({"$filter": filter, "$select": select, "$top": top, "$skip": skip or None})
        return await self._get(credentials, f"{PROVIDER_PATH.format(model_id=model_id)}/MasterData", params)

    async def dimension_members(self, credentials: Dict[str, Any], model_id: str, dimension: str,
                                top: int = 100, skip: int = 0) -> Dict[str, Any]:
        params = drop_none({"$top": top, "$skip": skip or None})
        return await self._get(credentials, f"{PROVIDER_PATH.format(model_id=model_id)}/{dimension}Master", params)

    async def list_stories(self, credentials: Dict[str, Any], top: int = 50, skip: int = 0) -> Any:
        return await self._get(credentials, "/api/v1/stories", drop_none({"$top": top, "$skip": skip or None}))

    async def get_story(self, credentials: Dict[str, Any], story_id: str) -> Dict[str, Any]:
        return await self._get(credentials, f"/api/v1/stories/{story_id}")


def parse_model_metadata(metadata_xml: str, model_id: str) -> Dict[str, Any]:
    """Dimensions (master data entity types) and measures (numeric fact properties) of a model"""
    soup = BeautifulSoup(metadata_xml, "html.parser")
    dimensions: List[Dict[str, Any]] = []
    measures: List[Dict[str, Any]] = []
    for entity in soup.find_all("entitytype"):
        name = entity.get("name", "")
        if name.endswith("Master") or "Dimension" in name:
            dimensions.append({
                "name": name[: -len("Master")] if name.endswith("Master") else name,
                "entity_type": name,
                "properties": [prop.get("name") for prop in entity.find_all("property")],
            })
        elif name in ("MasterData", "FactData"):
            for prop in entity.find_all("property"):
                if prop.get("type", "").lower() in NUMERIC_EDM_TYPES:
                    measures.append({"name": prop.get("name"), "type": prop.get("type")})
    return {
        "model_id": model_id,
        "dimensions": dimensions,
        "measures": measures,
        "dimension_count": len(dimensions),
        "measure_count": len(measures),
    }
