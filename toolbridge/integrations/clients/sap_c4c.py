"""
SAP Cloud for Customer OData client

Reads ask for $format=json and get {"d": {...}} or {"d": {"results": [...]}}
back. Writes need an x-csrf-token fetched first, together with the session
cookies it belongs to.
"""
from typing import Any, Dict, List, Optional

from bs4 import BeautifulSoup

from .base import RestClient

ODATA_PATH = "/sap/c4c/odata/v1/c4codataapi"


def unwrap(payload: Any) -> Any:
    """Strip the OData v2 {"d": ...} / {"d": {"results": ...}} envelope"""
    if isinstance(payload, dict) and "d" in payload:
        payload = payload["d"]
        if isinstance(payload, dict) and "results" in payload:
            return payload["results"]
    return payload


def odata_quote(value: str) -> str:
    return str(value).replace("'", "''")


class SapC4CClient(RestClient):

    def _root(self, credentials: Dict[str, Any]) -> str:
        return f"{self._base_url(credentials.get('base_url'))}{ODATA_PATH}"

    @staticmethod
    def _auth(credentials: Dict[str, Any]):
        return (credentials.get("username", ""), credentials.get("password", ""))

    async def _get(self, credentials: Dict[str, Any], path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        query = {"$format": "json", **(params or {})}
        payload = await self._request("GET", f"{self._root(credentials)}{path}", auth=self._auth(credentials),
                                      headers={"Accept": "application/json"}, params=query)
        return unwrap(payload)

    async def _csrf_headers(self, credentials: Dict[str, Any]) -> Dict[str, str]:
        response = await self._send("GET", f"{self._root(credentials)}/", auth=self._auth(credentials),
                                    headers={"x-csrf-token": "fetch", "Accept": "application/json"})
        token = response.headers.get("x-csrf-token")
        if not token:
            raise ValueError("SAP C4C did not return a CSRF token")
        headers = {"x-csrf-token": token, "Accept": "application/json", "Content-Type": "application/json"}
        cookies = "; ".join(f"{name}={value}" for name, value in response.cookies.items())
        if cookies:
            headers["Cookie"] = cookies
        return headers

    async def _write(self, method: str, credentials: Dict[str, Any], path: str, body: Dict[str, Any]) -> Any:
        headers = await self._csrf_headers(credentials)
        payload = await self._request(method, f"{self._root(credentials)}{path}", auth=self._auth(credentials),
                                      headers=headers, json=body)
        return unwrap(payload)

    async def test_connection(self, credentials: Dict[str, Any]) -> bool:
        await self._get(credentials, "/LeadCollection", {"$top": 1})
        return True

    async def create(self, credentials: Dict[str, Any], collection: str, body: Dict[str, Any]) -> Dict[str, Any]:
        return await self._write("POST", credentials, f"/{collection}", body)

    async def get(self, credentials: Dict[str, Any], collection: str, object_id: str, expand: Optional[str] = None) -> Dict[str, Any]:
        params = {"$expand": expand} if expand else None
        return await self._get(credentials, f"/{collection}('{odata_quote(object_id)}')", params)

    async def update(self, credentials: Dict[str, Any], collection: str, object_id: str, body: Dict[str, Any]) -> Dict[str, Any]:
        path = f"/{collection}('{odata_quote(object_id)}')"
        result = await self._write("PATCH", credentials, path, body)
        if not result:
            # 204 No Content: read the entity back
            return await self._get(credentials, path)
        return result

    async def search(self, credentials: Dict[str, Any], collection: str, filter: Optional[str] = None,
                     top: int = 50, skip: int = 0, orderby: Optional[str] = None) -> List[Dict[str, Any]]:
        params: Dict[str, Any] = {"$top": top, "$skip": skip}
        if filter:
            params["$filter"] = filter
        if orderby:
            params["$orderby"] = orderby
        results = await self._get(credentials, f"/{collection}", params)
        return results if isinstance(results, list) else []

    async def metadata(self, credentials: Dict[str, Any]) -> str:
        response = await self._send("GET", f"{self._root(credentials)}/$metadata", auth=self._auth(credentials),
                                    headers={"Accept": "application/xml"})
        return response.text


def entity_properties(metadata_xml: str, entity_type: str) -> Optional[Dict[str, Any]]:
    """Filterable, creatable and updatable properties of one EntityType, from the sap: annotations"""
    soup = BeautifulSoup(metadata_xml, "html.parser")
    for entity in soup.find_all("entitytype"):
        if entity.get("name") != entity_type:
            continue
        properties = entity.find_all("property")
        names = [prop.get("name") for prop in properties]

        def flagged(attribute: str) -> List[str]:
            return [prop.get("name") for prop in properties if prop.get(attribute, "true").lower() != "false"]

        return {
            "entity_type": entity_type,
            "filterable_properties": flagged("sap:filterable"),
            "creatable_properties": flagged("sap:creatable"),
            "updatable_properties": flagged("sap:updatable"),
            "all_properties": names,
        }
    return None
