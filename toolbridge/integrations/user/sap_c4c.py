"""
SAP Cloud for Customer connector

Covers leads, opportunities, accounts and contacts through the c4codataapi
OData service, authenticated with a technical user (Basic auth).
"""
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..base import CredentialField, PersonalizedSkill, ToolDefinition, UserConnector, param, tool
from ..clients.sap_c4c import SapC4CClient, entity_properties, odata_quote


@dataclass(frozen=True)
class Entity:
    collection: str
    entity_type: str
    result_key: str
    singular: str
    required: tuple
    # tool parameter -> OData property
    fields: Dict[str, str]
    expand: Optional[str] = None


ENTITIES = {
    "lead": Entity(
        "LeadCollection", "Lead", "leads", "lead", ("name", "contact_last_name"),
        {
            "name": "Name",
            "contact_last_name": "ContactLastName",
            "contact_first_name": "ContactFirstName",
            "company": "Company",
            "account_party_id": "AccountPartyID",
            "qualification_level_code": "QualificationLevelCode",
            "origin_type_code": "OriginTypeCode",
            "group_code": "GroupCode",
        },
    ),
    "opportunity": Entity(
        "OpportunityCollection", "Opportunity", "opportunities", "opportunity", ("name",),
        {
            "name": "Name",
            "account_party_id": "ProspectPartyID",
            "main_contact_party_id": "PrimaryContactPartyID",
            "expected_revenue_amount": "ExpectedRevenueAmount",
            "currency_code": "ExpectedRevenueAmountCurrencyCode",
            "probability_percent": "ProbabilityPercent",
        },
        expand="OpportunityParty",
    ),
    "account": Entity(
        "CorporateAccountCollection", "CorporateAccount", "accounts", "account", ("name",),
        {
            "name": "Name",
            "name2": "AdditionalName",
            "role_code": "RoleCode",
            "country_code": "CountryCode",
            "city": "City",
            "street": "Street",
            "postal_code": "StreetPostalCode",
            "phone": "Phone",
            "email": "Email",
            "fax": "Fax",
        },
        expand="CorporateAccountHasContactPerson",
    ),
    "contact": Entity(
        "ContactCollection", "Contact", "contacts", "contact", ("last_name",),
        {
            "last_name": "LastName",
            "first_name": "FirstName",
            "account_party_id": "AccountID",
            "email": "Email",
            "phone": "Phone",
            "mobile": "Mobile",
            "job_title": "JobDetailsText",
            "gender_code": "GenderCode",
        },
    ),
}

TOOL_PREFIXES = {"lead": "leads", "opportunity": "opportunities", "account": "accounts", "contact": "contacts"}


def map_fields(entity: Entity, parameters: Dict[str, Any]) -> Dict[str, Any]:
    body = {
        odata_name: parameters[name]
        for name, odata_name in entity.fields.items()
        if parameters.get(name) not in (None, "")
    }
    additional = parameters.get("additional_fields") or {}
    if not isinstance(additional, dict):
        raise ValueError("additional_fields must be an object of OData property names to values")
    body.update(additional)
    return body


class SapC4CConnector(UserConnector, PersonalizedSkill):
    type = "sap_c4c"
    name = "SAP Cloud for Customer"

    def __init__(self, client: Optional[SapC4CClient] = None):
        self.client = client or SapC4CClient()

    def tools(self) -> List[ToolDefinition]:
        definitions: List[ToolDefinition] = []
        for key, entity in ENTITIES.items():
            plural = TOOL_PREFIXES[key]
            field_params = [
                param(name, "number" if name in ("expected_revenue_amount", "probability_percent") else "string",
                      description=f"{odata} of the {entity.singular}")
                for name, odata in entity.fields.items()
            ]
            extra = param("additional_fields", "object", description="Further OData properties to set, by their OData name")
            definitions.extend([
                tool(
                    f"c4c_create_{key}",
                    f"Create a {entity.singular} in SAP C4C",
                    *[param(p.name, p.type, p.name in entity.required, p.description) for p in field_params],
                    extra,
                ),
                tool(
                    f"c4c_get_{key}",
                    f"Get a {entity.singular} by its ObjectID",
                    param("object_id", required=True, description="ObjectID of the entity"),
                    *([param("expand", "boolean", description=f"Include {entity.expand}", default=False)]
                      if entity.expand else []),
                ),
                tool(
                    f"c4c_search_{plural}",
                    f"Search {entity.result_key} by name or with an OData filter",
                    param("query", description="Text contained in the name"),
                    param("filter", description="Raw OData $filter expression"),
                    param("top", "integer", description="Page size", default=50),
                    param("skip", "integer", description="Number of results to skip", default=0),
                ),
                tool(
                    f"c4c_update_{key}",
                    f"Update a {entity.singular}",
                    param("object_id", required=True, description="ObjectID of the entity"),
                    *field_params,
                    extra,
                ),
                tool(
                    f"c4c_list_{plural}",
                    f"List {entity.result_key}, newest first",
                    param("top", "integer", description="Page size", default=50),
                    param("skip", "integer", description="Number of results to skip", default=0),
                ),
            ])
        definitions.append(tool(
            "c4c_get_entity_metadata",
            "Describe the properties of an entity type (Lead, Opportunity, CorporateAccount, Contact)",
            param("entity_type", required=True, description="OData entity type name"),
        ))
        return definitions

    def credential_fields(self) -> List[CredentialField]:
        return [
            CredentialField("base_url", "url", "C4C URL", placeholder="https://my123456.crm.ondemand.com",
                            help_text="Your SAP Cloud for Customer tenant URL"),
            CredentialField("username", "text", "Technical User"),
            CredentialField("password", "password", "Password"),
        ]

    def describe_instance(self, credentials: Optional[Dict[str, Any]]) -> Optional[str]:
        return (credentials or {}).get("base_url") or None

    def system_prompt(self, configuration=None) -> str:
        return (
            "You can work with SAP Cloud for Customer leads, opportunities, accounts and contacts. Search "
            "before creating to avoid duplicates, and use c4c_get_entity_metadata to learn which "
            "properties can be filtered or updated."
        )

    async def execute_tool(self, tool_name: str, parameters: Dict[str, Any], credentials: Optional[Dict[str, Any]] = None) -> Any:
        credentials = self._check_credentials(credentials)

        if tool_name == "c4c_get_entity_metadata":
            self._require(parameters, "entity_type")
            described = entity_properties(await self.client.metadata(credentials), parameters["entity_type"])
            if described is None:
                raise ValueError(f"Unknown entity type: {parameters['entity_type']}")
            return described

        action, _, subject = tool_name[len("c4c_"):].partition("_") if tool_name.startswith("c4c_") else ("", "", "")
        key = next((k for k, plural in TOOL_PREFIXES.items() if subject in (k, plural)), None)
        if key is None:
            raise ValueError(f"Unknown tool: {tool_name}")
        entity = ENTITIES[key]

        if action == "create" and subject == key:
            self._require(parameters, *entity.required)
            return await self.client.create(credentials, entity.collection, map_fields(entity, parameters))
        elif action == "get" and subject == key:
            self._require(parameters, "object_id")
            expand = entity.expand if parameters.get("expand") else None
            return await self.client.get(credentials, entity.collection, str(parameters["object_id"]), expand)
        elif action == "update" and subject == key:
            self._require(parameters, "object_id")
            body = map_fields(entity, parameters)
            if not body:
                raise ValueError("Nothing to update")
            return await self.client.update(credentials, entity.collection, str(parameters["object_id"]), body)
        elif action == "search" and subject == TOOL_PREFIXES[key]:
            filters = []
            if parameters.get("query"):
                filters.append(f"substringof('{odata_quote(parameters['query'])}',Name)")
            if parameters.get("filter"):
                filters.append(f"({parameters['filter']})")
            return await self._page(credentials, entity, parameters, " and ".join(filters) or None)
        elif action == "list" and subject == TOOL_PREFIXES[key]:
            return await self._page(credentials, entity, parameters, None, orderby="CreationDateTime desc")
        else:
            raise ValueError(f"Unknown tool: {tool_name}")

    async def _page(self, credentials: Dict[str, Any], entity: Entity, parameters: Dict[str, Any],
                    filter: Optional[str], orderby: Optional[str] = None) -> Dict[str, Any]:
        top, skip = int(parameters.get("top", 50)), int(parameters.get("skip", 0))
        results = await self.client.search(credentials, entity.collection, filter, top, skip, orderby)
        has_more = len(results) >= top
        return {
            entity.result_key: results,
            "count": len(results),
            "top": top,
            "skip": skip,
            "has_more": has_more,
            "next_skip": skip + top if has_more else None,
        }
