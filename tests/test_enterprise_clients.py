import json
import time
from datetime import date
from urllib.parse import parse_qsl

import httpx
import pytest

from toolbridge.integrations.clients import ProjektronClient, SapC4CClient, SapSacClient, SharePointClient, WrikeClient
from toolbridge.integrations.clients.projektron import ProjektronSessionError, parse_tasks
from toolbridge.integrations.clients.sap_c4c import entity_properties, unwrap
from toolbridge.integrations.clients.sap_sac import parse_model_metadata, token_url
from toolbridge.integrations.user.projektron import ProjektronConnector
from toolbridge.integrations.user.sap_c4c import SapC4CConnector
from toolbridge.integrations.user.sap_sac import SapSacConnector
from toolbridge.integrations.user.sharepoint import SharePointConnector
from toolbridge.integrations.user.wrike import WrikeConnector

from .conftest import Recorder

SHAREPOINT_CREDENTIALS = {"access_token": "graph-token", "tenant_id": "contoso"}
C4C_CREDENTIALS = {"base_url": "https://my123.crm.ondemand.com", "username": "tech", "password": "secret"}
SAC_CREDENTIALS = {"tenant_url": "https://acme.eu10.hcs.cloud.sap", "client_id": "sb-client", "client_secret": "sac-secret"}


def _form(request: httpx.Request) -> dict:
    return dict(parse_qsl(request.content.decode()))


async def test_sharepoint_refreshes_expired_token_in_place():
    recorder = Recorder(
        httpx.Response(200, json={"access_token": "new-token", "refresh_token": "refresh-2", "expires_in": 600}),
        httpx.Response(200, json={"id": "me"}),
    )
    client = SharePointClient(transport=recorder.transport, client_id="app-id", client_secret="app-secret")
    credentials = {"access_token": "old-token", "refresh_token": "refresh-1", "tenant_id": "contoso", "expires_at": 1}

    await client.test_connection(credentials)

    token_request, me = recorder.requests
    assert str(token_request.url) == "https://login.microsoftonline.com/contoso/oauth2/v2.0/token"
    form = _form(token_request)
    assert form["grant_type"] == "refresh_token"
    assert form["refresh_token"] == "refresh-1"
    assert form["client_id"] == "app-id"
    assert "offline_access" in form["scope"]
    assert me.headers["authorization"] == "Bearer new-token"
    assert credentials["access_token"] == "new-token"
    assert credentials["refresh_token"] == "refresh-2"
    assert credentials["expires_at"] > time.time()


async def test_sharepoint_without_expiry_does_not_refresh():
    recorder = Recorder(httpx.Response(200, json={"value": []}))

    await SharePointClient(transport=recorder.transport).list_files(SHAREPOINT_CREDENTIALS, "site-1", "/Shared Documents/")

    request = recorder.requests[0]
    assert len(recorder.requests) == 1
    assert request.url.path == "/v1.0/sites/site-1/drive/root:/Shared Documents:/children"
    assert request.url.params["$top"] == "100"


async def test_sharepoint_expired_without_refresh_token():
    client = SharePointClient(transport=Recorder().transport)

    with pytest.raises(ValueError, match="no refresh token"):
        await client.test_connection({**SHAREPOINT_CREDENTIALS, "expires_at": 1})


async def test_sharepoint_download_returns_redirect_location():
    recorder = Recorder(
        httpx.Response(200, json={"id": "item-1", "name": "plan.pdf", "size": 2048, "file": {"mimeType": "application/pdf"}}),
        httpx.Response(302, headers={"location": "https://download.example.com/plan.pdf?token=x"}),
    )
    connector = SharePointConnector(SharePointClient(transport=recorder.transport))

    result = await connector.execute_tool("sharepoint_download_file", {"siteId": "s1", "itemId": "item-1"}, SHAREPOINT_CREDENTIALS)

    assert result["downloadUrl"] == "https://download.example.com/plan.pdf?token=x"
    assert result["name"] == "plan.pdf"
    assert result["mimeType"] == "application/pdf"
    assert recorder.requests[1].url.path == "/v1.0/sites/s1/drive/items/item-1/content"


async def test_sharepoint_read_document_text_and_binary():
    recorder = Recorder(
        httpx.Response(200, json={"id": "a", "name": "notes.txt", "file": {"mimeType": "text/plain"}}),
        httpx.Response(200, text="hello world"),
        httpx.Response(200, json={"id": "b", "name": "deck.pptx", "file": {"mimeType": "application/vnd.ms-powerpoint"}}),
    )
    connector = SharePointConnector(SharePointClient(transport=recorder.transport))

    text = await connector.execute_tool(
        "sharepoint_read_document", {"siteId": "s1", "itemId": "a", "maxLength": 5}, SHAREPOINT_CREDENTIALS
    )
    binary = await connector.execute_tool("sharepoint_read_document", {"siteId": "s1", "itemId": "b"}, SHAREPOINT_CREDENTIALS)

    assert text["content"] == "hello"
    assert text["truncated"] is True
    assert binary["content"] is None
    assert "sharepoint_download_file" in binary["message"]
    assert len(recorder.requests) == 3


async def test_sharepoint_search_caps_size():
    recorder = Recorder(httpx.Response(200, json={"value": []}))
    connector = SharePointConnector(SharePointClient(transport=recorder.transport))

    await connector.execute_tool("sharepoint_search", {"kql": "budget", "limit": 500}, SHAREPOINT_CREDENTIALS)

    body = json.loads(recorder.requests[0].content)
    assert body["requests"][0]["query"]["queryString"] == "budget"
    assert body["requests"][0]["size"] == 50


async def test_wrike_create_task_maps_fields():
    recorder = Recorder(httpx.Response(200, json={"kind": "tasks", "data": [{"id": "T1"}]}))
    connector = WrikeConnector(WrikeClient(transport=recorder.transport))

    await connector.execute_tool(
        "wrike_create_task",
        {"folderId": "F1", "title": "Prepare demo", "assignees": ["U1"], "dueDate": "2026-11-02"},
        {"access_token": "wrike-token", "host": "app-eu.wrike.com"},
    )

    request = recorder.requests[0]
    assert str(request.url) == "https://app-eu.wrike.com/api/v4/folders/F1/tasks"
    assert request.headers["authorization"] == "Bearer wrike-token"
    assert json.loads(request.content) == {"title": "Prepare demo", "responsibles": ["U1"], "dates": {"due": "2026-11-02"}}


async def test_wrike_log_time_adds_minutes_and_defaults_date():
    recorder = Recorder(httpx.Response(200, json={"data": []}))
    connector = WrikeConnector(WrikeClient(transport=recorder.transport))

    await connector.execute_tool("wrike_log_time", {"taskId": "T1", "hours": 1, "minutes": 30}, {"access_token": "t"})

    body = json.loads(recorder.requests[0].content)
    assert recorder.requests[0].url.path == "/api/v4/tasks/T1/timelogs"
    assert body == {"hours": 1.5, "trackedDate": date.today().isoformat()}


async def test_wrike_refreshes_token_before_expiry():
    recorder = Recorder(
        httpx.Response(200, json={"access_token": "fresh", "refresh_token": "r2", "expires_in": 3600, "host": "app-us2.wrike.com"}),
        httpx.Response(200, json={"data": []}),
    )
    client = WrikeClient(transport=recorder.transport, client_id="wrike-app", client_secret="wrike-secret")
    credentials = {"access_token": "old", "refresh_token": "r1", "expires_at": time.time() + 60}

    await client.list_folders(credentials)

    token_request, folders = recorder.requests
    assert str(token_request.url) == "https://login.wrike.com/oauth2/token"
    assert _form(token_request)["client_id"] == "wrike-app"
    assert str(folders.url) == "https://app-us2.wrike.com/api/v4/folders"
    assert credentials["access_token"] == "fresh"
    assert credentials["host"] == "app-us2.wrike.com"


PROJECT_TREE = """
<html><body><div id="projectbrowser">
  <a href="/bcs/projectbrowser/main/display?oid=1234_JProject">Website Relaunch</a>
  <a href="/bcs/taskdetail/main/display?oid=5678_JTask&amp;tab=1">Design review</a>
  <a href="/bcs/taskdetail/main/display?oid=5678_JTask">Design review</a>
  <a href="/bcs/userdetail/display?oid=42_JUser">Alice</a>
</div></body></html>
"""


def test_projektron_parse_tasks_unique_per_oid():
    tasks = parse_tasks(PROJECT_TREE, "https://pj.example.com")

    assert [t["oid"] for t in tasks] == ["1234_JProject", "5678_JTask"]
    assert [t["type"] for t in tasks] == ["project", "task"]
    assert tasks[1]["name"] == "Design review"
    assert tasks[1]["booking_url"] == "https://pj.example.com/bcs/taskdetail/effortrecording/edit?oid=5678_JTask"


async def test_projektron_sends_session_cookies():
    recorder = Recorder(httpx.Response(200, text=PROJECT_TREE))
    connector = ProjektronConnector(ProjektronClient(transport=recorder.transport))
    credentials = {"domain": "https://pj.example.com", "username": "alice", "csrf_token": "csrf-1", "jsessionid": "js-1"}

    result = await connector.execute_tool("projektron_get_all_tasks", {}, credentials)

    assert result["success"] is True
    assert result["count"] == 2
    request = recorder.requests[0]
    assert request.headers["cookie"] == "CSRF_Token=csrf-1; JSESSIONID=js-1"
    assert request.url.params["oid"] == "3_JProjects"


async def test_projektron_login_page_is_an_auth_failure():
    recorder = Recorder(httpx.Response(200, text="<html><form action='/bcs/login'>Login</form></html>"))
    connector = ProjektronConnector(ProjektronClient(transport=recorder.transport))
    credentials = {"domain": "https://pj.example.com", "username": "alice", "csrf_token": "c", "jsessionid": "j"}

    with pytest.raises(ProjektronSessionError, match="Authentication failed"):
        await connector.execute_tool("projektron_get_all_tasks", {}, credentials)


async def test_projektron_requires_https():
    connector = ProjektronConnector(ProjektronClient(transport=Recorder().transport))
    credentials = {"domain": "http://pj.example.com", "username": "a", "csrf_token": "c", "jsessionid": "j"}

    with pytest.raises(ValueError, match="https"):
        await connector.execute_tool("projektron_get_all_tasks", {}, credentials)


def test_c4c_unwrap():
    assert unwrap({"d": {"results": [{"ObjectID": "1"}]}}) == [{"ObjectID": "1"}]
    assert unwrap({"d": {"ObjectID": "1"}}) == {"ObjectID": "1"}
    assert unwrap({}) == {}


async def test_c4c_search_pages_and_filters():
    recorder = Recorder(httpx.Response(200, json={"d": {"results": [{"ObjectID": "1"}, {"ObjectID": "2"}]}}))
    connector = SapC4CConnector(SapC4CClient(transport=recorder.transport))

    result = await connector.execute_tool("c4c_search_leads", {"query": "O'Brien", "top": 2}, C4C_CREDENTIALS)

    request = recorder.requests[0]
    assert request.url.path == "/sap/c4c/odata/v1/c4codataapi/LeadCollection"
    assert request.url.params["$format"] == "json"
    assert request.url.params["$filter"] == "substringof('O''Brien',Name)"
    assert request.headers["authorization"].startswith("Basic ")
    assert result["leads"] == [{"ObjectID": "1"}, {"ObjectID": "2"}]
    assert result["has_more"] is True
    assert result["next_skip"] == 2


async def test_c4c_update_fetches_csrf_token_and_reads_back():
    recorder = Recorder(
        httpx.Response(200, headers={"x-csrf-token": "csrf-abc", "set-cookie": "SAP_SESSIONID=s1; Path=/"}, json={}),
        httpx.Response(204),
        httpx.Response(200, json={"d": {"ObjectID": "A1", "Name": "Acme GmbH"}}),
    )
    connector = SapC4CConnector(SapC4CClient(transport=recorder.transport))

    result = await connector.execute_tool(
        "c4c_update_account",
        {"object_id": "A1", "name": "Acme GmbH", "additional_fields": {"Web": "acme.example"}},
        C4C_CREDENTIALS,
    )

    fetch, patch, read = recorder.requests
    assert fetch.headers["x-csrf-token"] == "fetch"
    assert patch.method == "PATCH"
    assert patch.url.path == "/sap/c4c/odata/v1/c4codataapi/CorporateAccountCollection('A1')"
    assert patch.headers["x-csrf-token"] == "csrf-abc"
    assert "SAP_SESSIONID=s1" in patch.headers["cookie"]
    assert json.loads(patch.content) == {"Name": "Acme GmbH", "Web": "acme.example"}
    assert read.method == "GET"
    assert result == {"ObjectID": "A1", "Name": "Acme GmbH"}


async def test_c4c_unknown_tool():
    connector = SapC4CConnector(SapC4CClient(transport=Recorder().transport))

    with pytest.raises(ValueError, match="Unknown tool"):
        await connector.execute_tool("c4c_delete_lead", {"object_id": "1"}, C4C_CREDENTIALS)


C4C_METADATA = """<?xml version="1.0" encoding="utf-8"?>
<edmx:Edmx Version="1.0" xmlns:edmx="http://schemas.microsoft.com/ado/2007/06/edmx">
 <edmx:DataServices>
  <Schema Namespace="c4codata">
   <EntityType Name="Lead">
    <Property Name="ObjectID" Type="Edm.String" sap:creatable="false" sap:updatable="false"/>
    <Property Name="Name" Type="Edm.String"/>
    <Property Name="Note" Type="Edm.String" sap:filterable="false"/>
   </EntityType>
  </Schema>
 </edmx:DataServices>
</edmx:Edmx>
"""


def test_c4c_entity_properties_from_metadata():
    described = entity_properties(C4C_METADATA, "Lead")

    assert described["all_properties"] == ["ObjectID", "Name", "Note"]
    assert described["filterable_properties"] == ["ObjectID", "Name"]
    assert described["creatable_properties"] == ["Name", "Note"]
    assert described["updatable_properties"] == ["Name", "Note"]
    assert entity_properties(C4C_METADATA, "Ticket") is None


def test_sac_token_url():
    assert token_url("https://acme.eu10.hcs.cloud.sap") == "https://acme.authentication.eu10.hana.ondemand.com/oauth/token"
    assert token_url("acme.us10.sapanalytics.cloud/") == "https://acme.authentication.us10.hana.ondemand.com/oauth/token"
    with pytest.raises(ValueError):
        token_url("https://analytics.example.com")


async def test_sac_client_credentials_token_is_cached_in_bag():
    recorder = Recorder(
        httpx.Response(200, json={"access_token": "sac-token", "expires_in": 3600}),
        httpx.Response(200, json={"value": [{"ProviderID": "M1", "ProviderName": "Sales", "NamespaceID": "sac"}]}),
    )
    connector = SapSacConnector(SapSacClient(transport=recorder.transport))
    credentials = dict(SAC_CREDENTIALS)

    result = await connector.execute_tool("sac_list_models", {}, credentials)

    token_request, providers = recorder.requests
    assert str(token_request.url) == "https://acme.authentication.eu10.hana.ondemand.com/oauth/token"
    assert token_request.headers["authorization"].startswith("Basic ")
    assert _form(token_request) == {"grant_type": "client_credentials"}
    assert providers.headers["authorization"] == "Bearer sac-token"
    assert result == {"models": [{"id": "M1", "name": "Sales", "description": None, "namespace": "sac"}], "count": 1}
    assert credentials["access_token"] == "sac-token"
    assert credentials["expires_at"] > time.time()


SAC_METADATA = """<?xml version="1.0" encoding="utf-8"?>
<edmx:Edmx Version="4.0" xmlns:edmx="http://docs.oasis-open.org/odata/ns/edmx">
 <edmx:DataServices>
  <Schema Namespace="sac">
   <EntityType Name="FactData">
    <Property Name="Account" Type="Edm.String"/>
    <Property Name="SignedData" Type="Edm.Decimal"/>
   </EntityType>
   <EntityType Name="AccountMaster">
    <Property Name="ID" Type="Edm.String"/>
    <Property Name="Description" Type="Edm.String"/>
   </EntityType>
  </Schema>
 </edmx:DataServices>
</edmx:Edmx>
"""


def test_sac_model_metadata_dimensions_and_measures():
    metadata = parse_model_metadata(SAC_METADATA, "M1")

    assert metadata["dimensions"] == [{"name": "Account", "entity_type": "AccountMaster", "properties": ["ID", "Description"]}]
    assert metadata["measures"] == [{"name": "SignedData", "type": "Edm.Decimal"}]
    assert metadata["dimension_count"] == 1
    assert metadata["measure_count"] == 1
