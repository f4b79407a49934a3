import json

import httpx
import pytest

from toolbridge.integrations.clients import ConfluenceClient, GitLabClient, HubSpotClient, JiraClient, TrelloClient
from toolbridge.integrations.clients.gitlab import normalize_gitlab_url, project_ref
from toolbridge.integrations.user.gitlab import GitLabConnector
from toolbridge.integrations.user.hubspot import HubSpotConnector
from toolbridge.integrations.user.jira import JiraConnector

from .conftest import JIRA_CREDENTIALS, Recorder


async def test_jira_search_request_shape():
    recorder = Recorder(httpx.Response(200, json={"issues": []}))
    client = JiraClient(transport=recorder.transport)

    await client.search({**JIRA_CREDENTIALS, "url": "acme.atlassian.net/"}, "project = X", 5)

    request = recorder.requests[0]
    assert request.method == "POST"
    assert str(request.url) == "https://acme.atlassian.net/rest/api/3/search/jql"
    assert request.headers["authorization"].startswith("Basic ")
    body = json.loads(request.content)
    assert body["jql"] == "project = X"
    assert body["maxResults"] == 5


async def test_jira_comment_uses_document_format():
    recorder = Recorder(httpx.Response(201, json={"id": "1"}))

    await JiraClient(transport=recorder.transport).add_comment(JIRA_CREDENTIALS, "X-1", "Looks good")

    body = json.loads(recorder.requests[0].content)
    assert body["body"]["type"] == "doc"
    assert body["body"]["content"][0]["content"][0]["text"] == "Looks good"


async def test_jira_transition_returns_summary_for_empty_response():
    recorder = Recorder(httpx.Response(204))

    result = await JiraClient(transport=recorder.transport).transition_issue(JIRA_CREDENTIALS, "X-1", 31)

    assert result == {"success": True, "issue_key": "X-1", "transition_id": "31"}


async def test_error_status_raises():
    recorder = Recorder(httpx.Response(401, json={"errorMessages": ["nope"]}))

    with pytest.raises(httpx.HTTPStatusError) as exc_info:
        await JiraClient(transport=recorder.transport).get_myself(JIRA_CREDENTIALS)

    assert exc_info.value.response.status_code == 401


async def test_missing_instance_url():
    with pytest.raises(ValueError):
        await JiraClient(transport=Recorder().transport).get_myself({"username": "a", "api_token": "b"})


async def test_confluence_appends_wiki_and_wraps_text_search():
    recorder = Recorder(httpx.Response(200, json={"results": []}))

    await ConfluenceClient(transport=recorder.transport).search(JIRA_CREDENTIALS, "release notes")

    request = recorder.requests[0]
    assert request.url.path == "/wiki/rest/api/content/search"
    assert request.url.params["cql"] == 'text ~ "release notes"'


async def test_confluence_update_bumps_version():
    recorder = Recorder(
        httpx.Response(200, json={"id": "5", "title": "Old", "version": {"number": 3}}),
        httpx.Response(200, json={"id": "5"}),
    )

    await ConfluenceClient(transport=recorder.transport).update_page(
        {**JIRA_CREDENTIALS, "url": "https://acme.atlassian.net/wiki"}, "5", "<p>new</p>"
    )

    update = recorder.requests[1]
    assert update.method == "PUT"
    assert update.url.path == "/wiki/rest/api/content/5"
    body = json.loads(update.content)
    assert body["version"] == {"number": 4}
    assert body["title"] == "Old"


async def test_trello_sends_key_and_token_as_query():
    recorder = Recorder(httpx.Response(200, json=[]))

    await TrelloClient(transport=recorder.transport).get_board_lists({"api_key": "k", "api_token": "t"}, "b1")

    request = recorder.requests[0]
    assert request.url.host == "api.trello.com"
    assert request.url.path == "/1/boards/b1/lists"
    assert request.url.params["key"] == "k"
    assert request.url.params["token"] == "t"


def test_normalize_gitlab_url():
    assert normalize_gitlab_url("https://gitlab.example.com/") == "https://gitlab.example.com"
    assert normalize_gitlab_url("http://gitlab.internal") == "http://gitlab.internal"
    with pytest.raises(ValueError):
        normalize_gitlab_url("ftp://gitlab.example.com")
    with pytest.raises(ValueError):
        normalize_gitlab_url("https://")
    with pytest.raises(ValueError):
        normalize_gitlab_url("http://gitlab.com")


def test_project_ref():
    assert project_ref(42) == "42"
    assert project_ref("group/sub/project") == "group%2Fsub%2Fproject"


async def test_gitlab_file_content_request():
    recorder = Recorder(httpx.Response(200, json={"file_name": "README.md"}))
    connector = GitLabConnector(GitLabClient(transport=recorder.transport))

    await connector.execute_tool(
        "gitlab_get_file_content",
        {"project": "group/project", "filePath": "docs/README.md"},
        {"gitlab_url": "https://gitlab.com", "access_token": "glpat-x"},
    )

    request = recorder.requests[0]
    assert request.headers["private-token"] == "glpat-x"
    assert "/api/v4/projects/group%2Fproject/repository/files/docs%2FREADME.md" in str(request.url)
    assert request.url.params["ref"] == "HEAD"


async def test_hubspot_bearer_and_search_payload():
    recorder = Recorder(httpx.Response(200, json={"results": []}))
    connector = HubSpotConnector(HubSpotClient(transport=recorder.transport))

    await connector.execute_tool("hubspot_search_deals", {"query": "renewal"}, {"access_token": "hs-token"})

    request = recorder.requests[0]
    assert request.headers["authorization"] == "Bearer hs-token"
    assert request.url.path == "/crm/v3/objects/deals/search"
    assert json.loads(request.content)["query"] == "renewal"


async def test_hubspot_requires_access_token():
    connector = HubSpotConnector(HubSpotClient(transport=Recorder().transport))

    assert connector.required_credential_keys() == ["access_token"]
    assert await connector.validate_credentials({"refresh_token": "r"}) is False
    with pytest.raises(ValueError):
        await connector.execute_tool("hubspot_get_deal", {"dealId": "1"}, {"refresh_token": "r"})


async def test_connector_parameter_and_tool_errors():
    connector = JiraConnector(JiraClient(transport=Recorder().transport))

    with pytest.raises(ValueError, match="Missing required parameter: jql"):
        await connector.execute_tool("jira_search", {}, JIRA_CREDENTIALS)
    with pytest.raises(ValueError, match="Unknown tool"):
        await connector.execute_tool("jira_delete_everything", {}, JIRA_CREDENTIALS)
    with pytest.raises(ValueError, match="requires credentials"):
        await connector.execute_tool("jira_search", {"jql": "x"}, None)


async def test_validate_credentials_live_check():
    ok = JiraConnector(JiraClient(transport=Recorder(httpx.Response(200, json={"accountId": "1"})).transport))
    rejected = JiraConnector(JiraClient(transport=Recorder(httpx.Response(401)).transport))

    assert await ok.validate_credentials(JIRA_CREDENTIALS) is True
    assert await rejected.validate_credentials(JIRA_CREDENTIALS) is False
    assert await ok.validate_credentials({"url": "https://acme.atlassian.net"}) is False
