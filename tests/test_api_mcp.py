import base64

from toolbridge.services.configuration_service import IntegrationConfigurationService

from .conftest import ADMIN_HEADERS, JIRA_CREDENTIALS


def _auth(token: str) -> dict:
    return {"X-Prompt-Token": token}


async def _configure(client, organisation, integration_type, instance_name, credentials):
    response = await client.put(
        f"/integrations/organisations/{organisation.uuid}/configurations",
        json={"integration_type": integration_type, "instance_name": instance_name, "credentials": credentials},
        headers=ADMIN_HEADERS,
    )
    assert response.status_code == 200
    return response.json()["configuration"]


async def test_system_catalog_on_empty_organisation(client, seeded):
    response = await client.get("/api/mcp/tools", params={"tool_type": "system"}, headers=_auth(seeded.token))

    assert response.status_code == 200
    tools = response.json()["tools"]
    assert [t["id"] for t in tools] == ["share_file"]
    assert tools[0]["parameters"]["required"] == ["binaryData"]


async def test_jira_search_on_configured_instance(client, seeded):
    configuration = await _configure(client, seeded.organisation, "jira", "Team A", JIRA_CREDENTIALS)

    catalog = (await client.get("/api/mcp/tools", params={"tool_type": "jira"}, headers=_auth(seeded.token))).json()
    assert f"jira_search_{configuration['id']}" in [t["id"] for t in catalog["tools"]]

    response = await client.post(
        "/api/mcp/execute",
        json={"tool_id": f"jira_search_{configuration['id']}", "parameters": {"jql": "project = X"}},
        headers=_auth(seeded.token),
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["result"]["issues"][0]["fields"]["summary"] == "First issue"


async def test_structured_tool_reference(client, seeded):
    configuration = await _configure(client, seeded.organisation, "jira", "Team A", JIRA_CREDENTIALS)

    response = await client.post(
        "/api/mcp/execute",
        json={"tool": {"name": "jira_get_myself", "config_id": configuration["id"]}},
        headers={"Authorization": f"Bearer {seeded.token}"},
    )

    assert response.status_code == 200
    assert response.json()["result"]["accountId"] == "abc-123"


async def test_configuration_of_other_organisation_is_forbidden(client, seeded):
    foreign = await _configure(client, seeded.other, "jira", "Team A", JIRA_CREDENTIALS)

    response = await client.post(
        "/api/mcp/execute",
        json={"tool_id": f"jira_search_{foreign['id']}", "parameters": {"jql": "project = X"}},
        headers=_auth(seeded.token),
    )

    assert response.status_code == 403
    body = response.json()
    assert body["success"] is False
    assert body["error"] == "Configuration not found"


async def test_credential_failure_disables_configuration(client, seeded, db):
    flaky = await _configure(client, seeded.organisation, "flaky", "Flaky", {"key": "value"})

    response = await client.post(
        "/api/mcp/execute",
        json={"tool_id": f"flaky_call_{flaky['id']}", "parameters": {"error": "401 Unauthorized"}},
        headers=_auth(seeded.token),
    )

    assert response.status_code == 502
    body = response.json()
    assert body["success"] is False
    assert body["error"] == "Tool execution failed"
    assert body["message"] == "401 Unauthorized"
    assert body["hint"] == "Authentication failed - verify credentials"
    assert body["context"]["integration_type"] == "flaky"

    configuration = await IntegrationConfigurationService(db).get(flaky["id"])
    await db.refresh(configuration)
    assert configuration.active is False
    assert configuration.disconnect_reason == "401 Unauthorized"

    catalog = (await client.get("/api/mcp/tools", params={"tool_type": "flaky"}, headers=_auth(seeded.token))).json()
    assert catalog["tools"] == []


async def test_unrelated_failure_keeps_configuration_active(client, seeded):
    flaky = await _configure(client, seeded.organisation, "flaky", "Flaky", {"key": "value"})

    response = await client.post(
        "/api/mcp/execute",
        json={"tool_id": f"flaky_call_{flaky['id']}", "parameters": {"error": "Board not found"}},
        headers=_auth(seeded.token),
    )
    assert response.status_code == 502
    assert response.json()["hint"] == "Resource not found - verify the ID/key exists"

    listing = await client.get(f"/integrations/organisations/{seeded.organisation.uuid}/configurations", headers=ADMIN_HEADERS)
    assert listing.json()["configurations"][0]["active"] is True


async def test_unknown_tool(client, seeded):
    response = await client.post("/api/mcp/execute", json={"tool_id": "does_not_exist"}, headers=_auth(seeded.token))

    assert response.status_code == 404
    assert response.json()["error"] == "Tool not found"


async def test_missing_tool_id(client, seeded):
    response = await client.post("/api/mcp/execute", json={"parameters": {}}, headers=_auth(seeded.token))

    assert response.status_code == 400
    assert response.json()["error"] == "Tool ID is required"


async def test_non_numeric_config_id_is_an_envelope(client, seeded):
    response = await client.post(
        "/api/mcp/execute",
        json={"tool": {"name": "jira_search", "config_id": "abc"}},
        headers=_auth(seeded.token),
    )

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["error"] == "Invalid configuration id"


async def test_malformed_body_is_an_envelope(client, seeded):
    response = await client.post(
        "/api/mcp/execute",
        json={"tool_id": "share_file", "parameters": [1]},
        headers=_auth(seeded.token),
    )

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["error"] == "Invalid request"
    assert body["error_code"] == 400
    assert body["context"]["errors"][0]["field"] == "parameters"


async def test_malformed_body_elsewhere_keeps_default_validation(client, seeded):
    response = await client.put(
        f"/integrations/organisations/{seeded.organisation.uuid}/configurations",
        json={"instance_name": "Team A"},
        headers=ADMIN_HEADERS,
    )

    assert response.status_code == 422
    assert "detail" in response.json()


async def test_missing_token(client, seeded):
    response = await client.get("/api/mcp/tools")

    assert response.status_code == 401
    assert response.json()["error"] == "No API token provided"


async def test_regenerated_token_replaces_old_one(client, seeded):
    response = await client.post(
        f"/organisations/{seeded.organisation.uuid}/members/{seeded.user.id}/token", headers=ADMIN_HEADERS
    )
    assert response.status_code == 200
    new_token = response.json()["token"]
    assert new_token != seeded.token

    old = await client.get("/api/mcp/tools", headers=_auth(seeded.token))
    assert old.status_code == 401
    assert old.json()["error"] == "Invalid or expired token"

    assert (await client.get("/api/mcp/tools", headers=_auth(new_token))).status_code == 200


async def test_disabled_tool_blocks_only_that_tool(client, seeded):
    configuration = await _configure(client, seeded.organisation, "jira", "Team A", JIRA_CREDENTIALS)
    response = await client.post(
        f"/integrations/organisations/{seeded.organisation.uuid}/configurations/{configuration['id']}/tools/jira_get_myself/disable",
        headers=ADMIN_HEADERS,
    )
    assert response.status_code == 200

    blocked = await client.post(
        "/api/mcp/execute", json={"tool_id": f"jira_get_myself_{configuration['id']}"}, headers=_auth(seeded.token)
    )
    assert blocked.status_code == 403
    assert blocked.json()["error"] == "Tool is disabled"

    allowed = await client.post(
        "/api/mcp/execute",
        json={"tool_id": f"jira_search_{configuration['id']}", "parameters": {"jql": "project = X"}},
        headers=_auth(seeded.token),
    )
    assert allowed.status_code == 200


async def test_share_file_and_download(client, seeded):
    response = await client.post(
        "/api/mcp/execute",
        json={
            "tool_id": "share_file",
            "parameters": {
                "binaryData": base64.b64encode(b"hello world").decode(),
                "fileName": "hello.txt",
                "contentType": "text/plain",
            },
        },
        headers=_auth(seeded.token),
    )

    assert response.status_code == 200
    result = response.json()["result"]
    assert result["size"] == 11
    assert result["url"].startswith(f"http://test/files/{seeded.organisation.uuid}/")

    download = await client.get(result["url"])
    assert download.status_code == 200
    assert download.content == b"hello world"

    tampered = await client.get(result["url"].replace("signature=", "signature=00"))
    assert tampered.status_code == 403


async def test_share_file_rejects_bad_base64(client, seeded):
    response = await client.post(
        "/api/mcp/execute",
        json={"tool_id": "share_file", "parameters": {"binaryData": "not base64!"}},
        headers=_auth(seeded.token),
    )

    assert response.status_code == 502
    assert response.json()["message"] == "binaryData is not valid base64"
