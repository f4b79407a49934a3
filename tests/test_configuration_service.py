from datetime import datetime

from sqlalchemy import func, select

from toolbridge.models.integration import IntegrationConfiguration
from toolbridge.services.configuration_service import IntegrationConfigurationService, default_instance_name
from toolbridge.services.credential_broker import CredentialBroker

from .conftest import JIRA_CREDENTIALS


async def _count(db):
    result = await db.execute(select(func.count(IntegrationConfiguration.id)))
    return result.scalar()


def test_default_instance_name():
    assert default_instance_name("jira", 0) == "Jira"
    assert default_instance_name("jira", 1) == "Jira 2"
    assert default_instance_name("hubspot", 2) == "Hubspot 3"


async def test_upsert_creates_then_updates(db, seeded):
    service = IntegrationConfigurationService(db)

    first, created = await service.upsert(seeded.organisation.id, "jira", "Team A", credentials=JIRA_CREDENTIALS)
    assert created is True
    assert first.has_credentials()
    assert CredentialBroker().load_credentials(first) == JIRA_CREDENTIALS

    rotated = {**JIRA_CREDENTIALS, "api_token": "rotated"}
    second, created = await service.upsert(seeded.organisation.id, "jira", "Team A", credentials=rotated)

    assert created is False
    assert second.id == first.id
    assert await _count(db) == 1
    assert CredentialBroker().load_credentials(second)["api_token"] == "rotated"


async def test_same_name_in_other_organisation_is_separate(db, seeded):
    service = IntegrationConfigurationService(db)

    a, _ = await service.upsert(seeded.organisation.id, "jira", "Team A", credentials=JIRA_CREDENTIALS)
    b, _ = await service.upsert(seeded.other.id, "jira", "Team A", credentials=JIRA_CREDENTIALS)

    assert a.id != b.id
    assert await service.get_for_organisation(seeded.organisation.id, b.id) is None
    assert (await service.get_for_organisation(seeded.other.id, b.id)).id == b.id


async def test_upsert_without_credentials_keeps_existing(db, seeded):
    service = IntegrationConfigurationService(db)
    configuration, _ = await service.upsert(seeded.organisation.id, "jira", "Team A", credentials=JIRA_CREDENTIALS)
    ciphertext = configuration.encrypted_credentials

    configuration, _ = await service.upsert(seeded.organisation.id, "jira", "Team A", workflow_user_id="wf-bob")

    assert configuration.encrypted_credentials == ciphertext
    assert configuration.workflow_user_id == "wf-bob"


async def test_get_or_create_generates_names(db, seeded):
    service = IntegrationConfigurationService(db)

    first = await service.get_or_create(seeded.organisation.id, "trello")
    again = await service.get_or_create(seeded.organisation.id, "trello")
    bound = await service.get_or_create(seeded.organisation.id, "trello", instance_name="Marketing")

    assert first.instance_name == "Trello"
    assert again.id == first.id
    assert bound.instance_name == "Marketing"


async def test_find_for_catalog_filters_by_workflow_user(db, seeded):
    service = IntegrationConfigurationService(db)
    org_id = seeded.organisation.id
    shared, _ = await service.upsert(org_id, "jira", "Shared")
    alice, _ = await service.upsert(org_id, "jira", "Alice", workflow_user_id="wf-alice")
    bob, _ = await service.upsert(org_id, "jira", "Bob", workflow_user_id="wf-bob")

    everything = await service.find_for_catalog(org_id)
    for_alice = await service.find_for_catalog(org_id, "wf-alice")

    assert [c.id for c in everything] == [shared.id, alice.id, bob.id]
    assert [c.id for c in for_alice] == [shared.id, alice.id]


async def test_find_one_without_workflow_user_only_matches_unbound(db, seeded):
    service = IntegrationConfigurationService(db)
    await service.upsert(seeded.organisation.id, "gitlab", "Alice", workflow_user_id="wf-alice")

    assert await service.find_one(seeded.organisation.id, "gitlab") is None
    assert (await service.find_one(seeded.organisation.id, "gitlab", "wf-alice")).instance_name == "Alice"


async def test_disable_and_enable_tool(db, seeded):
    service = IntegrationConfigurationService(db)
    configuration, _ = await service.upsert(seeded.organisation.id, "jira", "Team A")

    await service.disable_tool(configuration, "jira_create_issue")
    await service.disable_tool(configuration, "jira_create_issue")
    assert configuration.disabled_tools == ["jira_create_issue"]

    reloaded = await IntegrationConfigurationService(db).get(configuration.id)
    assert reloaded.is_tool_disabled("jira_create_issue")

    await service.enable_tool(configuration, "jira_create_issue")
    assert configuration.disabled_tools == []


async def test_new_credentials_reactivate_disconnected_configuration(db, seeded):
    service = IntegrationConfigurationService(db)
    configuration, _ = await service.upsert(seeded.organisation.id, "jira", "Team A", credentials=JIRA_CREDENTIALS)
    configuration.active = False
    configuration.disconnect_reason = "API Error (HTTP 401): revoked"
    configuration.disconnected_at = datetime.utcnow()
    await db.commit()

    await service.set_credentials(configuration, {**JIRA_CREDENTIALS, "api_token": "fresh"})

    assert configuration.active is True
    assert configuration.disconnect_reason is None
    assert configuration.disconnected_at is None


async def test_touch_last_accessed_and_delete(db, seeded):
    service = IntegrationConfigurationService(db)
    configuration, _ = await service.upsert(seeded.organisation.id, "jira", "Team A")
    assert configuration.last_accessed_at is None

    await service.touch_last_accessed(configuration)
    assert configuration.last_accessed_at is not None

    await service.delete(configuration)
    assert await _count(db) == 0
