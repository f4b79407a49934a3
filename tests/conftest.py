"""Pytest configuration for tests."""

import os
from types import SimpleNamespace
from typing import Any, Dict, List, Optional

# Settings are read at import time, so the environment goes first
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["ADMIN_API_KEY"] = "test-admin-key"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["ENCRYPTION_KEY"] = "test-encryption-key"

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from toolbridge import models  # noqa: F401  (registers tables)
from toolbridge.core.config import settings
from toolbridge.core.database import Base, get_db
from toolbridge.integrations import build_registry
from toolbridge.integrations.base import ToolDefinition, UserConnector, param, tool
from toolbridge.models.organisation import Organisation, OrganisationMembership, User
from toolbridge.services.access_token_service import AccessTokenService
from toolbridge.services.file_share import FileShareService

ADMIN_HEADERS = {"X-API-KEY": "test-admin-key"}

JIRA_CREDENTIALS = {
    "url": "https://acme.atlassian.net",
    "username": "alice@example.com",
    "api_token": "valid-token",
}


class FlakyConnector(UserConnector):
    """Credentialed connector whose only tool raises whatever message it is given"""

    type = "flaky"
    name = "Flaky"

    def __init__(self):
        self.calls: List[Dict[str, Any]] = []

    def tools(self) -> List[ToolDefinition]:
        return [
            tool("flaky_call", "Raise the given error", param("error", description="Message to raise")),
            tool("flaky_echo", "Echo the parameters back"),
        ]

    def credential_fields(self):
        return []

    async def execute_tool(self, tool_name: str, parameters: Dict[str, Any], credentials: Optional[Dict[str, Any]] = None) -> Any:
        self._check_credentials(credentials)
        self.calls.append({"tool": tool_name, "parameters": parameters, "credentials": credentials})
        if tool_name == "flaky_call":
            raise RuntimeError(parameters.get("error") or "boom")
        return {"echo": {k: v for k, v in parameters.items()}}


class Recorder:
    """MockTransport handler that remembers requests and replays canned responses"""

    def __init__(self, *responses: httpx.Response):
        self.requests = []
        self.responses = list(responses)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.responses:
            return self.responses.pop(0)
        return httpx.Response(200, json={})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


def jira_api_handler(request: httpx.Request) -> httpx.Response:
    """Fake Jira Cloud: rejects the api token "revoked", answers search and myself"""
    authorization = request.headers.get("authorization", "")
    # Basic base64("alice@example.com:revoked")
    if authorization.endswith("YWxpY2VAZXhhbXBsZS5jb206cmV2b2tlZA=="):
        return httpx.Response(401, json={"errorMessages": ["Client must be authenticated to access this resource."]})

    if request.url.path == "/rest/api/3/search/jql":
        return httpx.Response(200, json={
            "issues": [{"key": "X-1", "fields": {"summary": "First issue"}}],
            "isLast": True,
        })
    if request.url.path == "/rest/api/3/myself":
        return httpx.Response(200, json={"accountId": "abc-123", "displayName": "Alice"})
    if request.url.path.startswith("/rest/api/3/issue/"):
        return httpx.Response(404, json={"errorMessages": ["Issue does not exist or you do not have permission to see it."]})
    return httpx.Response(500, text="unexpected")


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    """Create a fresh database session for each test."""
    async with session_factory() as session:
        yield session


@pytest.fixture
async def seeded(db):
    """Two organisations, one member of the first with a live access token"""
    organisation = Organisation(name="Acme")
    other = Organisation(name="Globex")
    user = User(email="alice@example.com", name="Alice")
    membership = OrganisationMembership(user=user, organisation=organisation, workflow_user_id="wf-alice")
    db.add_all([organisation, other, user, membership])
    await db.commit()

    token = await AccessTokenService(db).regenerate(membership)
    return SimpleNamespace(organisation=organisation, other=other, user=user, membership=membership, token=token)


@pytest.fixture
def file_share(tmp_path):
    return FileShareService(base_path=str(tmp_path / "shared"), secret="file-secret", base_url="http://test")


@pytest.fixture
def flaky():
    return FlakyConnector()


@pytest.fixture
def registry(file_share, flaky):
    registry = build_registry(settings, transport=httpx.MockTransport(jira_api_handler), file_share=file_share)
    registry.register(flaky)
    return registry.freeze()


@pytest.fixture
async def client(session_factory, registry, file_share):
    from toolbridge.main import app

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.state.registry = registry
    app.state.file_share = file_share

    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
