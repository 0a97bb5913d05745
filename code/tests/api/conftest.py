"""Route-test wiring: an app on the in-memory DB with outside services off."""

import pytest
from httpx import ASGITransport, AsyncClient

from stillnoob.api.app import create_app
from stillnoob.api.deps import get_db, get_raiderio, get_wcl_factory, verify_api_key


def asgi_client(app) -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://stillnoob.test")


@pytest.fixture
def db_override(session_factory):
    async def sessions():
        async with session_factory() as session:
            yield session

    return sessions


@pytest.fixture
def app(db_override):
    application = create_app()
    application.dependency_overrides.update({
        get_db: db_override,
        verify_api_key: lambda: None,
        get_wcl_factory: lambda: None,
        get_raiderio: lambda: None,
    })
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
async def client(app):
    async with asgi_client(app) as http:
        yield http
