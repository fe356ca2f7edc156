"""API test fixtures — app factory with a seeded runtime + httpx test client.

Invariants:
    - Every test gets a fresh app and runtime (no shared id space)
    - math/add, test/error and chat/new are registered on every runtime
"""

import pytest
from httpx import ASGITransport, AsyncClient

from lightrpc.api.app import create_app
from lightrpc.config import Settings
from lightrpc.services.runtime import create_runtime


@pytest.fixture
def settings():
    return Settings(json_host_path="/api", max_body_size=1024, log_format="text")


@pytest.fixture
def inbox():
    return []


@pytest.fixture
def runtime(settings, inbox):
    runtime = create_runtime(settings.protocol_options())

    async def add(req, ctx):
        return {"result": req["a"] + req["b"]}

    def fail(req, ctx):
        raise Exception("boom")

    runtime.implement_api("math/add", add)
    runtime.implement_api("test/error", fail)
    runtime.listen_msg("chat/new", lambda msg, ctx: inbox.append(msg))
    return runtime


@pytest.fixture
def app(runtime, settings):
    return create_app(runtime=runtime, settings=settings)


@pytest.fixture
async def client(app):
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test",
    ) as c:
        yield c
