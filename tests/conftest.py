"""Shared fixtures for portfolio-sync tests."""

import asyncio

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer


@pytest.fixture
def serve():
    """Run ``scenario(server)`` against a throwaway aiohttp server."""
    def _serve(routes, scenario):
        async def runner():
            app = web.Application()
            app.add_routes(routes)
            server = TestServer(app)
            await server.start_server()
            try:
                return await scenario(server)
            finally:
                await server.close()
        return asyncio.run(runner())
    return _serve


@pytest.fixture(autouse=True)
def clean_notion_env(monkeypatch):
    """Keep credentials from the developer's shell out of the tests."""
    for name in ("NOTION_API_KEY", "NOTION_DATABASE_ID", "NOTION_PROJECTS_DATABASE_ID"):
        monkeypatch.delenv(name, raising=False)
