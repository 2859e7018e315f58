from __future__ import annotations

import httpx
import pytest_asyncio

import logrollup.main as main_module
from logrollup.main import app


@pytest_asyncio.fixture(autouse=True)
async def clean_state() -> None:
    main_module.metric_store.clear()
    main_module.ingestion_stats.clear()
    yield
    main_module.metric_store.clear()
    main_module.ingestion_stats.clear()


@pytest_asyncio.fixture
async def client() -> httpx.AsyncClient:
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as test_client:
        yield test_client
