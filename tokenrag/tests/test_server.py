# tests/test_server.py
import pytest
from unittest.mock import AsyncMock, Mock

from fastmcp import Client

from tokenrag.common.errors import ProviderError, ValidationError
from tokenrag.common.schemas import SimilarityResult
from tokenrag.indexer.pipeline import IndexingResult
from tokenrag.server.server import MCPServerApp, SOURCE_CONTENT_LIMIT
from tokenrag.service import QueryResponse


def _data(result):
    return getattr(result, "data", None) or getattr(result, "structured", None) \
           or getattr(result, "structured_content", None)


def _source(content="Token: Bitcoin (BTC)"):
    return SimilarityResult(
        id="bitcoin-btc-chunk-0",
        score=0.85,
        content=content,
        metadata={"entity_id": "bitcoin-btc", "chunk_index": 0, "entity_name": "Bitcoin", "entity_symbol": "BTC"},
    )


@pytest.fixture
def service():
    """Fake service: every provider-facing call is mocked"""
    svc = Mock()
    svc.start = AsyncMock()
    svc.stop = AsyncMock()
    svc.index_entities = AsyncMock(return_value=IndexingResult(
        success=True, indexed_count=1, total_fragments=2, upserted_fragments=2,
    ))
    svc.answer_query = AsyncMock(return_value=QueryResponse(
        response="Bitcoin trades at $45000.",
        sources=[_source("x" * 800)],
        tokens_used=150,
        confidence=0.9,
        processing_time_ms=12,
    ))
    svc.chat = AsyncMock(return_value=QueryResponse(response="Its supply is 21M.", sources=[]))
    svc.search_by_identifier = AsyncMock(return_value=[_source()])
    svc.delete_entity = AsyncMock()
    svc.clear_index = AsyncMock(return_value=True)
    svc.get_stats = AsyncMock(return_value={"total_vector_count": 2})
    svc.get_health = AsyncMock(return_value={"status": "healthy", "services": {"embedding": "healthy"}})
    svc.close_session = Mock(return_value=True)
    return svc


@pytest.fixture
def mcp_server(service):
    return MCPServerApp(service=service, mcp_server_name="test-mcp").mcp


@pytest.mark.asyncio
async def test_tools_registered(mcp_server):
    async with Client(mcp_server) as client:
        names = {t.name for t in await client.list_tools()}
    assert names == {
        "index_entities", "ask", "search_token", "close_session",
        "delete_token", "index_stats", "health", "clear_index",
    }


@pytest.mark.asyncio
async def test_lifespan_starts_service(mcp_server, service):
    async with Client(mcp_server) as client:
        await client.list_tools()
        service.start.assert_awaited_once()


@pytest.mark.asyncio
async def test_index_entities(mcp_server, service):
    tokens = [{"id": "bitcoin-btc", "name": "Bitcoin", "symbol": "BTC"}]
    async with Client(mcp_server) as client:
        result = await client.call_tool("index_entities", {"tokens": tokens})
    data = _data(result)

    assert data["ok"] is True
    assert data["indexed_count"] == 1
    assert data["total_fragments"] == 2
    service.index_entities.assert_awaited_once_with(tokens)


@pytest.mark.asyncio
async def test_index_entities_validation_error(mcp_server, service):
    service.index_entities.side_effect = ValidationError("Entity at index 0 is invalid: symbol")
    async with Client(mcp_server) as client:
        result = await client.call_tool("index_entities", {"tokens": [{"id": "x"}]})
    data = _data(result)

    assert data["ok"] is False
    assert "symbol" in data["error"]


@pytest.mark.asyncio
async def test_ask_without_session(mcp_server, service):
    async with Client(mcp_server) as client:
        result = await client.call_tool("ask", {"query": "What is BTC?"})
    data = _data(result)

    assert data["ok"] is True
    assert data["response"] == "Bitcoin trades at $45000."
    assert data["tokens_used"] == 150
    assert len(data["sources"][0]["content"]) == SOURCE_CONTENT_LIMIT
    service.answer_query.assert_awaited_once_with("What is BTC?")
    service.chat.assert_not_called()


@pytest.mark.asyncio
async def test_ask_with_session(mcp_server, service):
    async with Client(mcp_server) as client:
        result = await client.call_tool("ask", {"query": "and its supply?", "session_id": "s1"})
    data = _data(result)

    assert data["ok"] is True
    assert data["response"] == "Its supply is 21M."
    service.chat.assert_awaited_once_with("s1", "and its supply?")


@pytest.mark.asyncio
async def test_ask_provider_error(mcp_server, service):
    service.answer_query.side_effect = ProviderError("rate limited", provider="openai")
    async with Client(mcp_server) as client:
        result = await client.call_tool("ask", {"query": "What is BTC?"})
    data = _data(result)

    assert data["ok"] is False
    assert "rate limited" in data["error"]


@pytest.mark.asyncio
async def test_search_token(mcp_server, service):
    async with Client(mcp_server) as client:
        result = await client.call_tool("search_token", {"identifier": "btc"})
    data = _data(result)

    assert data["ok"] is True
    assert data["count"] == 1
    assert data["results"][0]["metadata"]["entity_symbol"] == "BTC"
    service.search_by_identifier.assert_awaited_once_with("btc")


@pytest.mark.asyncio
async def test_close_session(mcp_server, service):
    async with Client(mcp_server) as client:
        result = await client.call_tool("close_session", {"session_id": "s1"})
    assert _data(result) == {"ok": True, "session_id": "s1"}


@pytest.mark.asyncio
async def test_close_unknown_session(mcp_server, service):
    service.close_session.return_value = False
    async with Client(mcp_server) as client:
        result = await client.call_tool("close_session", {"session_id": "nope"})
    data = _data(result)

    assert data["ok"] is False
    assert "Unknown session" in data["error"]


@pytest.mark.asyncio
async def test_delete_token_and_stats(mcp_server, service):
    async with Client(mcp_server) as client:
        deleted = _data(await client.call_tool("delete_token", {"token_id": "bitcoin-btc"}))
        stats = _data(await client.call_tool("index_stats", {}))

    assert deleted == {"ok": True, "token_id": "bitcoin-btc"}
    assert stats["stats"] == {"total_vector_count": 2}
    service.delete_entity.assert_awaited_once_with("bitcoin-btc")


@pytest.mark.asyncio
async def test_health_unhealthy(mcp_server, service):
    service.get_health.return_value = {"status": "unhealthy", "services": {"embedding": "unhealthy"}}
    async with Client(mcp_server) as client:
        data = _data(await client.call_tool("health", {}))

    assert data["ok"] is False
    assert data["status"] == "unhealthy"


@pytest.mark.asyncio
async def test_clear_index_requires_confirm(mcp_server, service):
    async with Client(mcp_server) as client:
        refused = _data(await client.call_tool("clear_index", {}))
        cleared = _data(await client.call_tool("clear_index", {"confirm": True}))

    assert refused["ok"] is False
    assert cleared == {"ok": True, "cleared": True}
    service.clear_index.assert_awaited_once()
