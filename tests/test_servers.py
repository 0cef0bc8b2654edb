import asyncio
import json
import os
import signal

import pytest
from mcp import types
from mcp.shared.exceptions import McpError

from browser_search.config import ServerConfig
from browser_search.servers import (
    VARIANTS,
    build_mcp_server,
    create_browser_server,
    create_enhanced_server,
    create_fallback_server,
    create_ollama_server,
    create_server,
    run_until_stopped,
)
from browser_search.tools.cache import TTLCache
from fakes import FakeFetcher, FakeLLM

ENHANCED_TOOLS = ["search_web", "extract_content", "bulk_search", "analyze_domain", "cache_stats"]


@pytest.fixture
def config():
    return ServerConfig()


def test_browser_variant(config):
    server = create_browser_server(config, fetcher=FakeFetcher())
    assert server.name == "mcp-browser-search"
    assert server.dispatcher.tool_names == ["search_web", "visit_page"]
    assert server.cache is None
    assert server.llm is None


def test_fallback_variant(config):
    server = create_fallback_server(config, fetcher=FakeFetcher())
    assert server.name == "mcp-browser-search-fallback"
    assert server.dispatcher.tool_names == ["search_web_fallback", "fetch_page"]


def test_enhanced_variant(config):
    server = create_enhanced_server(config, fetcher=FakeFetcher())
    assert server.name == "mcp-browser-search-enhanced"
    assert server.dispatcher.tool_names == ENHANCED_TOOLS
    assert server.cache.ttl == config.cache_ttl
    schema = server.dispatcher.get_tool("search_web").input_schema
    assert "use_cache" in schema["properties"]


def test_ollama_variant(config):
    server = create_ollama_server(config, fetcher=FakeFetcher(), llm=FakeLLM())
    assert server.name == "mcp-browser-search-ollama"
    assert server.dispatcher.tool_names == ENHANCED_TOOLS + [
        "search_and_answer",
        "chat_with_search",
        "ollama_generate",
        "ollama_models",
        "ollama_pull_model",
        "ollama_health",
    ]


def test_default_curl_backend_follows_config():
    config = ServerConfig(request_timeout=12.0, connect_timeout=4.0, max_concurrent=3)
    server = create_fallback_server(config)
    assert server.fetcher.name == "curl"
    assert server.fetcher.timeout == 12.0
    assert server.fetcher.connect_timeout == 4.0


def test_unknown_variant(config):
    assert set(VARIANTS) == {"browser", "fallback", "enhanced", "ollama"}
    with pytest.raises(ValueError, match="Unknown server variant"):
        create_server("turbo", config)


@pytest.mark.asyncio
async def test_shutdown_releases_resources_in_order(config):
    events = []
    fetcher, cache, llm = FakeFetcher(), TTLCache(60), FakeLLM()
    server = create_ollama_server(config, fetcher=fetcher, cache=cache, llm=llm)

    async def close_fetcher():
        events.append(("fetcher", server.dispatcher.accepting))

    async def destroy_cache():
        events.append(("cache", None))

    async def close_llm():
        events.append(("llm", None))

    fetcher.aclose = close_fetcher
    cache.destroy = destroy_cache
    llm.aclose = close_llm

    await server.shutdown()
    await server.shutdown()

    assert events == [("fetcher", False), ("cache", None), ("llm", None)]


@pytest.mark.asyncio
async def test_calls_after_shutdown_are_rejected(config):
    server = create_enhanced_server(config, fetcher=FakeFetcher())
    await server.start()
    assert server.cache.running
    await server.shutdown()
    assert not server.cache.running
    result = await server.dispatcher.call("cache_stats", {})
    assert result.content[0].text == "Error: Server is shutting down"


@pytest.mark.asyncio
async def test_run_until_stopped_shuts_down_when_transport_ends(config):
    fetcher = FakeFetcher()
    server = create_browser_server(config, fetcher=fetcher)
    served = []

    async def serve(s):
        served.append(s)

    await run_until_stopped(server, serve=serve)
    assert served == [server]
    assert fetcher.closed


@pytest.mark.asyncio
async def test_run_until_stopped_handles_sigterm(config):
    fetcher = FakeFetcher()
    server = create_browser_server(config, fetcher=fetcher)

    async def serve(_server):
        os.kill(os.getpid(), signal.SIGTERM)
        await asyncio.sleep(10)

    await asyncio.wait_for(run_until_stopped(server, serve=serve), timeout=5)
    assert fetcher.closed
    assert not server.dispatcher.accepting


@pytest.mark.asyncio
async def test_run_until_stopped_shuts_down_on_crash(config):
    fetcher = FakeFetcher()
    server = create_browser_server(config, fetcher=fetcher)

    async def serve(_server):
        raise RuntimeError("transport broke")

    with pytest.raises(RuntimeError):
        await run_until_stopped(server, serve=serve)
    assert fetcher.closed


@pytest.mark.asyncio
async def test_mcp_call_tool_handler(config, ddg_html):
    fetcher = FakeFetcher({"https://duckduckgo.com/html/": ddg_html})
    app = build_mcp_server(create_browser_server(config, fetcher=fetcher))
    handler = app.request_handlers[types.CallToolRequest]

    ok = await handler(
        types.CallToolRequest(
            method="tools/call",
            params=types.CallToolRequestParams(
                name="search_web", arguments={"query": "python", "max_results": 1}
            ),
        )
    )
    assert not ok.root.isError
    assert json.loads(ok.root.content[0].text)[0]["url"] == "https://example.com/one"

    rejected = await handler(
        types.CallToolRequest(
            method="tools/call",
            params=types.CallToolRequestParams(name="search_web", arguments={"query": ""}),
        )
    )
    assert rejected.root.isError
    assert "Validation error: Query cannot be empty" in rejected.root.content[0].text


@pytest.mark.asyncio
async def test_mcp_list_tools_handler(config):
    app = build_mcp_server(create_fallback_server(config, fetcher=FakeFetcher()))
    handler = app.request_handlers[types.ListToolsRequest]
    result = await handler(types.ListToolsRequest(method="tools/list"))
    assert [tool.name for tool in result.root.tools] == ["search_web_fallback", "fetch_page"]


@pytest.mark.asyncio
async def test_mcp_unknown_tool_is_method_not_found(config):
    fetcher = FakeFetcher()
    app = build_mcp_server(create_browser_server(config, fetcher=fetcher))
    handler = app.request_handlers[types.CallToolRequest]

    with pytest.raises(McpError) as excinfo:
        await handler(
            types.CallToolRequest(
                method="tools/call",
                params=types.CallToolRequestParams(name="nope", arguments={}),
            )
        )
    assert excinfo.value.error.code == types.METHOD_NOT_FOUND == -32601
    assert excinfo.value.error.message == "Unknown tool: nope"
    assert fetcher.calls == []
