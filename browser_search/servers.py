"""
MCP Server Variants

Each variant is a fixed bundle of fetch backend, optional cache, optional
LLM client and a tool list. All of them are served over stdio with the same
wiring:

Variants:
    - browser:  headless Chromium; search_web, visit_page
    - fallback: curl subprocess; search_web_fallback, fetch_page
    - enhanced: curl with a result cache; search_web, extract_content,
                bulk_search, analyze_domain, cache_stats
    - ollama:   the enhanced tools plus search_and_answer, chat_with_search
                and the ollama_* tools

Lifecycle:
    The MCP lifespan starts the cache sweep when the session starts. On
    shutdown (end of input, SIGINT or SIGTERM) the server stops accepting
    tool calls, closes the browser, destroys the cache and closes the LLM
    session, in that order.
"""

from __future__ import annotations

import asyncio
import contextlib
import signal
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any

import structlog
from mcp import types
from mcp.server.lowlevel import Server
from mcp.server.stdio import stdio_server
from mcp.shared.exceptions import McpError

from . import __version__
from .config import ServerConfig
from .dispatcher import Dispatcher, ServerInfo
from .llm.ollama import OllamaClient
from .tools.cache import TTLCache
from .tools.llm_tools import (
    ChatWithSearchTool,
    OllamaGenerateTool,
    OllamaHealthTool,
    OllamaModelsTool,
    OllamaPullModelTool,
    SearchAndAnswerTool,
)
from .tools.tool import Tool
from .tools.web_search.backend import BrowserFetcher, CurlFetcher, Fetcher
from .tools.web_search.search_tools import (
    EXTRACT_SCHEMA,
    AnalyzeDomainTool,
    BulkSearchTool,
    BULK_SEARCH_SCHEMA,
    CacheStatsTool,
    DOMAIN_SCHEMA,
    ExtractContentTool,
    SearchPipeline,
    SearchWebTool,
    search_schema,
)

logger = structlog.stdlib.get_logger(component=__name__)


class ToolCallFailed(Exception):
    """Carries the text of an error result across the MCP handler boundary."""


class SearchServer:
    """
    One server variant: its dispatcher plus the resources it must release.

    Attributes:
        info: Name, version and start time, reported by cache_stats
        dispatcher: Tool registry and call routing
        fetcher: Fetch backend shared by every tool
        cache: Result cache, if the variant has one
        llm: Ollama client, if the variant has one
    """

    def __init__(
        self,
        info: ServerInfo,
        dispatcher: Dispatcher,
        fetcher: Fetcher,
        *,
        cache: TTLCache[Any] | None = None,
        llm: OllamaClient | None = None,
    ):
        self.info = info
        self.dispatcher = dispatcher
        self.fetcher = fetcher
        self.cache = cache
        self.llm = llm
        self._closed = False

    @property
    def name(self) -> str:
        return self.info.name

    @property
    def version(self) -> str:
        return self.info.version

    async def start(self) -> None:
        if self.cache is not None:
            self.cache.start()
        logger.info(
            "server_started",
            server=self.name,
            version=self.version,
            tools=self.dispatcher.tool_names,
        )

    async def shutdown(self) -> None:
        """Release resources in order. Calling it again is a no-op."""
        if self._closed:
            return
        self._closed = True
        logger.info("server_shutting_down", server=self.name)
        self.dispatcher.close()
        await self.fetcher.aclose()
        if self.cache is not None:
            await self.cache.destroy()
        if self.llm is not None:
            await self.llm.aclose()
        logger.info("server_stopped", server=self.name)


def _curl_fetcher(config: ServerConfig) -> CurlFetcher:
    return CurlFetcher(
        timeout=config.request_timeout,
        connect_timeout=config.connect_timeout,
        max_concurrent=config.max_concurrent,
    )


def create_browser_server(
    config: ServerConfig, *, fetcher: Fetcher | None = None
) -> SearchServer:
    info = ServerInfo("mcp-browser-search", __version__)
    fetcher = fetcher or BrowserFetcher(
        headless=config.headless,
        timeout=config.request_timeout,
        max_concurrent=config.max_concurrent,
    )
    pipeline = SearchPipeline(fetcher)
    tools: list[Tool] = [
        SearchWebTool(
            pipeline,
            "search_web",
            "Search the web using a browser with full JavaScript support",
            search_schema(cacheable=False),
            default_engine=config.default_engine,
        ),
        ExtractContentTool(
            pipeline,
            "visit_page",
            "Visit a specific webpage using a browser and extract content",
            EXTRACT_SCHEMA,
        ),
    ]
    return SearchServer(info, Dispatcher(tools), fetcher)


def create_fallback_server(
    config: ServerConfig, *, fetcher: Fetcher | None = None
) -> SearchServer:
    info = ServerInfo("mcp-browser-search-fallback", __version__)
    fetcher = fetcher or _curl_fetcher(config)
    pipeline = SearchPipeline(fetcher)
    tools: list[Tool] = [
        SearchWebTool(
            pipeline,
            "search_web_fallback",
            "Search the web using HTTP requests (fallback method when browser is not available)",
            search_schema(cacheable=False),
            default_engine=config.default_engine,
        ),
        ExtractContentTool(
            pipeline,
            "fetch_page",
            "Fetch a webpage and extract content using HTTP requests",
            EXTRACT_SCHEMA,
        ),
    ]
    return SearchServer(info, Dispatcher(tools), fetcher)


def _enhanced_tools(
    pipeline: SearchPipeline, cache: TTLCache[Any], info: ServerInfo, config: ServerConfig
) -> list[Tool]:
    return [
        SearchWebTool(
            pipeline,
            "search_web",
            "Search the web with advanced filtering and caching",
            search_schema(cacheable=True),
            default_engine=config.default_engine,
        ),
        ExtractContentTool(
            pipeline,
            "extract_content",
            "Extract and analyze content from a webpage",
            EXTRACT_SCHEMA,
        ),
        BulkSearchTool(
            pipeline,
            "bulk_search",
            "Perform multiple searches in parallel",
            BULK_SEARCH_SCHEMA,
            default_engine=config.default_engine,
        ),
        AnalyzeDomainTool(
            pipeline,
            "analyze_domain",
            "Analyze a domain for basic information",
            DOMAIN_SCHEMA,
        ),
        CacheStatsTool(cache, info.stats),
    ]


def create_enhanced_server(
    config: ServerConfig,
    *,
    fetcher: Fetcher | None = None,
    cache: TTLCache[Any] | None = None,
) -> SearchServer:
    info = ServerInfo("mcp-browser-search-enhanced", __version__)
    fetcher = fetcher or _curl_fetcher(config)
    cache = cache if cache is not None else TTLCache(config.cache_ttl)
    pipeline = SearchPipeline(fetcher, cache)
    tools = _enhanced_tools(pipeline, cache, info, config)
    return SearchServer(info, Dispatcher(tools), fetcher, cache=cache)


def create_ollama_server(
    config: ServerConfig,
    *,
    fetcher: Fetcher | None = None,
    cache: TTLCache[Any] | None = None,
    llm: OllamaClient | None = None,
) -> SearchServer:
    info = ServerInfo("mcp-browser-search-ollama", __version__)
    fetcher = fetcher or _curl_fetcher(config)
    cache = cache if cache is not None else TTLCache(config.cache_ttl)
    llm = llm or OllamaClient(
        config.ollama_base_url, config.ollama_default_model, timeout=config.ollama_timeout
    )
    pipeline = SearchPipeline(fetcher, cache)
    tools = _enhanced_tools(pipeline, cache, info, config) + [
        SearchAndAnswerTool(pipeline, llm, default_engine=config.default_engine),
        ChatWithSearchTool(pipeline, llm, default_engine=config.default_engine),
        OllamaGenerateTool(llm),
        OllamaModelsTool(llm),
        OllamaPullModelTool(llm),
        OllamaHealthTool(llm),
    ]
    return SearchServer(info, Dispatcher(tools), fetcher, cache=cache, llm=llm)


VARIANTS: dict[str, Callable[..., SearchServer]] = {
    "browser": create_browser_server,
    "fallback": create_fallback_server,
    "enhanced": create_enhanced_server,
    "ollama": create_ollama_server,
}


def create_server(variant: str, config: ServerConfig) -> SearchServer:
    try:
        factory = VARIANTS[variant]
    except KeyError:
        raise ValueError(
            f"Unknown server variant {variant!r}. Must be one of: {', '.join(VARIANTS)}"
        ) from None
    return factory(config)


def build_mcp_server(server: SearchServer) -> Server:
    """Wire a SearchServer into an MCP low-level server."""

    @asynccontextmanager
    async def lifespan(_app: Server) -> AsyncIterator[SearchServer]:
        await server.start()
        try:
            yield server
        finally:
            await server.shutdown()

    app: Server = Server(server.name, version=server.version, lifespan=lifespan)

    @app.list_tools()
    async def list_tools() -> list[types.Tool]:
        return server.dispatcher.list_tools()

    @app.call_tool(validate_input=False)
    async def call_tool(name: str, arguments: dict[str, Any]) -> list[types.TextContent]:
        result = await server.dispatcher.call(name, arguments)
        if result.isError:
            raise ToolCallFailed(result.content[0].text)
        return result.content

    # the call_tool wrapper turns every exception into an error result, so
    # unknown names are rejected before it as a JSON-RPC error
    handle_call = app.request_handlers[types.CallToolRequest]

    async def call_tool_request(req: types.CallToolRequest) -> types.ServerResult:
        name = req.params.name
        if not server.dispatcher.has_tool(name):
            logger.warning("unknown_tool", tool=name)
            raise McpError(
                types.ErrorData(code=types.METHOD_NOT_FOUND, message=f"Unknown tool: {name}")
            )
        return await handle_call(req)

    app.request_handlers[types.CallToolRequest] = call_tool_request
    return app


async def serve_stdio(server: SearchServer) -> None:
    app = build_mcp_server(server)
    async with stdio_server() as (read_stream, write_stream):
        await app.run(read_stream, write_stream, app.create_initialization_options())


async def run_until_stopped(
    server: SearchServer,
    serve: Callable[[SearchServer], Awaitable[None]] = serve_stdio,
) -> None:
    """Serve until the transport closes or SIGINT/SIGTERM arrives, then shut down."""
    loop = asyncio.get_running_loop()
    task = asyncio.current_task()
    received: list[str] = []

    def on_signal(sig: signal.Signals) -> None:
        logger.info("signal_received", signal=sig.name)
        received.append(sig.name)
        task.cancel()

    installed = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError, RuntimeError):
            loop.add_signal_handler(sig, on_signal, sig)
            installed.append(sig)
    try:
        await serve(server)
    except asyncio.CancelledError:
        if not received:
            raise
        task.uncancel()
    finally:
        for sig in installed:
            loop.remove_signal_handler(sig)
        await server.shutdown()
