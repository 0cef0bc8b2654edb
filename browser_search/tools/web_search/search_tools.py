"""
Web Search Tools

The tools in this module share one SearchPipeline: engine adapter, fetch
backend, content extractor and an optional result cache. Server variants
choose which tools to expose and under which names.

Tools:
------
- SearchWebTool: one search, optionally cached
- ExtractContentTool: fetch a page and extract its content
- BulkSearchTool: up to 10 searches in parallel, each isolated
- AnalyzeDomainTool: homepage metadata and common endpoint probes
- CacheStatsTool: cache contents and server statistics
"""

from __future__ import annotations

import asyncio
import copy
from collections.abc import Mapping
from typing import Any

import pydantic
import structlog

from ..cache import TTLCache, generate_key
from ..tool import Tool
from ..validation import (
    CONTENT_TYPES,
    DEFAULT_BULK_RESULTS,
    DEFAULT_ENGINE,
    DEFAULT_MAX_RESULTS,
    MAX_BULK_QUERIES,
    MAX_RESULTS,
    SEARCH_ENGINES,
    BulkSearchOptions,
    DomainOptions,
    ExtractOptions,
    NoOptions,
    SearchOptions,
)
from .backend import Fetcher, FetchError
from .engines import SearchResult, build_search_url, get_engine, parse_search_results
from .page_contents import ExtractedContent, extract_content

logger = structlog.stdlib.get_logger(component=__name__)

COMMON_ENDPOINTS = ("/robots.txt", "/sitemap.xml", "/.well-known/security.txt")

SEARCH_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "query": {"type": "string", "description": "The search query to execute"},
        "engine": {
            "type": "string",
            "enum": list(SEARCH_ENGINES),
            "description": f"The search engine to use (default: {DEFAULT_ENGINE})",
            "default": DEFAULT_ENGINE,
        },
        "max_results": {
            "type": "number",
            "description": f"Maximum number of results to return (default: {DEFAULT_MAX_RESULTS})",
            "default": DEFAULT_MAX_RESULTS,
            "minimum": 1,
            "maximum": MAX_RESULTS,
        },
        "language": {
            "type": "string",
            "description": "Language code (e.g., 'en', 'es', 'fr')",
            "default": "en",
        },
        "region": {
            "type": "string",
            "description": "Region code (e.g., 'us', 'uk', 'de')",
            "default": "us",
        },
        "safe_search": {"type": "boolean", "description": "Enable safe search", "default": True},
    },
    "required": ["query"],
}

USE_CACHE_PROPERTY = {"type": "boolean", "description": "Use cached results", "default": True}

EXTRACT_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "url": {"type": "string", "description": "The URL to visit"},
        "extract_links": {
            "type": "boolean",
            "description": "Whether to extract links from the page",
            "default": False,
        },
        "extract_images": {
            "type": "boolean",
            "description": "Whether to extract images from the page",
            "default": False,
        },
        "extract_metadata": {
            "type": "boolean",
            "description": "Whether to extract metadata from the page",
            "default": True,
        },
        "content_type": {
            "type": "string",
            "enum": list(CONTENT_TYPES),
            "description": "Type of content to extract",
            "default": "article",
        },
    },
    "required": ["url"],
}

BULK_SEARCH_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "queries": {
            "type": "array",
            "items": {"type": "string"},
            "minItems": 1,
            "maxItems": MAX_BULK_QUERIES,
            "description": "Array of search queries to execute",
        },
        "engine": {"type": "string", "enum": list(SEARCH_ENGINES), "default": DEFAULT_ENGINE},
        "max_results_per_query": {
            "type": "number",
            "default": DEFAULT_BULK_RESULTS,
            "minimum": 1,
            "maximum": MAX_RESULTS,
        },
        "use_cache": USE_CACHE_PROPERTY,
    },
    "required": ["queries"],
}

DOMAIN_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "domain": {"type": "string", "description": "Domain to analyze"},
        "check_subdomains": {"type": "boolean", "default": False},
    },
    "required": ["domain"],
}

EMPTY_SCHEMA: dict[str, Any] = {"type": "object", "properties": {}}


def search_schema(*, cacheable: bool) -> dict[str, Any]:
    schema = copy.deepcopy(SEARCH_SCHEMA)
    if cacheable:
        schema["properties"]["use_cache"] = dict(USE_CACHE_PROPERTY)
    return schema


def dump_results(results: list[SearchResult]) -> list[dict[str, Any]]:
    return [result.model_dump(exclude_none=True) for result in results]


class SearchPipeline:
    """
    Search and extraction over a single fetch backend.

    Args:
        fetcher: Backend that retrieves HTML
        cache: Optional cache for search results; when absent every search
            goes to the network
    """

    def __init__(self, fetcher: Fetcher, cache: TTLCache[list[SearchResult]] | None = None):
        self.fetcher = fetcher
        self.cache = cache

    async def search(
        self,
        query: str,
        engine: str,
        max_results: int,
        *,
        language: str = "en",
        region: str = "us",
        safe_search: bool = True,
    ) -> list[SearchResult]:
        url = build_search_url(
            query, engine, language=language, region=region, safe_search=safe_search
        )
        html = await self.fetcher.fetch(url, wait_for=get_engine(engine).wait_selector)
        results = parse_search_results(html, engine, max_results)
        logger.info(
            "search_completed",
            engine=engine,
            query=query,
            results=len(results),
            backend=self.fetcher.name,
        )
        return results

    async def cached_search(
        self,
        query: str,
        engine: str,
        max_results: int,
        *,
        language: str = "en",
        region: str = "us",
        safe_search: bool = True,
        use_cache: bool = True,
    ) -> list[SearchResult]:
        if self.cache is None or not use_cache:
            return await self.search(
                query,
                engine,
                max_results,
                language=language,
                region=region,
                safe_search=safe_search,
            )

        key = generate_key("search", engine, query, max_results, language, region, safe_search)
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("cache_hit", key=key)
            return cached
        logger.debug("cache_miss", key=key)
        results = await self.search(
            query, engine, max_results, language=language, region=region, safe_search=safe_search
        )
        self.cache.set(key, results)
        return results

    async def extract(
        self,
        url: str,
        *,
        content_type: str = "article",
        include_metadata: bool = True,
        include_links: bool = False,
        include_images: bool = False,
    ) -> ExtractedContent:
        html = await self.fetcher.fetch(url)
        content = extract_content(
            html,
            url,
            content_type=content_type,
            include_metadata=include_metadata,
            include_links=include_links,
            include_images=include_images,
        )
        logger.info("content_extracted", url=url, chars=len(content.content), error=content.error)
        return content


class PipelineTool(Tool):
    def __init__(
        self,
        pipeline: SearchPipeline,
        name: str,
        description: str,
        input_schema: Mapping[str, Any],
        *,
        default_engine: str = DEFAULT_ENGINE,
    ):
        super().__init__(name, description, input_schema)
        self.pipeline = pipeline
        self.default_engine = default_engine

    def validation_context(self) -> Mapping[str, Any]:
        return {"default_engine": self.default_engine}


class SearchWebTool(PipelineTool):
    options_model = SearchOptions

    async def run(self, options: SearchOptions) -> list[dict[str, Any]]:
        results = await self.pipeline.cached_search(
            options.query,
            options.engine,
            options.max_results,
            language=options.language,
            region=options.region,
            safe_search=options.safe_search,
            use_cache=options.use_cache,
        )
        return dump_results(results)


class ExtractContentTool(PipelineTool):
    options_model = ExtractOptions

    async def run(self, options: ExtractOptions) -> dict[str, Any]:
        content = await self.pipeline.extract(
            options.url,
            content_type=options.content_type,
            include_metadata=options.extract_metadata,
            include_links=options.extract_links,
            include_images=options.extract_images,
        )
        return content.model_dump(exclude_none=True)


class BulkSearchTool(PipelineTool):
    """Run several searches concurrently. One failing query never fails the batch."""

    options_model = BulkSearchOptions

    async def _search_one(self, query: str, options: BulkSearchOptions) -> dict[str, Any]:
        try:
            results = await self.pipeline.cached_search(
                query,
                options.engine,
                options.max_results_per_query,
                use_cache=options.use_cache,
            )
        except Exception as e:
            logger.warning("bulk_query_failed", query=query, error=str(e))
            return {"query": query, "error": str(e) or e.__class__.__name__}
        return {"query": query, "results": dump_results(results)}

    async def run(self, options: BulkSearchOptions) -> list[dict[str, Any]]:
        return list(
            await asyncio.gather(*(self._search_one(query, options) for query in options.queries))
        )


class HomepageInfo(pydantic.BaseModel):
    title: str = ""
    description: str = ""
    has_ssl: bool = pydantic.Field(default=False, serialization_alias="hasSSL")
    language: str = ""


class DomainAnalysis(pydantic.BaseModel):
    domain: str
    hostname: str | None = None
    protocol: str | None = None
    homepage: HomepageInfo | None = None
    endpoints: dict[str, str] | None = None
    error: str | None = None


class AnalyzeDomainTool(PipelineTool):
    """
    Fetch a domain's homepage over https and probe a few well-known paths.

    A homepage failure is reported in the `error` field of an otherwise
    successful result. Endpoint probes that fail are recorded as "not_found".
    """

    options_model = DomainOptions

    async def _probe(self, url: str) -> str:
        try:
            await self.pipeline.fetcher.fetch(url)
        except FetchError as e:
            logger.debug("endpoint_probe_failed", url=url, error=str(e))
            return "not_found"
        return "exists"

    async def run(self, options: DomainOptions) -> dict[str, Any]:
        base_url = f"https://{options.domain}"
        analysis = DomainAnalysis(domain=options.domain, hostname=options.domain, protocol="https")
        try:
            homepage = await self.pipeline.extract(base_url, include_metadata=True)
        except FetchError as e:
            logger.info("domain_unreachable", domain=options.domain, error=str(e))
            analysis.error = str(e)
            return analysis.model_dump(exclude_none=True, by_alias=True)

        metadata = homepage.metadata
        analysis.homepage = HomepageInfo(
            title=metadata.title if metadata else "",
            description=metadata.description if metadata else "",
            has_ssl=True,
            language=metadata.language if metadata else "",
        )
        statuses = await asyncio.gather(
            *(self._probe(base_url + endpoint) for endpoint in COMMON_ENDPOINTS)
        )
        analysis.endpoints = dict(zip(COMMON_ENDPOINTS, statuses))
        return analysis.model_dump(exclude_none=True, by_alias=True)


class CacheStatsTool(Tool):
    def __init__(
        self,
        cache: TTLCache[Any],
        server_stats,
        name: str = "cache_stats",
        description: str = "Get cache statistics",
    ):
        super().__init__(name, description, EMPTY_SCHEMA)
        self.cache = cache
        self.server_stats = server_stats

    options_model = NoOptions

    async def run(self, options: NoOptions) -> dict[str, Any]:
        return {"cache": self.cache.stats(), "server": self.server_stats()}
