from .backend import (
    BrowserFetcher,
    CurlFetcher,
    EmptyResponseError,
    Fetcher,
    FetchError,
    FetchLaunchError,
    FetchNavigationError,
    FetchStatusError,
    FetchTimeout,
)
from .engines import ENGINES, SearchResult, build_search_url, parse_search_results
from .page_contents import ExtractedContent, extract_content
from .search_tools import (
    AnalyzeDomainTool,
    BulkSearchTool,
    CacheStatsTool,
    ExtractContentTool,
    SearchPipeline,
    SearchWebTool,
)

__all__ = [
    "AnalyzeDomainTool",
    "BrowserFetcher",
    "BulkSearchTool",
    "CacheStatsTool",
    "CurlFetcher",
    "ENGINES",
    "EmptyResponseError",
    "ExtractContentTool",
    "ExtractedContent",
    "FetchError",
    "FetchLaunchError",
    "FetchNavigationError",
    "FetchStatusError",
    "FetchTimeout",
    "Fetcher",
    "SearchPipeline",
    "SearchResult",
    "SearchWebTool",
    "build_search_url",
    "extract_content",
    "parse_search_results",
]
