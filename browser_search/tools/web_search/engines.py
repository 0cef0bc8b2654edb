"""
Search engine adapters.

Each engine is described by data: a base URL, the query parameters it
understands, the CSS selectors that locate results in its HTML, and the
selector a browser should wait for before reading the page. Building a
search URL and parsing a results page are the same two functions for every
engine.

searx and startpage have no dedicated selectors; they reuse the DuckDuckGo
selectors (see `selectors_from`), so their parsing is best effort.
"""

from __future__ import annotations

import dataclasses
import logging
from urllib.parse import parse_qs, quote, urlencode, urlparse

import lxml.etree
import lxml.html
import pydantic

from .page_contents import get_domain, merge_whitespace, parse_document, resolve_http_url

logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class ResultSelectors:
    """CSS selectors for one engine's results page.

    `link` is None when the title element itself carries the href.
    `snippet_parent` means the snippet is the parent of the matched element.
    """

    results: str
    title: str
    snippet: str
    link: str | None = None
    snippet_parent: bool = False


@dataclasses.dataclass(frozen=True)
class Engine:
    name: str
    base_url: str
    query_param: str
    selectors: ResultSelectors
    wait_selector: str
    selectors_from: str | None = None

    def extra_params(self, language: str, region: str, safe_search: bool) -> dict[str, str]:
        params: dict[str, str] = {}
        if self.name == "google":
            if language != "en":
                params["hl"] = language
            if region != "us":
                params["gl"] = region
            if not safe_search:
                params["safe"] = "off"
        elif self.name == "bing":
            if language != "en":
                params["setlang"] = language
            if region != "us":
                params["cc"] = region
            if not safe_search:
                params["adlt"] = "off"
        elif self.name == "duckduckgo":
            if region != "us":
                params["kl"] = region
            if not safe_search:
                params["kp"] = "-2"
        elif self.name == "searx":
            params["language"] = language
            if not safe_search:
                params["safesearch"] = "0"
        elif self.name == "startpage":
            params["language"] = language
        return params


class SearchResult(pydantic.BaseModel):
    model_config = pydantic.ConfigDict(frozen=True)

    title: str
    url: str
    snippet: str = ""
    domain: str | None = None
    date: str | None = None


DUCKDUCKGO_SELECTORS = ResultSelectors(
    results=".result",
    title=".result__title a",
    snippet=".result__snippet",
)

ENGINES: dict[str, Engine] = {
    "google": Engine(
        name="google",
        base_url="https://www.google.com/search",
        query_param="q",
        selectors=ResultSelectors(
            results="div.g",
            title="h3",
            link='a[href^="http"]',
            snippet='span:contains("...")',
            snippet_parent=True,
        ),
        wait_selector="div.g",
    ),
    "bing": Engine(
        name="bing",
        base_url="https://www.bing.com/search",
        query_param="q",
        selectors=ResultSelectors(
            results="li.b_algo",
            title="h2 a",
            snippet="p, .b_caption p",
        ),
        wait_selector="li.b_algo",
    ),
    "duckduckgo": Engine(
        name="duckduckgo",
        base_url="https://duckduckgo.com/html/",
        query_param="q",
        selectors=DUCKDUCKGO_SELECTORS,
        wait_selector=".result",
    ),
    "searx": Engine(
        name="searx",
        base_url="https://searx.org/",
        query_param="q",
        selectors=DUCKDUCKGO_SELECTORS,
        wait_selector=".result",
        selectors_from="duckduckgo",
    ),
    "startpage": Engine(
        name="startpage",
        base_url="https://www.startpage.com/sp/search",
        query_param="query",
        selectors=DUCKDUCKGO_SELECTORS,
        wait_selector=".w-gl__result",
        selectors_from="duckduckgo",
    ),
}


def get_engine(name: str) -> Engine:
    try:
        return ENGINES[name]
    except KeyError:
        raise ValueError(f"Unsupported search engine: {name}") from None


def build_search_url(
    query: str,
    engine: str,
    *,
    language: str = "en",
    region: str = "us",
    safe_search: bool = True,
) -> str:
    """Build the results-page URL for `query`. The query is percent-encoded once."""
    definition = get_engine(engine)
    url = f"{definition.base_url}?{definition.query_param}={quote(query, safe='')}"
    params = definition.extra_params(language, region, safe_search)
    if params:
        url += "&" + urlencode(params)
    return url


def unwrap_redirect(url: str) -> str:
    """Return the target of a known engine redirect link, else `url` unchanged."""
    parsed = urlparse(url)
    host = parsed.hostname or ""
    params = parse_qs(parsed.query)
    if host.endswith("duckduckgo.com") and "uddg" in params:
        return params["uddg"][0]
    if host.startswith(("google.", "www.google.")) and parsed.path == "/url":
        for key in ("q", "url"):
            if key in params:
                return params[key][0]
    return url


def _text(node: lxml.html.HtmlElement | None) -> str:
    if node is None:
        return ""
    return merge_whitespace(" ".join(node.itertext()))


def _first(node: lxml.html.HtmlElement, selector: str) -> lxml.html.HtmlElement | None:
    matches = node.cssselect(selector)
    return matches[0] if matches else None


def _parse_container(container: lxml.html.HtmlElement, definition: Engine) -> SearchResult | None:
    selectors = definition.selectors
    title_node = _first(container, selectors.title)
    link_node = title_node if selectors.link is None else _first(container, selectors.link)
    title = _text(title_node)
    href = link_node.get("href") if link_node is not None else None
    if not title or not href:
        return None

    url = resolve_http_url(href, definition.base_url)
    if url is None:
        return None
    url = resolve_http_url(unwrap_redirect(url), definition.base_url)
    if url is None:
        return None

    snippet_node = _first(container, selectors.snippet)
    if snippet_node is not None and selectors.snippet_parent:
        snippet_node = snippet_node.getparent()
    return SearchResult(
        title=title,
        url=url,
        snippet=_text(snippet_node),
        domain=get_domain(url) or None,
    )


def parse_search_results(html: str, engine: str, max_results: int) -> list[SearchResult]:
    """
    Parse an engine results page.

    Returns at most `max_results` results in document order. Entries with no
    title or link are skipped, links are made absolute against the engine's
    base URL, and a URL seen earlier in the same page is dropped. Malformed or
    empty HTML yields an empty list.
    """
    definition = get_engine(engine)
    if max_results <= 0 or not html or not html.strip():
        return []
    try:
        root = parse_document(html)
    except lxml.etree.ParserError as e:
        logger.warning("Failed to parse %s results page: %s", engine, e)
        return []

    results: list[SearchResult] = []
    seen: set[str] = set()
    for container in root.cssselect(definition.selectors.results):
        if len(results) >= max_results:
            break
        result = _parse_container(container, definition)
        if result is None or result.url in seen:
            continue
        seen.add(result.url)
        results.append(result)
    return results
