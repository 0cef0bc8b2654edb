"""
Page Content Extraction

This module turns raw HTML into the structured ExtractedContent returned by
the extraction tools.

Pipeline:
---------
1. Parse:
   - Strips XML declarations and Supplementary Multilingual Plane characters
     that lxml.html cannot handle
   - Parses into an lxml tree; a document that cannot be parsed produces an
     ExtractedContent marked with `error`

2. Metadata (optional):
   - title, description, keywords, author, canonical, language, published
   - Missing values are empty strings

3. Links and images (optional):
   - Resolved against the page URL, only http(s) kept
   - Capped at MAX_LINKS / MAX_IMAGES

4. Main content, by content type:
   - "article": first candidate container (article, [role=main], ...) with
     enough text after removing navigation and ads, else the body text
   - "all": the whole body converted to plaintext with html2text, keeping
     headings, paragraphs and list structure
   - "text_only": the whole body as whitespace-collapsed plain text
   Every variant is truncated to MAX_CONTENT_LENGTH characters.
"""

from __future__ import annotations

import logging
import re
from urllib.parse import urljoin, urlparse

import html2text
import html2text.utils
import lxml
import lxml.etree
import lxml.html
import pydantic

logger = logging.getLogger(__name__)

MAX_CONTENT_LENGTH = 5000
MAX_LINKS = 50
MAX_IMAGES = 20
MIN_ARTICLE_LENGTH = 100
EXTRACTION_ERROR_CONTENT = "Error extracting content"

ARTICLE_SELECTORS = ("article", '[role="main"]', ".content", ".post", ".entry")
REMOVE_SELECTORS = (
    "script",
    "style",
    "nav",
    "footer",
    "header",
    "aside",
    ".ad",
    ".advertisement",
)
_REMOVE_SELECTOR = ", ".join(REMOVE_SELECTORS)

HTML_SUP_RE = re.compile(r"<sup( [^>]*)?>([\w\-]+)</sup>")
HTML_SUB_RE = re.compile(r"<sub( [^>]*)?>([\w\-]+)</sub>")
HTML_TAGS_SEQ_RE = re.compile(r"(?<=\w)((<[^>]*>)+)(?=\w)")
XML_DECLARATION_RE = re.compile(r"^\s*<\?xml[^>]*\?>")
SMP_RE = re.compile(r"[\U00010000-\U0010FFFF]", re.UNICODE)


class PageMetadata(pydantic.BaseModel):
    title: str = ""
    description: str = ""
    keywords: str = ""
    author: str = ""
    canonical: str = ""
    language: str = ""
    published: str = ""


class Link(pydantic.BaseModel):
    text: str
    href: str
    domain: str


class Image(pydantic.BaseModel):
    src: str
    alt: str = ""


class ExtractedContent(pydantic.BaseModel):
    """
    Structured content pulled out of a single page.

    Attributes:
        url: The page URL
        title: Text of the <title> element, if any
        content: Main text, at most MAX_CONTENT_LENGTH characters
        metadata: Page metadata when requested
        links: Absolute links when requested
        images: Absolute image sources when requested
        error: Set when the document could not be processed
    """

    url: str
    title: str | None = None
    content: str
    metadata: PageMetadata | None = None
    links: list[Link] | None = None
    images: list[Image] | None = None
    error: str | None = None


def get_domain(url: str) -> str:
    """Extracts the hostname from a URL."""
    if "://" not in url:
        # If `get_domain` is called on a domain, add a scheme so that the
        # original domain is returned instead of the empty string.
        url = "http://" + url
    return urlparse(url).hostname or ""


def merge_whitespace(text: str) -> str:
    """Replace newlines with spaces and merge consecutive whitespace into a single space."""
    text = text.replace("\n", " ")
    text = re.sub(r"\s+", " ", text)
    return text.strip()


def remove_unicode_smp(text: str) -> str:
    """Removes characters outside the Basic Multilingual Plane from `text`.

    lxml.html does not handle them reliably.
    """
    return SMP_RE.sub("", text)


def truncate(text: str, num_chars: int = MAX_CONTENT_LENGTH) -> str:
    return text[:num_chars]


def resolve_http_url(href: str, base_url: str) -> str | None:
    """Resolve `href` against `base_url`; None unless the result is http(s)."""
    href = href.strip()
    if not href:
        return None
    try:
        url = urljoin(base_url, href)
        parsed = urlparse(url)
        hostname = parsed.hostname
    except ValueError:
        return None
    if parsed.scheme not in ("http", "https") or not hostname:
        return None
    return url


def parse_document(html: str) -> lxml.html.HtmlElement:
    """Parse an HTML document.

    Raises:
        lxml.etree.ParserError: if the document is empty or unparseable
    """
    html = XML_DECLARATION_RE.sub("", remove_unicode_smp(html))
    try:
        return lxml.html.document_fromstring(html)
    except ValueError as e:
        raise lxml.etree.ParserError(str(e)) from e


def _get_text(node: lxml.html.HtmlElement) -> str:
    """Extracts all text from an HTML element and merges it into a whitespace-normalized string."""
    return merge_whitespace(" ".join(node.itertext()))


def _first(root: lxml.html.HtmlElement, selector: str) -> lxml.html.HtmlElement | None:
    matches = root.cssselect(selector)
    return matches[0] if matches else None


def _attr(root: lxml.html.HtmlElement, selector: str, attribute: str) -> str:
    node = _first(root, selector)
    if node is None:
        return ""
    return (node.get(attribute) or "").strip()


def _escape_md(text: str, *args: object, **kwargs: object) -> str:
    return text


def _escape_md_section(text: str, *args: object, **kwargs: object) -> str:
    return text


# html2text binds the escape helpers into its package namespace at import
_ESCAPE_PATCHES = (
    (html2text, "escape_md", _escape_md),
    (html2text, "escape_md_section", _escape_md_section),
    (html2text.utils, "escape_md", _escape_md),
    (html2text.utils, "escape_md_section", _escape_md_section),
)


def html_to_text(html: str) -> str:
    """Converts an HTML string to clean plaintext."""
    html = re.sub(HTML_SUP_RE, r"^{\2}", html)
    html = re.sub(HTML_SUB_RE, r"_{\2}", html)
    # add spaces between tags such as table cells
    html = re.sub(HTML_TAGS_SEQ_RE, r" \1", html)
    # we don't need to escape markdown, so monkey-patch the logic
    originals = [(module, name, getattr(module, name)) for module, name, _ in _ESCAPE_PATCHES]
    for module, name, replacement in _ESCAPE_PATCHES:
        setattr(module, name, replacement)
    try:
        h = html2text.HTML2Text()
        h.ignore_links = True
        h.ignore_images = True
        h.body_width = 0  # no wrapping
        h.ignore_tables = True
        h.unicode_snob = True
        h.ignore_emphasis = True
        return h.handle(html).strip()
    finally:
        for module, name, original in originals:
            setattr(module, name, original)


def _strip_unwanted(element: lxml.html.HtmlElement) -> None:
    for node in element.cssselect(_REMOVE_SELECTOR):
        if node is element or node.getparent() is None:
            continue
        node.drop_tree()


def _body(root: lxml.html.HtmlElement) -> lxml.html.HtmlElement:
    body = root.find("body")
    return body if body is not None else root


def extract_metadata(root: lxml.html.HtmlElement) -> PageMetadata:
    return PageMetadata(
        title=merge_whitespace(root.findtext(".//title") or ""),
        description=_attr(root, 'meta[name="description"]', "content"),
        keywords=_attr(root, 'meta[name="keywords"]', "content"),
        author=_attr(root, 'meta[name="author"]', "content"),
        canonical=_attr(root, 'link[rel="canonical"]', "href"),
        language=(root.get("lang") or "").strip()
        or _attr(root, 'meta[http-equiv="content-language"]', "content"),
        published=_attr(root, 'meta[property="article:published_time"]', "content")
        or _attr(root, 'meta[name="date"]', "content"),
    )


def extract_links(root: lxml.html.HtmlElement, base_url: str) -> list[Link]:
    links: list[Link] = []
    for a in root.cssselect("a[href]"):
        if len(links) >= MAX_LINKS:
            break
        text = _get_text(a)
        href = resolve_http_url(a.get("href", ""), base_url)
        if not text or href is None:
            continue
        links.append(Link(text=text, href=href, domain=get_domain(href)))
    return links


def extract_images(root: lxml.html.HtmlElement, base_url: str) -> list[Image]:
    images: list[Image] = []
    for img in root.cssselect("img[src]"):
        if len(images) >= MAX_IMAGES:
            break
        src = resolve_http_url(img.get("src", ""), base_url)
        if src is None:
            continue
        images.append(Image(src=src, alt=(img.get("alt") or "").strip()))
    return images


def extract_text(root: lxml.html.HtmlElement, content_type: str) -> str:
    """Extract the main text of a parsed document. Mutates `root`."""
    if content_type == "article":
        for selector in ARTICLE_SELECTORS:
            element = _first(root, selector)
            if element is None:
                continue
            _strip_unwanted(element)
            text = _get_text(element)
            if len(text) > MIN_ARTICLE_LENGTH:
                return truncate(text)

    body = _body(root)
    _strip_unwanted(body)
    if content_type == "all":
        text = html_to_text(lxml.html.tostring(body, encoding="unicode"))
    else:
        text = _get_text(body)
    return truncate(text)


def extract_content(
    html: str,
    url: str,
    *,
    content_type: str = "article",
    include_metadata: bool = True,
    include_links: bool = False,
    include_images: bool = False,
) -> ExtractedContent:
    """
    Extract structured content from an HTML document.

    Links and images are collected before the main text, because the text
    pass removes navigation, headers and footers from the tree.

    Args:
        html: Raw HTML string
        url: The page URL (used for resolving relative links)
        content_type: "article", "all" or "text_only"
        include_metadata: Populate `metadata`
        include_links: Populate `links`
        include_images: Populate `images`

    Returns:
        ExtractedContent; if the document cannot be processed, `content` is
        EXTRACTION_ERROR_CONTENT and `error` carries the reason.
    """
    try:
        root = parse_document(html)
    except lxml.etree.ParserError as e:
        logger.warning("Failed to parse document from %s: %s", url, e)
        return ExtractedContent(url=url, content=EXTRACTION_ERROR_CONTENT, error=str(e))

    title = merge_whitespace(root.findtext(".//title") or "") or None
    metadata = extract_metadata(root) if include_metadata else None
    links = extract_links(root, url) if include_links else None
    images = extract_images(root, url) if include_images else None
    return ExtractedContent(
        url=url,
        title=title,
        content=extract_text(root, content_type),
        metadata=metadata,
        links=links,
        images=images,
    )
