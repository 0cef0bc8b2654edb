import pytest

import pages
from browser_search.tools.web_search.page_contents import (
    EXTRACTION_ERROR_CONTENT,
    MAX_CONTENT_LENGTH,
    MAX_LINKS,
    extract_content,
    get_domain,
    resolve_http_url,
)


def test_metadata(article_html):
    extracted = extract_content(article_html, "https://a.com/p")
    assert extracted.title == "Sample Article"
    metadata = extracted.metadata
    assert metadata.title == "Sample Article"
    assert metadata.description == "A sample page"
    assert metadata.keywords == "sample, test"
    assert metadata.author == "Jo Writer"
    assert metadata.canonical == "https://a.com/canonical"
    assert metadata.language == "en-GB"
    assert metadata.published == "2024-01-02T03:04:05Z"
    assert extracted.links is None
    assert extracted.images is None
    assert extracted.error is None


def test_missing_metadata_is_empty_string():
    extracted = extract_content("<html><body><p>hi</p></body></html>", "https://a.com")
    assert extracted.title is None
    assert extracted.metadata.description == ""
    assert extracted.metadata.language == ""


def test_metadata_can_be_skipped(article_html):
    assert extract_content(article_html, "https://a.com/p", include_metadata=False).metadata is None


def test_article_text_excludes_ads_and_scripts(article_html):
    content = extract_content(article_html, "https://a.com/p").content
    assert content.startswith("Heading This sentence belongs to the main article body.")
    assert "Buy things now" not in content
    assert "tracking" not in content
    assert "Site header" not in content
    assert "Site footer" not in content


def test_short_article_falls_back_to_body_text():
    content = extract_content(pages.SHORT_BODY_HTML, "https://a.com").content
    assert content == "tiny Some body text outside of the article."


def test_content_is_truncated():
    html = "<html><body><div>" + "word " * 3000 + "</div></body></html>"
    content = extract_content(html, "https://a.com").content
    assert len(content) == MAX_CONTENT_LENGTH


def test_links_are_absolute_and_http_only(article_html):
    links = extract_content(article_html, "https://a.com/p", include_links=True).links
    assert [(link.text, link.href, link.domain) for link in links] == [
        ("Home", "https://a.com/home", "a.com"),
        ("Relative link", "https://a.com/x", "a.com"),
        ("external", "https://other.org/page", "other.org"),
    ]


def test_links_are_capped():
    anchors = "".join(f'<a href="/p{i}">link {i}</a>' for i in range(MAX_LINKS + 10))
    html = f"<html><body>{anchors}</body></html>"
    links = extract_content(html, "https://a.com", include_links=True).links
    assert len(links) == MAX_LINKS


def test_images_skip_inline_data(article_html):
    images = extract_content(article_html, "https://a.com/p", include_images=True).images
    assert [(image.src, image.alt) for image in images] == [("https://a.com/img/one.png", "One")]


def test_text_only_is_flat_body_text(article_html):
    content = extract_content(article_html, "https://a.com/p", content_type="text_only").content
    assert "\n" not in content
    assert content.startswith("Heading This sentence")
    assert "Site footer" not in content
    assert "Buy things now" not in content


def test_all_keeps_document_structure(article_html):
    content = extract_content(article_html, "https://a.com/p", content_type="all").content
    assert "# Heading" in content
    assert "\n" in content
    assert "Site header" not in content
    assert "tracking" not in content


def test_all_does_not_escape_markdown():
    html = "<html><body><p>1. first</p><p>a*b_c [x] #tag</p></body></html>"
    content = extract_content(html, "https://a.com", content_type="all").content
    assert "1. first" in content
    assert "a*b_c [x] #tag" in content
    assert "\\" not in content


def test_unparseable_document_reports_error():
    extracted = extract_content("", "https://a.com")
    assert extracted.content == EXTRACTION_ERROR_CONTENT
    assert extracted.error
    assert extracted.url == "https://a.com"


@pytest.mark.parametrize(
    "href, expected",
    [
        ("/x", "https://a.com/x"),
        ("//cdn.a.com/y", "https://cdn.a.com/y"),
        ("https://b.org/", "https://b.org/"),
        ("mailto:me@a.com", None),
        ("javascript:void(0)", None),
        ("   ", None),
    ],
)
def test_resolve_http_url(href, expected):
    assert resolve_http_url(href, "https://a.com/p") == expected


def test_get_domain_accepts_bare_hosts():
    assert get_domain("https://Docs.Python.org/3/") == "docs.python.org"
    assert get_domain("example.com") == "example.com"
