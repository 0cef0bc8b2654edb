"""
Argument Validation for Tool Calls

Every tool declares a pydantic options model. Raw MCP arguments are run
through that model before the tool sees them, so tool code only ever handles
typed, normalized values.

Rules:
------
- query: string, trimmed, 1..500 characters
- url: absolute http(s) URL
- engine: one of SEARCH_ENGINES (case-insensitive), defaults to the
  configured default engine
- max_results: integer in [1, upper], defaults per tool
- language: "xx" or "xx-yy", lowercased, default "en"
- region: "xx", lowercased, default "us"
- domain: bare hostname; scheme and path are stripped before checking
- queries: list of 1..10 valid queries
- booleans: true/false, 1/0, "yes"/"no", "on"/"off"; anything else falls
  back to the field default

The boundary function validate_arguments() never raises: it returns either
the options model or a ValidationError value describing the first problem.
"""

from __future__ import annotations

import dataclasses
import re
from collections.abc import Mapping
from typing import Any, Literal, TypeVar
from urllib.parse import urlsplit

import pydantic

MAX_QUERY_LENGTH = 500
MAX_RESULTS = 50
MAX_ANSWER_RESULTS = 20
DEFAULT_MAX_RESULTS = 10
DEFAULT_BULK_RESULTS = 5
DEFAULT_ANSWER_RESULTS = 5
MAX_BULK_QUERIES = 10
MAX_GENERATE_TOKENS = 8192

SEARCH_ENGINES = ("google", "bing", "duckduckgo", "searx", "startpage")
DEFAULT_ENGINE = "duckduckgo"
CONTENT_TYPES = ("article", "all", "text_only")

LANGUAGE_RE = re.compile(r"^[a-z]{2}(-[a-z]{2})?$")
REGION_RE = re.compile(r"^[a-z]{2}$")
DOMAIN_RE = re.compile(
    r"^[a-z0-9]([a-z0-9-]{0,61}[a-z0-9])?(\.[a-z0-9]([a-z0-9-]{0,61}[a-z0-9])?)*$"
)
SCHEME_PREFIX_RE = re.compile(r"^https?://")

_TRUE_WORDS = frozenset({"true", "1", "yes", "on"})
_FALSE_WORDS = frozenset({"false", "0", "no", "off"})


@dataclasses.dataclass(frozen=True)
class ValidationError:
    """A rejected tool argument. Returned as a value, never raised."""

    message: str
    field: str | None = None

    def __str__(self) -> str:
        return self.message


def check_query(value: Any) -> str:
    if not isinstance(value, str):
        raise ValueError("Query is required and must be a string")
    query = value.strip()
    if not query:
        raise ValueError("Query cannot be empty")
    if len(query) > MAX_QUERY_LENGTH:
        raise ValueError(f"Query too long (max {MAX_QUERY_LENGTH} characters)")
    return query


def check_url(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError("URL is required and must be a string")
    url = value.strip()
    if " " in url:
        raise ValueError("Invalid URL format")
    try:
        parsed = urlsplit(url)
        hostname, _port = parsed.hostname, parsed.port
    except ValueError:
        raise ValueError("Invalid URL format") from None
    if not parsed.scheme or not parsed.netloc:
        raise ValueError("Invalid URL format")
    if parsed.scheme not in ("http", "https"):
        raise ValueError("URL must use HTTP or HTTPS protocol")
    if not hostname:
        raise ValueError("Invalid URL format")
    return url



def check_engine(value: Any, default: str = DEFAULT_ENGINE) -> str:
    if value is None or value == "":
        return default
    if not isinstance(value, str) or value.strip().lower() not in SEARCH_ENGINES:
        raise ValueError(
            f"Invalid search engine. Must be one of: {', '.join(SEARCH_ENGINES)}"
        )
    return value.strip().lower()


def check_max_results(value: Any, default: int, upper: int = MAX_RESULTS) -> int:
    if value is None:
        return default
    if isinstance(value, bool):
        raise ValueError("Max results must be a number")
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            raise ValueError("Max results must be a number") from None
    if isinstance(value, float):
        if not value.is_integer():
            raise ValueError("Max results must be an integer")
        value = int(value)
    if not isinstance(value, int):
        raise ValueError("Max results must be a number")
    if value < 1:
        raise ValueError("Max results must be at least 1")
    if value > upper:
        raise ValueError(f"Max results cannot exceed {upper}")
    return value


def check_language(value: Any) -> str:
    if value is None:
        return "en"
    if not isinstance(value, str) or not LANGUAGE_RE.match(value.strip().lower()):
        raise ValueError("Invalid language code format (expected e.g. 'en' or 'en-us')")
    return value.strip().lower()


def check_region(value: Any) -> str:
    if value is None:
        return "us"
    if not isinstance(value, str) or not REGION_RE.match(value.strip().lower()):
        raise ValueError("Invalid region code format (expected e.g. 'us')")
    return value.strip().lower()


def check_domain(value: Any) -> str:
    if not isinstance(value, str):
        raise ValueError("Domain is required and must be a string")
    domain = SCHEME_PREFIX_RE.sub("", value.strip().lower())
    domain = domain.split("/", 1)[0]
    if not domain:
        raise ValueError("Domain cannot be empty")
    if not DOMAIN_RE.match(domain):
        raise ValueError("Invalid domain format")
    return domain


def check_queries(value: Any) -> list[str]:
    if not isinstance(value, list):
        raise ValueError("Queries must be an array")
    if not value:
        raise ValueError("At least one query is required")
    if len(value) > MAX_BULK_QUERIES:
        raise ValueError(f"Too many queries (max {MAX_BULK_QUERIES})")
    queries = []
    for i, query in enumerate(value):
        try:
            queries.append(check_query(query))
        except ValueError as e:
            raise ValueError(f"Query {i + 1}: {e}") from None
    return queries


def coerce_bool(value: Any, default: bool) -> bool:
    """Interpret common boolean spellings; anything unrecognised is the default."""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        if value == 1:
            return True
        if value == 0:
            return False
        return default
    if isinstance(value, str):
        word = value.strip().lower()
        if word in _TRUE_WORDS:
            return True
        if word in _FALSE_WORDS:
            return False
    return default


def check_content_type(value: Any) -> str:
    if value is None or value == "":
        return "article"
    if not isinstance(value, str) or value.strip().lower() not in CONTENT_TYPES:
        raise ValueError(f"Invalid content type. Must be one of: {', '.join(CONTENT_TYPES)}")
    return value.strip().lower()


def _checked(*fields: str, check):
    def run(cls, value: Any) -> Any:
        return check(value)

    return pydantic.field_validator(*fields, mode="before")(classmethod(run))


def _bool_field(name: str, default: bool):
    return _checked(name, check=lambda value: coerce_bool(value, default))


def _engine_field(name: str):
    def run(cls, value: Any, info: pydantic.ValidationInfo) -> str:
        default = (info.context or {}).get("default_engine", DEFAULT_ENGINE)
        return check_engine(value, default)

    return pydantic.field_validator(name, mode="before")(classmethod(run))


class ToolOptions(pydantic.BaseModel):
    """Base for all tool option models. Unknown arguments are ignored."""

    model_config = pydantic.ConfigDict(frozen=True, extra="ignore")


class NoOptions(ToolOptions):
    pass


class SearchOptions(ToolOptions):
    query: str
    # None is replaced by the configured default engine during validation.
    engine: str = pydantic.Field(default=None, validate_default=True)
    max_results: int = DEFAULT_MAX_RESULTS
    language: str = "en"
    region: str = "us"
    safe_search: bool = True
    use_cache: bool = True

    validate_query = _checked("query", check=check_query)
    validate_engine = _engine_field("engine")
    validate_max_results = _checked(
        "max_results", check=lambda value: check_max_results(value, DEFAULT_MAX_RESULTS)
    )
    validate_language = _checked("language", check=check_language)
    validate_region = _checked("region", check=check_region)
    validate_safe_search = _bool_field("safe_search", True)
    validate_use_cache = _bool_field("use_cache", True)


class ExtractOptions(ToolOptions):
    url: str
    extract_links: bool = False
    extract_images: bool = False
    extract_metadata: bool = True
    content_type: Literal["article", "all", "text_only"] = "article"

    validate_url = _checked("url", check=check_url)
    validate_content_type = _checked("content_type", check=check_content_type)
    validate_extract_links = _bool_field("extract_links", False)
    validate_extract_images = _bool_field("extract_images", False)
    validate_extract_metadata = _bool_field("extract_metadata", True)


class BulkSearchOptions(ToolOptions):
    queries: list[str]
    engine: str = pydantic.Field(default=None, validate_default=True)
    max_results_per_query: int = DEFAULT_BULK_RESULTS
    use_cache: bool = True

    validate_queries = _checked("queries", check=check_queries)
    validate_engine = _engine_field("engine")
    validate_max_results = _checked(
        "max_results_per_query",
        check=lambda value: check_max_results(value, DEFAULT_BULK_RESULTS),
    )
    validate_use_cache = _bool_field("use_cache", True)


class DomainOptions(ToolOptions):
    domain: str
    check_subdomains: bool = False

    validate_domain = _checked("domain", check=check_domain)
    validate_check_subdomains = _bool_field("check_subdomains", False)


class AnswerOptions(ToolOptions):
    query: str
    engine: str = pydantic.Field(default=None, validate_default=True)
    max_results: int = DEFAULT_ANSWER_RESULTS
    model: str | None = None
    custom_prompt: str | None = None
    use_cache: bool = True

    validate_query = _checked("query", check=check_query)
    validate_engine = _engine_field("engine")
    validate_max_results = _checked(
        "max_results",
        check=lambda value: check_max_results(
            value, DEFAULT_ANSWER_RESULTS, upper=MAX_ANSWER_RESULTS
        ),
    )
    validate_use_cache = _bool_field("use_cache", True)


class ChatMessage(pydantic.BaseModel):
    model_config = pydantic.ConfigDict(frozen=True)

    role: Literal["user", "assistant"]
    content: str


def _check_messages(value: Any) -> Any:
    if not isinstance(value, list) or not value:
        raise ValueError("Messages must be a non-empty array")
    return value


class ChatOptions(ToolOptions):
    messages: list[ChatMessage]
    auto_search: bool = True
    model: str | None = None
    search_engine: str = pydantic.Field(default=None, validate_default=True)

    validate_messages = _checked("messages", check=_check_messages)
    validate_auto_search = _bool_field("auto_search", True)
    validate_search_engine = _engine_field("search_engine")


class GenerateOptions(ToolOptions):
    prompt: str
    model: str | None = None
    system: str | None = None
    temperature: float = pydantic.Field(default=0.7, ge=0.0, le=2.0)
    max_tokens: int = pydantic.Field(default=1000, ge=1, le=MAX_GENERATE_TOKENS)

    validate_prompt = _checked("prompt", check=check_query)

    @pydantic.field_validator("temperature", "max_tokens", mode="before")
    @classmethod
    def drop_null(cls, value: Any, info: pydantic.ValidationInfo) -> Any:
        if value is None:
            return cls.model_fields[info.field_name].default
        return value


def _check_model_name(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError("Model name is required")
    return value.strip()


class PullModelOptions(ToolOptions):
    model: str

    validate_model = _checked("model", check=_check_model_name)


OptionsT = TypeVar("OptionsT", bound=ToolOptions)


def _first_error(exc: pydantic.ValidationError) -> ValidationError:
    error = exc.errors()[0]
    loc = error.get("loc") or ()
    field = str(loc[0]) if loc else None
    if error["type"] == "missing":
        return ValidationError(f"Missing required field: {field}", field)
    ctx = error.get("ctx") or {}
    if "error" in ctx:
        return ValidationError(str(ctx["error"]), field)
    message = error["msg"]
    if field:
        message = f"{field}: {message}"
    return ValidationError(message, field)


def validate_arguments(
    model: type[OptionsT],
    arguments: Mapping[str, Any] | None,
    *,
    context: Mapping[str, Any] | None = None,
) -> OptionsT | ValidationError:
    """Validate raw tool arguments against an options model.

    Returns the populated model, or a ValidationError value for the first
    failing field. Explicit nulls are treated the same as absent optional
    arguments.
    """
    if arguments is None:
        arguments = {}
    if not isinstance(arguments, Mapping):
        return ValidationError("Arguments must be an object")
    try:
        return model.model_validate(dict(arguments), context=dict(context or {}))
    except pydantic.ValidationError as e:
        return _first_error(e)
