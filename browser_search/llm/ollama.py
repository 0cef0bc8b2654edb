"""
Ollama client for the LLM-augmented server.

Talks to a locally running Ollama service (https://ollama.ai) over its HTTP
API. Only non-streaming requests are used: each call returns the complete
response.

Endpoints:
----------
- GET  /api/tags      list local models (also used as the health probe)
- POST /api/pull      download a model
- POST /api/generate  single-prompt completion

Behaviour:
----------
- Health status is cached for HEALTH_CHECK_TTL seconds
- generate() pulls the model first when it is not available locally
- Transient HTTP failures are retried with exponential backoff
- Every failure surfaces as OllamaError
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Sequence
from typing import Any, Callable, ParamSpec, TypeVar

import aiohttp
import pydantic
import structlog
from aiohttp import ClientSession, ClientTimeout
from tenacity import (
    after_log,
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = structlog.stdlib.get_logger(component=__name__)
_retry_logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:11434"
DEFAULT_MODEL = "llama2"
DEFAULT_TIMEOUT = 60.0
HEALTH_CHECK_TTL = 30.0
HEALTH_CHECK_TIMEOUT = 5.0
PULL_TIMEOUT = 600.0
SUMMARY_RESULT_LIMIT = 5

ANSWER_SYSTEM_PROMPT = (
    "You are a helpful AI assistant with access to web search results. Use the "
    "provided search context to answer questions accurately and comprehensively."
)
SUMMARY_SYSTEM_PROMPT = (
    "You are a helpful assistant that provides concise summaries of search results."
)

P = ParamSpec("P")
R = TypeVar("R")


class OllamaError(Exception):
    """Raised when the Ollama service is unreachable or rejects a request."""


class _TransientError(OllamaError):
    """A failure worth retrying: connection problems and 5xx responses."""


def with_retries(
    func: Callable[P, R],
    num_retries: int,
    max_wait_time: float,
) -> Callable[P, R]:
    """
    Add retry logic with exponential backoff to `func`.

    Only transient failures are retried. With num_retries=0 the function is
    returned unchanged.
    """
    if num_retries > 0:
        retry_decorator = retry(
            stop=stop_after_attempt(num_retries),
            wait=wait_exponential(
                multiplier=1,
                min=2,
                max=max_wait_time,
            ),
            before_sleep=before_sleep_log(_retry_logger, logging.INFO),
            after=after_log(_retry_logger, logging.DEBUG),
            retry=retry_if_exception_type(_TransientError),
            reraise=True,
        )
        return retry_decorator(func)
    else:
        return func


class GenerateResponse(pydantic.BaseModel):
    model_config = pydantic.ConfigDict(extra="ignore")

    model: str
    response: str
    done: bool = True
    created_at: str | None = None
    total_duration: int | None = None
    eval_count: int | None = None
    eval_duration: int | None = None

    def timing(self) -> dict[str, int | None]:
        return {
            "total_duration": self.total_duration,
            "eval_count": self.eval_count,
            "eval_duration": self.eval_duration,
        }


def format_results(results: Sequence[Any], *, detailed: bool = True) -> str:
    """Render search results as a numbered list for a prompt."""
    lines = []
    for i, result in enumerate(results, start=1):
        if detailed:
            lines.append(f"{i}. {result.title}\n   {result.snippet}\n   URL: {result.url}")
        else:
            lines.append(f"{i}. {result.title}: {result.snippet}")
    return ("\n\n" if detailed else "\n").join(lines)


class OllamaClient:
    """
    Async client for an Ollama service.

    Args:
        base_url: Service root, e.g. http://localhost:11434
        default_model: Model used when a call does not name one
        timeout: Total timeout in seconds for ordinary requests
        num_retries: Attempts for transient failures (0 disables retries)
        clock: Monotonic clock, injectable for tests
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        default_model: str = DEFAULT_MODEL,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        num_retries: int = 3,
        max_wait_time: float = 10.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.base_url = base_url.rstrip("/")
        self.default_model = default_model
        self.timeout = timeout
        self._clock = clock
        self._session: ClientSession | None = None
        self._health: tuple[bool, float] | None = None
        self._request = with_retries(self._request_once, num_retries, max_wait_time)

    def _get_session(self) -> ClientSession:
        if self._session is None or self._session.closed:
            self._session = ClientSession(timeout=ClientTimeout(total=self.timeout))
        return self._session

    async def _request_once(
        self,
        method: str,
        endpoint: str,
        payload: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> dict[str, Any]:
        session = self._get_session()
        kwargs: dict[str, Any] = {"json": payload}
        if timeout is not None:
            kwargs["timeout"] = ClientTimeout(total=timeout)
        try:
            async with session.request(method, f"{self.base_url}{endpoint}", **kwargs) as resp:
                if resp.status >= 500:
                    raise _TransientError(f"Ollama error {resp.status}: {await resp.text()}")
                if resp.status != 200:
                    raise OllamaError(f"Ollama error {resp.status}: {await resp.text()}")
                return await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise _TransientError(
                f"Ollama request to {endpoint} failed: {str(e) or e.__class__.__name__}"
            ) from e

    async def is_healthy(self) -> bool:
        now = self._clock()
        if self._health is not None and now - self._health[1] < HEALTH_CHECK_TTL:
            return self._health[0]
        try:
            await self._request_once("GET", "/api/tags", timeout=HEALTH_CHECK_TIMEOUT)
            healthy = True
        except OllamaError as e:
            logger.warning("ollama_health_check_failed", url=self.base_url, error=str(e))
            healthy = False
        self._health = (healthy, now)
        return healthy

    async def list_models(self) -> list[dict[str, Any]]:
        data = await self._request("GET", "/api/tags")
        return list(data.get("models") or [])

    async def is_model_available(self, name: str) -> bool:
        try:
            models = await self.list_models()
        except OllamaError:
            return False
        return any(model.get("name") == name for model in models)

    async def pull_model(self, name: str) -> None:
        logger.info("ollama_pull_started", model=name)
        await self._request(
            "POST", "/api/pull", {"model": name, "stream": False}, timeout=PULL_TIMEOUT
        )
        logger.info("ollama_pull_completed", model=name)

    async def generate(
        self,
        prompt: str,
        *,
        model: str | None = None,
        system: str | None = None,
        options: dict[str, Any] | None = None,
    ) -> GenerateResponse:
        model = model or self.default_model
        if not await self.is_model_available(model):
            logger.info("ollama_model_missing", model=model)
            await self.pull_model(model)

        payload: dict[str, Any] = {"model": model, "prompt": prompt, "stream": False}
        if system:
            payload["system"] = system
        if options:
            payload["options"] = options
        data = await self._request("POST", "/api/generate", payload)
        try:
            return GenerateResponse.model_validate(data)
        except pydantic.ValidationError as e:
            raise OllamaError(f"Unexpected response from Ollama: {e}") from e

    async def summarize_search_results(
        self, query: str, results: Sequence[Any], model: str | None = None
    ) -> str:
        listing = format_results(results[:SUMMARY_RESULT_LIMIT], detailed=False)
        response = await self.generate(
            f'Summarize the following search results for the query "{query}" '
            f"in 2-3 sentences:\n\n{listing}",
            model=model,
            system=SUMMARY_SYSTEM_PROMPT,
            options={"temperature": 0.5, "num_predict": 150},
        )
        return response.response

    async def answer_with_context(
        self,
        query: str,
        results: Sequence[Any],
        summary: str,
        *,
        model: str | None = None,
        custom_prompt: str | None = None,
    ) -> GenerateResponse:
        prompt = custom_prompt or (
            f'Based on the following search results for the query "{query}", please '
            "provide a comprehensive and accurate answer:\n\n"
            f"Search Results:\n{format_results(results)}\n\n"
            f"Summary: {summary}\n\n"
            "Please provide a well-structured response that synthesizes the "
            "information from these search results."
        )
        return await self.generate(
            prompt,
            model=model,
            system=ANSWER_SYSTEM_PROMPT,
            options={"temperature": 0.7, "num_ctx": 4096},
        )

    async def chat(
        self, messages: Sequence[tuple[str, str]], model: str | None = None
    ) -> GenerateResponse:
        """Generate the next assistant turn for a (role, content) history."""
        transcript = "\n".join(
            f"{'Human' if role == 'user' else 'Assistant'}: {content}" for role, content in messages
        )
        return await self.generate(
            transcript + "\nAssistant:",
            model=model,
            options={"temperature": 0.8, "num_ctx": 4096},
        )

    async def aclose(self) -> None:
        session, self._session = self._session, None
        self._health = None
        if session is not None and not session.closed:
            await session.close()
