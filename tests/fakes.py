"""Test doubles shared across the test modules."""

from __future__ import annotations

from typing import Any

from browser_search.llm.ollama import GenerateResponse, OllamaError
from browser_search.tools.web_search.backend import Fetcher


class FakeFetcher(Fetcher):
    """Serves canned HTML by URL prefix; raises stored exceptions."""

    name = "fake"

    def __init__(self, pages: dict[str, Any] | None = None, default: Any = None):
        self.pages = dict(pages or {})
        self.default = default
        self.calls: list[tuple[str, str | None]] = []
        self.closed = False

    def _lookup(self, url: str) -> Any:
        for prefix in sorted(self.pages, key=len, reverse=True):
            if url.startswith(prefix):
                return self.pages[prefix]
        return self.default

    async def fetch(self, url: str, *, wait_for: str | None = None) -> str:
        self.calls.append((url, wait_for))
        page = self._lookup(url)
        if callable(page) and not isinstance(page, str):
            page = page(url)
        if isinstance(page, BaseException):
            raise page
        if page is None:
            raise AssertionError(f"unexpected fetch of {url}")
        return page

    async def aclose(self) -> None:
        self.closed = True


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeLLM:
    """Stands in for OllamaClient in tool tests."""

    def __init__(
        self,
        *,
        healthy: bool = True,
        answer: str = "An answer.",
        fail_generation: bool = False,
        models: list[dict[str, Any]] | None = None,
    ):
        self.healthy = healthy
        self.answer = answer
        self.fail_generation = fail_generation
        self.models = models or []
        self.base_url = "http://ollama.test:11434"
        self.default_model = "llama2"
        self.summaries: list[str] = []
        self.chats: list[list[tuple[str, str]]] = []
        self.generated: list[dict[str, Any]] = []
        self.pulled: list[str] = []
        self.closed = False

    def _response(self, model: str | None) -> GenerateResponse:
        return GenerateResponse(
            model=model or self.default_model,
            response=self.answer,
            total_duration=10,
            eval_count=5,
            eval_duration=3,
        )

    async def is_healthy(self) -> bool:
        return self.healthy

    async def summarize_search_results(self, query, results, model=None) -> str:
        if self.fail_generation:
            raise OllamaError("model crashed")
        self.summaries.append(query)
        return f"summary of {len(results)} results"

    async def answer_with_context(self, query, results, summary, *, model=None, custom_prompt=None):
        if self.fail_generation:
            raise OllamaError("model crashed")
        return self._response(model)

    async def chat(self, messages, model=None) -> GenerateResponse:
        self.chats.append(list(messages))
        return self._response(model)

    async def generate(self, prompt, *, model=None, system=None, options=None) -> GenerateResponse:
        self.generated.append(
            {"prompt": prompt, "model": model, "system": system, "options": options}
        )
        return self._response(model)

    async def list_models(self) -> list[dict[str, Any]]:
        return self.models

    async def pull_model(self, name: str) -> None:
        self.pulled.append(name)

    async def aclose(self) -> None:
        self.closed = True
