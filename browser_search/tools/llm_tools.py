"""
Tools that combine web search with a local Ollama model.
"""

from __future__ import annotations

import datetime
from collections.abc import Mapping
from typing import Any

import structlog

from ..llm.ollama import OllamaClient, OllamaError
from .tool import Tool, ToolUsageError
from .validation import (
    DEFAULT_ANSWER_RESULTS,
    DEFAULT_ENGINE,
    MAX_ANSWER_RESULTS,
    MAX_GENERATE_TOKENS,
    SEARCH_ENGINES,
    AnswerOptions,
    ChatOptions,
    GenerateOptions,
    NoOptions,
    PullModelOptions,
)
from .web_search.backend import FetchError
from .web_search.search_tools import SearchPipeline, dump_results

logger = structlog.stdlib.get_logger(component=__name__)

CHAT_SEARCH_RESULTS = 5
NO_RESULTS_ANSWER = (
    "I couldn't find any search results for your query. Please try rephrasing your question."
)
SEARCH_TRIGGERS = (
    "what is",
    "who is",
    "when did",
    "where is",
    "how to",
    "latest",
    "current",
    "recent",
    "news",
    "today",
    "this year",
    "price of",
    "information about",
)

ANSWER_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "query": {"type": "string", "description": "The search query and question"},
        "engine": {"type": "string", "enum": list(SEARCH_ENGINES), "default": DEFAULT_ENGINE},
        "max_results": {
            "type": "number",
            "default": DEFAULT_ANSWER_RESULTS,
            "minimum": 1,
            "maximum": MAX_ANSWER_RESULTS,
        },
        "model": {"type": "string", "description": "Ollama model to use for answering"},
        "custom_prompt": {"type": "string", "description": "Custom prompt template"},
        "use_cache": {"type": "boolean", "description": "Use cached results", "default": True},
    },
    "required": ["query"],
}

CHAT_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "messages": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "role": {"type": "string", "enum": ["user", "assistant"]},
                    "content": {"type": "string"},
                },
                "required": ["role", "content"],
            },
            "description": "Conversation history",
        },
        "auto_search": {
            "type": "boolean",
            "default": True,
            "description": "Automatically search for information when needed",
        },
        "model": {"type": "string", "description": "Ollama model to use"},
        "search_engine": {
            "type": "string",
            "enum": list(SEARCH_ENGINES),
            "default": DEFAULT_ENGINE,
        },
    },
    "required": ["messages"],
}

GENERATE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "prompt": {"type": "string", "description": "The prompt to generate from"},
        "model": {"type": "string", "description": "Ollama model to use"},
        "system": {"type": "string", "description": "System prompt"},
        "temperature": {"type": "number", "minimum": 0, "maximum": 2, "default": 0.7},
        "max_tokens": {
            "type": "number",
            "minimum": 1,
            "maximum": MAX_GENERATE_TOKENS,
            "default": 1000,
        },
    },
    "required": ["prompt"],
}

PULL_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {"model": {"type": "string", "description": "Model name to pull"}},
    "required": ["model"],
}

EMPTY_SCHEMA: dict[str, Any] = {"type": "object", "properties": {}}


def needs_search(message: str) -> bool:
    text = message.lower()
    return any(trigger in text for trigger in SEARCH_TRIGGERS)


class OllamaTool(Tool):
    def __init__(
        self,
        llm: OllamaClient,
        name: str,
        description: str,
        input_schema: Mapping[str, Any],
    ):
        super().__init__(name, description, input_schema)
        self.llm = llm

    async def ensure_available(self) -> None:
        if not await self.llm.is_healthy():
            raise OllamaError(
                "Ollama service is not available. Please ensure Ollama is running and accessible."
            )


class SearchAndAnswerTool(OllamaTool):
    """
    Search the web, then have the model answer from the results.

    If the model fails after the search succeeded, the results are still
    returned with source "search_only".
    """

    options_model = AnswerOptions

    def __init__(
        self,
        pipeline: SearchPipeline,
        llm: OllamaClient,
        name: str = "search_and_answer",
        description: str = "Search the web and generate an AI-powered answer using Ollama",
        *,
        default_engine: str = DEFAULT_ENGINE,
    ):
        super().__init__(llm, name, description, ANSWER_SCHEMA)
        self.pipeline = pipeline
        self.default_engine = default_engine

    def validation_context(self) -> Mapping[str, Any]:
        return {"default_engine": self.default_engine}

    async def run(self, options: AnswerOptions) -> dict[str, Any]:
        await self.ensure_available()
        results = await self.pipeline.cached_search(
            options.query, options.engine, options.max_results, use_cache=options.use_cache
        )
        if not results:
            return {
                "query": options.query,
                "answer": NO_RESULTS_ANSWER,
                "searchResults": [],
                "source": "fallback",
            }

        try:
            summary = await self.llm.summarize_search_results(options.query, results, options.model)
            answer = await self.llm.answer_with_context(
                options.query,
                results,
                summary,
                model=options.model,
                custom_prompt=options.custom_prompt,
            )
        except OllamaError as e:
            logger.warning("answer_generation_failed", query=options.query, error=str(e))
            return {
                "query": options.query,
                "answer": (
                    f"I found {len(results)} search results but couldn't generate an AI "
                    f"response. Error: {e}"
                ),
                "searchResults": dump_results(results),
                "source": "search_only",
            }

        return {
            "query": options.query,
            "answer": answer.response,
            "searchResults": dump_results(results),
            "summary": summary,
            "model": answer.model,
            "metadata": answer.timing(),
            "source": "ollama",
        }


class ChatWithSearchTool(OllamaTool):
    options_model = ChatOptions

    def __init__(
        self,
        pipeline: SearchPipeline,
        llm: OllamaClient,
        name: str = "chat_with_search",
        description: str = (
            "Have a conversation with AI that can search the web for current information"
        ),
        *,
        default_engine: str = DEFAULT_ENGINE,
    ):
        super().__init__(llm, name, description, CHAT_SCHEMA)
        self.pipeline = pipeline
        self.default_engine = default_engine

    def validation_context(self) -> Mapping[str, Any]:
        return {"default_engine": self.default_engine}

    async def run(self, options: ChatOptions) -> dict[str, Any]:
        last = options.messages[-1]
        if last.role != "user":
            raise ToolUsageError("Last message must be from user")
        await self.ensure_available()

        results = []
        search_performed = False
        if options.auto_search and needs_search(last.content):
            try:
                results = await self.pipeline.search(
                    last.content, options.search_engine, CHAT_SEARCH_RESULTS
                )
                search_performed = True
            except FetchError as e:
                logger.warning("chat_search_failed", query=last.content, error=str(e))

        history = [(message.role, message.content) for message in options.messages]
        if results:
            summary = await self.llm.summarize_search_results(last.content, results, options.model)
            history[-1] = ("user", f"{last.content}\n\n[Search Context: {summary}]")
        response = await self.llm.chat(history, options.model)

        return {
            "response": response.response,
            "model": response.model,
            "searchPerformed": search_performed,
            "searchResults": dump_results(results),
            "metadata": response.timing(),
        }


class OllamaGenerateTool(OllamaTool):
    options_model = GenerateOptions

    def __init__(
        self,
        llm: OllamaClient,
        name: str = "ollama_generate",
        description: str = "Generate text using Ollama (without search context)",
    ):
        super().__init__(llm, name, description, GENERATE_SCHEMA)

    async def run(self, options: GenerateOptions) -> dict[str, Any]:
        await self.ensure_available()
        response = await self.llm.generate(
            options.prompt,
            model=options.model,
            system=options.system,
            options={"temperature": options.temperature, "num_predict": options.max_tokens},
        )
        return {
            "response": response.response,
            "model": response.model,
            "metadata": response.timing(),
        }


class OllamaModelsTool(OllamaTool):
    options_model = NoOptions

    def __init__(
        self,
        llm: OllamaClient,
        name: str = "ollama_models",
        description: str = "List available Ollama models",
    ):
        super().__init__(llm, name, description, EMPTY_SCHEMA)

    async def run(self, options: NoOptions) -> dict[str, Any]:
        models = await self.llm.list_models()
        return {
            "models": [
                {
                    "name": model.get("name"),
                    "size": model.get("size"),
                    "digest": (model.get("digest") or "")[:12],
                    "family": (model.get("details") or {}).get("family"),
                    "parameter_size": (model.get("details") or {}).get("parameter_size"),
                }
                for model in models
            ],
            "defaultModel": self.llm.default_model,
            "ollamaUrl": self.llm.base_url,
        }


class OllamaPullModelTool(OllamaTool):
    options_model = PullModelOptions

    def __init__(
        self,
        llm: OllamaClient,
        name: str = "ollama_pull_model",
        description: str = "Pull a model from Ollama registry",
    ):
        super().__init__(llm, name, description, PULL_SCHEMA)

    async def run(self, options: PullModelOptions) -> dict[str, Any]:
        await self.llm.pull_model(options.model)
        return {
            "model": options.model,
            "status": "pulled",
            "message": f"Successfully pulled model: {options.model}",
        }


class OllamaHealthTool(OllamaTool):
    options_model = NoOptions

    def __init__(
        self,
        llm: OllamaClient,
        name: str = "ollama_health",
        description: str = "Check Ollama service health",
    ):
        super().__init__(llm, name, description, EMPTY_SCHEMA)

    async def run(self, options: NoOptions) -> dict[str, Any]:
        healthy = await self.llm.is_healthy()
        return {
            "status": "healthy" if healthy else "unhealthy",
            "url": self.llm.base_url,
            "timestamp": datetime.datetime.now(datetime.timezone.utc).isoformat(),
        }
