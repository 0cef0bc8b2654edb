"""
MCP Browser Search

A Model Context Protocol server that exposes web search and page content
extraction as tools. The package is organised in layers:

- tools.validation: argument validation for every tool call
- tools.cache: TTL cache for search results
- tools.web_search: engine adapters, fetch backends and content extraction
- dispatcher: routes tool calls and builds MCP result envelopes
- servers: the four server variants and their stdio wiring
- llm: the Ollama client used by the LLM-augmented variant
"""

__version__ = "2.0.0"
