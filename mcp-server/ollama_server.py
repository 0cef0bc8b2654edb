"""
MCP web search server, ollama variant: enhanced tools plus answers from a local Ollama model. Tools add
search_and_answer, chat_with_search, ollama_generate, ollama_models,
ollama_pull_model, ollama_health.

Set OLLAMA_BASE_URL and OLLAMA_DEFAULT_MODEL to point at your Ollama service.

Usage:
    python ollama_server.py

The server speaks MCP over stdio; logs go to stderr.
"""

import sys

from browser_search.__main__ import main

if __name__ == "__main__":
    sys.exit(main(sys.argv[1:], variant="ollama"))
