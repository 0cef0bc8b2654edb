"""
MCP web search server, fallback variant: curl backend, for hosts without a browser. Tools: search_web_fallback,
fetch_page.

Requires the curl binary on PATH.

Usage:
    python fallback_server.py

The server speaks MCP over stdio; logs go to stderr.
"""

import sys

from browser_search.__main__ import main

if __name__ == "__main__":
    sys.exit(main(sys.argv[1:], variant="fallback"))
