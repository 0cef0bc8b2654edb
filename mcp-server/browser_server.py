"""
MCP web search server, browser variant: headless Chromium backend. Tools: search_web, visit_page.

Requires a Playwright browser:
    playwright install chromium

Usage:
    python browser_server.py

The server speaks MCP over stdio; logs go to stderr.
"""

import sys

from browser_search.__main__ import main

if __name__ == "__main__":
    sys.exit(main(sys.argv[1:], variant="browser"))
