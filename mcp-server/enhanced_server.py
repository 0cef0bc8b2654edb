"""
MCP web search server, enhanced variant: curl backend with a result cache. Tools: search_web, extract_content,
bulk_search, analyze_domain, cache_stats.

Cache TTL is set with MCP_CACHE_TTL (seconds).

Usage:
    python enhanced_server.py

The server speaks MCP over stdio; logs go to stderr.
"""

import sys

from browser_search.__main__ import main

if __name__ == "__main__":
    sys.exit(main(sys.argv[1:], variant="enhanced"))
