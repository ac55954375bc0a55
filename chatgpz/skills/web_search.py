"""Web search skill using DuckDuckGo's HTML endpoint (no API key needed)"""

import logging
from urllib.parse import quote_plus

import httpx

from ..core.errors import FetchError, InvalidArguments
from .html_text import parse_search_results

logger = logging.getLogger("chatgpz.skills.web_search")

SEARCH_URL = "https://html.duckduckgo.com/html/?q="
BROWSER_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
)
MAX_RESULTS = 10


async def web_search(ctx, query: str, num_results: int = 5) -> str:
    """
    Search the internet for current information. Returns a list of relevant search results with titles, URLs, and snippets.

    Args:
        query: The search query
        num_results: Number of results to return (default: 5, max: 10)
    """
    query = query.strip()
    if not query:
        raise InvalidArguments("No search query provided")
    limit = max(1, min(num_results or 5, MAX_RESULTS))

    try:
        response = await ctx.http.get(
            SEARCH_URL + quote_plus(query),
            headers={"User-Agent": BROWSER_UA},
            timeout=10.0,
        )
    except httpx.TimeoutException:
        raise FetchError("Search timed out")
    except httpx.HTTPError as e:
        raise FetchError(f"Search failed: {e}")

    if response.status_code >= 400:
        raise FetchError(f"Search failed: HTTP {response.status_code}")

    hits = parse_search_results(response.text, limit)
    logger.debug(f"Search for {query!r} returned {len(hits)} results")
    if not hits:
        return f'No search results found for: "{query}"'

    lines = []
    for i, hit in enumerate(hits, 1):
        entry = f"{i}. {hit.title}\n   URL: {hit.url}"
        if hit.snippet:
            entry += f"\n   {hit.snippet}"
        lines.append(entry)

    return f'Search results for "{query}":\n\n' + "\n\n".join(lines)
