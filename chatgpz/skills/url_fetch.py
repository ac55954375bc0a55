"""Fetch a web page and extract its text"""

from urllib.parse import urlparse

import httpx

from ..core.errors import FetchError, InvalidArguments
from .html_text import html_to_text

FETCH_HEADERS = {
    "User-Agent": "Mozilla/5.0 (compatible; ChatGPZ/1.0)",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
}


def validate_url(url: str) -> str:
    parsed = urlparse(url.strip())
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise InvalidArguments("Invalid URL format")
    return url.strip()


async def fetch_url(ctx, url: str, max_length: int = 5000) -> str:
    """
    Fetch content from a URL and extract the main text. Useful for reading articles, documentation, or any web page content.

    Args:
        url: The URL to fetch content from
        max_length: Maximum number of characters to return (default: 5000). Longer content will be truncated.
    """
    url = validate_url(url)
    max_length = max_length if max_length and max_length > 0 else 5000

    try:
        response = await ctx.http.get(url, headers=FETCH_HEADERS, timeout=10.0, follow_redirects=True)
    except httpx.TimeoutException:
        raise FetchError(f"Timed out fetching {url}")
    except httpx.HTTPError as e:
        raise FetchError(f"Failed to fetch URL: {e}")

    if not response.is_success:
        raise FetchError(f"HTTP {response.status_code}: {response.reason_phrase}")

    content_type = response.headers.get("content-type", "")
    if "text/plain" in content_type:
        text = response.text
    else:
        text = html_to_text(response.text)

    if len(text) > max_length:
        text = f"{text[:max_length]}\n\n[Content truncated...]"

    return f"Content from {url}:\n\n{text}"
