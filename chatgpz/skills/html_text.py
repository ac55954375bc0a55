"""Regex-based HTML helpers for the web tools."""

import re
from dataclasses import dataclass
from typing import List
from urllib.parse import parse_qs, unquote, urlparse

_SCRIPT = re.compile(r'<script[^>]*>[\s\S]*?</script>', re.IGNORECASE)
_STYLE = re.compile(r'<style[^>]*>[\s\S]*?</style>', re.IGNORECASE)
_COMMENT = re.compile(r'<!--[\s\S]*?-->')
_BLOCK_END = re.compile(r'</(p|div|h[1-6]|li|tr|br)[^>]*>', re.IGNORECASE)
_BREAK = re.compile(r'<(br|hr)[^>]*/?>', re.IGNORECASE)
_TAG = re.compile(r'<[^>]+>')

_ENTITIES = [
    ("&nbsp;", " "),
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&quot;", '"'),
    ("&#39;", "'"),
    ("&amp;", "&"),  # last, so "&amp;lt;" stays "&lt;"
]


def decode_entities(text: str) -> str:
    for entity, char in _ENTITIES:
        text = text.replace(entity, char)
    return text


def html_to_text(html: str) -> str:
    """Convert an HTML document to readable plain text."""
    text = _SCRIPT.sub("", html)
    text = _STYLE.sub("", text)
    text = _COMMENT.sub("", text)
    text = _BLOCK_END.sub("\n", text)
    text = _BREAK.sub("\n", text)
    text = _TAG.sub(" ", text)
    text = decode_entities(text)
    text = re.sub(r'[ \t]+', ' ', text)
    text = re.sub(r'\n\s*\n', '\n\n', text)
    return text.strip()


@dataclass
class SearchHit:
    title: str
    url: str
    snippet: str = ""


_RESULT = re.compile(
    r'<a[^>]+class="result__a"[^>]*href="([^"]+)"[^>]*>([^<]+)</a>'
    r'[\s\S]*?<a[^>]+class="result__snippet"[^>]*>([^<]*(?:<(?!/a>)[^>]+>[^<]*)*)</a>',
    re.IGNORECASE,
)
_RESULT_FALLBACK = re.compile(
    r'<div class="result[^"]*"[\s\S]*?<a[^>]+href="([^"]+)"[^>]*>[\s\S]*?</a>'
    r'[\s\S]*?class="result__title"[^>]*>([^<]+)',
    re.IGNORECASE,
)


def unwrap_redirect(url: str) -> str:
    """Turn a DuckDuckGo redirect link (//duckduckgo.com/l/?uddg=...) into the target URL."""
    url = decode_entities(url)
    if "duckduckgo.com/l/" in url:
        target = parse_qs(urlparse(url if "://" in url else "https:" + url).query).get("uddg")
        if target:
            return unquote(target[0])
    return url


def parse_search_results(html: str, limit: int) -> List[SearchHit]:
    """Scrape results from DuckDuckGo's HTML endpoint."""
    hits = []
    for match in _RESULT.finditer(html):
        if len(hits) >= limit:
            break
        url = unwrap_redirect(match.group(1))
        title = decode_entities(match.group(2).strip())
        snippet = decode_entities(_TAG.sub("", match.group(3)).strip())
        if url and title and not url.startswith("/"):
            hits.append(SearchHit(title=title, url=url, snippet=snippet))

    if not hits:
        for match in _RESULT_FALLBACK.finditer(html):
            if len(hits) >= limit:
                break
            url = unwrap_redirect(match.group(1))
            title = decode_entities(match.group(2).strip())
            if url and title and not url.startswith("/"):
                hits.append(SearchHit(title=title, url=url))

    return hits
