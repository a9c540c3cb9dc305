"""
Network tools: web_search and browse_url.

Both tools pass the offline/privacy gate before anything else, then consult
a TTL cache keyed by a normalized signature of the request. web_search runs
an ordered list of search strategies, retrying a strategy once only when
its failure looks transient. browse_url prefers the content extractor and
falls back to a plain fetch with tags stripped.
"""

import asyncio
import logging
import re
import urllib.parse
from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

import html2text
import httpx
from bs4 import BeautifulSoup

from toolgate.cache import TTLCache
from toolgate.cancellation import CancellationToken
from toolgate.config import NetworkConfig
from toolgate.errors import ExecutionError, NetworkUnavailableError
from toolgate.types import BrowseResult, SearchHit, WebSearchResult

logger = logging.getLogger(__name__)

INSTANT_ANSWER_URL = "https://api.duckduckgo.com/"
HTML_SEARCH_URL = "https://html.duckduckgo.com/html/"
TRUNCATION_MARKER = "... (content truncated)"
NO_SNIPPET = "No snippet available"
MAX_LINK_LENGTH = 500
TRANSIENT_WORDS = ("timeout", "network", "cors", "failed to fetch")

_MARKDOWN_LINK = re.compile(r"\[([^\]]+)\]\(([^)]+)\)")
_BARE_URL = re.compile(r"https?://[^\s<>\"'\n\r)]+", re.IGNORECASE)
_TAG = re.compile(r"<[^>]*>")
_WHITESPACE = re.compile(r"\s+")


class OfflineGate:
    """Refuses network operations while offline or in privacy mode."""

    def __init__(self, offline: bool = False, privacy_mode: bool = False) -> None:
        self.offline = offline
        self.privacy_mode = privacy_mode

    def ensure_available(self, operation: str) -> None:
        if self.offline:
            raise NetworkUnavailableError(
                f"{operation} is unavailable: you are currently offline. "
                "Please check your internet connection."
            )
        if self.privacy_mode:
            raise NetworkUnavailableError(
                f"{operation} is unavailable: privacy mode is enabled. "
                "Please disable privacy mode to use this feature."
            )


def error_message(error: BaseException) -> str:
    return str(error) or type(error).__name__


def is_transient_error(error: BaseException) -> bool:
    """Timeouts and connection problems are worth one more try; parse failures are not."""
    if isinstance(error, httpx.TransportError):
        return True
    message = error_message(error).lower()
    return any(word in message for word in TRANSIENT_WORDS)


def cap_content(text: str, max_chars: int) -> str:
    if len(text) > max_chars:
        return text[:max_chars] + TRUNCATION_MARKER
    return text


def html_to_markdown(html: str, base_url: str = "") -> str:
    """Readable markdown of a page, links kept as [text](url)."""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style", "noscript"]):
        tag.decompose()
    h2t = html2text.HTML2Text(baseurl=base_url)
    h2t.ignore_links = False
    h2t.ignore_images = True
    h2t.ignore_emphasis = True
    h2t.body_width = 0
    return h2t.handle(str(soup)).strip()


_PUBLISHED_META = (
    {"property": "article:published_time"},
    {"name": "date"},
    {"name": "pubdate"},
    {"itemprop": "datePublished"},
)


def find_published_date(soup: BeautifulSoup) -> str | None:
    """Publication date from the usual meta tags, else the first <time datetime>."""
    for attrs in _PUBLISHED_META:
        tag = soup.find("meta", attrs=attrs)
        if tag is not None and tag.get("content"):
            return tag["content"].strip()
    time_tag = soup.find("time", attrs={"datetime": True})
    if time_tag is not None:
        return time_tag["datetime"].strip() or None
    return None


def html_to_text(html: str) -> tuple[str, str | None, str | None]:
    """Plain text, <title> and publication date of a page."""
    soup = BeautifulSoup(html, "html.parser")
    title = soup.title.get_text().strip() if soup.title else None
    published = find_published_date(soup)
    for tag in soup(["script", "style", "noscript"]):
        tag.decompose()
    text = _WHITESPACE.sub(" ", soup.get_text(" ")).strip()
    return text, title or None, published


@dataclass
class ExtractedContent:
    """What a content extractor made of one URL."""
    status: str  # "ok", "redirect" or "error"
    text: str = ""
    redirect_url: str | None = None
    error: str | None = None


class ContentExtractor(ABC):
    """Turns a URL into readable text."""

    @abstractmethod
    async def extract(self, url: str) -> ExtractedContent:
        pass


class HttpContentExtractor(ContentExtractor):
    """
    Fetches a page without following redirects and converts it to markdown.

    A redirect is reported back so the caller decides whether to follow it.
    """

    def __init__(self, client: httpx.AsyncClient, timeout: float = 15.0) -> None:
        self.client = client
        self.timeout = timeout

    async def extract(self, url: str) -> ExtractedContent:
        try:
            response = await self.client.get(url, follow_redirects=False, timeout=self.timeout)
        except httpx.HTTPError as e:
            return ExtractedContent(status="error", error=error_message(e))

        location = response.headers.get("location")
        if response.is_redirect and location:
            return ExtractedContent(status="redirect", redirect_url=urllib.parse.urljoin(url, location))
        if not response.is_success:
            return ExtractedContent(status="error", error=f"HTTP {response.status_code}")

        content_type = response.headers.get("content-type", "")
        if "html" in content_type or response.text.lstrip().startswith("<"):
            text = html_to_markdown(response.text, base_url=url)
        else:
            text = response.text.strip()
        if not text:
            return ExtractedContent(status="error", error="Page has no readable content")
        return ExtractedContent(status="ok", text=text)


def resolve_redirect_url(url: str) -> str | None:
    """Unwrap a duckduckgo.com/l/?uddg=... link to its destination."""
    if not url or not url.startswith("http"):
        return None
    if "duckduckgo.com/l/" in url:
        query = urllib.parse.urlsplit(url).query
        target = urllib.parse.parse_qs(query).get("uddg")
        if target:
            return target[0]
        match = re.search(r"uddg=([^&]+)", url)
        if match:
            return urllib.parse.unquote(match.group(1))
    return url


def _is_result_link(url: str) -> bool:
    return (
        url.startswith(("http://", "https://"))
        and "duckduckgo.com" not in url
        and "duck.com" not in url
        and len(url) < MAX_LINK_LENGTH
    )


def _flatten(text: str) -> str:
    text = _MARKDOWN_LINK.sub(r"\1", text)
    text = _TAG.sub(" ", text)
    return _WHITESPACE.sub(" ", text).strip()


def extract_search_results(content: str, k: int) -> list[SearchHit]:
    """
    Pull up to k results out of a markdown rendering of a results page.

    Markdown links are the primary source. When they yield fewer than k
    results, bare URLs in the text fill the remainder.
    """
    results: list[SearchHit] = []
    seen: set[str] = set()

    for match in _MARKDOWN_LINK.finditer(content):
        if len(results) >= k:
            break
        title, raw_url = match.group(1).strip(), match.group(2).strip()
        if not title or not raw_url:
            continue
        url = resolve_redirect_url(raw_url)
        if url is None or not _is_result_link(url) or url in seen:
            continue
        start = max(0, match.start() - 100)
        end = min(len(content), match.end() + 200)
        snippet = _flatten(content[start:end])[:200]
        results.append(SearchHit(title=title, snippet=snippet or NO_SNIPPET, url=url))
        seen.add(url)

    for match in _BARE_URL.finditer(content):
        if len(results) >= k:
            break
        raw_url = match.group(0).rstrip(".,;:!?")
        url = resolve_redirect_url(raw_url)
        if url is None or len(url) <= 10 or not _is_result_link(url) or url in seen:
            continue
        start = max(0, match.start() - 100)
        end = min(len(content), match.start() + len(raw_url) + 200)
        words = [w for w in content[start:match.start()].split() if len(w) > 2]
        title = " ".join(words[-5:])[:100] if words else url
        after = content[match.start() + len(raw_url):end].strip()
        snippet = after[:200] or _flatten(content[start:end])[:200] or NO_SNIPPET
        results.append(SearchHit(title=title or url, snippet=snippet, url=url))
        seen.add(url)

    if not results:
        preview = _WHITESPACE.sub(" ", content[:300])
        raise ExecutionError(
            f"No results found in DuckDuckGo search. Content length: {len(content)}, "
            f"Has URLs: {bool(_BARE_URL.search(content))}, "
            f"Has markdown links: {bool(_MARKDOWN_LINK.search(content))}, "
            f"Preview: {preview}..."
        )
    return results


class SearchBackend(ABC):
    """One way of answering a web search."""

    name: str

    @abstractmethod
    async def search(self, query: str, k: int) -> list[SearchHit]:
        pass


class InstantAnswerSearch(SearchBackend):
    """DuckDuckGo's JSON instant-answer API."""

    name = "DuckDuckGo Instant Answer API"

    def __init__(self, client: httpx.AsyncClient, timeout: float = 10.0) -> None:
        self.client = client
        self.timeout = timeout

    async def search(self, query: str, k: int) -> list[SearchHit]:
        response = await self.client.get(
            INSTANT_ANSWER_URL,
            params={"q": query, "format": "json", "no_html": "1", "skip_disambig": "1"},
            timeout=self.timeout,
        )
        response.raise_for_status()
        try:
            data: dict[str, Any] = response.json()
        except ValueError as e:
            raise ExecutionError(f"Invalid JSON from instant-answer API: {e}") from e

        results: list[SearchHit] = []
        if data.get("AbstractText"):
            results.append(SearchHit(
                title=data.get("Heading") or query,
                snippet=data["AbstractText"],
                url=data.get("AbstractURL")
                or f"https://duckduckgo.com/?q={urllib.parse.quote(query)}",
            ))
        for topic in data.get("RelatedTopics") or []:
            if len(results) >= k:
                break
            if isinstance(topic, dict) and topic.get("Text") and topic.get("FirstURL"):
                text = topic["Text"]
                results.append(SearchHit(
                    title=text.split(" - ")[0] or text[:100],
                    snippet=text,
                    url=topic["FirstURL"],
                ))
        if not results:
            raise ExecutionError("No results from DuckDuckGo Instant Answer API")
        return results[:k]


class HtmlSearch(SearchBackend):
    """DuckDuckGo's HTML frontend, read through a content extractor."""

    name = "DuckDuckGo HTML via content extractor"

    def __init__(self, extractor: ContentExtractor) -> None:
        self.extractor = extractor

    async def search(self, query: str, k: int) -> list[SearchHit]:
        url = f"{HTML_SEARCH_URL}?q={urllib.parse.quote(query)}"
        extracted = await self.extractor.extract(url)
        if extracted.status != "ok" or not extracted.text:
            detail = f": {extracted.error}" if extracted.error else ""
            raise ExecutionError(f"Failed to extract DuckDuckGo search results{detail}")
        return extract_search_results(extracted.text, k)


class NetworkTools:
    """Executes web_search and browse_url."""

    def __init__(
        self,
        config: NetworkConfig | None = None,
        client: httpx.AsyncClient | None = None,
        extractor: ContentExtractor | None = None,
        backends: Sequence[SearchBackend] | None = None,
        search_cache: TTLCache[WebSearchResult] | None = None,
        browse_cache: TTLCache[BrowseResult] | None = None,
    ) -> None:
        self.config = config or NetworkConfig()
        self.gate = OfflineGate(self.config.offline, self.config.privacy_mode)
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(headers={"User-Agent": self.config.user_agent})
        self.extractor = extractor or HttpContentExtractor(self.client, self.config.fetch_timeout_seconds)
        self.backends: list[SearchBackend] = list(backends) if backends is not None else [
            InstantAnswerSearch(self.client, self.config.search_timeout_seconds),
            HtmlSearch(self.extractor),
        ]
        # An empty cache is falsy, so test for None explicitly.
        if search_cache is None:
            search_cache = TTLCache(self.config.cache_capacity, self.config.cache_ttl_seconds)
        if browse_cache is None:
            browse_cache = TTLCache(self.config.cache_capacity, self.config.cache_ttl_seconds)
        self.search_cache = search_cache
        self.browse_cache = browse_cache

    async def web_search(
        self,
        query: str,
        k: int,
        refresh: bool = False,
        token: CancellationToken | None = None,
        on_cache_hit: Callable[[str], None] | None = None,
    ) -> WebSearchResult:
        self.gate.ensure_available("Web search")

        key = f"search:{query}:{k}"
        if refresh:
            self.search_cache.invalidate(key)
        else:
            cached = self.search_cache.get(key)
            if cached is not None:
                if on_cache_hit:
                    on_cache_hit(key)
                return cached

        errors: list[str] = []
        for backend in self.backends:
            for attempt in range(2):
                if token is not None and token.is_cancelled:
                    raise ExecutionError("Web search was interrupted.")
                try:
                    hits = await backend.search(query, k)
                except (httpx.HTTPError, ExecutionError) as e:
                    message = error_message(e)
                    errors.append(f"{backend.name}: {message}")
                    if attempt == 0 and is_transient_error(e):
                        logger.warning(f"{backend.name} failed transiently, retrying: {message}")
                        if token is not None:
                            await token.sleep(self.config.retry_delay_seconds)
                        else:
                            await asyncio.sleep(self.config.retry_delay_seconds)
                        continue
                    logger.warning(f"{backend.name} failed: {message}")
                    break
                result = WebSearchResult(results=hits)
                self.search_cache.set(key, result)
                return result

        raise ExecutionError(
            f"Web search failed: {'; '.join(errors) or 'Unknown error'}. This could be due to "
            "network issues or all search services being temporarily unavailable. "
            "Please check your internet connection and try again."
        )

    async def browse_url(
        self,
        url: str,
        refresh: bool = False,
        token: CancellationToken | None = None,
        on_cache_hit: Callable[[str], None] | None = None,
        _follow_redirect: bool = True,
    ) -> BrowseResult:
        self.gate.ensure_available("URL browsing")

        key = f"browse:{url}"
        if refresh:
            self.browse_cache.invalidate(key)
        else:
            cached = self.browse_cache.get(key)
            if cached is not None:
                if on_cache_hit:
                    on_cache_hit(key)
                return cached

        if self.config.headless_browsing:
            extracted = await self.extractor.extract(url)
            if extracted.status == "ok" and extracted.text:
                first_line = extracted.text.split("\n", 1)[0][:200]
                title = first_line.lstrip("#").strip()[:100] or None
                result = BrowseResult(
                    content=cap_content(extracted.text, self.config.max_browse_chars),
                    url=url,
                    title=title,
                )
                self.browse_cache.set(key, result)
                return result
            target = extracted.redirect_url
            if (
                extracted.status == "redirect"
                and _follow_redirect
                and target
                and target.startswith(("http://", "https://"))
            ):
                logger.debug(f"Following redirect {url} -> {target}")
                return await self.browse_url(
                    target, refresh, token, on_cache_hit, _follow_redirect=False
                )
            logger.info(f"Content extractor gave {extracted.status} for {url}, fetching directly")

        if token is not None and token.is_cancelled:
            raise ExecutionError(f"Browsing {url} was interrupted.")
        try:
            result = await self._fetch_and_strip(url)
        except (httpx.HTTPError, ExecutionError) as e:
            raise ExecutionError(
                f"Failed to browse URL {url}: {error_message(e)}. "
                "Please check the URL and your internet connection."
            ) from e
        self.browse_cache.set(key, result)
        return result

    async def _fetch_and_strip(self, url: str) -> BrowseResult:
        response = await self.client.get(
            url, follow_redirects=True, timeout=self.config.fetch_timeout_seconds
        )
        response.raise_for_status()
        html = response.text
        if not html.strip():
            raise ExecutionError("Failed to fetch page content")
        text, title, published = html_to_text(html)
        return BrowseResult(
            content=cap_content(text, self.config.max_browse_chars),
            url=url,
            title=title,
            published_date=published,
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()
