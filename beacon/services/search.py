"""
Web Search Augmenter

Live web context from the Brave Search API, scored for technical
relevance and recency.

Pipeline per search:
    1. Append a programming disambiguator when the query names no
       software technology.
    2. Pull news results too when asked to, or when the query contains a
       recency/change term ("release", "deprecated", "changelog", ...).
    3. One GET to the search API; the response is validated with pydantic.
    4. Drop excluded domains, then (if an allow list is given) keep only
       allowed domains.
    5. Score each result and sort descending.

Scoring: 0.5 base, +0.3 per query term in the title, +0.1 per query term
in the description, +0.2 for a curated technical domain, +0.1 when dated
within roughly six months; capped at 1.0.
"""

from __future__ import annotations

import logging
import re
import time
from collections.abc import Callable, Sequence
from datetime import UTC, datetime, timedelta
from typing import Final, Literal
from urllib.parse import urlparse

import httpx
from pydantic import BaseModel, Field, ValidationError

from beacon.core.exceptions import InputError, SearchServiceError
from beacon.core.keywords import KeywordTable, contains_any
from beacon.models.schemas import SearchAnalytics, WebResult

logger = logging.getLogger(__name__)

BRAVE_BASE_URL: Final[str] = "https://api.search.brave.com/res/v1/web/search"
QUERY_DISAMBIGUATOR: Final[str] = "programming development"

BASE_SCORE: Final[float] = 0.5
TITLE_MATCH_BOOST: Final[float] = 0.3
DESCRIPTION_MATCH_BOOST: Final[float] = 0.1
TECHNICAL_DOMAIN_BOOST: Final[float] = 0.2
RECENCY_BOOST: Final[float] = 0.1
RECENT_WINDOW: Final[timedelta] = timedelta(days=183)

_RELATIVE_AGE = re.compile(r"^(\d+)\s+(minute|hour|day|week|month|year)s?\s+ago$")
_UNIT_DAYS: Final[dict[str, float]] = {
    "minute": 1 / 1440,
    "hour": 1 / 24,
    "day": 1,
    "week": 7,
    "month": 30,
    "year": 365,
}

Freshness = Literal["pd", "pw", "pm", "py"]


# ---------------------------------------------------------------------------
# Brave API response models
# ---------------------------------------------------------------------------


class BraveWebResult(BaseModel):
    title: str
    url: str
    description: str = ""
    date: str | None = None
    page_age: str | None = None
    age: str | None = None
    extra_snippets: list[str] | None = None


class BraveNewsResult(BaseModel):
    title: str
    url: str
    description: str = ""
    date: str | None = None
    page_age: str | None = None
    age: str | None = None
    source: str | None = None


class BraveWebSection(BaseModel):
    results: list[BraveWebResult] = Field(default_factory=list)


class BraveNewsSection(BaseModel):
    results: list[BraveNewsResult] = Field(default_factory=list)


class BraveQueryInfo(BaseModel):
    original: str = ""
    altered: str | None = None
    is_navigational: bool = False
    is_news_breaking: bool | None = None


class BraveSearchResponse(BaseModel):
    web: BraveWebSection | None = None
    news: BraveNewsSection | None = None
    query: BraveQueryInfo = Field(default_factory=BraveQueryInfo)


# ---------------------------------------------------------------------------
# Public request / response models
# ---------------------------------------------------------------------------


class SearchOptions(BaseModel):
    """Knobs of a single web search."""

    count: int = Field(default=10, ge=1, le=20)
    safesearch: Literal["off", "moderate", "strict"] = "moderate"
    freshness: Freshness | None = None
    include_news: bool = False
    domain_filter: list[str] | None = None
    exclude_domains: list[str] | None = None


class SearchResponse(BaseModel):
    results: list[WebResult]
    analytics: SearchAnalytics


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def extract_domain(url: str) -> str:
    """Hostname of ``url`` without a leading ``www.`` (the raw URL if unparsable)."""
    hostname = urlparse(url).hostname
    if not hostname:
        return url
    return hostname.removeprefix("www.")


def parse_result_date(value: str | None, now: datetime) -> datetime | None:
    """
    Best-effort parse of a result date.

    Accepts ISO-8601 timestamps, "March 3, 2024" style dates and relative
    ages such as "3 days ago". Returns None for anything else.
    """
    if not value:
        return None
    text = value.strip()

    relative = _RELATIVE_AGE.match(text.lower())
    if relative:
        amount, unit = int(relative.group(1)), relative.group(2)
        return now - timedelta(days=amount * _UNIT_DAYS[unit])

    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        for fmt in ("%B %d, %Y", "%b %d, %Y", "%Y-%m-%d"):
            try:
                parsed = datetime.strptime(text, fmt)
                break
            except ValueError:
                continue
        else:
            return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


class WebSearchClient:
    """
    Brave Search client with technical relevance scoring.

    Usage::

        async with httpx.AsyncClient(timeout=10.0) as http:
            client = WebSearchClient(http, api_key="...", keywords=table)
            response = await client.search_web("react server components")
            for result in response.results:
                print(result.relevance_score, result.url)

    Args:
        http_client: Shared ``httpx.AsyncClient`` (owned by the caller).
        api_key: Brave subscription token.
        keywords: Keyword table (news terms, software context, domains).
        base_url: Search endpoint.
        now: Clock used for recency checks (injected for tests).
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        api_key: str | None,
        keywords: KeywordTable,
        base_url: str = BRAVE_BASE_URL,
        now: Callable[[], datetime] = lambda: datetime.now(UTC),
    ) -> None:
        self._http = http_client
        self._api_key = api_key
        self._keywords = keywords
        self._base_url = base_url
        self._now = now

    @property
    def enabled(self) -> bool:
        return bool(self._api_key)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def search_web(
        self,
        query: str,
        options: SearchOptions | None = None,
    ) -> SearchResponse:
        """
        Run one web search and return scored, filtered, sorted results.

        Raises:
            InputError: If the query is blank.
            SearchServiceError: On missing credentials, transport or HTTP
                failure, or an unexpected response shape.
        """
        options = options or SearchOptions()
        trimmed = query.strip()
        if not trimmed:
            raise InputError("Search query cannot be empty")
        if not self._api_key:
            raise SearchServiceError("BRAVE_API_KEY is not configured")

        start = time.perf_counter()
        enhanced = self.enhance_query(trimmed)
        include_news = options.include_news or contains_any(
            enhanced, self._keywords.news
        )

        params: dict[str, str] = {
            "q": enhanced,
            "count": str(options.count),
            "safesearch": options.safesearch,
            "result_filter": "web,news" if include_news else "web",
        }
        if options.freshness:
            params["freshness"] = options.freshness

        data = await self._fetch(params)
        results = self._process_results(data, trimmed, options)

        analytics = SearchAnalytics(
            query=enhanced,
            total_results=len(results),
            web_results=sum(1 for r in results if r.type == "web"),
            news_results=sum(1 for r in results if r.type == "news"),
            processing_time_ms=int((time.perf_counter() - start) * 1000),
            is_navigational=data.query.is_navigational,
            is_breaking_news=data.query.is_news_breaking,
            suggested_query=data.query.altered,
        )
        logger.info(
            "Search completed: %d results in %dms",
            analytics.total_results,
            analytics.processing_time_ms,
        )
        return SearchResponse(results=results, analytics=analytics)

    async def search_software_engineering(
        self,
        query: str,
        **overrides: object,
    ) -> SearchResponse:
        """Search scoped to the curated engineering domains (15 results)."""
        options = SearchOptions.model_validate(
            {
                "count": 15,
                "domain_filter": list(self._keywords.technical_domains),
                "include_news": False,
                **overrides,
            }
        )
        return await self.search_web(query, options)

    async def search_recent_tech(
        self,
        query: str,
        timeframe: Freshness = "pw",
    ) -> SearchResponse:
        """Recent news and updates within ``timeframe`` (20 results)."""
        options = SearchOptions(freshness=timeframe, include_news=True, count=20)
        return await self.search_web(query, options)

    def enhance_query(self, query: str) -> str:
        """Append the programming disambiguator unless the query names a technology."""
        if contains_any(query, self._keywords.software_context):
            return query
        return f"{query} {QUERY_DISAMBIGUATOR}"

    def relevance_score(
        self,
        query: str,
        title: str,
        description: str,
        url: str,
        date: str | None,
    ) -> float:
        score = BASE_SCORE
        title_lower = title.lower()
        description_lower = description.lower()

        for term in query.lower().split():
            if term in title_lower:
                score += TITLE_MATCH_BOOST
            if term in description_lower:
                score += DESCRIPTION_MATCH_BOOST

        if self._is_technical_domain(extract_domain(url)):
            score += TECHNICAL_DOMAIN_BOOST
        if self.is_recent(date):
            score += RECENCY_BOOST

        return min(score, 1.0)

    def is_recent(self, date: str | None) -> bool:
        now = self._now()
        parsed = parse_result_date(date, now)
        return parsed is not None and parsed >= now - RECENT_WINDOW

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _fetch(self, params: dict[str, str]) -> BraveSearchResponse:
        headers = {
            "Accept": "application/json",
            "X-Subscription-Token": self._api_key or "",
        }
        try:
            response = await self._http.get(
                self._base_url, params=params, headers=headers
            )
            response.raise_for_status()
            return BraveSearchResponse.model_validate(response.json())
        except httpx.HTTPStatusError as e:
            logger.error(
                "Search API error %d: %s", e.response.status_code, e.response.text
            )
            raise SearchServiceError(f"HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise SearchServiceError(f"{type(e).__name__}: {e}") from e
        except (ValidationError, ValueError) as e:
            raise SearchServiceError(f"unexpected response: {e}") from e

    def _process_results(
        self,
        data: BraveSearchResponse,
        query: str,
        options: SearchOptions,
    ) -> list[WebResult]:
        results: list[WebResult] = []

        for item in data.web.results if data.web else []:
            if not self._should_include(item.url, options):
                continue
            date = item.date or item.page_age or item.age
            results.append(
                WebResult(
                    title=item.title,
                    url=item.url,
                    description=item.description,
                    date=date,
                    source=extract_domain(item.url),
                    type="web",
                    relevance_score=self.relevance_score(
                        query, item.title, item.description, item.url, date
                    ),
                    is_technical=self._is_technical_content(
                        item.title, item.description
                    ),
                    is_recent=self.is_recent(date),
                    snippet=item.extra_snippets[0] if item.extra_snippets else None,
                )
            )

        for item in data.news.results if data.news else []:
            if not self._should_include(item.url, options):
                continue
            date = item.date or item.page_age or item.age
            results.append(
                WebResult(
                    title=item.title,
                    url=item.url,
                    description=item.description,
                    date=date,
                    source=item.source or extract_domain(item.url),
                    type="news",
                    relevance_score=self.relevance_score(
                        query, item.title, item.description, item.url, date
                    ),
                    is_technical=self._is_technical_content(
                        item.title, item.description
                    ),
                    is_recent=self.is_recent(date),
                )
            )

        # sorted() is stable: equal scores keep API order
        return sorted(results, key=lambda r: r.relevance_score, reverse=True)

    @staticmethod
    def _should_include(url: str, options: SearchOptions) -> bool:
        domain = extract_domain(url)
        if options.exclude_domains and _domain_in(domain, options.exclude_domains):
            return False
        if options.domain_filter:
            return _domain_in(domain, options.domain_filter)
        return True

    def _is_technical_domain(self, domain: str) -> bool:
        return _domain_in(domain, self._keywords.technical_domains)

    def _is_technical_content(self, title: str, description: str) -> bool:
        return contains_any(f"{title} {description}", self._keywords.technical_terms)


def _domain_in(domain: str, domains: Sequence[str]) -> bool:
    lowered = domain.lower()
    return any(candidate.lower() in lowered for candidate in domains)
