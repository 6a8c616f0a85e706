"""
News feed service for the tech news section.
Fetches the latest technology articles from NewsAPI and substitutes a
synthetic spotlight item whenever the feed cannot be used.
"""

import asyncio
import logging
import random
import ssl
from datetime import datetime
from typing import Any, Dict, List, Optional

import aiohttp
import certifi
import pytz
from dateutil import parser as dateutil_parser

from techmaster.models.content import NewsItem
from techmaster.utils.error_monitoring import (
    ErrorMonitor,
    MalformedPayloadError,
    UpstreamUnavailableError,
)


FALLBACK_TOPICS = (
    "Latest advancements in AI and Machine Learning are revolutionizing industries from healthcare to autonomous vehicles.",
    "Cloud computing trends show serverless architecture gaining massive adoption among Fortune 500 companies.",
    "Quantum computing breakthroughs are bringing us closer to solving complex problems in cryptography and drug discovery.",
)
FALLBACK_TITLE = "Tech Industry Spotlight"
FALLBACK_SOURCE = "TechMaster Insights"
FALLBACK_URL = "#"


def format_locale_date(value: datetime) -> str:
    """US locale short date, e.g. 10/19/2026."""
    return f"{value.month}/{value.day}/{value.year}"


class NewsService:
    """
    Service for fetching recent tech headlines from NewsAPI.

    ``fetch_news`` never raises: every failure is recorded and answered with
    a single synthetic item.
    """

    BASE_URL = "https://newsapi.org/v2/everything"
    QUERY = "technology OR AI OR programming OR software"
    DOMAINS = ("techcrunch.com", "arstechnica.com", "wired.com", "theverge.com")
    PAGE_SIZE = 5
    MAX_ITEMS = 3

    def __init__(
        self,
        api_key: str,
        session: Optional[aiohttp.ClientSession] = None,
        rng: Optional[random.Random] = None,
        timezone: str = "America/New_York",
        error_monitor: Optional[ErrorMonitor] = None,
    ):
        self.api_key = api_key
        self.rng = rng or random.Random()
        self.tz = pytz.timezone(timezone)
        self.error_monitor = error_monitor or ErrorMonitor()
        self.logger = logging.getLogger(__name__)

        # An injected session belongs to the caller and is never closed here
        self.session: Optional[aiohttp.ClientSession] = session
        self._owns_session = session is None
        self.timeout = aiohttp.ClientTimeout(total=30)

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp ClientSession with proper SSL configuration."""
        if self.session is None or self.session.closed:
            ssl_context = ssl.create_default_context(cafile=certifi.where())
            connector = aiohttp.TCPConnector(ssl=ssl_context)
            self.session = aiohttp.ClientSession(timeout=self.timeout, connector=connector)
            self._owns_session = True
        return self.session

    async def close_session(self):
        """Close aiohttp session for cleanup."""
        if self._owns_session and self.session and not self.session.closed:
            await self.session.close()
            self.session = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close_session()
        return False

    def _build_params(self) -> Dict[str, str]:
        return {
            "q": self.QUERY,
            "domains": ",".join(self.DOMAINS),
            "sortBy": "publishedAt",
            "pageSize": str(self.PAGE_SIZE),
            "apiKey": self.api_key,
        }

    async def fetch_news(self) -> List[NewsItem]:
        """Return 1 to 3 news items, falling back to a synthetic item."""
        try:
            articles = await self._fetch_articles()
            items = [self._to_news_item(a) for a in articles if isinstance(a, dict)][: self.MAX_ITEMS]
            if not items:
                raise MalformedPayloadError("News feed returned no usable articles")
        except Exception as e:  # noqa: BLE001
            self.error_monitor.record(e, stage="news_fetch", operation="fetch_news")
            self.logger.warning("NewsAPI unavailable (%s), using fallback sources...", e)
            return self._fallback_news()

        self.logger.info("Fetched %d tech news items from NewsAPI", len(items))
        return items

    async def _fetch_articles(self) -> List[Any]:
        session = await self._get_session()
        try:
            async with session.get(self.BASE_URL, params=self._build_params()) as response:
                if not 200 <= response.status < 300:
                    body = await response.text()
                    raise UpstreamUnavailableError(
                        f"News feed returned HTTP {response.status}: {body[:200]}"
                    )
                try:
                    data = await response.json(content_type=None)
                except ValueError as e:
                    raise MalformedPayloadError(f"News feed body is not JSON: {e}") from e
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise UpstreamUnavailableError(f"News feed request failed: {e}") from e

        articles = data.get("articles") if isinstance(data, dict) else None
        if not isinstance(articles, list):
            raise MalformedPayloadError("News feed response has no 'articles' list")
        return articles

    def _to_news_item(self, article: Dict[str, Any]) -> NewsItem:
        source = article.get("source")
        source_name = source.get("name") if isinstance(source, dict) else None
        return NewsItem(
            title=article.get("title") or "",
            description=article.get("description") or "",
            url=article.get("url") or "",
            published_at=self._format_published(article.get("publishedAt")),
            source=source_name or "Unknown Source",
        )

    def _format_published(self, raw: Any) -> str:
        if not isinstance(raw, str) or not raw:
            return format_locale_date(datetime.now(self.tz))
        try:
            dt = dateutil_parser.isoparse(raw)
        except (ValueError, OverflowError):
            return raw
        if dt.tzinfo is not None:
            dt = dt.astimezone(self.tz)
        return format_locale_date(dt)

    def _fallback_news(self) -> List[NewsItem]:
        return [
            NewsItem(
                title=FALLBACK_TITLE,
                description=self.rng.choice(FALLBACK_TOPICS),
                url=FALLBACK_URL,
                published_at=format_locale_date(datetime.now(self.tz)),
                source=FALLBACK_SOURCE,
            )
        ]
