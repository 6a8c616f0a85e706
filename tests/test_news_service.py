import asyncio

import aiohttp

from techmaster.services.news_service import (
    FALLBACK_SOURCE,
    FALLBACK_TITLE,
    FALLBACK_TOPICS,
    NewsService,
)
from techmaster.utils.error_monitoring import ErrorMonitor

from conftest import FakeResponse, FakeSession


def article(n: int, published="2026-10-18T14:30:00Z"):
    return {
        "source": {"id": None, "name": f"Outlet {n}"},
        "title": f"Headline {n}",
        "description": f"Description {n}",
        "url": f"https://example.com/{n}",
        "publishedAt": published,
    }


def fetch(session, rng=None, monitor=None):
    service = NewsService("key", session=session, rng=rng, error_monitor=monitor)
    return asyncio.run(service.fetch_news())


class TestNewsService:
    def test_success_caps_at_three(self):
        """A healthy feed yields at most three items in feed order."""
        session = FakeSession(FakeResponse(200, {"status": "ok", "articles": [article(i) for i in range(5)]}))
        items = fetch(session)
        assert [item.title for item in items] == ["Headline 0", "Headline 1", "Headline 2"]
        assert items[0].source == "Outlet 0"
        assert items[0].url == "https://example.com/0"

    def test_published_date_formatted(self):
        """publishedAt is shown as a US short date in the configured timezone."""
        session = FakeSession(FakeResponse(200, {"articles": [article(1, "2026-10-18T14:30:00Z")]}))
        assert fetch(session)[0].published_at == "10/18/2026"

    def test_request_parameters(self):
        """The query is restricted to the tech domains and sorted by date."""
        session = FakeSession(FakeResponse(200, {"articles": [article(1)]}))
        fetch(session)
        call = session.calls[0]
        assert call["url"] == NewsService.BASE_URL
        assert call["params"]["sortBy"] == "publishedAt"
        assert call["params"]["pageSize"] == "5"
        assert "techcrunch.com" in call["params"]["domains"]
        assert call["params"]["apiKey"] == "key"

    def test_http_500_falls_back(self, rng):
        """A server error gives exactly one synthetic item."""
        monitor = ErrorMonitor()
        session = FakeSession(FakeResponse(500, text="boom"))
        items = fetch(session, rng=rng, monitor=monitor)
        assert len(items) == 1
        assert items[0].source == FALLBACK_SOURCE
        assert items[0].title == FALLBACK_TITLE
        assert items[0].url == "#"
        assert items[0].description in FALLBACK_TOPICS
        assert monitor.stages_failed() == ["news_fetch"]

    def test_network_error_falls_back(self):
        """Connection failures are absorbed."""
        session = FakeSession(FakeResponse(raises=aiohttp.ClientConnectionError("refused")))
        items = fetch(session)
        assert [item.source for item in items] == [FALLBACK_SOURCE]

    def test_missing_articles_falls_back(self):
        """A body without an articles list is treated as unusable."""
        session = FakeSession(FakeResponse(200, {"status": "error", "message": "rate limited"}))
        assert fetch(session)[0].source == FALLBACK_SOURCE

    def test_empty_articles_falls_back(self):
        """An empty result set still produces one item."""
        session = FakeSession(FakeResponse(200, {"articles": []}))
        assert len(fetch(session)) == 1

    def test_non_json_body_falls_back(self):
        """An HTML error page with status 200 is absorbed."""
        session = FakeSession(FakeResponse(200, text="<html>oops</html>"))
        assert fetch(session)[0].source == FALLBACK_SOURCE

    def test_missing_source_name(self):
        """Articles without a source name are labelled Unknown Source."""
        raw = article(1)
        raw["source"] = None
        session = FakeSession(FakeResponse(200, {"articles": [raw]}))
        assert fetch(session)[0].source == "Unknown Source"

    def test_injected_session_not_closed(self):
        """The caller keeps ownership of an injected session."""
        session = FakeSession(FakeResponse(200, {"articles": [article(1)]}))
        service = NewsService("key", session=session)

        async def run():
            async with service:
                await service.fetch_news()

        asyncio.run(run())
        assert session.closed is False
