import logging
from typing import Any, Dict, List, Optional, Sequence

from techmaster.models.content import SECTION_KEYS, TECH_NEWS_TITLE, NewsItem, NewsletterContent
from techmaster.services.ai_service import AIService
from techmaster.services.content_pools import ContentPools
from techmaster.services.news_service import NewsService
from techmaster.services.prompt_builder import PromptBuilder
from techmaster.utils.error_monitoring import (
    ErrorMonitor,
    MalformedPayloadError,
    PartialContentError,
    UpstreamUnavailableError,
)
from techmaster.utils.json_repair import parse_json_payload


OUTCOME_GENERATED = "generated"
OUTCOME_PARTIAL = "partial"
OUTCOME_FALLBACK = "fallback"


class ContentAssembler:
    """
    Builds one complete NewsletterContent per run.

    The fallback chain is: live news, generated sections, tolerant parse,
    per-section backfill from the pools, and finally a full pool-drawn issue.
    ``assemble`` has no error exit; every failure is recorded on the
    ``ErrorMonitor`` and degrades the content instead.
    """

    def __init__(
        self,
        news_service: NewsService,
        ai_service: AIService,
        prompt_builder: PromptBuilder,
        pools: Optional[ContentPools] = None,
        error_monitor: Optional[ErrorMonitor] = None,
    ) -> None:
        self.news_service = news_service
        self.ai_service = ai_service
        self.prompt_builder = prompt_builder
        self.pools = pools or ContentPools()
        self.error_monitor = error_monitor or ErrorMonitor()
        self.logger = logging.getLogger(__name__)

        self.last_outcome: Optional[str] = None
        self.last_backfilled: List[str] = []

    async def assemble(self) -> NewsletterContent:
        self.last_backfilled = []

        self.logger.info("📰 Fetching latest tech news...")
        news = await self._fetch_news()

        self.logger.info("🤖 Generating comprehensive newsletter content...")
        try:
            data = await self._generate_sections(news)
        except (UpstreamUnavailableError, MalformedPayloadError) as e:
            self.error_monitor.record(e, stage="generation", operation="assemble")
            return self._full_fallback(news)
        except Exception as e:  # noqa: BLE001
            self.error_monitor.record(e, stage="generation", operation="assemble")
            self.logger.error("Unexpected content generation error: %s", e, exc_info=True)
            return self._full_fallback(news)

        return self._merge_generated(data, news)

    async def _fetch_news(self) -> List[NewsItem]:
        try:
            return list(await self.news_service.fetch_news())
        except Exception as e:  # noqa: BLE001
            self.error_monitor.record(e, stage="news_fetch", operation="assemble")
            return []

    async def _generate_sections(self, news: Sequence[NewsItem]) -> Dict[str, Any]:
        prompt = self.prompt_builder.build_prompt(news)
        response = await self.ai_service.generate(prompt)
        if not response.success:
            if isinstance(response.error, (UpstreamUnavailableError, MalformedPayloadError)):
                raise response.error
            raise UpstreamUnavailableError(response.error_message or "Generation service call failed")
        return parse_json_payload(response.content)

    def _merge_generated(self, data: Dict[str, Any], news: Sequence[NewsItem]) -> NewsletterContent:
        content = NewsletterContent()

        tech_news = data.get("techNews")
        if isinstance(tech_news, dict):
            tech_news = dict(tech_news)
            stories = tech_news.get("stories")
            tech_news["stories"] = [s for s in stories if isinstance(s, dict)] if isinstance(stories, list) else []
            tech_news.setdefault("title", TECH_NEWS_TITLE)
            tech_news["realNews"] = list(news)
        else:
            self.logger.warning('⚠️ AI response was missing "techNews" section. Creating fallback.')
            tech_news = {"title": TECH_NEWS_TITLE, "stories": [], "realNews": list(news)}
        content.tech_news = tech_news

        missing: List[str] = []
        for key in SECTION_KEYS:
            if key == "techNews":
                continue
            section = data.get(key)
            if isinstance(section, dict) and section:
                content.set_section(key, dict(section))
            else:
                content.set_section(key, self.pools.pick_for_section(key))
                missing.append(key)

        if missing:
            self.error_monitor.record(
                PartialContentError(missing),
                stage="validation",
                operation="assemble",
                context={"backfilled": missing},
            )
            self.last_outcome = OUTCOME_PARTIAL
        else:
            self.last_outcome = OUTCOME_GENERATED
        self.last_backfilled = missing

        self.logger.info(
            "✅ Content generated successfully (%d sections backfilled from pools)", len(missing)
        )
        return content

    def _full_fallback(self, news: Sequence[NewsItem]) -> NewsletterContent:
        self.logger.warning("❌ Failed to generate content. Using fallback content.")
        content = NewsletterContent(tech_news=self.pools.fallback_tech_news(news))
        for key, picker in self.pools.pickers().items():
            content.set_section(key, picker())

        self.last_outcome = OUTCOME_FALLBACK
        self.last_backfilled = [key for key in SECTION_KEYS if key != "techNews"]
        return content
