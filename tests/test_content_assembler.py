import asyncio
import json
import random

from techmaster.models.content import SECTION_KEYS
from techmaster.pipeline.content_assembler import (
    OUTCOME_FALLBACK,
    OUTCOME_GENERATED,
    OUTCOME_PARTIAL,
    ContentAssembler,
)
from techmaster.services.ai_service import AIResponse, AIService
from techmaster.services.content_pools import FALLBACK_TECH_STORY, SECTION_POOLS, ContentPools
from techmaster.services.prompt_builder import PromptBuilder
from techmaster.utils.error_monitoring import ErrorMonitor, UpstreamUnavailableError

from conftest import FakeResponse, FakeSession, chat_completion


class StubNews:
    def __init__(self, items=None, error=None):
        self.items = items or []
        self.error = error

    async def fetch_news(self):
        if self.error:
            raise self.error
        return list(self.items)


class StubAI:
    def __init__(self, content=None, success=True, error=None):
        self.content = content
        self.success = success
        self.error = error
        self.prompts = []

    async def generate(self, prompt):
        self.prompts.append(prompt)
        return AIResponse(
            content=self.content,
            model="stub",
            tokens_used=0,
            response_time_ms=1.0,
            temperature=0.8,
            success=self.success,
            error_message=None if self.success else "generation failed",
            error=self.error,
        )


def assemble(news, ai, rng, monitor=None):
    assembler = ContentAssembler(
        news, ai, PromptBuilder(), pools=ContentPools(rng), error_monitor=monitor or ErrorMonitor()
    )
    content = asyncio.run(assembler.assemble())
    return assembler, content


def pool_bodies(key):
    return [dict(entry) for entry in SECTION_POOLS[key]]


def without_title(section):
    return {k: v for k, v in section.items() if k != "title"}


class TestAssembleGenerated:
    def test_all_sections_from_generation(self, news_items, generated_sections, rng):
        """A complete generation result is used as-is."""
        ai = StubAI(json.dumps(generated_sections))
        assembler, content = assemble(StubNews(news_items), ai, rng)
        assert assembler.last_outcome == OUTCOME_GENERATED
        assert assembler.last_backfilled == []
        assert content.dsa_challenge == generated_sections["dsaChallenge"]
        assert content.tech_news["stories"] == generated_sections["techNews"]["stories"]
        assert content.tech_news["realNews"] == news_items

    def test_prompt_built_from_news(self, news_items, generated_sections, rng):
        """The generation call receives the news context."""
        ai = StubAI(json.dumps(generated_sections))
        assemble(StubNews(news_items), ai, rng)
        assert news_items[0].title in ai.prompts[0]

    def test_trailing_commas_tolerated(self, news_items, generated_sections, rng):
        """A trailing comma in the generated JSON does not trigger fallback."""
        text = json.dumps(generated_sections, indent=2)
        dirty = text[:-2] + ",\n}"
        assembler, content = assemble(StubNews(news_items), StubAI(dirty), rng)
        assert assembler.last_outcome == OUTCOME_GENERATED
        assert content.motivational_quote["author"] == "Edsger W. Dijkstra"

    def test_through_real_client(self, news_items, generated_sections, rng):
        """The assembler works end to end with the HTTP generation client."""
        session = FakeSession(FakeResponse(200, chat_completion(json.dumps(generated_sections))))
        ai = AIService("sk-test", session=session)
        assembler, content = assemble(StubNews(news_items), ai, rng)
        assert assembler.last_outcome == OUTCOME_GENERATED
        assert content.oops_concepts["principle"] == "Encapsulation"


class TestAssemblePartial:
    def test_missing_tech_news(self, news_items, generated_sections, rng):
        """Valid JSON without techNews gets empty stories and the real news."""
        del generated_sections["techNews"]
        _, content = assemble(StubNews(news_items), StubAI(json.dumps(generated_sections)), rng)
        assert content.tech_news["stories"] == []
        assert content.tech_news["realNews"] == news_items

    def test_missing_sections_backfilled(self, news_items, generated_sections, rng):
        """Absent or empty sections are drawn from their pools."""
        del generated_sections["osExplained"]
        generated_sections["aptitudeCorner"] = {}
        generated_sections["communicationTips"] = "not an object"
        monitor = ErrorMonitor()
        assembler, content = assemble(
            StubNews(news_items), StubAI(json.dumps(generated_sections)), rng, monitor
        )
        assert assembler.last_outcome == OUTCOME_PARTIAL
        assert sorted(assembler.last_backfilled) == ["aptitudeCorner", "communicationTips", "osExplained"]
        assert without_title(content.os_explained) in pool_bodies("osExplained")
        assert without_title(content.aptitude_corner) in pool_bodies("aptitudeCorner")
        assert without_title(content.communication_tips) in pool_bodies("communicationTips")
        assert content.dsa_challenge == generated_sections["dsaChallenge"]
        assert "validation" in monitor.stages_failed()

    def test_non_dict_stories_dropped(self, news_items, generated_sections, rng):
        """Only object stories survive."""
        generated_sections["techNews"]["stories"].append("stray text")
        _, content = assemble(StubNews(news_items), StubAI(json.dumps(generated_sections)), rng)
        assert len(content.tech_news["stories"]) == 1


class TestAssembleFallback:
    def test_generation_failure(self, news_items, rng):
        """A failed generation call yields a fully pool-drawn issue."""
        monitor = ErrorMonitor()
        ai = StubAI(success=False, error=UpstreamUnavailableError("HTTP 503"))
        assembler, content = assemble(StubNews(news_items), ai, rng, monitor)
        assert assembler.last_outcome == OUTCOME_FALLBACK
        assert content.tech_news["stories"] == [dict(FALLBACK_TECH_STORY)]
        assert content.tech_news["realNews"] == news_items
        assert content.dsa_challenge["leetCodeInfo"] in {
            "LeetCode #1. Two Sum - Easy",
            "LeetCode #121. Best Time to Buy and Sell Stock - Easy",
        }
        for key in SECTION_POOLS:
            assert without_title(content.section(key)) in pool_bodies(key)
        assert monitor.stages_failed() == ["generation"]

    def test_unparseable_reply(self, news_items, rng):
        """Prose instead of JSON falls back."""
        assembler, content = assemble(StubNews(news_items), StubAI("I cannot help with that."), rng)
        assert assembler.last_outcome == OUTCOME_FALLBACK
        assert content.tech_news["stories"] == [dict(FALLBACK_TECH_STORY)]

    def test_unexpected_exception(self, news_items, rng):
        """Any error from the client still produces content."""

        class ExplodingAI:
            async def generate(self, prompt):
                raise RuntimeError("kaboom")

        assembler, content = assemble(StubNews(news_items), ExplodingAI(), rng)
        assert assembler.last_outcome == OUTCOME_FALLBACK
        assert content.motivational_quote

    def test_news_service_error(self, rng):
        """A raising news source is treated as no news."""
        ai = StubAI(success=False)
        _, content = assemble(StubNews(error=RuntimeError("down")), ai, rng)
        assert content.tech_news["realNews"] == []

    def test_every_section_present(self, news_items, rng):
        """All nine sections are non-empty after a fallback."""
        _, content = assemble(StubNews(news_items), StubAI(success=False), rng)
        for key in SECTION_KEYS:
            assert content.section(key)

    def test_seeded_fallback_repeats(self, news_items):
        """Identical seeds give identical fallback issues."""
        _, first = assemble(StubNews(news_items), StubAI(success=False), random.Random(99))
        _, second = assemble(StubNews(news_items), StubAI(success=False), random.Random(99))
        assert first == second
