import json
import random
from typing import Any, Dict, List, Optional

import pytest

from techmaster.models.content import NewsItem


class FakeResponse:
    """Stands in for aiohttp.ClientResponse inside ``async with``."""

    def __init__(self, status: int = 200, payload: Any = None, text: Optional[str] = None, raises: Exception = None):
        self.status = status
        self._payload = payload
        self._text = text if text is not None else json.dumps(payload)
        self._raises = raises

    async def __aenter__(self):
        if self._raises is not None:
            raise self._raises
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    async def text(self) -> str:
        return self._text

    async def json(self, content_type=None):
        return json.loads(self._text)


class FakeSession:
    """Records requests and hands back queued FakeResponses."""

    def __init__(self, *responses: FakeResponse):
        self.responses = list(responses)
        self.calls: List[Dict[str, Any]] = []
        self.closed = False

    def _next(self, method: str, url: str, **kwargs) -> FakeResponse:
        self.calls.append({"method": method, "url": url, **kwargs})
        return self.responses.pop(0)

    def get(self, url, **kwargs):
        return self._next("GET", url, **kwargs)

    def post(self, url, **kwargs):
        return self._next("POST", url, **kwargs)

    async def close(self):
        self.closed = True


class FakeTransport:
    """Mail transport double; addresses in ``fail_for`` raise."""

    def __init__(self, fail_for=()):
        self.fail_for = set(fail_for)
        self.sent: List[Dict[str, str]] = []

    async def send(self, from_addr, to, subject, html):
        if to in self.fail_for:
            raise RuntimeError(f"mailbox unavailable: {to}")
        self.sent.append({"from_addr": from_addr, "to": to, "subject": subject, "html": html})


def chat_completion(content: str, total_tokens: int = 1200) -> Dict[str, Any]:
    return {
        "id": "gen-1",
        "choices": [{"index": 0, "message": {"role": "assistant", "content": content}}],
        "usage": {"total_tokens": total_tokens},
    }


@pytest.fixture
def news_items() -> List[NewsItem]:
    return [
        NewsItem(
            title="Chipmaker unveils new AI accelerator",
            description="A new accelerator promises faster training.",
            url="https://example.com/a",
            published_at="10/18/2026",
            source="TechCrunch",
        ),
        NewsItem(
            title="Browser ships memory-safe rendering engine",
            description="The engine is written in a memory-safe language.",
            url="https://example.com/b",
            published_at="10/17/2026",
            source="Ars Technica",
        ),
        NewsItem(
            title="Cloud outage traced to config push",
            description="A bad configuration took down a region.",
            url="https://example.com/c",
            published_at="10/16/2026",
            source="The Verge",
        ),
    ]


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)


@pytest.fixture
def generated_sections() -> Dict[str, Any]:
    """A complete, well-formed generation result."""
    return {
        "techNews": {
            "title": "🚀 This Week in Tech",
            "stories": [
                {
                    "headline": "Accelerators everywhere",
                    "summary": "New chips target training workloads.",
                    "techImpact": "Cheaper training runs.",
                    "futureImplications": "More on-device models.",
                }
            ],
        },
        "dsaChallenge": {
            "title": "💡 DSA Problem Solving",
            "leetCodeInfo": "LeetCode #20. Valid Parentheses - Easy",
            "problemStatement": "Given a string of brackets, decide if it is valid.",
            "intuition": "Use a **stack**.",
            "stepByStepApproach": "1. Push openers\n2. Pop on closers",
            "codeExample": "def is_valid(s):\n    return s == '' or s[0] != ')'",
        },
        "dbmsConcept": {
            "title": "🗄️ Database Management Deep Dive",
            "topic": "Indexes",
            "explanation": "Indexes speed up lookups.",
            "sqlQuestion": "Find users by email.",
            "sqlSolution": "SELECT * FROM users WHERE email = 'a@b.com';",
            "benefits": "Fewer full scans.",
        },
        "osExplained": {
            "title": "🖥️ Operating Systems Deep Dive",
            "concept": "Context switching",
            "realWorldAnalogy": "A chef juggling dishes.",
            "technicalExplanation": "Registers are saved and restored.",
            "whyItMatters": "Switches cost time.",
        },
        "cnFundamentals": {
            "title": "🌐 Computer Networks Explained",
            "concept": "TCP handshake",
            "everydayExample": "Saying hello on the phone.",
            "technicalDetails": "SYN, SYN-ACK, ACK.",
            "practicalImportance": "Connection setup latency.",
        },
        "oopsConcepts": {
            "title": "🎯 Object-Oriented Programming",
            "principle": "Encapsulation",
            "realLifeAnalogy": "A vending machine.",
            "codeExample": "class Account:\n    def __init__(self):\n        self._balance = 0",
            "bestPractices": "Hide state behind methods.",
        },
        "aptitudeCorner": {
            "title": "🧮 Aptitude Corner",
            "topic": "Percentages",
            "introduction": "Percent means per hundred.",
            "formulaExplanation": "part / whole * 100",
            "solvedExample": "20 of 80 is 25%.",
            "quickTricks": "10% is a decimal shift.",
        },
        "communicationTips": {
            "title": "🗣️ Communication Tips for Developers",
            "topic": "Code review comments",
            "advice": "Ask questions instead of issuing orders.",
            "importance": "Reviews stay collaborative.",
        },
        "motivationalQuote": {
            "title": "✨ Weekly Motivation",
            "quote": "Simplicity is prerequisite for reliability.",
            "author": "Edsger W. Dijkstra",
            "reflection": "Keep designs small.",
        },
    }
