"""
Content models for the newsletter system.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple


@dataclass(frozen=True)
class NewsItem:
    """Represents a news item from the feed or the fallback pool."""

    title: str
    description: str
    url: str
    published_at: str
    source: str

    def to_dict(self) -> Dict[str, str]:
        """Wire shape used in prompts and templates."""
        return {
            "title": self.title,
            "description": self.description,
            "url": self.url,
            "publishedAt": self.published_at,
            "source": self.source,
        }


# Wire key -> attribute name, in rendering order
SECTION_FIELDS: Tuple[Tuple[str, str], ...] = (
    ("techNews", "tech_news"),
    ("dsaChallenge", "dsa_challenge"),
    ("dbmsConcept", "dbms_concept"),
    ("osExplained", "os_explained"),
    ("cnFundamentals", "cn_fundamentals"),
    ("oopsConcepts", "oops_concepts"),
    ("aptitudeCorner", "aptitude_corner"),
    ("communicationTips", "communication_tips"),
    ("motivationalQuote", "motivational_quote"),
)

SECTION_KEYS: Tuple[str, ...] = tuple(key for key, _ in SECTION_FIELDS)

TECH_NEWS_TITLE = "🚀 This Week in Tech"


@dataclass
class NewsletterContent:
    """The nine sections of one newsletter issue."""

    tech_news: Dict[str, Any] = field(default_factory=dict)
    dsa_challenge: Dict[str, Any] = field(default_factory=dict)
    dbms_concept: Dict[str, Any] = field(default_factory=dict)
    os_explained: Dict[str, Any] = field(default_factory=dict)
    cn_fundamentals: Dict[str, Any] = field(default_factory=dict)
    oops_concepts: Dict[str, Any] = field(default_factory=dict)
    aptitude_corner: Dict[str, Any] = field(default_factory=dict)
    communication_tips: Dict[str, Any] = field(default_factory=dict)
    motivational_quote: Dict[str, Any] = field(default_factory=dict)

    def section(self, key: str) -> Dict[str, Any]:
        """Look up a section by its wire key (e.g. ``dsaChallenge``)."""
        return getattr(self, _attribute_for(key))

    def set_section(self, key: str, value: Dict[str, Any]) -> None:
        setattr(self, _attribute_for(key), value)

    @property
    def real_news(self) -> List[NewsItem]:
        return list(self.tech_news.get("realNews") or [])

    def to_dict(self) -> Dict[str, Dict[str, Any]]:
        return {key: getattr(self, attr) for key, attr in SECTION_FIELDS}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "NewsletterContent":
        data = data or {}
        kwargs = {}
        for key, attr in SECTION_FIELDS:
            value = data.get(key)
            kwargs[attr] = value if isinstance(value, dict) else {}
        return cls(**kwargs)


def _attribute_for(key: str) -> str:
    for wire_key, attr in SECTION_FIELDS:
        if wire_key == key:
            return attr
    raise KeyError(f"Unknown newsletter section: {key}")
