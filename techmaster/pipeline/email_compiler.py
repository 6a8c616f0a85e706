import html as html_lib
import json
import logging
import re
from collections.abc import Mapping
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

import markdown2
import premailer
import pytz
from jinja2 import Environment, FileSystemLoader, TemplateError
from markupsafe import Markup

from techmaster.models.content import NewsletterContent


DEFAULT_TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates"

BRAND = "TechMaster Weekly"

# (field, placeholder) per section, in template order
SECTION_PLACEHOLDERS: Dict[str, Tuple[Tuple[str, str], ...]] = {
    "dsaChallenge": (
        ("title", "DSA Problem Solving"),
        ("leetCodeInfo", "No LeetCode Info"),
        ("problemStatement", "No problem statement available."),
        ("intuition", "No intuition available."),
        ("stepByStepApproach", "No step-by-step approach available."),
        ("codeExample", "No code example available."),
    ),
    "dbmsConcept": (
        ("title", "Database Management Deep Dive"),
        ("topic", "No Topic"),
        ("explanation", "No explanation available."),
        ("sqlQuestion", "No SQL question available."),
        ("sqlSolution", "No SQL solution available."),
        ("benefits", "No benefits specified."),
    ),
    "osExplained": (
        ("title", "Operating Systems Deep Dive"),
        ("concept", "No Concept"),
        ("realWorldAnalogy", "No analogy available."),
        ("technicalExplanation", "No technical explanation available."),
        ("whyItMatters", "No importance specified."),
    ),
    "cnFundamentals": (
        ("title", "Computer Networks Explained"),
        ("concept", "No Concept"),
        ("everydayExample", "No example available."),
        ("technicalDetails", "No technical details available."),
        ("practicalImportance", "No practical importance specified."),
    ),
    "oopsConcepts": (
        ("title", "Object-Oriented Programming"),
        ("principle", "No Principle"),
        ("realLifeAnalogy", "No analogy available."),
        ("codeExample", "No code example available."),
        ("bestPractices", "No best practices specified."),
    ),
    "aptitudeCorner": (
        ("title", "Aptitude Corner"),
        ("topic", "No Topic"),
        ("introduction", "No introduction available."),
        ("formulaExplanation", "No formula explanation available."),
        ("solvedExample", "No solved example available."),
        ("quickTricks", "No quick tricks available."),
    ),
    "communicationTips": (
        ("title", "Communication Tips for Developers"),
        ("topic", "No Topic"),
        ("advice", "No advice available."),
        ("importance", "No importance specified."),
    ),
    "motivationalQuote": (
        ("title", "Weekly Motivation"),
        ("quote", "No quote available."),
        ("author", "Unknown Author"),
        ("reflection", "No reflection available."),
    ),
}

STORY_FIELDS = (
    ("headline", "No Headline"),
    ("summary", "No summary available."),
    ("techImpact", "No tech impact specified."),
    ("futureImplications", "No future implications specified."),
)

REAL_NEWS_FIELDS = (
    ("title", "No Title"),
    ("source", "Unknown Source"),
    ("description", "No description available."),
    ("url", "#"),
    ("publishedAt", ""),
)

_MISSING = object()


def lookup(obj: Any, path: str, default: Any = None) -> Any:
    """
    Safe nested lookup: ``lookup(content, "dsaChallenge.intuition")``.

    Walks mappings by key and other objects by attribute. Any missing step
    yields ``default``.
    """
    current = obj
    for part in path.split("."):
        if current is None:
            return default
        if isinstance(current, Mapping):
            current = current.get(part, _MISSING)
        elif isinstance(current, (str, bytes, int, float, list, tuple)):
            return default
        else:
            current = getattr(current, part, _MISSING)
        if current is _MISSING:
            return default
    return default if current is None else current


def as_text(value: Any, placeholder: str) -> str:
    """Coerce a generated field to display text, or the placeholder when empty."""
    if value is None:
        return placeholder
    if isinstance(value, str):
        return value if value.strip() else placeholder
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, (list, tuple)):
        lines = [as_text(v, "") for v in value]
        lines = [line for line in lines if line]
        return "\n".join(f"- {line}" for line in lines) if lines else placeholder
    if isinstance(value, Mapping):
        return json.dumps(value, ensure_ascii=False, indent=2) if value else placeholder
    return str(value)


class CompilationError(Exception):
    """Custom exception for compilation failures"""
    pass


class EmailCompiler:
    """
    Renders a NewsletterContent into one self-contained HTML document.

    ``render`` never raises. Missing fields become fixed placeholder text,
    prose fields go through Markdown, and CSS is inlined with premailer since
    many mail clients drop ``<style>`` blocks.
    """

    def __init__(
        self,
        template_dir: Optional[str] = None,
        timezone: str = "America/New_York",
        inline_css: bool = True,
    ) -> None:
        self.template_dir = str(template_dir or DEFAULT_TEMPLATE_DIR)
        self.inline_css = inline_css
        self.tz = pytz.timezone(timezone)
        self.logger = logging.getLogger(__name__)

        try:
            self.env = Environment(
                loader=FileSystemLoader(self.template_dir),
                autoescape=True,
                trim_blocks=True,
                lstrip_blocks=True,
            )
        except Exception as e:  # noqa: BLE001
            raise CompilationError(f"Failed to initialize Jinja2 environment: {e}") from e

        self.env.filters["markdown"] = self._markdown_filter

    def render(
        self,
        content: Union[NewsletterContent, Mapping, None],
        date: Optional[datetime] = None,
    ) -> str:
        """Render ``content`` to HTML. ``date`` fixes the header and footer stamps."""
        newsletter_date = date or datetime.now(self.tz)
        try:
            template_data = self.prepare_template_data(content, newsletter_date)
            html_raw = self._render_html_template(template_data)
        except Exception as e:  # noqa: BLE001
            self.logger.critical("Newsletter template rendering failed: %s", e, exc_info=True)
            return self._render_minimal(newsletter_date)

        if not self.inline_css:
            return html_raw
        try:
            return self._inline_css(html_raw)
        except CompilationError:
            return html_raw

    def prepare_template_data(
        self,
        content: Union[NewsletterContent, Mapping, None],
        date: datetime,
    ) -> Dict[str, Any]:
        """Resolve every field the template dereferences, substituting placeholders."""
        if isinstance(content, NewsletterContent):
            raw = content.to_dict()
        elif isinstance(content, Mapping):
            raw = content
        else:
            raw = {}

        sections: Dict[str, Dict[str, Any]] = {"techNews": self._prepare_tech_news(raw)}
        for key, fields in SECTION_PLACEHOLDERS.items():
            sections[key] = {
                name: as_text(lookup(raw, f"{key}.{name}"), placeholder)
                for name, placeholder in fields
            }

        return {
            "brand": BRAND,
            "date": f"{date:%B} {date.day}, {date.year}",
            "year": date.year,
            "sections": sections,
        }

    def _prepare_tech_news(self, raw: Mapping) -> Dict[str, Any]:
        stories = lookup(raw, "techNews.stories", [])
        real_news = lookup(raw, "techNews.realNews", [])
        return {
            "title": as_text(lookup(raw, "techNews.title"), "Tech News"),
            "stories": [
                {name: as_text(lookup(story, name), placeholder) for name, placeholder in STORY_FIELDS}
                for story in (stories if isinstance(stories, (list, tuple)) else [])
                if story is not None
            ],
            "realNews": [
                {name: self._news_field(item, name, placeholder) for name, placeholder in REAL_NEWS_FIELDS}
                for item in (real_news if isinstance(real_news, (list, tuple)) else [])
                if item is not None
            ],
        }

    def _news_field(self, item: Any, name: str, placeholder: str) -> str:
        if isinstance(item, Mapping):
            value = item.get(name)
        elif hasattr(item, "to_dict"):
            value = item.to_dict().get(name)
        else:
            value = getattr(item, name, None)
        return as_text(value, placeholder)

    def _render_html_template(self, template_data: Dict[str, Any]) -> str:
        """Render HTML email template."""
        try:
            template = self.env.get_template("newsletter.html.j2")
            return template.render(template_data)
        except TemplateError as e:
            self.logger.error("HTML template rendering failed: %s", e, exc_info=True)
            raise CompilationError(f"HTML template error: {e}") from e

    def _inline_css(self, html: str) -> str:
        """Inline CSS for email client compatibility."""
        try:
            return premailer.transform(
                html,
                keep_style_tags=True,
                strip_important=False,
                cssutils_logging_level=logging.ERROR,
            )
        except Exception as e:  # noqa: BLE001
            self.logger.error("CSS inlining failed: %s", e, exc_info=True)
            raise CompilationError(f"CSS inlining error: {e}") from e

    def _render_minimal(self, date: datetime) -> str:
        return (
            "<!DOCTYPE html>\n<html lang=\"en\">\n<head><meta charset=\"UTF-8\">"
            f"<title>{BRAND}</title></head>\n<body>\n"
            f"<h1>{BRAND}</h1>\n<p>{html_lib.escape(f'{date:%B} {date.day}, {date.year}')}</p>\n"
            "<p>This week's issue could not be formatted. Please check back next week.</p>\n"
            f"<p>&copy; {date.year} {BRAND}. All rights reserved.</p>\n"
            "</body>\n</html>\n"
        )

    # Jinja2 filters
    def _markdown_filter(self, text: Optional[str]) -> Markup:
        """Jinja2 filter for markdown conversion; raw HTML in the input is escaped."""
        if text is None:
            return Markup("")
        return Markup(
            markdown2.markdown(str(text), extras=["fenced-code-blocks", "cuddled-lists"], safe_mode="escape")
        )

    def render_plain_text(self, html: str) -> str:
        """Plain-text alternative of a rendered issue."""
        return html_to_text(html)


def html_to_text(html_content: str) -> str:
    """Create plain text version from HTML."""
    # Remove head/script/style content
    text = re.sub(r'<(head|script|style)[^>]*>[\s\S]*?</\1>', '', html_content or '', flags=re.IGNORECASE)
    # Replace <br> and block closers with newlines
    text = re.sub(r'<\s*br\s*/?>', '\n', text, flags=re.IGNORECASE)
    text = re.sub(r'</(p|h[1-6]|li|div|pre|blockquote)\s*>', '\n', text, flags=re.IGNORECASE)
    # Strip remaining tags
    text = re.sub(r'<[^>]+>', '', text)
    text = html_lib.unescape(text)
    # Normalize whitespace
    text = re.sub(r'[ \t]+\n', '\n', text)
    text = re.sub(r'\n\s*\n+', '\n\n', text)
    return text.strip()
