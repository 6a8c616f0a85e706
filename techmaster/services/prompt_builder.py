import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

import yaml

from techmaster.models.content import NewsItem, SECTION_KEYS


DEFAULT_PROMPTS_PATH = Path(__file__).resolve().parent.parent / "config" / "prompts.yaml"


class PromptBuilderError(Exception):
    pass


class PromptBuilder:
    """
    Builds the single user message sent to the generation service.

    ``build_prompt`` is pure: the same news list always yields the same text.
    """

    def __init__(self, prompts_path: Optional[str] = None):
        self.prompts_path = Path(prompts_path) if prompts_path else DEFAULT_PROMPTS_PATH
        self.prompts = self._load_prompts()
        self.logger = logging.getLogger(__name__)

        schema = self.prompts.get("schema") or {}
        missing = [key for key in SECTION_KEYS if key not in schema]
        if missing:
            raise PromptBuilderError(f"Prompt schema is missing sections: {', '.join(missing)}")
        self.schema: Dict[str, Any] = schema
        self.news_context_items = int(self.prompts.get("news_context_items", 2))

    def _load_prompts(self) -> Dict[str, Any]:
        """Load prompts from YAML configuration file."""
        try:
            with open(self.prompts_path, "r", encoding="utf-8") as f:
                return yaml.safe_load(f) or {}
        except FileNotFoundError as e:
            raise PromptBuilderError(f"Prompts file not found at {self.prompts_path}") from e
        except yaml.YAMLError as e:
            raise PromptBuilderError(f"Error parsing YAML at {self.prompts_path}: {e}") from e

    def build_prompt(self, news: Sequence[NewsItem]) -> str:
        context = [item.to_dict() for item in list(news)[: self.news_context_items]]
        parts = [
            f"{self.prompts.get('master_persona', '').strip()} {self.prompts.get('output_contract', '').strip()}",
            f"{self.prompts.get('news_context_intro', '').strip()} {json.dumps(context, ensure_ascii=False)}",
            self.prompts.get("schema_intro", "").strip(),
            json.dumps(self.schema, indent=2, ensure_ascii=False),
            self.prompts.get("closing_guidance", "").strip(),
        ]
        prompt = "\n\n".join(part for part in parts if part)
        self.logger.debug("Built generation prompt (%d chars, %d news items)", len(prompt), len(context))
        return prompt
