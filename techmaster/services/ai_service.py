import asyncio
import logging
import ssl
from dataclasses import dataclass
from typing import Any, Dict, Optional

import aiohttp
import certifi

from techmaster.utils.error_monitoring import MalformedPayloadError, UpstreamUnavailableError
from techmaster.utils.logging_config import log_ai_interaction


@dataclass
class AIResponse:
    content: Optional[str]
    model: str
    tokens_used: int
    response_time_ms: float
    temperature: float
    success: bool = True
    error_message: Optional[str] = None
    error: Optional[Exception] = None


class AIServiceError(Exception):
    pass


class AIService:
    """
    Client for an OpenAI-compatible chat completions endpoint (OpenRouter).

    One request per call, no retries. ``generate`` reports upstream problems
    through ``AIResponse.success`` instead of raising.
    """

    BASE_URL = "https://openrouter.ai/api/v1/chat/completions"
    DEFAULT_MODEL = "anthropic/claude-3.5-sonnet"

    def __init__(
        self,
        api_key: str,
        model: Optional[str] = None,
        max_tokens: int = 2227,
        temperature: float = 0.8,
        session: Optional[aiohttp.ClientSession] = None,
        base_url: Optional[str] = None,
    ):
        if not api_key:
            raise AIServiceError("OpenRouter API key required. Set OPENROUTER_API_KEY.")
        self.api_key = api_key
        self.model = model or self.DEFAULT_MODEL
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.base_url = base_url or self.BASE_URL

        self.session: Optional[aiohttp.ClientSession] = session
        self._owns_session = session is None
        # Long generations routinely take over a minute
        self.timeout = aiohttp.ClientTimeout(total=180)

        self.logger = logging.getLogger(__name__)

    async def _get_session(self) -> aiohttp.ClientSession:
        if self.session is None or self.session.closed:
            ssl_context = ssl.create_default_context(cafile=certifi.where())
            connector = aiohttp.TCPConnector(ssl=ssl_context)
            self.session = aiohttp.ClientSession(timeout=self.timeout, connector=connector)
            self._owns_session = True
        return self.session

    async def close_session(self):
        if self._owns_session and self.session and not self.session.closed:
            await self.session.close()
            self.session = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close_session()
        return False

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }

    def build_request_body(self, prompt: str, max_tokens: Optional[int] = None) -> Dict[str, Any]:
        return {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "response_format": {"type": "json_object"},
            "max_tokens": max_tokens or self.max_tokens,
            "temperature": self.temperature,
        }

    async def generate(self, prompt: str) -> AIResponse:
        """Send ``prompt`` as the sole user message and return the raw reply text."""
        loop = asyncio.get_running_loop()
        start = loop.time()
        try:
            data = await self._post_chat_completion(self.build_request_body(prompt))
            content = self._extract_text_content(data)
        except (UpstreamUnavailableError, MalformedPayloadError) as e:
            elapsed_ms = (loop.time() - start) * 1000.0
            self.logger.error("Generation request failed: %s", e)
            log_ai_interaction(self.logger, self.model, 0, elapsed_ms, False, error=str(e))
            return AIResponse(
                content=None,
                model=self.model,
                tokens_used=0,
                response_time_ms=elapsed_ms,
                temperature=self.temperature,
                success=False,
                error_message=str(e),
                error=e,
            )

        elapsed_ms = (loop.time() - start) * 1000.0
        tokens_used = self._extract_tokens_used(data)
        log_ai_interaction(self.logger, self.model, tokens_used, elapsed_ms, True)
        return AIResponse(
            content=content,
            model=self.model,
            tokens_used=tokens_used,
            response_time_ms=elapsed_ms,
            temperature=self.temperature,
            success=True,
        )

    async def _post_chat_completion(self, body: Dict[str, Any]) -> Dict[str, Any]:
        session = await self._get_session()
        try:
            async with session.post(self.base_url, json=body, headers=self._headers()) as response:
                if not 200 <= response.status < 300:
                    text = await response.text()
                    raise UpstreamUnavailableError(
                        f"Generation service returned HTTP {response.status}: {text[:300]}"
                    )
                try:
                    data = await response.json(content_type=None)
                except ValueError as e:
                    raise MalformedPayloadError(f"Generation service body is not JSON: {e}") from e
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise UpstreamUnavailableError(f"Generation request failed: {e}") from e

        if not isinstance(data, dict):
            raise MalformedPayloadError("Generation service returned a non-object body")
        return data

    def _extract_text_content(self, resp: Dict[str, Any]) -> str:
        """Pull ``choices[0].message.content`` out of a chat completion."""
        try:
            content = resp["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise MalformedPayloadError(
                f"Generation response has no choices[0].message.content (keys: {list(resp.keys())})"
            ) from e
        if not isinstance(content, str) or not content.strip():
            raise MalformedPayloadError("Generation response message content is empty")
        return content

    def _extract_tokens_used(self, resp: Dict[str, Any]) -> int:
        usage = resp.get("usage")
        if not isinstance(usage, dict):
            return 0
        try:
            return int(usage.get("total_tokens") or 0)
        except (TypeError, ValueError):
            return 0

    async def test_connection(self) -> bool:
        """Ping the API to validate connectivity and key."""
        self.logger.info("🔍 Testing AI service connection...")
        try:
            body = self.build_request_body('Reply with the JSON object {"ok": true}.', max_tokens=20)
            data = await self._post_chat_completion(body)
            self._extract_text_content(data)
        except (UpstreamUnavailableError, MalformedPayloadError) as e:
            self.logger.error(f"❌ AI service test connection failed: {e}")
            self.logger.error(f"   Model: {self.model}")
            return False
        self.logger.info("✅ AI service test successful")
        return True
