"""
HTTP client for the external AI completion service (OpenAI-compatible chat completions)
"""
import json
from abc import ABC, abstractmethod
from datetime import timedelta
from typing import Any, Optional

import httpx
import structlog

from app.core.circuit_breaker import CircuitBreaker, CircuitBreakerError
from app.core.config import Settings
from app.core.exceptions import DependencyUnavailableError

logger = structlog.get_logger(__name__)

SYSTEM_PROMPT = (
    "You are an expert at analyzing crowdfunding campaigns for trustworthiness. "
    "Always respond with valid JSON only."
)

PROMPT_TEMPLATE = """Analyze this crowdfunding campaign and provide a trust assessment.

Title: {title}
Description: {description}
Target Amount: {target} ETH

Provide a JSON response with this exact structure:
{{
  "trustScore": <number 0-100>,
  "riskFactors": [<array of strings>],
  "recommendations": [<array of strings>],
  "sentiment": "<POSITIVE|NEGATIVE|NEUTRAL>"
}}

Guidelines:
- trustScore: 0-100 (50 is neutral, 70+ is good, 30- is suspicious)
- riskFactors: List specific concerns (max 5 items)
- recommendations: List actionable improvements (max 5 items)
- sentiment: Overall tone assessment

Focus on:
- Content quality and detail
- Realistic goals
- Professional tone
- Red flags (guarantees, pressure tactics, vague promises)
- Positive signals (specifics, milestones, evidence)"""


class AICompletionService(ABC):
    """Contract the analysis pipeline needs from an AI text-analysis provider"""

    @abstractmethod
    async def complete(self, title: str, description: str, target: float) -> Any:
        """
        Return the provider's decoded JSON payload for the campaign.

        Raises:
            DependencyUnavailableError: on any network, timeout, status or payload failure
        """


class ChatCompletionClient(AICompletionService):
    """Client for an OpenAI-compatible chat completions endpoint (Groq by default)"""

    def __init__(
        self,
        api_url: str,
        api_key: str,
        model: str,
        timeout_seconds: float = 10.0,
        temperature: float = 0.3,
        max_tokens: int = 500,
        breaker: Optional[CircuitBreaker] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_url = api_url
        self.api_key = api_key
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = httpx.Timeout(timeout_seconds, connect=min(5.0, timeout_seconds))
        self.breaker = breaker or CircuitBreaker(
            name="ai-completion",
            failure_threshold=5,
            recovery_timeout=timedelta(seconds=60),
            expected_exception=DependencyUnavailableError,
        )
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> "ChatCompletionClient":
        return cls(
            api_url=settings.ai_api_url,
            api_key=settings.ai_api_key,
            model=settings.ai_model,
            timeout_seconds=settings.ai_timeout_seconds,
            temperature=settings.ai_temperature,
            max_tokens=settings.ai_max_tokens,
            breaker=CircuitBreaker(
                name="ai-completion",
                failure_threshold=settings.ai_circuit_failure_threshold,
                recovery_timeout=timedelta(seconds=settings.ai_circuit_recovery_seconds),
                expected_exception=DependencyUnavailableError,
            ),
        )

    def _build_request(self, title: str, description: str, target: float) -> dict:
        prompt = PROMPT_TEMPLATE.format(
            title=title or "N/A",
            description=description or "N/A",
            target=target or 0,
        )
        return {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "response_format": {"type": "json_object"},
        }

    async def complete(self, title: str, description: str, target: float) -> Any:
        try:
            return await self.breaker.call(self._post, title, description, target)
        except CircuitBreakerError as e:
            raise DependencyUnavailableError("circuit_open", str(e))

    async def _post(self, title: str, description: str, target: float) -> Any:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    self.api_url,
                    json=self._build_request(title, description, target),
                    headers=headers,
                )
        except httpx.TimeoutException as e:
            raise DependencyUnavailableError("timeout", str(e))
        except httpx.HTTPError as e:
            raise DependencyUnavailableError("connection", str(e))

        if not response.is_success:
            raise DependencyUnavailableError("http_status", f"{response.status_code}: {response.text[:200]}")

        try:
            content = response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise DependencyUnavailableError("malformed", f"unexpected envelope: {e}")

        if not content:
            raise DependencyUnavailableError("malformed", "empty completion")

        try:
            return json.loads(content)
        except (TypeError, ValueError) as e:
            raise DependencyUnavailableError("malformed", f"completion is not JSON: {e}")
