"""
OpenAI Integration for TaxPlanner AI
====================================
Fetches tax planning recommendations from the OpenAI chat completions API.

The client returns the raw recommendation payload; normalization and the
fallback set are applied by the caller (tax_planner.TaxPlanningService).

IMPORTANT: All prompts sent to OpenAI pass through the PII redactor first.
"""

import logging
import os
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, Optional

from openai import (
    APIConnectionError,
    APIError,
    APIStatusError,
    APITimeoutError,
    AuthenticationError,
    OpenAI,
    RateLimitError,
)

from models import ClientTaxProfile
from llm_prompts import (
    TAX_PLANNING_SYSTEM_PROMPT,
    extract_json_payload,
    get_tax_planning_prompt,
    validate_recommendation_response,
)
from pii_redaction import PIIRedactor

logger = logging.getLogger(__name__)


# =============================================================================
# ERRORS
# =============================================================================

class AIRecommendationError(Exception):
    """The AI provider could not produce a usable recommendation payload."""


class AIConfigurationError(AIRecommendationError):
    """No API key, so no request was attempted."""


class AICreditExhaustedError(AIRecommendationError):
    """Account is out of credits or quota (HTTP 402 / insufficient_quota)."""


# =============================================================================
# CONFIGURATION
# =============================================================================

DEFAULT_MODEL = "gpt-4o"
DEFAULT_TIMEOUT_SECONDS = 60.0
DEFAULT_MAX_TOKENS = 4000


@dataclass
class AIClientConfig:
    api_key: Optional[str] = field(default=None, repr=False)
    model: str = DEFAULT_MODEL
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    max_tokens: int = DEFAULT_MAX_TOKENS

    @classmethod
    def from_env(cls) -> "AIClientConfig":
        return cls(
            api_key=os.environ.get('OPENAI_API_KEY'),
            model=os.getenv('TAX_AI_MODEL', DEFAULT_MODEL),
            timeout_seconds=float(os.getenv('TAX_AI_TIMEOUT_SECONDS', DEFAULT_TIMEOUT_SECONDS)),
            max_tokens=int(os.getenv('TAX_AI_MAX_TOKENS', DEFAULT_MAX_TOKENS)),
        )


@dataclass
class AIResponse:
    """Response from AI model."""
    content: str
    model: str
    provider: str
    tokens_used: Optional[int] = None
    success: bool = True
    error: Optional[str] = None


# =============================================================================
# CLIENT
# =============================================================================

class TaxAIClient:
    """
    AI client for tax planning recommendations.

    Pass `client` to inject a pre-built OpenAI-compatible client; otherwise
    one is created from the config when an API key is available. The request
    is made once with no retries, bounded by `timeout_seconds`.
    """

    def __init__(self, config: Optional[AIClientConfig] = None, client: Any = None):
        self.config = config or AIClientConfig.from_env()
        self.model = self.config.model
        self.client = client
        self.redactor = PIIRedactor()

        if self.client is None and self.config.api_key:
            self.client = OpenAI(
                api_key=self.config.api_key,
                timeout=self.config.timeout_seconds,
                max_retries=0,
            )

    @property
    def is_connected(self) -> bool:
        """Check if a real AI provider is configured."""
        return self.client is not None

    def generate_recommendations(
        self,
        profile: ClientTaxProfile,
        today: Optional[date] = None,
    ) -> Dict[str, Any]:
        """
        Ask the model for 3-5 recommendations for this client.

        Returns:
            Parsed JSON payload with `generatedAt` added

        Raises:
            AIConfigurationError: no API key configured
            AICreditExhaustedError: account out of credits
            AIRecommendationError: any other provider or parsing failure
        """
        if not self.is_connected:
            raise AIConfigurationError(
                "OpenAI API key not configured. Please set OPENAI_API_KEY environment variable."
            )

        prompt = get_tax_planning_prompt(profile, today)
        redaction = self.redactor.redact_sensitive_data(prompt)
        is_safe, issues = self.redactor.validate_no_pii_leakage(redaction.redacted_text)
        if not is_safe:
            logger.warning(f"[{profile.client_id}] Prompt leakage check flagged: {issues}")

        logger.info(f"[{profile.client_id}] Requesting recommendations from {self.model}")
        response = self._call_openai(TAX_PLANNING_SYSTEM_PROMPT, redaction.redacted_text)

        try:
            payload = extract_json_payload(response.content)
        except ValueError as e:
            raise AIRecommendationError(str(e)) from e

        is_valid, format_issues = validate_recommendation_response(payload)
        if not is_valid:
            logger.warning(f"[{profile.client_id}] AI response format issues: {format_issues}")

        logger.info(
            f"[{profile.client_id}] AI recommendations received: "
            f"{len(payload.get('recommendations') or [])} items, "
            f"{response.tokens_used or 0} tokens"
        )

        return {"generatedAt": datetime.now(), **payload}

    def _call_openai(self, system_prompt: str, user_prompt: str) -> AIResponse:
        """Make a call to OpenAI API, mapping transport failures to AIRecommendationError."""
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt}
                ],
                max_tokens=self.config.max_tokens,
            )
        except APITimeoutError as e:
            raise AIRecommendationError("OpenAI API call timed out. Please try again.") from e
        except AuthenticationError as e:
            raise AIRecommendationError("OpenAI API authentication failed. Please check your API key.") from e
        except RateLimitError as e:
            if getattr(e, 'code', None) == 'insufficient_quota':
                raise AICreditExhaustedError(
                    "OpenAI API credits exhausted. Please add credits to your account."
                ) from e
            raise AIRecommendationError("OpenAI API rate limit exceeded. Please try again later.") from e
        except APIStatusError as e:
            raise self._status_error(e) from e
        except APIConnectionError as e:
            raise AIRecommendationError(f"OpenAI API connection error: {e}") from e
        except APIError as e:
            raise AIRecommendationError(f"OpenAI API error: {e}") from e

        if not getattr(response, 'choices', None) or response.choices[0].message.content is None:
            raise AIRecommendationError("Invalid OpenAI API response structure - missing message content")

        usage = getattr(response, 'usage', None)
        return AIResponse(
            content=response.choices[0].message.content,
            model=self.model,
            provider="openai",
            tokens_used=usage.total_tokens if usage else None,
            success=True
        )

    @staticmethod
    def _status_error(error: APIStatusError) -> AIRecommendationError:
        status = error.status_code
        if status == 402:
            return AICreditExhaustedError("OpenAI API credits exhausted. Please add credits to your account.")
        if status == 500:
            return AIRecommendationError("OpenAI API server error. Please try again later.")
        if status == 503:
            return AIRecommendationError("OpenAI API service unavailable. Please try again later.")
        return AIRecommendationError(f"OpenAI API error ({status}): {error.message}")
