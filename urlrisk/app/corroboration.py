"""
corroboration.py

Optional second opinion from an external generative-AI classifier.

The local verdict never depends on this module: callers compute their own
ScoreResult first and treat any CorroborationError as "no second opinion".

Configuration (environment):
    URLRISK_AI_ENDPOINT   chat-completions URL (OpenAI-compatible)
    URLRISK_AI_API_KEY    bearer token
    URLRISK_AI_MODEL      model name
    URLRISK_AI_TIMEOUT    request timeout in seconds
"""

import json
import logging
import os
from abc import ABC, abstractmethod
from typing import Optional

import requests

from ..models import Classification, CorroborationResult, FeatureSet

logger = logging.getLogger("corroboration")

DEFAULT_MODEL = "google/gemini-2.5-flash-lite"
DEFAULT_TIMEOUT = 10.0

SYSTEM_PROMPT = (
    "You are a cybersecurity analyst. Analyze the URL for security threats. "
    "Return a JSON object with: prediction (safe/suspicious/malicious), "
    "confidence (0-100), category (short threat category or null), "
    "reasoning (array of 2-4 concise strings)."
)


class CorroborationError(Exception):
    """Base class for all second-opinion failures."""

    reason = "unavailable"


class CorroborationUnavailable(CorroborationError):
    reason = "unavailable"


class CorroborationTimeout(CorroborationUnavailable):
    reason = "timeout"


class CorroborationRateLimited(CorroborationError):
    reason = "rate_limited"


class CorroborationQuotaExceeded(CorroborationError):
    reason = "quota_exceeded"


class InvalidCorroboration(CorroborationError):
    reason = "invalid_response"


class Corroborator(ABC):
    """Anything able to give an independent verdict for a URL."""

    name = "corroborator"

    @abstractmethod
    def classify(self, url: str, features: Optional[FeatureSet] = None) -> CorroborationResult:
        """Return a CorroborationResult or raise CorroborationError."""


def _features_summary(features: FeatureSet) -> str:
    return (
        f"entropy={features.entropy_host:.2f}, "
        f"digits={features.digits_ratio * 100:.1f}%, "
        f"https={bool(features.uses_https)}, "
        f"subdomains={bool(features.subdomain_present)}, "
        f"ip={bool(features.having_ip)}, "
        f"shortened={bool(features.shortening_service)}"
    )


def parse_verdict(content: str, source: Optional[str] = None) -> CorroborationResult:
    """Parse the model's JSON answer into a CorroborationResult."""
    try:
        data = json.loads(content)
    except (TypeError, ValueError) as e:
        raise InvalidCorroboration(f"response is not JSON: {e}") from e
    if not isinstance(data, dict):
        raise InvalidCorroboration("response is not a JSON object")

    try:
        classification = Classification(str(data.get("prediction", "")).strip().lower())
    except ValueError:
        raise InvalidCorroboration(f"unknown prediction: {data.get('prediction')!r}")

    try:
        confidence = float(data.get("confidence", 0))
    except (TypeError, ValueError):
        raise InvalidCorroboration(f"invalid confidence: {data.get('confidence')!r}")
    if not (0.0 <= confidence <= 100.0):
        raise InvalidCorroboration(f"confidence out of range: {confidence}")

    reasoning = data.get("reasoning") or []
    if isinstance(reasoning, str):
        reasoning = [reasoning]
    category = data.get("category")

    return CorroborationResult(
        classification=classification,
        confidence=round(confidence, 1),
        category=str(category) if category else None,
        reasoning=tuple(str(r) for r in reasoning),
        source=source,
    )


class ChatCompletionCorroborator(Corroborator):
    """Asks an OpenAI-compatible chat-completions endpoint for a verdict."""

    name = "chat_completion"

    def __init__(self, endpoint: str, api_key: str, model: str = DEFAULT_MODEL,
                 timeout: float = DEFAULT_TIMEOUT, session: Optional[requests.Session] = None):
        self.endpoint = endpoint
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.session = session or requests.Session()

    def _payload(self, url: str, features: Optional[FeatureSet]) -> dict:
        system = SYSTEM_PROMPT
        if features is not None:
            system += f" Lexical features extracted offline: {_features_summary(features)}."
        return {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": f"Analyze: {url}"},
            ],
            "response_format": {"type": "json_object"},
        }

    def classify(self, url: str, features: Optional[FeatureSet] = None) -> CorroborationResult:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        try:
            resp = self.session.post(self.endpoint, json=self._payload(url, features),
                                     headers=headers, timeout=self.timeout)
        except requests.Timeout as e:
            raise CorroborationTimeout(f"request timed out after {self.timeout}s") from e
        except requests.RequestException as e:
            raise CorroborationUnavailable(f"request failed: {e}") from e

        if resp.status_code == 429:
            raise CorroborationRateLimited("rate limit exceeded")
        if resp.status_code == 402:
            raise CorroborationQuotaExceeded("usage quota exhausted")
        if resp.status_code >= 400:
            raise CorroborationUnavailable(f"analysis failed: HTTP {resp.status_code}")

        try:
            content = resp.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise InvalidCorroboration(f"unexpected response shape: {e}") from e
        return parse_verdict(content, source=self.model)


def build_corroborator() -> Optional[Corroborator]:
    """Build the configured client, or None when corroboration is not configured."""
    endpoint = os.getenv("URLRISK_AI_ENDPOINT")
    api_key = os.getenv("URLRISK_AI_API_KEY")
    if not endpoint or not api_key:
        logger.info("AI corroboration not configured; local verdicts only")
        return None
    model = os.getenv("URLRISK_AI_MODEL", DEFAULT_MODEL)
    try:
        timeout = float(os.getenv("URLRISK_AI_TIMEOUT", str(DEFAULT_TIMEOUT)))
    except ValueError:
        timeout = DEFAULT_TIMEOUT
    logger.info("AI corroboration enabled (model=%s, timeout=%.1fs)", model, timeout)
    return ChatCompletionCorroborator(endpoint, api_key, model=model, timeout=timeout)
