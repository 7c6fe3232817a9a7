"""
LLM Classifier - the terminal categorization tier.

High-impact design decisions:
- The prompt constrains the model to the closed category set
- The response is parsed as JSON; a bare category name is also accepted
- Labels outside the closed set are coerced to "Other" at this boundary
- Missing confidence falls back to a fixed conservative default
- Provider failures surface as ProviderUnavailableError kinds; the
  orchestrator turns them into ClassificationUnavailableError
"""

import json
import logging
import math
import re
from typing import Any, Optional

from openai import APIError, AsyncOpenAI

from cardmatch.config import LLMConfig
from cardmatch.engine.models import CategoryLabel, ClassificationResult, ClassificationSource, normalize_description
from cardmatch.errors import ProviderUnavailableError
from cardmatch.services.openai_client import translate_openai_error

logger = logging.getLogger(__name__)


CATEGORY_DESCRIPTIONS = {
    CategoryLabel.TRAVEL: "flights, hotels, car rentals, rideshare, vacation expenses",
    CategoryLabel.DINING: "restaurants, takeout, delivery, bars, coffee shops, food services",
    CategoryLabel.GROCERY: "supermarkets, grocery stores, food shopping, wholesale clubs",
    CategoryLabel.GAS: "gas stations, fuel purchases, EV charging",
    CategoryLabel.ENTERTAINMENT: "movies, streaming services, concerts, events, gaming",
    CategoryLabel.ONLINE: "e-commerce, online shopping, digital purchases, app stores",
    CategoryLabel.TRANSIT: "public transportation, parking, tolls, commuter costs",
    CategoryLabel.HEALTHCARE: "medical expenses, pharmacy, dental, vision care",
    CategoryLabel.INSURANCE: "insurance premiums, policy payments",
    CategoryLabel.UTILITIES: "electricity, gas bills, water, internet, phone services",
    CategoryLabel.OTHER: "anything that doesn't fit the above categories",
}

_CODE_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$")


# ============================================================================
# PROMPT ENGINEERING
# ============================================================================

def build_system_prompt() -> str:
    return (
        "You are a precise financial transaction categorization system. "
        "Always respond with valid JSON only."
    )


def build_user_prompt(description: str) -> str:
    categories = "\n".join(
        f"- {label.value}: {CATEGORY_DESCRIPTIONS[label]}" for label in CategoryLabel.classifiable()
    )
    return f"""Categorize this purchase description into exactly one of these categories:

CATEGORIES:
{categories}

INSTRUCTIONS:
1. Choose the MOST SPECIFIC category that applies
2. Use only a category name from the list above
3. Provide confidence from 0.0 to 1.0 (1.0 = completely certain)
4. Give a brief reasoning for your choice

Purchase description: "{description}"

Respond ONLY with valid JSON in this exact format:
{{"category": "CategoryName", "confidence": 0.85, "reasoning": "Brief explanation"}}"""


# ============================================================================
# PROVIDER
# ============================================================================

class OpenAICompletionProvider:
    """Generative-text provider over AsyncOpenAI chat completions."""

    def __init__(
        self,
        client: Optional[AsyncOpenAI],
        model: str = LLMConfig.MODEL,
        temperature: float = LLMConfig.TEMPERATURE,
        max_tokens: int = LLMConfig.MAX_TOKENS,
    ):
        self.client = client
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens

    async def complete(self, system_prompt: str, user_prompt: str) -> str:
        if self.client is None:
            raise ProviderUnavailableError("OpenAI API key not configured", {"provider": "openai-chat"})
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
        except (APIError, ConnectionError, IOError) as e:
            raise translate_openai_error(e, "openai-chat") from e

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise ProviderUnavailableError("No content in LLM response", {"provider": "openai-chat"})
        return content.strip()


# ============================================================================
# CLASSIFIER
# ============================================================================

def coerce_label(value: Any) -> tuple[CategoryLabel, bool]:
    """
    Validate a model-supplied label against the closed set.

    Returns:
        (label, coerced) where coerced is True when the value was replaced by Other
    """
    raw = str(value or "").strip().lower()
    for label in CategoryLabel.classifiable():
        if label.value.lower() == raw:
            return label, False
    return CategoryLabel.OTHER, True


def parse_completion(text: str, default_confidence: float = LLMConfig.DEFAULT_CONFIDENCE) -> dict:
    """
    Parse a completion into {category, confidence, reasoning, coerced, raw_category}.

    Accepts a JSON object (optionally wrapped in a markdown code fence) or a bare
    category name.

    Raises:
        ProviderUnavailableError: the completion is neither
    """
    content = _CODE_FENCE.sub("", text.strip()).strip()

    try:
        parsed = json.loads(content)
    except json.JSONDecodeError:
        parsed = None

    if not isinstance(parsed, dict):
        label, coerced = coerce_label(content)
        if coerced:
            raise ProviderUnavailableError(
                "Unparseable LLM response", {"provider": "openai-chat", "response": text[:200]}
            )
        return {
            "category": label,
            "confidence": default_confidence,
            "reasoning": "",
            "coerced": False,
            "raw_category": content,
        }

    raw_category = parsed.get("category")
    label, coerced = coerce_label(raw_category)

    confidence = parsed.get("confidence")
    if (
        isinstance(confidence, bool)
        or not isinstance(confidence, (int, float))
        or not math.isfinite(confidence)
    ):
        confidence = default_confidence
    confidence = min(max(float(confidence), 0.0), 1.0)

    return {
        "category": label,
        "confidence": confidence,
        "reasoning": str(parsed.get("reasoning") or ""),
        "coerced": coerced,
        "raw_category": raw_category,
    }


class LLMClassifier:
    """
    Closed-set classifier over a generative-text provider.

    Usage:
        classifier = LLMClassifier(OpenAICompletionProvider(client))
        result = await classifier.classify("weekend at a lakeside cabin")
    """

    def __init__(self, provider, default_confidence: float = LLMConfig.DEFAULT_CONFIDENCE):
        self.provider = provider
        self.default_confidence = default_confidence

    async def classify(self, description: str) -> ClassificationResult:
        text = normalize_description(description)
        completion = await self.provider.complete(build_system_prompt(), build_user_prompt(text))
        parsed = parse_completion(completion, self.default_confidence)

        if parsed["coerced"]:
            logger.warning(
                "Unknown category from LLM: %r, coerced to Other", parsed["raw_category"]
            )

        return ClassificationResult(
            category=parsed["category"],
            confidence=parsed["confidence"],
            source=ClassificationSource.LLM,
            reasoning=parsed["reasoning"] or f"LLM classified as {parsed['category'].value}",
            raw_details={"raw_category": parsed["raw_category"], "coerced": parsed["coerced"]},
        )
