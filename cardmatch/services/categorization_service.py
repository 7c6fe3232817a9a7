"""
Categorization Orchestrator.

Resolves a purchase description to a category with a tiered, cheapest-first
fallback chain:

    cache -> keyword -> semantic -> LLM

The chain is data: an ordered list of Tier entries, each wrapping any object
with `async classify(description) -> ClassificationResult` plus the confidence
it must reach to be accepted. Tiers run strictly one after another; a later
tier is only called when every earlier tier was rejected.

Failure semantics:
- InvalidInputError for an empty description, before any tier runs
- ProviderUnavailableError (incl. timeouts) from a non-terminal tier: logged,
  chain continues
- ProviderUnavailableError from the terminal tier, or a terminal result with no
  signal: ClassificationUnavailableError (never a silent "Other")
- Anything else (e.g. a bug in the keyword matcher) propagates unchanged
"""

import asyncio
import dataclasses
import logging
import time
from dataclasses import dataclass
from typing import Any, Optional

from cardmatch.config import CategorizationConfig, EmbeddingConfig, LLMConfig
from cardmatch.engine.models import ClassificationResult, ClassificationSource, normalize_description
from cardmatch.errors import (
    ClassificationUnavailableError,
    InvalidInputError,
    ProviderTimeoutError,
    ProviderUnavailableError,
)
from cardmatch.services.llm_classifier_service import LLMClassifier, OpenAICompletionProvider
from cardmatch.services.merchant_matcher import KeywordMatcher
from cardmatch.services.openai_client import build_async_client
from cardmatch.services.result_cache import ResultCache
from cardmatch.services.semantic_service import InMemoryVectorIndex, OpenAIEmbeddingProvider, SemanticMatcher

logger = logging.getLogger(__name__)


TIER_NAMES = ("keyword", "semantic", "llm")


@dataclass(frozen=True)
class Tier:
    """
    One stage of the fallback chain.

    A result is accepted when it carries a signal (confidence > 0) and its
    confidence is at least threshold. The LLM tier uses threshold 0, so any
    signal is accepted.
    """
    name: ClassificationSource
    classifier: Any
    threshold: float
    timeout_seconds: Optional[float] = None

    def accepts(self, result: ClassificationResult) -> bool:
        return result.has_signal and result.confidence >= self.threshold


@dataclass(frozen=True)
class CategorizeOptions:
    # "keyword" | "semantic" | "llm"; bypasses the cache and runs only that tier
    force_tier: Optional[str] = None

    def __post_init__(self):
        if self.force_tier is not None and self.force_tier not in TIER_NAMES:
            raise InvalidInputError(
                f"Invalid force_tier: {self.force_tier}",
                {"force_tier": self.force_tier, "allowed": list(TIER_NAMES)},
            )


class CategorizationService:
    """
    Service for categorizing purchase descriptions.

    Pattern: constructor injection of the tier chain and cache (facilitates testing)

    Usage:
        service = CategorizationService(tiers, ResultCache())
        result = await service.categorize("STARBUCKS #1234 SEATTLE")
    """

    def __init__(self, tiers: list[Tier], cache: Optional[ResultCache] = None):
        if not tiers:
            raise ValueError("At least one categorization tier is required")
        self.tiers = list(tiers)
        self.cache = cache if cache is not None else ResultCache()

    async def prepare(self) -> None:
        """Populate the semantic index ahead of the first request, if that tier is installed."""
        semantic = self.tier("semantic")
        if semantic is None or not hasattr(semantic.classifier, "populate_index"):
            return
        try:
            await semantic.classifier.populate_index()
        except ProviderUnavailableError as e:
            logger.warning("Semantic index setup deferred to first request: %s", e.message)

    def tier(self, name: str) -> Optional[Tier]:
        for tier in self.tiers:
            if tier.name.value == name:
                return tier
        return None

    async def categorize(
        self,
        description: Any,
        options: Optional[CategorizeOptions] = None,
    ) -> ClassificationResult:
        """
        Categorize a purchase description.

        Args:
            description: Free-text purchase description
            options: Optional CategorizeOptions (force_tier)

        Returns:
            ClassificationResult; source is "cache" on a repeat lookup

        Raises:
            InvalidInputError: description empty/null, or unknown force_tier
            ClassificationUnavailableError: no tier produced an acceptable result
        """
        key = normalize_description(description)
        options = options or CategorizeOptions()

        if options.force_tier is not None:
            return await self._run_forced(key, options.force_tier)

        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("Cache hit for %r: %s (%.2f)", key, cached.category.value, cached.confidence)
            return dataclasses.replace(cached, source=ClassificationSource.CACHE)

        last_index = len(self.tiers) - 1
        for index, tier in enumerate(self.tiers):
            terminal = index == last_index
            try:
                result = await self._run_tier(tier, key)
            except ProviderUnavailableError as e:
                logger.warning("%s tier failed for %r: %s", tier.name.value, key, e.message)
                if terminal:
                    raise ClassificationUnavailableError(
                        "Unable to categorize purchase: every tier failed",
                        {"description": key, "last_tier": tier.name.value, "error": e.code},
                    ) from e
                continue

            if tier.accepts(result):
                self.cache.put(key, result)
                return result

            if terminal:
                raise ClassificationUnavailableError(
                    "Unable to categorize purchase: no tier produced a usable result",
                    {"description": key, "last_tier": tier.name.value},
                )
            logger.info(
                "%s tier rejected (%.2f < %.2f); escalating",
                tier.name.value, result.confidence, tier.threshold,
            )

        # Unreachable: the terminal tier either returns or raises
        raise ClassificationUnavailableError("Unable to categorize purchase", {"description": key})

    async def _run_forced(self, key: str, name: str) -> ClassificationResult:
        tier = self.tier(name)
        if tier is None:
            raise ClassificationUnavailableError(
                f"The {name} tier is not available", {"force_tier": name}
            )

        try:
            result = await self._run_tier(tier, key)
        except ProviderUnavailableError as e:
            logger.warning("Forced %s tier failed for %r: %s", name, key, e.message)
            raise ClassificationUnavailableError(
                f"Forced {name} tier failed", {"force_tier": name, "error": e.code}
            ) from e

        if not result.has_signal:
            raise ClassificationUnavailableError(
                f"Forced {name} tier produced no signal", {"force_tier": name, "description": key}
            )

        # Overwrites any earlier entry for this description
        self.cache.put(key, result)
        return result

    async def _run_tier(self, tier: Tier, key: str) -> ClassificationResult:
        started = time.perf_counter()
        try:
            if tier.timeout_seconds:
                result = await asyncio.wait_for(tier.classifier.classify(key), timeout=tier.timeout_seconds)
            else:
                result = await tier.classifier.classify(key)
        except asyncio.TimeoutError as e:
            raise ProviderTimeoutError(
                f"{tier.name.value} tier timed out after {tier.timeout_seconds}s",
                {"tier": tier.name.value},
            ) from e

        duration_ms = (time.perf_counter() - started) * 1000
        logger.info(
            "%s tier: %s (%.2f) in %.0fms",
            tier.name.value, result.category.value, result.confidence, duration_ms,
        )
        return result


def build_categorization_service(client=None, cache: Optional[ResultCache] = None) -> CategorizationService:
    """
    Build the default chain from configuration.

    The semantic tier is installed only when an OpenAI client exists and
    SEMANTIC_ENABLED is true. The LLM tier is always last; without a client it
    raises ProviderUnavailableError, so unmatched descriptions surface
    ClassificationUnavailableError.
    """
    if client is None:
        client = build_async_client()

    tiers = [
        Tier(ClassificationSource.KEYWORD, KeywordMatcher(), CategorizationConfig.KEYWORD_THRESHOLD),
    ]
    if client is not None and EmbeddingConfig.ENABLED:
        matcher = SemanticMatcher(OpenAIEmbeddingProvider(client), InMemoryVectorIndex())
        tiers.append(
            Tier(
                ClassificationSource.SEMANTIC,
                matcher,
                CategorizationConfig.SEMANTIC_THRESHOLD,
                float(EmbeddingConfig.TIMEOUT_SECONDS),
            )
        )
    tiers.append(
        Tier(
            ClassificationSource.LLM,
            LLMClassifier(OpenAICompletionProvider(client)),
            0.0,
            float(LLMConfig.TIMEOUT_SECONDS),
        )
    )

    if cache is None:
        cache = ResultCache(
            max_entries=CategorizationConfig.CACHE_MAX_ENTRIES,
            ttl_seconds=CategorizationConfig.CACHE_TTL_SECONDS,
        )
    return CategorizationService(tiers, cache)
