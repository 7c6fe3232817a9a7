"""
Semantic matcher - the middle categorization tier.

Embeds the description, looks up the single nearest labeled training example
in a vector index, and returns that example's category with confidence equal
to the cosine similarity.

Failure kinds are kept distinct so the orchestrator can tell them apart:
- ProviderTimeoutError / ProviderUnauthorizedError / ProviderUnavailableError
  from the embedding provider
- IndexNotFoundError from the index (never populated); the matcher re-runs
  index setup once before giving up
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence

from openai import APIError, AsyncOpenAI

from cardmatch.config import EmbeddingConfig
from cardmatch.engine.models import CategoryLabel, ClassificationResult, ClassificationSource, normalize_description
from cardmatch.errors import IndexNotFoundError, ProviderUnavailableError
from cardmatch.services.openai_client import translate_openai_error

logger = logging.getLogger(__name__)


# Offline training set: labeled examples embedded into the index once
TRAINING_EXAMPLES: dict[CategoryLabel, list[str]] = {
    CategoryLabel.TRAVEL: [
        "hotel booking reservation",
        "flight airline ticket purchase",
        "rental car hertz enterprise avis",
        "vacation trip travel accommodation",
        "business trip conference hotel",
        "cruise ship vacation booking",
        "airbnb vrbo vacation rental",
    ],
    CategoryLabel.DINING: [
        "restaurant dinner lunch meal",
        "takeout delivery food order",
        "coffee shop cafe starbucks dunkin",
        "bar drinks alcohol beverages",
        "pizza burger fast food drive thru",
        "grabbing a bite food purchase",
        "date night dinner romantic meal",
    ],
    CategoryLabel.GROCERY: [
        "grocery shopping supermarket store",
        "whole foods trader joes market",
        "food ingredients produce vegetables",
        "weekly grocery shopping trip",
        "food shopping for family",
        "bulk shopping warehouse club",
        "farmers market fresh produce",
    ],
    CategoryLabel.GAS: [
        "gas station fuel gasoline purchase",
        "fill up tank petroleum diesel",
        "fuel for my vehicle car",
        "refueling stop road trip",
        "gasoline purchase highway travel",
        "filling up car tank",
    ],
    CategoryLabel.ENTERTAINMENT: [
        "movie theater cinema tickets",
        "netflix hulu disney streaming",
        "concert show event tickets",
        "gaming video games entertainment",
        "amusement park theme park",
        "weekend entertainment activities",
    ],
    CategoryLabel.ONLINE: [
        "amazon online shopping purchase",
        "ebay marketplace online auction",
        "digital download software app",
        "e-commerce web store online",
        "internet purchase web order",
    ],
    CategoryLabel.TRANSIT: [
        "public transportation metro subway",
        "subway fare metrocard transit",
        "bus ticket transit pass",
        "parking meter toll road fee",
        "commuter rail train ticket",
        "public transport daily commute",
    ],
    CategoryLabel.HEALTHCARE: [
        "doctor medical appointment visit",
        "pharmacy prescription medicine drug",
        "dental dentist checkup cleaning",
        "hospital clinic medical care",
        "medical supplies equipment",
    ],
    CategoryLabel.UTILITIES: [
        "electric bill electricity payment",
        "gas bill natural gas utility",
        "water sewer utility bill",
        "internet cable phone service",
        "wireless cellular mobile phone",
    ],
    CategoryLabel.INSURANCE: [
        "car insurance premium payment",
        "home renters insurance policy",
        "life insurance monthly premium",
    ],
}


@dataclass(frozen=True)
class IndexMatch:
    label: CategoryLabel
    score: float
    text: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    if len(a) != len(b):
        raise ValueError(f"Vector dimensions differ: {len(a)} != {len(b)}")
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (norm_a * norm_b)


class OpenAIEmbeddingProvider:
    """Embedding provider over AsyncOpenAI.embeddings."""

    def __init__(self, client: Optional[AsyncOpenAI], model: str = EmbeddingConfig.MODEL):
        self.client = client
        self.model = model

    async def embed(self, texts: list[str]) -> list[list[float]]:
        if self.client is None:
            raise ProviderUnavailableError("Embedding provider not configured", {"provider": "openai-embeddings"})
        try:
            response = await self.client.embeddings.create(model=self.model, input=texts)
        except (APIError, ConnectionError, IOError) as e:
            raise translate_openai_error(e, "openai-embeddings") from e
        return [item.embedding for item in response.data]


class InMemoryVectorIndex:
    """
    Cosine-similarity vector index held in process memory.

    Usage:
        index = InMemoryVectorIndex()
        await index.upsert([("dining_0", vector, {"category": "Dining", "text": "..."})])
        matches = await index.query(query_vector, top_k=1)
    """

    def __init__(self):
        self._vectors: dict[str, tuple[list[float], dict[str, Any]]] = {}

    async def upsert(self, items: list[tuple[str, list[float], dict[str, Any]]]) -> int:
        for vector_id, values, metadata in items:
            self._vectors[vector_id] = (list(values), dict(metadata))
        return len(items)

    async def query(self, vector: Sequence[float], top_k: int = 1) -> list[IndexMatch]:
        if not self._vectors:
            raise IndexNotFoundError("Vector index has not been populated", {"index": "in-memory"})

        scored = []
        for values, metadata in self._vectors.values():
            scored.append(
                IndexMatch(
                    label=CategoryLabel.parse(metadata["category"]),
                    score=cosine_similarity(vector, values),
                    text=metadata.get("text", ""),
                    metadata=metadata,
                )
            )
        scored.sort(key=lambda m: m.score, reverse=True)
        return scored[:top_k]

    def __len__(self) -> int:
        return len(self._vectors)


class SemanticMatcher:
    """Nearest-example classifier over an embedding provider and a vector index."""

    def __init__(self, embedder, index, training_examples: Optional[dict[CategoryLabel, list[str]]] = None):
        self.embedder = embedder
        self.index = index
        self.training_examples = training_examples if training_examples is not None else TRAINING_EXAMPLES
        self._feedback_count = 0

    async def populate_index(self) -> int:
        """Embed the training set and upsert it into the index. Returns the vector count."""
        items = []
        for category, texts in self.training_examples.items():
            if not texts:
                continue
            vectors = await self.embedder.embed(list(texts))
            for position, (text, vector) in enumerate(zip(texts, vectors)):
                items.append((
                    f"{category.value.lower()}_{position}",
                    vector,
                    {"category": category.value, "text": text},
                ))
        count = await self.index.upsert(items)
        logger.info("Semantic index populated with %d training examples", count)
        return count

    async def add_training_example(self, text: str, category: CategoryLabel) -> None:
        """Upsert a single labeled example (e.g. from user feedback)."""
        normalized = normalize_description(text)
        category = CategoryLabel.parse(category)
        vector = (await self.embedder.embed([normalized]))[0]
        self._feedback_count += 1
        await self.index.upsert([(
            f"feedback_{category.value.lower()}_{self._feedback_count}",
            vector,
            {"category": category.value, "text": normalized, "source": "user_feedback"},
        )])
        logger.info("Added training example %r -> %s", normalized, category.value)

    async def classify(self, description: str) -> ClassificationResult:
        text = normalize_description(description)
        vector = (await self.embedder.embed([text]))[0]

        try:
            matches = await self.index.query(vector, top_k=1)
        except IndexNotFoundError:
            logger.warning("Semantic index missing; running index setup once")
            await self.populate_index()
            matches = await self.index.query(vector, top_k=1)

        if not matches:
            return ClassificationResult.no_signal(
                ClassificationSource.SEMANTIC, "No similar examples found", top_score=0.0
            )

        top = matches[0]
        confidence = min(max(float(top.score), 0.0), 1.0)
        return ClassificationResult(
            category=top.label,
            confidence=confidence,
            source=ClassificationSource.SEMANTIC,
            reasoning=f"Nearest training example: '{top.text}' (similarity {top.score:.3f})",
            raw_details={"top_score": float(top.score), "matched_text": top.text},
        )
