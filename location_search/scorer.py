"""Relevance scoring, cross-source deduplication and ranking."""

import logging
import math
import re
from dataclasses import replace
from typing import List, Optional

from rapidfuzz import fuzz

from .config import Config
from .models import LocationResult, Source

logger = logging.getLogger(__name__)

_WORD_SPLIT = re.compile(r"[\s,/&()\-]+")

# Tiers in descending strength; keys match Config.match_weights
MATCH_TIERS = ("exact", "prefix", "word_prefix", "substring", "fuzzy", "none")


def normalize_text(text: Optional[str]) -> str:
    if not text:
        return ""
    return re.sub(r"\s+", " ", text.lower().strip())


def text_match_quality(query: str, text: Optional[str], fuzzy_threshold: float = 80.0) -> str:
    """Classify how well `text` matches `query` into one of MATCH_TIERS."""
    q = normalize_text(query)
    t = normalize_text(text)
    if not q or not t:
        return "none"
    if t == q:
        return "exact"
    if t.startswith(q):
        return "prefix"
    if any(word.startswith(q) for word in _WORD_SPLIT.split(t) if word):
        return "word_prefix"
    if q in t:
        return "substring"
    if fuzz.partial_ratio(q, t) >= fuzzy_threshold:
        return "fuzzy"
    return "none"


def names_match(a: str, b: str) -> bool:
    na = normalize_text(a)
    return bool(na) and na == normalize_text(b)


class RelevanceScorer:
    """Scores, deduplicates and orders merged results from all sources."""

    def __init__(self, config: Config):
        self.config = config
        self._trust = {Source(s): i for i, s in enumerate(config.trust_order)}
        missing = [t for t in MATCH_TIERS if t not in config.match_weights]
        if missing:
            raise ValueError(f"match_weights missing tiers: {missing}")

    def trust_rank(self, source: Source) -> int:
        return self._trust.get(Source(source), len(self._trust))

    def match_tier(self, query: str, result: LocationResult) -> str:
        tier = text_match_quality(query, result.name, self.config.fuzzy_threshold)
        if tier != "none":
            return tier
        # Secondary labels only ever earn a fuzzy-level match
        for secondary in (result.address, result.type):
            if text_match_quality(query, secondary, self.config.fuzzy_threshold) != "none":
                return "fuzzy"
        return "none"

    def score(self, query: str, result: LocationResult) -> float:
        return self.config.match_weights[self.match_tier(query, result)]

    def is_duplicate(self, a: LocationResult, b: LocationResult) -> bool:
        eps = self.config.dedup_epsilon_deg
        if abs(a.lat - b.lat) <= eps and abs(a.lng - b.lng) <= eps:
            return True
        return names_match(a.name, b.name)

    def dedupe(self, results: List[LocationResult]) -> List[LocationResult]:
        """Drop duplicates, keeping the most trusted source of each place.

        Survivors keep their discovery order. Among equally trusted duplicates
        the first discovered wins.
        """
        indexed = list(enumerate(results))
        by_trust = sorted(indexed, key=lambda pair: (self.trust_rank(pair[1].source), pair[0]))
        kept = []
        for idx, result in by_trust:
            dup = next((k for _, k in kept if self.is_duplicate(k, result)), None)
            if dup is not None:
                logger.debug(f"Dedup: dropped {result.id} ({result.source.value}) in favour of {dup.id}")
                continue
            kept.append((idx, result))
        kept.sort(key=lambda pair: pair[0])
        return [r for _, r in kept]

    def rank(self, query: str, results: List[LocationResult]) -> List[LocationResult]:
        """Score and stably sort: text match, then trust order, then distance."""
        scored = [replace(r, raw_score=self.score(query, r)) for r in results]
        return sorted(
            scored,
            key=lambda r: (
                -r.raw_score,
                self.trust_rank(r.source),
                r.distance_km if r.distance_km is not None else math.inf,
            ),
        )

    def merge(self, query: str, results: List[LocationResult], limit: Optional[int] = None) -> List[LocationResult]:
        limit = self.config.max_results if limit is None else limit
        return self.rank(query, self.dedupe(results))[:limit]
