from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Mapping

from skillmarket.services.skill_catalog import load_skill_baselines, normalize_skill

MIN_REGION_MULTIPLIER = 0.8
MAX_REGION_MULTIPLIER = 2.0
REGION_BASE_RATE = 80.0


@dataclass(frozen=True)
class SkillEnrichment:
    demand: int
    volume: int
    competition: int
    trend: str
    region_multiplier: float


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, float(value)))


def rate_based_enrichment(rate: float) -> SkillEnrichment:
    # Heuristic defaults for skills without a hand-tuned baseline.
    return SkillEnrichment(
        demand=90 if rate > 100 else 80 if rate > 80 else 70,
        volume=600 + math.floor(rate * 5),
        competition=3 if rate > 100 else 5 if rate > 80 else 7,
        trend="surging" if rate > 100 else "growing" if rate > 80 else "stable",
        region_multiplier=_clamp(rate / REGION_BASE_RATE, MIN_REGION_MULTIPLIER, MAX_REGION_MULTIPLIER),
    )


def enrich_skill(
    skill: str,
    rate: float,
    baselines: Mapping[str, Mapping[str, Any]] | None = None,
) -> SkillEnrichment:
    table = load_skill_baselines() if baselines is None else baselines
    baseline = table.get(normalize_skill(skill))
    if baseline is None:
        return rate_based_enrichment(rate)
    return SkillEnrichment(
        demand=int(baseline["demand"]),
        volume=int(baseline["volume"]),
        competition=int(baseline["competition"]),
        trend=str(baseline["trend"]),
        region_multiplier=float(baseline["region_multiplier"]),
    )
