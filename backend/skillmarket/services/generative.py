from __future__ import annotations

import json
import math
from typing import Iterable, Mapping

from pydantic import ValidationError

from skillmarket.core.errors import GenerativeSynthesisFailure
from skillmarket.schemas.api import SkillPriceRecord
from skillmarket.schemas.generative import GenerativeAnalysis
from skillmarket.services.skill_catalog import PRICE_RANGES, SUPPORTED_SKILLS, VERIFIED_SKILLS

MARKET_CONTEXT = (
    "- AI/ML boom driving premium rates ($100-150/hr)",
    "- Web3/Blockchain maintaining high demand ($120-180/hr)",
    "- Remote-first economy increasing global competition",
    "- Economic uncertainty affecting project budgets",
    "- Increasing demand for full-stack versatility",
)

RESPONSE_SHAPE = """{
  "skillAnalysis": [
    {
      "skill": "skill_name",
      "averageHourlyRate": number,
      "demandLevel": "low|medium|high|very_high",
      "marketTrend": "declining|stable|growing|surging",
      "competitionLevel": number (1-10),
      "projectVolume": number,
      "regionMultiplier": number
    }
  ],
  "marketSummary": {
    "topPayingSkills": ["skill1", "skill2", "skill3"],
    "emergingSkills": ["emerging1"],
    "oversaturatedSkills": ["saturated1"],
    "marketHotspots": ["region1", "region2"]
  },
  "recommendations": {
    "shortTerm": ["action1"],
    "mediumTerm": ["strategy1"],
    "longTerm": ["vision1"],
    "rateOptimization": ["rate1"]
  },
  "insights": {
    "marketOpportunities": ["opportunity1"],
    "threatAnalysis": ["threat1"],
    "competitiveAdvantages": ["advantage1"]
  },
  "priceProjections": {
    "next3Months": {"skill_name": rate},
    "next6Months": {"skill_name": rate},
    "yearAhead": {"skill_name": rate}
  }
}"""


def build_analysis_prompt(skills: Iterable[str], oracle_data: Mapping[str, SkillPriceRecord]) -> str:
    skill_list = list(skills)
    oracle_json = json.dumps(
        {skill: record.model_dump(mode="json") for skill, record in oracle_data.items()},
        indent=2,
        sort_keys=True,
    )
    tiers = "\n".join(
        f"- {tier}: from ${info['min']}/hr ({', '.join(info['skills'])})"
        for tier, info in PRICE_RANGES.items()
    )
    return (
        f"Analyze the current freelance market for these skills: {', '.join(skill_list)}\n\n"
        f"On-chain oracle market data (authoritative hourly rates in USD):\n{oracle_json}\n\n"
        f"Supported skill catalog: {', '.join(SUPPORTED_SKILLS)}\n"
        f"Skills with verified market baselines: {', '.join(VERIFIED_SKILLS)}\n"
        f"Catalog price tiers:\n{tiers}\n\n"
        "Current market context:\n" + "\n".join(MARKET_CONTEXT) + "\n\n"
        "Provide the analysis in this exact JSON format, with one skillAnalysis entry and one "
        "projection per horizon for every skill listed above and no other skills:\n\n"
        f"{RESPONSE_SHAPE}\n\n"
        "Focus on actionable insights and specific rate recommendations grounded in the oracle data."
    )


def extract_json_object(text: str) -> str | None:
    """Return the first balanced ``{...}`` block in ``text``, string-aware."""
    start = text.find("{")
    if start == -1:
        return None
    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start:index + 1]
    return None


def parse_generative_analysis(text: str, expected_skills: Iterable[str]) -> GenerativeAnalysis:
    block = extract_json_object(text or "")
    if block is None:
        raise GenerativeSynthesisFailure("No JSON object found in model output")
    try:
        analysis = GenerativeAnalysis.model_validate_json(block)
    except ValidationError as exc:
        raise GenerativeSynthesisFailure(
            f"Model output failed schema validation ({exc.error_count()} errors)"
        ) from exc

    for entry in analysis.skillAnalysis:
        if not (math.isfinite(entry.averageHourlyRate) and math.isfinite(entry.regionMultiplier)):
            raise GenerativeSynthesisFailure(f"Model returned non-finite figures for {entry.skill}")

    expected = set(expected_skills)
    analyzed = [entry.skill for entry in analysis.skillAnalysis]
    if len(analyzed) != len(set(analyzed)) or set(analyzed) != expected:
        raise GenerativeSynthesisFailure(
            f"Model analyzed {sorted(analyzed)} but oracle data covers {sorted(expected)}"
        )
    projections = analysis.priceProjections
    for horizon in (projections.next3Months, projections.next6Months, projections.yearAhead):
        if set(horizon) != expected:
            raise GenerativeSynthesisFailure("Model price projections do not match analyzed skills")
        if any(not math.isfinite(value) for value in horizon.values()):
            raise GenerativeSynthesisFailure("Model price projections contain non-finite rates")
        if any(value < 0 for value in horizon.values()):
            raise GenerativeSynthesisFailure("Model price projections contain negative rates")
    return analysis
