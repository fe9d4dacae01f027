from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Any, Iterable, Mapping

BASELINES_PATH = Path(__file__).resolve().parents[1] / "data" / "skill_baselines.json"

SUPPORTED_SKILLS: tuple[str, ...] = (
    "frontend",
    "backend",
    "fullstack",
    "blockchain",
    "ai",
    "mobile",
    "design",
    "marketing",
    "defi",
    "nft",
    "solidity",
    "react",
    "node",
    "python",
    "java",
    "golang",
    "rust",
    "smart_contracts",
    "web3",
)
VERIFIED_SKILLS: tuple[str, ...] = SUPPORTED_SKILLS[:10]
DEFAULT_SKILLS_FOR_ANALYSIS: tuple[str, ...] = ("frontend", "backend", "blockchain", "ai")
PRICE_RANGES: dict[str, dict[str, Any]] = {
    "premium": {"min": 120, "skills": ["defi", "nft", "blockchain"]},
    "high": {"min": 80, "skills": ["ai", "fullstack"]},
    "medium": {"min": 65, "skills": ["backend", "mobile", "frontend"]},
    "standard": {"min": 55, "skills": ["design", "marketing"]},
}
BASELINE_FIELDS = ("demand", "volume", "competition", "trend", "region_multiplier")


def normalize_skill(text: str) -> str:
    return "_".join(
        (text or "")
        .strip()
        .lower()
        .replace("-", " ")
        .replace("_", " ")
        .split()
    )


def validate_skills(
    skills: Iterable[str],
    supported: Iterable[str] = SUPPORTED_SKILLS,
) -> list[str]:
    allowed = set(supported)
    out: list[str] = []
    seen: set[str] = set()
    for raw in skills:
        skill = normalize_skill(str(raw or ""))
        if not skill or skill in seen or skill not in allowed:
            continue
        seen.add(skill)
        out.append(skill)
    return out


def _check_baseline(name: str, record: Mapping[str, Any]) -> dict[str, Any]:
    missing = [field for field in BASELINE_FIELDS if field not in record]
    if missing:
        raise ValueError(f"Skill baseline '{name}' is missing fields: {', '.join(missing)}")
    return {field: record[field] for field in BASELINE_FIELDS}


def parse_skill_baselines(raw: Mapping[str, Any]) -> dict[str, dict[str, Any]]:
    if not isinstance(raw, Mapping):
        raise ValueError("Skill baselines must be a mapping of skill name to baseline record")
    return {normalize_skill(name): _check_baseline(name, record) for name, record in raw.items()}


@lru_cache(maxsize=4)
def load_skill_baselines(path: str | None = None) -> dict[str, dict[str, Any]]:
    source = Path(path) if path else BASELINES_PATH
    with source.open("r", encoding="utf-8") as handle:
        return parse_skill_baselines(json.load(handle))
