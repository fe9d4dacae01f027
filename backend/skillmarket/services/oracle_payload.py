"""Decoding of the skill-pricing string published by the oracle contract.

The contract stores one string field that arrives either as a structured
JSON array (``[{"name": "defi", "rate": 140}, ...]``) or as the compact
wire format ``"defi|140,ai|110"``. Each format is a strategy; strategies are
tried in order and the first one that yields records wins.
"""

from __future__ import annotations

import json
import logging
import math
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Mapping

from pydantic import ValidationError

from skillmarket.core.errors import NoOracleData
from skillmarket.schemas.api import SkillPriceRecord
from skillmarket.services.enrichment import SkillEnrichment, enrich_skill
from skillmarket.services.skill_catalog import normalize_skill

logger = logging.getLogger(__name__)

ORACLE_SOURCE_MARKER = "oracle"
SOURCE_STRUCTURED = "oracle-structured"
SOURCE_COMPRESSED = "oracle-compressed"
ORACLE_CONFIDENCE = 0.95
EMPTY_PAYLOAD_SENTINELS = {"", "no data"}
TRENDS = {"declining", "stable", "growing", "surging"}

Baselines = Mapping[str, Mapping[str, Any]]
Strategy = Callable[..., dict]


def _parse_rate(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        if isinstance(value, (int, float)):
            rate = float(value)
        elif isinstance(value, str):
            rate = float(value.strip())
        else:
            return None
    except (ValueError, OverflowError):
        return None
    if not math.isfinite(rate) or rate < 0:
        return None
    return rate


def _int_in_range(value: Any, low: int, high: int | None = None) -> int | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    try:
        if not math.isfinite(value) or int(value) != value:
            return None
    except OverflowError:
        return None
    number = int(value)
    if number < low or (high is not None and number > high):
        return None
    return number


def _apply_overrides(base: SkillEnrichment, item: Mapping[str, Any]) -> dict[str, Any]:
    fields = {
        "demand": base.demand,
        "volume": base.volume,
        "competition": base.competition,
        "trend": base.trend,
        "region_multiplier": base.region_multiplier,
    }
    demand = _int_in_range(item.get("demand"), 0, 100)
    if demand is not None:
        fields["demand"] = demand
    volume = _int_in_range(item.get("volume"), 0)
    if volume is not None:
        fields["volume"] = volume
    competition = _int_in_range(item.get("competition"), 1, 10)
    if competition is not None:
        fields["competition"] = competition
    trend = str(item.get("trend") or "").strip().lower()
    if trend in TRENDS:
        fields["trend"] = trend
    multiplier = _parse_rate(item.get("regionMultiplier", item.get("region_multiplier")))
    if multiplier:
        fields["region_multiplier"] = multiplier
    return fields


def _build_record(
    skill: str,
    rate: float,
    *,
    source: str,
    now: datetime,
    baselines: Baselines | None,
    item: Mapping[str, Any] | None = None,
) -> SkillPriceRecord | None:
    enrichment = enrich_skill(skill, rate, baselines)
    fields = _apply_overrides(enrichment, item or {})
    try:
        return SkillPriceRecord(
            skill=skill,
            price=rate,
            source=source,
            confidence=ORACLE_CONFIDENCE,
            last_updated=now,
            **fields,
        )
    except ValidationError as exc:
        logger.warning("Discarding oracle entry for %s: %s", skill, exc)
        return None


def parse_structured(
    raw: str,
    requested: set[str],
    baselines: Baselines | None,
    now: datetime,
) -> dict[str, SkillPriceRecord]:
    try:
        payload = json.loads(raw)
    except (json.JSONDecodeError, ValueError):
        return {}
    if not isinstance(payload, list) or not payload:
        return {}

    result: dict[str, SkillPriceRecord] = {}
    for item in payload:
        if not isinstance(item, dict):
            continue
        skill = normalize_skill(str(item.get("name") or item.get("skill") or ""))
        if not skill or skill not in requested or skill in result:
            continue
        rate = _parse_rate(item["rate"] if item.get("rate") is not None else item.get("price"))
        if rate is None:
            logger.debug("Skipping structured entry for %s: invalid rate", skill)
            continue
        record = _build_record(
            skill,
            rate,
            source=SOURCE_STRUCTURED,
            now=now,
            baselines=baselines,
            item=item,
        )
        if record is not None:
            result[skill] = record
    return result


def parse_compressed(
    raw: str,
    requested: set[str],
    baselines: Baselines | None,
    now: datetime,
) -> dict[str, SkillPriceRecord]:
    result: dict[str, SkillPriceRecord] = {}
    for segment in raw.split(","):
        name, separator, rate_text = segment.strip().partition("|")
        if not separator:
            logger.debug("Skipping malformed segment %r", segment)
            continue
        skill = normalize_skill(name)
        rate = _parse_rate(rate_text) if "|" not in rate_text else None
        if not skill or rate is None:
            logger.debug("Skipping malformed segment %r", segment)
            continue
        if skill not in requested or skill in result:
            continue
        record = _build_record(skill, rate, source=SOURCE_COMPRESSED, now=now, baselines=baselines)
        if record is not None:
            result[skill] = record
    return result


PAYLOAD_STRATEGIES: tuple[tuple[str, Strategy], ...] = (
    ("structured", parse_structured),
    ("compressed", parse_compressed),
)


def parse_oracle_payload(
    raw: str | None,
    requested_skills: Iterable[str],
    *,
    baselines: Baselines | None = None,
    now: datetime | None = None,
) -> dict[str, SkillPriceRecord]:
    text = (raw or "").strip()
    if text.lower() in EMPTY_PAYLOAD_SENTINELS:
        raise NoOracleData("Oracle payload is empty")

    requested = {normalize_skill(skill) for skill in requested_skills if normalize_skill(skill)}
    if not requested:
        raise NoOracleData("No skills requested from oracle payload")

    stamp = now or datetime.now(timezone.utc)
    for name, strategy in PAYLOAD_STRATEGIES:
        records = strategy(text, requested, baselines, stamp)
        if records:
            logger.info(
                "Parsed %s oracle records using %s format: %s",
                len(records),
                name,
                ", ".join(f"{skill}=${record.price:g}/hr" for skill, record in records.items()),
            )
            return records

    raise NoOracleData(
        f"Oracle payload contained no usable data for: {', '.join(sorted(requested))}"
    )


def is_oracle_sourced(records: Mapping[str, SkillPriceRecord] | None) -> bool:
    if not records:
        return False
    return all(ORACLE_SOURCE_MARKER in str(record.source) for record in records.values())
