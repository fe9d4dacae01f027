from __future__ import annotations

import asyncio
import logging
import math
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping

from skillmarket.core.cache import TTLCache
from skillmarket.core.config import Settings, settings as default_settings
from skillmarket.core.errors import GenerativeSynthesisFailure, NoOracleData, RateLimited, UnsupportedSkill
from skillmarket.core.ratelimit import CallIntervalLimiter
from skillmarket.schemas.api import (
    CacheStatsOut,
    DataAvailabilityOut,
    Insights,
    MarketAnalysisResult,
    MarketSummary,
    PriceProjections,
    Recommendations,
    SkillAnalysis,
    SkillComparisonOut,
    SkillPriceRecord,
)
from skillmarket.schemas.generative import GenerativeAnalysis
from skillmarket.services.ai import LLMClient
from skillmarket.services.chain_reader import ChainReader
from skillmarket.services.generative import build_analysis_prompt, parse_generative_analysis
from skillmarket.services.oracle_payload import ORACLE_CONFIDENCE, ORACLE_SOURCE_MARKER, is_oracle_sourced, parse_oracle_payload
from skillmarket.services.skill_catalog import SUPPORTED_SKILLS, normalize_skill, validate_skills

logger = logging.getLogger(__name__)

ORACLE_SERVICE = "oracle"
DATA_SOURCE_GENERATIVE = "generative-oracle"
DATA_SOURCE_DETERMINISTIC = "deterministic-oracle"

TREND_MULTIPLIERS = {"declining": 0.95, "stable": 1.0, "growing": 1.05, "surging": 1.15}
DEMAND_MULTIPLIERS = {"low": 0.95, "medium": 1.0, "high": 1.03, "very_high": 1.08}
HORIZON_MULTIPLIERS = {"next_3_months": 1.02, "next_6_months": 1.05, "year_ahead": 1.12}

MARKET_HOTSPOTS = [
    "North America (Remote)",
    "Europe (Remote)",
    "Singapore/Hong Kong",
    "Global Web3 Projects",
]
MEDIUM_TERM_ACTIONS = [
    "Develop complementary high-demand skills (especially AI/Web3)",
    "Build thought leadership through content and speaking",
    "Establish strategic partnerships with agencies",
    "Create value-based pricing packages",
]
LONG_TERM_ACTIONS = [
    "Build scalable products and passive income streams",
    "Establish personal brand in specialty niche",
    "Transition to high-level consulting and strategy work",
    "Consider founding/joining Web3 or AI startups",
]
RATE_OPTIMIZATION = [
    "Bundle complementary services for premium pricing",
    "Implement value-based pricing for business outcomes",
    "Create tiered pricing (basic/premium/enterprise)",
    "Consider retainer agreements for consistent income",
]
MARKET_OPPORTUNITIES = [
    "AI integration projects commanding premium rates",
    "Web3/DeFi development showing sustained high demand",
    "Cross-platform expertise increasingly valuable",
    "Remote-first companies paying global premium rates",
    "Emerging markets adopting digital-first strategies",
]
THREAT_ANALYSIS = [
    "AI tools automating routine development tasks",
    "Increased global competition from emerging markets",
    "Economic uncertainty reducing project budgets",
    "Platform dependency risks (algorithm changes)",
    "Rapid technology obsolescence requiring constant upskilling",
]
COMPETITIVE_ADVANTAGES = [
    "Multi-skill expertise provides client flexibility",
    "Emerging technology experience creates premium value",
    "Strong portfolio differentiates from commoditized skills",
    "Business understanding enhances technical delivery",
    "Cultural/timezone alignment for key markets",
]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def demand_level(score: int | None) -> str:
    if not score:
        return "medium"
    if score >= 90:
        return "very_high"
    if score >= 70:
        return "high"
    if score >= 50:
        return "medium"
    return "low"


def skill_analysis_from_record(record: SkillPriceRecord) -> SkillAnalysis:
    return SkillAnalysis(
        skill=record.skill,
        average_hourly_rate=record.price,
        demand_level=demand_level(record.demand),
        market_trend=record.trend,
        competition_level=record.competition,
        project_volume=record.volume,
        region_multiplier=record.region_multiplier,
    )


def calculate_market_health(skill_analysis: list[SkillAnalysis]) -> str:
    if not skill_analysis:
        return "poor"
    count = len(skill_analysis)
    avg_rate = sum(entry.average_hourly_rate for entry in skill_analysis) / count
    demand_ratio = sum(1 for entry in skill_analysis if entry.demand_level in {"high", "very_high"}) / count
    growth_ratio = sum(1 for entry in skill_analysis if entry.market_trend in {"growing", "surging"}) / count

    if avg_rate >= 100 and demand_ratio >= 0.7 and growth_ratio >= 0.5:
        return "excellent"
    if avg_rate >= 80 and demand_ratio >= 0.5 and growth_ratio >= 0.3:
        return "good"
    if avg_rate >= 60 and demand_ratio >= 0.3:
        return "fair"
    return "poor"


def competition_factor(competition: int) -> float:
    return max(0.98, 1.05 - competition * 0.005)


def generate_price_projections(skill_analysis: list[SkillAnalysis]) -> PriceProjections:
    horizons: dict[str, dict[str, int]] = {name: {} for name in HORIZON_MULTIPLIERS}
    for entry in skill_analysis:
        quarterly = (
            TREND_MULTIPLIERS[entry.market_trend]
            * DEMAND_MULTIPLIERS[entry.demand_level]
            * competition_factor(entry.competition_level)
        )
        for name, multiplier in HORIZON_MULTIPLIERS.items():
            horizons[name][entry.skill] = round_half_up(entry.average_hourly_rate * quarterly * multiplier)
    return PriceProjections(**horizons)


def deterministic_analysis(
    skill_analysis: list[SkillAnalysis],
) -> tuple[MarketSummary, Recommendations, Insights]:
    ranked = sorted(skill_analysis, key=lambda entry: entry.average_hourly_rate, reverse=True)
    top_paying = [entry.skill for entry in ranked[:3]]
    emerging = [
        entry.skill
        for entry in skill_analysis
        if entry.market_trend == "surging"
        or (entry.market_trend == "growing" and entry.demand_level == "very_high")
    ]
    oversaturated = [
        entry.skill
        for entry in skill_analysis
        if entry.competition_level > 7 and entry.demand_level != "very_high"
    ]

    if ranked:
        focus = f"Focus on highest-paying skill: {ranked[0].skill} (${ranked[0].average_hourly_rate:g}/hr)"
    else:
        focus = "Optimize current skill positioning and rates"

    summary = MarketSummary(
        top_paying_skills=top_paying,
        emerging_skills=emerging,
        oversaturated_skills=oversaturated,
        market_hotspots=list(MARKET_HOTSPOTS),
    )
    recommendations = Recommendations(
        short_term=[
            focus,
            "Update portfolio with latest projects and technologies",
            "Research competitor rates in your niche",
            "Consider 10-20% rate increase for in-demand skills",
        ],
        medium_term=list(MEDIUM_TERM_ACTIONS),
        long_term=list(LONG_TERM_ACTIONS),
        rate_optimization=list(RATE_OPTIMIZATION),
    )
    insights = Insights(
        market_opportunities=list(MARKET_OPPORTUNITIES),
        threat_analysis=list(THREAT_ANALYSIS),
        competitive_advantages=list(COMPETITIVE_ADVANTAGES),
    )
    return summary, recommendations, insights


def _from_generative(
    generated: GenerativeAnalysis,
) -> tuple[list[SkillAnalysis], MarketSummary, Recommendations, Insights, PriceProjections]:
    skill_analysis = [
        SkillAnalysis(
            skill=entry.skill,
            average_hourly_rate=entry.averageHourlyRate,
            demand_level=entry.demandLevel,
            market_trend=entry.marketTrend,
            competition_level=entry.competitionLevel,
            project_volume=entry.projectVolume,
            region_multiplier=entry.regionMultiplier,
        )
        for entry in generated.skillAnalysis
    ]
    summary = MarketSummary(
        top_paying_skills=generated.marketSummary.topPayingSkills,
        emerging_skills=generated.marketSummary.emergingSkills,
        oversaturated_skills=generated.marketSummary.oversaturatedSkills,
        market_hotspots=generated.marketSummary.marketHotspots,
    )
    recommendations = Recommendations(
        short_term=generated.recommendations.shortTerm,
        medium_term=generated.recommendations.mediumTerm,
        long_term=generated.recommendations.longTerm,
        rate_optimization=generated.recommendations.rateOptimization,
    )
    insights = Insights(
        market_opportunities=generated.insights.marketOpportunities,
        threat_analysis=generated.insights.threatAnalysis,
        competitive_advantages=generated.insights.competitiveAdvantages,
    )
    projections = PriceProjections(
        next_3_months={k: round_half_up(v) for k, v in generated.priceProjections.next3Months.items()},
        next_6_months={k: round_half_up(v) for k, v in generated.priceProjections.next6Months.items()},
        year_ahead={k: round_half_up(v) for k, v in generated.priceProjections.yearAhead.items()},
    )
    return skill_analysis, summary, recommendations, insights, projections


class MarketAnalysisEngine:
    """Validate -> acquire oracle pricing -> synthesize -> finalize.

    Cache and limiter are owned by the instance; build one engine per
    process (or per test) and inject collaborators.
    """

    def __init__(
        self,
        reader: ChainReader,
        *,
        llm: LLMClient | None = None,
        cache: TTLCache[Any] | None = None,
        limiter: CallIntervalLimiter | None = None,
        contract_address: str | None = None,
        baselines: Mapping[str, Mapping[str, Any]] | None = None,
        supported_skills: Iterable[str] = SUPPORTED_SKILLS,
        config: Settings | None = None,
        chain_id: int | None = None,
    ):
        self.config = config or default_settings
        self.reader = reader
        self.llm = llm
        self.cache = cache or TTLCache(
            self.config.market_cache_ttl_seconds,
            max_entries=self.config.market_cache_max_entries,
        )
        self.limiter = limiter or CallIntervalLimiter(self.config.oracle_min_interval_seconds)
        self.contract_address = contract_address or self.config.skill_price_contract_address
        self.baselines = baselines
        self.supported_skills = tuple(supported_skills)
        self.chain_id = chain_id or self.config.default_chain_id

    def validate(self, skills: Iterable[str]) -> list[str]:
        requested = list(skills or [])
        valid = validate_skills(requested, self.supported_skills)
        if not valid:
            raise UnsupportedSkill([str(skill) for skill in requested])
        return valid

    def _oracle_key(self, skills: Iterable[str]) -> str:
        return f"{ORACLE_SERVICE}_{self.contract_address}:{','.join(sorted(skills))}"

    def _analysis_key(self, skills: Iterable[str]) -> str:
        return f"analysis_{self._oracle_key(skills)}"

    async def fetch_oracle_data(self, skills: Iterable[str]) -> dict[str, SkillPriceRecord]:
        wanted = list(skills)
        cache_key = self._oracle_key(wanted)
        cached = self.cache.get(cache_key)
        if is_oracle_sourced(cached):
            logger.debug("Using cached oracle data for %s", cache_key)
            return cached

        if self.limiter.is_limited(ORACLE_SERVICE):
            raise RateLimited(ORACLE_SERVICE, self.limiter.retry_after(ORACLE_SERVICE))

        self.limiter.mark_called(ORACLE_SERVICE)
        raw = await self.reader.read_skills_payload(self.contract_address, self.chain_id)
        records = parse_oracle_payload(raw, wanted, baselines=self.baselines)
        self.cache.set(cache_key, records)
        return records

    async def _synthesize(
        self,
        skills: list[str],
        records: Mapping[str, SkillPriceRecord],
    ) -> MarketAnalysisResult:
        missing = [skill for skill in skills if skill not in records]
        if missing:
            logger.warning("No oracle pricing for %s; omitted from analysis", ", ".join(missing))
        acquired = {skill: records[skill] for skill in skills if skill in records}
        if not acquired:
            raise NoOracleData(f"No oracle data found for: {', '.join(skills)}")

        generated = await self._try_generative(acquired)
        if generated is not None:
            skill_analysis, summary, recommendations, insights, projections = _from_generative(generated)
            data_source = DATA_SOURCE_GENERATIVE
        else:
            skill_analysis = [skill_analysis_from_record(record) for record in acquired.values()]
            summary, recommendations, insights = deterministic_analysis(skill_analysis)
            projections = generate_price_projections(skill_analysis)
            data_source = DATA_SOURCE_DETERMINISTIC

        return MarketAnalysisResult(
            skill_analysis=skill_analysis,
            market_summary=summary,
            recommendations=recommendations,
            insights=insights,
            price_projections=projections,
            oracle_data=acquired,
            data_source=data_source,
            last_updated=_utcnow(),
            confidence=ORACLE_CONFIDENCE,
            market_health=calculate_market_health(skill_analysis),
        )

    async def _try_generative(self, acquired: dict[str, SkillPriceRecord]) -> GenerativeAnalysis | None:
        if self.llm is None or not self.llm.is_configured:
            return None
        try:
            completion = await self.llm.complete(build_analysis_prompt(acquired.keys(), acquired))
            return parse_generative_analysis(completion, acquired.keys())
        except GenerativeSynthesisFailure as exc:
            logger.warning("Generative synthesis failed, using deterministic analysis: %s", exc)
            return None

    async def analyze_market(self, skills: Iterable[str]) -> MarketAnalysisResult:
        valid = self.validate(skills)
        cache_key = self._analysis_key(valid)
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached

        records = await self.fetch_oracle_data(valid)
        result = await self._synthesize(valid, records)
        self.cache.set(cache_key, result)
        logger.info(
            "Market analysis for %s complete (%s, health=%s)",
            ", ".join(valid),
            result.data_source,
            result.market_health,
        )
        return result

    async def analyze_many(self, skill_sets: Iterable[Iterable[str]]) -> list[MarketAnalysisResult]:
        """Analyze several skill sets behind one oracle read of their union."""
        validated = [self.validate(skills) for skills in skill_sets]
        union = sorted({skill for skills in validated for skill in skills})
        if not union:
            return []
        records = await self.fetch_oracle_data(union)
        results = await asyncio.gather(*(self._synthesize(skills, records) for skills in validated))
        for skills, result in zip(validated, results):
            self.cache.set(self._analysis_key(skills), result)
        return list(results)

    async def refresh_market_data(self, skills: Iterable[str]) -> dict[str, SkillPriceRecord]:
        valid = self.validate(skills)
        targets = set(valid)

        def mentions_skill(key: str) -> bool:
            _, _, joined = key.rpartition(":")
            return bool(targets.intersection(joined.split(",")))

        dropped = self.cache.delete_matching(mentions_skill)
        logger.info("Dropped %s cache entries before refreshing %s", dropped, ", ".join(valid))
        return await self.fetch_oracle_data(valid)

    def clear_all_cache(self) -> int:
        cleared = len(self.cache)
        self.cache.clear()
        self.limiter.clear()
        logger.info("All market caches cleared (%s entries)", cleared)
        return cleared

    def clear_oracle_cache(self) -> int:
        cleared = self.cache.delete_matching(lambda key: ORACLE_SOURCE_MARKER in key)
        self.limiter.reset(ORACLE_SERVICE)
        logger.info("Cleared %s oracle cache entries", cleared)
        return cleared

    def cache_stats(self) -> CacheStatsOut:
        return CacheStatsOut(
            size=len(self.cache),
            keys=self.cache.keys(),
            rate_limits=self.limiter.snapshot(),
        )

    async def check_data_availability(self, skills: Iterable[str]) -> DataAvailabilityOut:
        requested = [normalize_skill(str(skill)) for skill in skills or []]
        requested = [skill for skill in dict.fromkeys(requested) if skill]
        valid = validate_skills(requested, self.supported_skills)
        try:
            if not valid:
                raise NoOracleData("No supported skills requested")
            records = await self.fetch_oracle_data(valid)
        except NoOracleData as exc:
            logger.info("No oracle data available for %s: %s", ", ".join(requested), exc)
            return DataAvailabilityOut(
                available=False,
                available_skills=[],
                missing_skills=requested,
                data_source="none",
            )
        except Exception:
            logger.exception("Oracle availability check failed for %s", ", ".join(requested))
            return DataAvailabilityOut(
                available=False,
                available_skills=[],
                missing_skills=requested,
                data_source="error",
            )

        available = [skill for skill in requested if skill in records]
        return DataAvailabilityOut(
            available=bool(available),
            available_skills=available,
            missing_skills=[skill for skill in requested if skill not in records],
            data_source=ORACLE_SOURCE_MARKER,
        )

    async def get_market_insight(self, skill: str) -> str:
        valid = self.validate([skill])
        name = valid[0]
        records = await self.fetch_oracle_data(valid)
        record = records.get(name)
        if record is None:
            raise NoOracleData(f"No oracle data available for {name}")
        return (
            f"{name} shows {demand_level(record.demand)} demand at ${record.price:g}/hr "
            f"according to on-chain oracle data ({record.source})"
        )

    async def compare_skills(self, skills: Iterable[str]) -> SkillComparisonOut:
        valid = self.validate(skills)
        records = await self.fetch_oracle_data(valid)
        rates = [(skill, records[skill].price) for skill in valid if skill in records]
        if not rates:
            raise NoOracleData("No oracle data found for any of the specified skills")

        ranked = sorted(rates, key=lambda item: item[1], reverse=True)
        highest, lowest = ranked[0], ranked[-1]
        average = sum(rate for _, rate in rates) / len(rates)

        if highest[1] > average * 1.5:
            recommendation = f"Focus on {highest[0]} - it commands premium rates in the oracle data"
        elif lowest[1] < average * 0.7:
            recommendation = f"Consider upskilling from {lowest[0]} to higher-value skills"
        else:
            recommendation = "Good skill balance - consider specializing in emerging areas"

        return SkillComparisonOut(
            highest=highest[0],
            lowest=lowest[0],
            average=round_half_up(average),
            recommendation=recommendation,
            data_source=ORACLE_SOURCE_MARKER,
        )


def summarize_analysis(result: MarketAnalysisResult) -> str:
    lines = [
        f"Market health: {result.market_health} ({result.data_source}, confidence {result.confidence:.0%})",
    ]
    for entry in result.skill_analysis:
        projected = result.price_projections.year_ahead.get(entry.skill)
        lines.append(
            f"- {entry.skill}: ${entry.average_hourly_rate:g}/hr, {entry.demand_level} demand, "
            f"{entry.market_trend}, 12m projection ${projected}/hr"
        )
    summary = result.market_summary
    if summary.top_paying_skills:
        lines.append(f"Top paying: {', '.join(summary.top_paying_skills)}")
    if summary.emerging_skills:
        lines.append(f"Emerging: {', '.join(summary.emerging_skills)}")
    if summary.oversaturated_skills:
        lines.append(f"Oversaturated: {', '.join(summary.oversaturated_skills)}")
    if result.recommendations.short_term:
        lines.append(f"Next step: {result.recommendations.short_term[0]}")
    return "\n".join(lines)
