from pathlib import Path
import asyncio
import sys

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from skillmarket.core.cache import TTLCache
from skillmarket.core.config import Settings
from skillmarket.core.errors import NoOracleData, OracleReadFailure, RateLimited, UnsupportedSkill
from skillmarket.core.ratelimit import CallIntervalLimiter
from skillmarket.schemas.api import SkillAnalysis
from skillmarket.services import market_analysis as ma
from skillmarket.services.oracle_payload import parse_oracle_payload

CONTRACT = "0x5f6b3e64a1823ab48bf4acb8b3716ac7b77defb1"


class FakeClock:
    def __init__(self, start: float = 100.0):
        self.now = start

    def __call__(self) -> float:
        return self.now


class DummyReader:
    def __init__(self, payload: str = "defi|150,ai|110,design|60", error: Exception | None = None):
        self.payload = payload
        self.error = error
        self.calls = 0

    async def read_skills_payload(self, contract_address, chain_id=None):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.payload


def _engine(reader=None, clock=None, llm=None) -> ma.MarketAnalysisEngine:
    clock = clock or FakeClock()
    return ma.MarketAnalysisEngine(
        reader or DummyReader(),
        llm=llm,
        cache=TTLCache(300, clock=clock),
        limiter=CallIntervalLimiter(10, clock=clock),
        contract_address=CONTRACT,
        config=Settings(_env_file=None),
    )


def _entry(skill, rate, demand, trend, competition=5) -> SkillAnalysis:
    return SkillAnalysis(
        skill=skill,
        average_hourly_rate=rate,
        demand_level=demand,
        market_trend=trend,
        competition_level=competition,
        project_volume=500,
        region_multiplier=1.0,
    )


def test_unsupported_skills_are_rejected():
    with pytest.raises(UnsupportedSkill) as excinfo:
        asyncio.run(_engine().analyze_market(["unicorn"]))
    assert excinfo.value.skills == ["unicorn"]


def test_deterministic_analysis_from_oracle_data():
    reader = DummyReader()
    result = asyncio.run(_engine(reader).analyze_market(["DeFi", "ai", "design", "rust"]))

    assert [entry.skill for entry in result.skill_analysis] == ["defi", "ai", "design"]
    assert set(result.oracle_data) == {"defi", "ai", "design"}
    assert result.data_source == ma.DATA_SOURCE_DETERMINISTIC
    assert result.confidence == 0.95
    assert result.market_health == "good"
    assert result.market_summary.top_paying_skills == ["defi", "ai", "design"]
    assert result.market_summary.emerging_skills == ["defi", "ai"]
    assert result.market_summary.oversaturated_skills == ["design"]
    assert result.market_summary.market_hotspots == ma.MARKET_HOTSPOTS
    assert result.recommendations.short_term[0] == "Focus on highest-paying skill: defi ($150/hr)"
    for horizon in (
        result.price_projections.next_3_months,
        result.price_projections.next_6_months,
        result.price_projections.year_ahead,
    ):
        assert set(horizon) == {"defi", "ai", "design"}
    assert reader.calls == 1


def test_payload_without_requested_skills_raises():
    with pytest.raises(NoOracleData):
        asyncio.run(_engine(DummyReader("design|60")).analyze_market(["defi"]))


def test_projection_multiplier_chain():
    projections = ma.generate_price_projections([_entry("defi", 100, "very_high", "surging", competition=2)])

    exact = 100 * 1.15 * 1.08 * max(0.98, 1.05 - 2 * 0.005) * 1.02
    assert projections.next_3_months["defi"] == int(exact + 0.5) == 132
    assert projections.next_6_months["defi"] == 136
    assert projections.year_ahead["defi"] == 145


def test_competition_factor_floor_and_half_up_rounding():
    assert ma.competition_factor(10) == pytest.approx(1.0)
    assert ma.competition_factor(2) == pytest.approx(1.04)
    assert ma.round_half_up(2.5) == 3
    assert ma.round_half_up(3.49) == 3


@pytest.mark.parametrize(
    "score, level",
    [(None, "medium"), (0, "medium"), (95, "very_high"), (90, "very_high"), (70, "high"), (50, "medium"), (49, "low")],
)
def test_demand_level_mapping(score, level):
    assert ma.demand_level(score) == level


def test_market_health_thresholds():
    excellent = [_entry("defi", 150, "very_high", "surging"), _entry("ai", 120, "high", "growing")]
    poor = [_entry("design", 40, "low", "stable")]
    fair = [_entry("mobile", 70, "high", "stable"), _entry("design", 70, "medium", "stable")]

    assert ma.calculate_market_health(excellent) == "excellent"
    assert ma.calculate_market_health(fair) == "fair"
    assert ma.calculate_market_health(poor) == "poor"
    assert ma.calculate_market_health([]) == "poor"


def test_repeat_analysis_is_served_from_cache():
    reader = DummyReader()
    engine = _engine(reader)

    first = asyncio.run(engine.analyze_market(["defi", "ai"]))
    second = asyncio.run(engine.analyze_market(["ai", "defi"]))

    assert second is first
    assert reader.calls == 1


def test_uncached_read_inside_interval_is_rate_limited():
    clock = FakeClock()
    reader = DummyReader()
    engine = _engine(reader, clock)
    asyncio.run(engine.analyze_market(["defi"]))

    clock.now += 4
    with pytest.raises(RateLimited) as excinfo:
        asyncio.run(engine.analyze_market(["ai"]))
    assert excinfo.value.retry_after_seconds == pytest.approx(6)
    assert reader.calls == 1

    clock.now += 6
    assert asyncio.run(engine.analyze_market(["ai"])).skill_analysis[0].skill == "ai"
    assert reader.calls == 2


def test_cached_records_without_oracle_source_are_refetched():
    reader = DummyReader()
    engine = _engine(reader)
    records = parse_oracle_payload("defi|150", ["defi"])
    manual = {"defi": records["defi"].model_copy(update={"source": "manual"})}
    engine.cache.set(engine._oracle_key(["defi"]), manual)

    fetched = asyncio.run(engine.fetch_oracle_data(["defi"]))

    assert fetched["defi"].source == "oracle-compressed"
    assert reader.calls == 1


def test_read_failure_surfaces_and_still_marks_limiter():
    engine = _engine(DummyReader(error=OracleReadFailure("contract reverted")))

    with pytest.raises(OracleReadFailure):
        asyncio.run(engine.analyze_market(["defi"]))
    assert engine.limiter.is_limited(ma.ORACLE_SERVICE)


def test_analyze_many_reads_oracle_once():
    reader = DummyReader()
    results = asyncio.run(_engine(reader).analyze_many([["defi", "ai"], ["design"]]))

    assert [[entry.skill for entry in result.skill_analysis] for result in results] == [["defi", "ai"], ["design"]]
    assert reader.calls == 1


def test_refresh_drops_matching_entries_and_rereads():
    clock = FakeClock()
    reader = DummyReader()
    engine = _engine(reader, clock)
    asyncio.run(engine.analyze_market(["defi", "ai"]))
    clock.now += 11
    asyncio.run(engine.fetch_oracle_data(["design", "defi"]))
    assert len(engine.cache) == 3

    clock.now += 11
    reader.payload = "defi|150,design|75"
    records = asyncio.run(engine.refresh_market_data(["design"]))

    assert records["design"].price == 75
    assert reader.calls == 3
    assert engine.cache.keys() == [
        engine._oracle_key(["defi", "ai"]),
        engine._analysis_key(["defi", "ai"]),
        engine._oracle_key(["design"]),
    ]


def test_clear_caches_and_stats():
    engine = _engine()
    asyncio.run(engine.analyze_market(["defi"]))

    stats = engine.cache_stats()
    assert stats.size == 2
    assert ma.ORACLE_SERVICE in stats.rate_limits

    assert engine.clear_oracle_cache() == 2
    assert engine.cache_stats().rate_limits == {}

    asyncio.run(engine.analyze_market(["defi"]))
    assert engine.clear_all_cache() == 2
    assert engine.cache_stats().size == 0


def test_data_availability_reports_sources():
    engine = _engine()
    report = asyncio.run(engine.check_data_availability(["defi", "rust", "unicorn"]))

    assert report.available is True
    assert report.available_skills == ["defi"]
    assert report.missing_skills == ["rust", "unicorn"]
    assert report.data_source == "oracle"


def test_data_availability_never_raises():
    empty = asyncio.run(_engine(DummyReader("no data")).check_data_availability(["defi"]))
    assert empty.data_source == "none"
    assert empty.missing_skills == ["defi"]

    unsupported = asyncio.run(_engine().check_data_availability(["unicorn"]))
    assert unsupported.data_source == "none"

    broken = asyncio.run(_engine(DummyReader(error=OracleReadFailure("boom"))).check_data_availability(["defi"]))
    assert broken.available is False
    assert broken.data_source == "error"


def test_market_insight_text():
    insight = asyncio.run(_engine().get_market_insight("DeFi"))
    assert insight == "defi shows very_high demand at $150/hr according to on-chain oracle data (oracle-compressed)"


def test_market_insight_for_missing_skill():
    with pytest.raises(NoOracleData):
        asyncio.run(_engine().get_market_insight("rust"))


@pytest.mark.parametrize(
    "payload, skills, recommendation",
    [
        ("defi|300,design|60,ai|90", ["defi", "design", "ai"], "Focus on defi"),
        ("defi|100,ai|100,design|40", ["defi", "ai", "design"], "Consider upskilling from design"),
        ("defi|100,ai|90", ["defi", "ai"], "Good skill balance"),
    ],
)
def test_compare_skills_recommendation(payload, skills, recommendation):
    comparison = asyncio.run(_engine(DummyReader(payload)).compare_skills(skills))
    assert comparison.recommendation.startswith(recommendation)
    assert comparison.data_source == "oracle"


def test_compare_skills_extremes_and_average():
    comparison = asyncio.run(_engine().compare_skills(["defi", "ai", "design"]))
    assert comparison.highest == "defi"
    assert comparison.lowest == "design"
    assert comparison.average == 107


def test_summary_mentions_health_and_skills():
    result = asyncio.run(_engine().analyze_market(["defi", "design"]))
    summary = ma.summarize_analysis(result)

    assert summary.startswith("Market health: ")
    assert "- defi: $150/hr, very_high demand, surging" in summary
    assert "Next step: Focus on highest-paying skill: defi" in summary
