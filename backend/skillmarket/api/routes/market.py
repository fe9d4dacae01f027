from typing import List

from fastapi import APIRouter, Depends

from skillmarket.api.deps import enforce_api_rate_limit, get_engine, to_http_error
from skillmarket.core.errors import SkillMarketError
from skillmarket.schemas.api import (
    CacheClearOut,
    CacheStatsOut,
    DataAvailabilityOut,
    MarketAnalysisResult,
    MarketAnalyzeBatchIn,
    MarketAnalyzeIn,
    SkillComparisonOut,
    SkillInsightOut,
    SkillListIn,
    SkillPriceRecord,
)
from skillmarket.services.market_analysis import MarketAnalysisEngine
from skillmarket.services.skill_catalog import normalize_skill

router = APIRouter(prefix="/market", dependencies=[Depends(enforce_api_rate_limit)])


@router.post("/analyze", response_model=MarketAnalysisResult)
async def analyze_market(payload: MarketAnalyzeIn, engine: MarketAnalysisEngine = Depends(get_engine)):
    try:
        return await engine.analyze_market(payload.skills)
    except SkillMarketError as exc:
        raise to_http_error(exc) from exc


@router.post("/analyze/batch", response_model=List[MarketAnalysisResult])
async def analyze_market_batch(
    payload: MarketAnalyzeBatchIn,
    engine: MarketAnalysisEngine = Depends(get_engine),
):
    try:
        return await engine.analyze_many(payload.skill_sets)
    except SkillMarketError as exc:
        raise to_http_error(exc) from exc


@router.get("/insight/{skill}", response_model=SkillInsightOut)
async def market_insight(skill: str, engine: MarketAnalysisEngine = Depends(get_engine)):
    try:
        insight = await engine.get_market_insight(skill)
    except SkillMarketError as exc:
        raise to_http_error(exc) from exc
    return {"skill": normalize_skill(skill), "insight": insight}


@router.post("/compare", response_model=SkillComparisonOut)
async def compare_skills(payload: SkillListIn, engine: MarketAnalysisEngine = Depends(get_engine)):
    try:
        return await engine.compare_skills(payload.skills)
    except SkillMarketError as exc:
        raise to_http_error(exc) from exc


@router.post("/availability", response_model=DataAvailabilityOut)
async def data_availability(payload: SkillListIn, engine: MarketAnalysisEngine = Depends(get_engine)):
    return await engine.check_data_availability(payload.skills)


@router.post("/refresh", response_model=dict[str, SkillPriceRecord])
async def refresh_market_data(payload: SkillListIn, engine: MarketAnalysisEngine = Depends(get_engine)):
    try:
        return await engine.refresh_market_data(payload.skills)
    except SkillMarketError as exc:
        raise to_http_error(exc) from exc


@router.get("/cache", response_model=CacheStatsOut)
def cache_stats(engine: MarketAnalysisEngine = Depends(get_engine)):
    return engine.cache_stats()


@router.delete("/cache", response_model=CacheClearOut)
def clear_cache(oracle_only: bool = False, engine: MarketAnalysisEngine = Depends(get_engine)):
    cleared = engine.clear_oracle_cache() if oracle_only else engine.clear_all_cache()
    return {"ok": True, "cleared": cleared}
