from pydantic import BaseModel, ConfigDict, Field, model_validator
from datetime import datetime
from typing import Dict, List, Literal, Optional

DemandLevel = Literal["low", "medium", "high", "very_high"]
MarketTrend = Literal["declining", "stable", "growing", "surging"]
MarketHealth = Literal["poor", "fair", "good", "excellent"]


class SkillPriceRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    skill: str
    price: float = Field(ge=0)
    demand: int = Field(ge=0, le=100)
    volume: int = Field(ge=0)
    competition: int = Field(ge=1, le=10)
    trend: MarketTrend
    region_multiplier: float = Field(gt=0)
    source: str
    confidence: float = Field(ge=0, le=1)
    last_updated: datetime


class SkillAnalysis(BaseModel):
    skill: str
    average_hourly_rate: float = Field(ge=0)
    demand_level: DemandLevel
    market_trend: MarketTrend
    competition_level: int = Field(ge=1, le=10)
    project_volume: int = Field(ge=0)
    region_multiplier: float = Field(gt=0)


class MarketSummary(BaseModel):
    top_paying_skills: List[str] = Field(default_factory=list)
    emerging_skills: List[str] = Field(default_factory=list)
    oversaturated_skills: List[str] = Field(default_factory=list)
    market_hotspots: List[str] = Field(default_factory=list)


class Recommendations(BaseModel):
    short_term: List[str] = Field(default_factory=list)
    medium_term: List[str] = Field(default_factory=list)
    long_term: List[str] = Field(default_factory=list)
    rate_optimization: List[str] = Field(default_factory=list)


class Insights(BaseModel):
    market_opportunities: List[str] = Field(default_factory=list)
    threat_analysis: List[str] = Field(default_factory=list)
    competitive_advantages: List[str] = Field(default_factory=list)


class PriceProjections(BaseModel):
    next_3_months: Dict[str, int] = Field(default_factory=dict)
    next_6_months: Dict[str, int] = Field(default_factory=dict)
    year_ahead: Dict[str, int] = Field(default_factory=dict)


class MarketAnalysisResult(BaseModel):
    skill_analysis: List[SkillAnalysis]
    market_summary: MarketSummary
    recommendations: Recommendations
    insights: Insights
    price_projections: PriceProjections
    oracle_data: Dict[str, SkillPriceRecord] = Field(default_factory=dict)
    data_source: str
    last_updated: datetime
    confidence: float = Field(ge=0, le=1)
    market_health: MarketHealth

    @model_validator(mode="after")
    def projections_cover_every_skill(self):
        horizons = (
            self.price_projections.next_3_months,
            self.price_projections.next_6_months,
            self.price_projections.year_ahead,
        )
        for entry in self.skill_analysis:
            if any(entry.skill not in horizon for horizon in horizons):
                raise ValueError(f"missing price projection for skill '{entry.skill}'")
        return self


class PriceQuote(BaseModel):
    price: float
    decimals: int
    updated_at: int
    round_id: str

    @property
    def is_fallback(self) -> bool:
        return self.round_id == "fallback"


class FormattedPrice(BaseModel):
    crypto_label: str
    usd_label: str
    crypto_amount: float
    usd_amount: float


class CurrencyInfo(BaseModel):
    symbol: str
    chain_id: int
    price_feed_address: Optional[str] = None


class MarketAnalyzeIn(BaseModel):
    skills: List[str] = Field(min_length=1)


class MarketAnalyzeBatchIn(BaseModel):
    skill_sets: List[List[str]] = Field(min_length=1)


class SkillListIn(BaseModel):
    skills: List[str] = Field(min_length=1)


class SkillInsightOut(BaseModel):
    skill: str
    insight: str


class SkillComparisonOut(BaseModel):
    highest: str
    lowest: str
    average: int
    recommendation: str
    data_source: str


class DataAvailabilityOut(BaseModel):
    available: bool
    available_skills: List[str]
    missing_skills: List[str]
    data_source: str


class CacheStatsOut(BaseModel):
    size: int
    keys: List[str]
    rate_limits: Dict[str, float]


class CacheClearOut(BaseModel):
    ok: bool
    cleared: int


class UsdConversionIn(BaseModel):
    usd_amount: float = Field(ge=0)
    chain_id: Optional[int] = None


class UsdConversionOut(BaseModel):
    usd_amount: float
    amount_wei: str
    chain_id: int
    symbol: str


class CryptoConversionOut(BaseModel):
    amount_wei: str
    usd_amount: float
    chain_id: int


class FormatPriceIn(BaseModel):
    amount_wei: int = Field(ge=0)
    chain_id: Optional[int] = None


class FormatPricesIn(BaseModel):
    amounts_wei: List[int] = Field(min_length=1)
    chain_id: Optional[int] = None
