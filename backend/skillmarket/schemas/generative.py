from pydantic import BaseModel, ConfigDict, Field
from typing import Dict, List

from skillmarket.schemas.api import DemandLevel, MarketTrend


class _StrictModel(BaseModel):
    model_config = ConfigDict(extra="forbid", allow_inf_nan=False)


class GenerativeSkillAnalysis(_StrictModel):
    skill: str = Field(min_length=1)
    averageHourlyRate: float = Field(ge=0)
    demandLevel: DemandLevel
    marketTrend: MarketTrend
    competitionLevel: int = Field(ge=1, le=10)
    projectVolume: int = Field(ge=0)
    regionMultiplier: float = Field(gt=0)


class GenerativeMarketSummary(_StrictModel):
    topPayingSkills: List[str]
    emergingSkills: List[str]
    oversaturatedSkills: List[str]
    marketHotspots: List[str]


class GenerativeRecommendations(_StrictModel):
    shortTerm: List[str]
    mediumTerm: List[str]
    longTerm: List[str]
    rateOptimization: List[str]


class GenerativeInsights(_StrictModel):
    marketOpportunities: List[str]
    threatAnalysis: List[str]
    competitiveAdvantages: List[str]


class GenerativeProjections(_StrictModel):
    next3Months: Dict[str, float]
    next6Months: Dict[str, float]
    yearAhead: Dict[str, float]


class GenerativeAnalysis(_StrictModel):
    skillAnalysis: List[GenerativeSkillAnalysis] = Field(min_length=1)
    marketSummary: GenerativeMarketSummary
    recommendations: GenerativeRecommendations
    insights: GenerativeInsights
    priceProjections: GenerativeProjections
