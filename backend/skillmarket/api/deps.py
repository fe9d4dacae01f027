from fastapi import HTTPException, Request

from skillmarket.core.errors import NoOracleData, OracleReadFailure, RateLimited, SkillMarketError, UnsupportedSkill
from skillmarket.core.ratelimit import api_rate_limiter
from skillmarket.services.market_analysis import MarketAnalysisEngine
from skillmarket.services.price_feed import PriceFeedClient


def get_engine(request: Request) -> MarketAnalysisEngine:
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        raise HTTPException(status_code=503, detail={"message": "Market analysis engine not ready"})
    return engine


def get_price_feed(request: Request) -> PriceFeedClient:
    price_feed = getattr(request.app.state, "price_feed", None)
    if price_feed is None:
        raise HTTPException(status_code=503, detail={"message": "Price feed client not ready"})
    return price_feed


def client_key(request: Request) -> str:
    host = request.client.host if request.client else "unknown"
    return f"client:{host}"


def enforce_api_rate_limit(request: Request) -> None:
    api_rate_limiter.check(client_key(request))


def to_http_error(exc: SkillMarketError) -> HTTPException:
    if isinstance(exc, UnsupportedSkill):
        return HTTPException(status_code=400, detail={"message": str(exc), "skills": exc.skills})
    if isinstance(exc, NoOracleData):
        return HTTPException(status_code=404, detail={"message": str(exc)})
    if isinstance(exc, RateLimited):
        return HTTPException(
            status_code=429,
            detail={
                "message": str(exc),
                "retry_after_seconds": max(1, int(round(exc.retry_after_seconds))),
            },
        )
    if isinstance(exc, OracleReadFailure):
        return HTTPException(status_code=502, detail={"message": str(exc)})
    return HTTPException(status_code=500, detail={"message": str(exc)})
