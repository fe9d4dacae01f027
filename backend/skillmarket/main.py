import logging
from contextlib import asynccontextmanager
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from skillmarket.api.routes import market, meta, prices
from skillmarket.core.cache import TTLCache
from skillmarket.core.config import settings
from skillmarket.core.logging_config import configure_logging
from skillmarket.core.ratelimit import CallIntervalLimiter
from skillmarket.services.ai import LLMClient
from skillmarket.services.chain_reader import ChainReader
from skillmarket.services.market_analysis import MarketAnalysisEngine
from skillmarket.services.price_feed import PriceFeedClient

logger = logging.getLogger(__name__)


def build_services(app: FastAPI) -> None:
    reader = ChainReader(settings)
    app.state.price_feed = PriceFeedClient(
        reader,
        TTLCache(settings.price_cache_ttl_seconds),
        config=settings,
    )
    app.state.engine = MarketAnalysisEngine(
        reader,
        llm=LLMClient(settings),
        cache=TTLCache(settings.market_cache_ttl_seconds, max_entries=settings.market_cache_max_entries),
        limiter=CallIntervalLimiter(settings.oracle_min_interval_seconds),
        config=settings,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    build_services(app)
    logger.info(
        "Skill market service ready (chain %s, contract %s)",
        settings.default_chain_id,
        settings.skill_price_contract_address,
    )
    yield


app = FastAPI(title="Skill Market Oracle API", version="0.1.0", lifespan=lifespan)

origins = [origin.strip() for origin in settings.cors_origins.split(",") if origin.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "X-Request-Id"],
)


@app.middleware("http")
async def add_request_id(request: Request, call_next):
    request_id = request.headers.get("X-Request-Id") or uuid4().hex
    response = await call_next(request)
    response.headers["X-Request-Id"] = request_id
    return response


def _register_routes(prefix: str = "") -> None:
    app.include_router(market.router, tags=["market"], prefix=prefix)
    app.include_router(prices.router, tags=["prices"], prefix=prefix)
    app.include_router(meta.router, tags=["meta"], prefix=prefix)


_register_routes("")
_register_routes("/api")
