from fastapi import APIRouter, Request

from skillmarket.core.config import settings
from skillmarket.services.ai import ai_is_configured, get_active_ai_model, get_active_ai_provider

router = APIRouter(prefix="/meta")


@router.get("/ai")
def ai_meta():
    return {
        "ai_enabled": ai_is_configured(),
        "model": get_active_ai_model(),
        "provider": get_active_ai_provider(),
    }


@router.get("/health")
def health_meta(request: Request):
    engine = getattr(request.app.state, "engine", None)
    price_feed = getattr(request.app.state, "price_feed", None)
    return {
        "ok": engine is not None and price_feed is not None,
        "oracle": {
            "contract_address": settings.skill_price_contract_address,
            "chain_id": settings.default_chain_id,
            "cached_entries": len(engine.cache) if engine is not None else 0,
        },
        "price_feed": {
            "chain_id": settings.default_chain_id,
            "address": settings.price_feed_for(settings.default_chain_id),
        },
        "ai": {
            "enabled": ai_is_configured(),
            "provider": get_active_ai_provider(),
            "model": get_active_ai_model(),
        },
    }
