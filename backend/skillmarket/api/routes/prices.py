from typing import List

from fastapi import APIRouter, Depends, Query

from skillmarket.api.deps import get_price_feed
from skillmarket.schemas.api import (
    CacheClearOut,
    CryptoConversionOut,
    CurrencyInfo,
    FormatPriceIn,
    FormatPricesIn,
    FormattedPrice,
    PriceQuote,
    UsdConversionIn,
    UsdConversionOut,
)
from skillmarket.services.price_feed import PriceFeedClient

router = APIRouter(prefix="/prices")


@router.get("/quote", response_model=PriceQuote)
async def latest_quote(
    chain_id: int | None = Query(default=None),
    price_feed: PriceFeedClient = Depends(get_price_feed),
):
    return await price_feed.get_latest_quote(chain_id)


@router.post("/usd-to-crypto", response_model=UsdConversionOut)
async def usd_to_crypto(payload: UsdConversionIn, price_feed: PriceFeedClient = Depends(get_price_feed)):
    chain = payload.chain_id or price_feed.default_chain_id
    amount_wei = await price_feed.usd_to_crypto(payload.usd_amount, chain)
    return {
        "usd_amount": payload.usd_amount,
        "amount_wei": str(amount_wei),
        "chain_id": chain,
        "symbol": price_feed.native_symbol(chain),
    }


@router.get("/crypto-to-usd", response_model=CryptoConversionOut)
async def crypto_to_usd(
    amount_wei: int = Query(ge=0),
    chain_id: int | None = Query(default=None),
    price_feed: PriceFeedClient = Depends(get_price_feed),
):
    chain = chain_id or price_feed.default_chain_id
    usd_amount = await price_feed.crypto_to_usd(amount_wei, chain)
    return {"amount_wei": str(amount_wei), "usd_amount": usd_amount, "chain_id": chain}


@router.post("/format", response_model=FormattedPrice)
async def format_price(payload: FormatPriceIn, price_feed: PriceFeedClient = Depends(get_price_feed)):
    return await price_feed.format_price(payload.amount_wei, payload.chain_id)


@router.post("/format/batch", response_model=List[FormattedPrice])
async def format_prices(payload: FormatPricesIn, price_feed: PriceFeedClient = Depends(get_price_feed)):
    return await price_feed.format_prices(payload.amounts_wei, payload.chain_id)


@router.get("/currency", response_model=CurrencyInfo)
def currency_info(
    chain_id: int | None = Query(default=None),
    price_feed: PriceFeedClient = Depends(get_price_feed),
):
    return price_feed.get_currency_info(chain_id)


@router.delete("/cache", response_model=CacheClearOut)
def clear_price_cache(price_feed: PriceFeedClient = Depends(get_price_feed)):
    cleared = len(price_feed.cache)
    price_feed.clear_cache()
    return {"ok": True, "cleared": cleared}
