from __future__ import annotations

import asyncio
import logging
import time
from decimal import Decimal
from typing import Iterable

from web3 import Web3

from skillmarket.core.cache import TTLCache
from skillmarket.core.config import AVALANCHE_FUJI_CHAIN_ID, Settings, settings as default_settings
from skillmarket.core.errors import OracleReadFailure
from skillmarket.schemas.api import CurrencyInfo, FormattedPrice, PriceQuote
from skillmarket.services.chain_reader import ChainReader

logger = logging.getLogger(__name__)

FALLBACK_ROUND_ID = "fallback"
FALLBACK_DECIMALS = 8
PRICE_UNAVAILABLE = "Price unavailable"


def _wei_to_native(amount_wei: int) -> float:
    try:
        return float(Web3.from_wei(int(amount_wei), "ether"))
    except (TypeError, ValueError, OverflowError):
        return float(amount_wei) / 10**18


class PriceFeedClient:
    def __init__(
        self,
        reader: ChainReader,
        cache: TTLCache[PriceQuote] | None = None,
        *,
        config: Settings | None = None,
        default_chain_id: int | None = None,
    ):
        self.reader = reader
        self.config = config or default_settings
        self.cache = cache or TTLCache(self.config.price_cache_ttl_seconds)
        self.default_chain_id = default_chain_id or self.config.default_chain_id

    def _chain(self, chain_id: int | None) -> int:
        return chain_id or self.default_chain_id

    def native_symbol(self, chain_id: int | None = None) -> str:
        return "AVAX" if self._chain(chain_id) == AVALANCHE_FUJI_CHAIN_ID else "ETH"

    def get_currency_info(self, chain_id: int | None = None) -> CurrencyInfo:
        chain = self._chain(chain_id)
        return CurrencyInfo(
            symbol=self.native_symbol(chain),
            chain_id=chain,
            price_feed_address=self.config.price_feed_for(chain),
        )

    def _fallback_quote(self, chain_id: int) -> PriceQuote:
        return PriceQuote(
            price=self.config.fallback_price_for(chain_id),
            decimals=FALLBACK_DECIMALS,
            updated_at=int(time.time()),
            round_id=FALLBACK_ROUND_ID,
        )

    async def _read_quote(self, chain_id: int) -> PriceQuote:
        feed_address = self.config.price_feed_for(chain_id)
        if not feed_address:
            raise OracleReadFailure(f"No price feed available for chain {chain_id}")
        round_id, answer, _started_at, updated_at, _answered_in_round = await self.reader.read_latest_round(
            feed_address, chain_id
        )
        decimals = await self.reader.read_decimals(feed_address, chain_id)
        if answer <= 0:
            raise OracleReadFailure(f"Price feed for chain {chain_id} returned non-positive answer {answer}")
        return PriceQuote(
            price=answer / 10**decimals,
            decimals=decimals,
            updated_at=updated_at,
            round_id=str(round_id),
        )

    async def get_latest_quote(self, chain_id: int | None = None) -> PriceQuote:
        chain = self._chain(chain_id)
        cache_key = f"price_{chain}"
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached

        try:
            quote = await self._read_quote(chain)
        except Exception as exc:
            fallback = self._fallback_quote(chain)
            logger.warning(
                "Price feed read failed for chain %s (%s), using fallback price %.2f",
                chain,
                exc,
                fallback.price,
            )
            return fallback

        self.cache.set(cache_key, quote)
        logger.info(
            "Fetched %s/USD price %.2f on chain %s (round %s)",
            self.native_symbol(chain),
            quote.price,
            chain,
            quote.round_id,
        )
        return quote

    async def usd_to_crypto(self, usd_amount: float, chain_id: int | None = None) -> int:
        quote = await self.get_latest_quote(chain_id)
        native_amount = Decimal(str(usd_amount)) / Decimal(str(quote.price))
        return int(Web3.to_wei(native_amount, "ether"))

    async def crypto_to_usd(self, amount_wei: int, chain_id: int | None = None) -> float:
        quote = await self.get_latest_quote(chain_id)
        return float(Web3.from_wei(int(amount_wei), "ether")) * quote.price

    async def format_price(self, amount_wei: int, chain_id: int | None = None) -> FormattedPrice:
        chain = self._chain(chain_id)
        symbol = self.native_symbol(chain)
        crypto_amount = _wei_to_native(amount_wei)
        crypto_label = f"{crypto_amount:.4f} {symbol}"
        try:
            quote = await self.get_latest_quote(chain)
            if quote.is_fallback:
                raise OracleReadFailure(f"No live {symbol}/USD quote for chain {chain}")
            usd_amount = crypto_amount * quote.price
        except Exception as exc:
            logger.warning("Price formatting degraded for chain %s: %s", chain, exc)
            return FormattedPrice(
                crypto_label=crypto_label,
                usd_label=PRICE_UNAVAILABLE,
                crypto_amount=crypto_amount,
                usd_amount=0.0,
            )
        return FormattedPrice(
            crypto_label=crypto_label,
            usd_label=f"≈ ${usd_amount:.2f} USD",
            crypto_amount=crypto_amount,
            usd_amount=usd_amount,
        )

    async def format_prices(
        self,
        amounts_wei: Iterable[int],
        chain_id: int | None = None,
    ) -> list[FormattedPrice]:
        return list(
            await asyncio.gather(*(self.format_price(amount, chain_id) for amount in amounts_wei))
        )

    def clear_cache(self) -> None:
        self.cache.clear()
        logger.info("Price cache cleared")
