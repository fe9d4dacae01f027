from pathlib import Path
import asyncio
import sys

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from skillmarket.core.config import Settings
from skillmarket.core.errors import OracleReadFailure
from skillmarket.services.price_feed import PRICE_UNAVAILABLE, PriceFeedClient

AVAX = 43113
ETH_SEPOLIA = 11155111


class DummyReader:
    def __init__(self, answer: int = 3_250_000_000, decimals: int = 8, fail: bool = False):
        self.answer = answer
        self.decimals = decimals
        self.fail = fail
        self.round_calls = 0

    async def read_latest_round(self, feed_address, chain_id):
        self.round_calls += 1
        if self.fail:
            raise OracleReadFailure("rpc down")
        return (77, self.answer, 1_700_000_000, 1_700_000_100, 77)

    async def read_decimals(self, feed_address, chain_id):
        return self.decimals


def _client(reader) -> PriceFeedClient:
    return PriceFeedClient(reader, config=Settings(_env_file=None), default_chain_id=AVAX)


def test_live_quote_is_scaled_and_cached():
    reader = DummyReader()
    client = _client(reader)

    quote = asyncio.run(client.get_latest_quote())
    again = asyncio.run(client.get_latest_quote(AVAX))

    assert quote.price == 32.5
    assert quote.decimals == 8
    assert quote.updated_at == 1_700_000_100
    assert quote.round_id == "77"
    assert again == quote
    assert reader.round_calls == 1
    assert "price_43113" in client.cache


def test_read_failure_returns_uncached_fallback():
    reader = DummyReader(fail=True)
    client = _client(reader)

    quote = asyncio.run(client.get_latest_quote())
    asyncio.run(client.get_latest_quote())

    assert quote.price == 32.5
    assert quote.round_id == "fallback"
    assert quote.is_fallback
    assert quote.decimals == 8
    assert reader.round_calls == 2
    assert len(client.cache) == 0


@pytest.mark.parametrize(
    "chain_id, expected",
    [(AVAX, 32.5), (ETH_SEPOLIA, 3200.0), (84532, 3200.0), (999, 100.0)],
)
def test_fallback_prices_per_chain(chain_id, expected):
    client = _client(DummyReader(fail=True))
    assert asyncio.run(client.get_latest_quote(chain_id)).price == expected


def test_non_positive_answer_uses_fallback():
    client = _client(DummyReader(answer=0))
    assert asyncio.run(client.get_latest_quote()).is_fallback


def test_conversions_use_quote_price():
    client = _client(DummyReader())

    assert asyncio.run(client.usd_to_crypto(65)) == 2 * 10**18
    assert asyncio.run(client.crypto_to_usd(10**18)) == pytest.approx(32.5)


def test_conversions_keep_working_on_fallback():
    client = _client(DummyReader(fail=True))
    assert asyncio.run(client.usd_to_crypto(3200, ETH_SEPOLIA)) == 10**18


def test_format_price_with_live_quote():
    client = _client(DummyReader())
    formatted = asyncio.run(client.format_price(1_500_000_000_000_000_000))

    assert formatted.crypto_label == "1.5000 AVAX"
    assert formatted.usd_label == "≈ $48.75 USD"
    assert formatted.crypto_amount == 1.5
    assert formatted.usd_amount == pytest.approx(48.75)


def test_format_price_on_oracle_failure_is_unavailable():
    client = _client(DummyReader(fail=True))
    formatted = asyncio.run(client.format_price(10**18, ETH_SEPOLIA))

    assert formatted.usd_label == PRICE_UNAVAILABLE
    assert formatted.crypto_label == "1.0000 ETH"
    assert formatted.usd_amount == 0.0


def test_format_prices_batch_preserves_order():
    client = _client(DummyReader())
    labels = [item.crypto_label for item in asyncio.run(client.format_prices([10**18, 2 * 10**18, 0]))]
    assert labels == ["1.0000 AVAX", "2.0000 AVAX", "0.0000 AVAX"]


def test_currency_info():
    client = _client(DummyReader())
    assert client.native_symbol() == "AVAX"
    assert client.native_symbol(ETH_SEPOLIA) == "ETH"

    info = client.get_currency_info(ETH_SEPOLIA)
    assert info.symbol == "ETH"
    assert info.chain_id == ETH_SEPOLIA
    assert info.price_feed_address == "0x694AA1769357215DE4FAC081bf1f309aDC325306"
    assert client.get_currency_info(999).price_feed_address is None
