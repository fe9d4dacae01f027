from pathlib import Path
import asyncio
import json
import sys

sys.path.append(str(Path(__file__).resolve().parents[1]))

from skillmarket.core.cache import TTLCache
from skillmarket.core.config import Settings
from skillmarket.core.errors import UnsupportedSkill
from skillmarket.core.ratelimit import CallIntervalLimiter
from skillmarket.jobs import market_report
from skillmarket.services.market_analysis import MarketAnalysisEngine
from skillmarket.services.price_feed import PriceFeedClient


class DummyReader:
    async def read_skills_payload(self, contract_address, chain_id=None):
        return "defi|150,ai|110"

    async def read_latest_round(self, feed_address, chain_id):
        raise RuntimeError("rpc down")

    async def read_decimals(self, feed_address, chain_id):
        return 8


def _report(skills):
    config = Settings(_env_file=None)
    reader = DummyReader()
    engine = MarketAnalysisEngine(reader, cache=TTLCache(300), limiter=CallIntervalLimiter(10), config=config)
    price_feed = PriceFeedClient(reader, config=config, default_chain_id=43113)
    return asyncio.run(market_report.build_report(skills, engine=engine, price_feed=price_feed))


def test_report_renders_summary_with_fallback_price():
    text = market_report.render_report(_report(["defi", "ai"]))

    assert text.startswith("Market health: excellent")
    assert "AVAX/USD: $32.50 (fallback, price feed unavailable)" in text


def test_report_renders_json():
    payload = json.loads(market_report.render_report(_report(["defi"]), as_json=True))

    assert payload["analysis"]["skill_analysis"][0]["skill"] == "defi"
    assert payload["quote"]["round_id"] == "fallback"
    assert payload["currency"]["symbol"] == "AVAX"


def test_main_reports_domain_errors(monkeypatch, capsys):
    async def failing_report(skills, *, chain_id=None):
        raise UnsupportedSkill(skills)

    monkeypatch.setattr(market_report, "build_report", failing_report)

    assert market_report.main(["--skills", "unicorn"]) == 1
    assert "UnsupportedSkill" in capsys.readouterr().err


def test_main_prints_summary(monkeypatch, capsys):
    report = _report(["defi"])

    async def canned_report(skills, *, chain_id=None):
        return report

    monkeypatch.setattr(market_report, "build_report", canned_report)

    assert market_report.main(["--skills", "defi", "--chain-id", "43113"]) == 0
    assert "- defi: $150/hr" in capsys.readouterr().out
