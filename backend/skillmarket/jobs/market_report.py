import argparse
import asyncio
import json
import logging
import sys

from skillmarket.core.config import settings
from skillmarket.core.errors import SkillMarketError
from skillmarket.core.logging_config import configure_logging
from skillmarket.services.ai import LLMClient
from skillmarket.services.chain_reader import ChainReader
from skillmarket.services.market_analysis import MarketAnalysisEngine, summarize_analysis
from skillmarket.services.price_feed import PriceFeedClient
from skillmarket.services.skill_catalog import DEFAULT_SKILLS_FOR_ANALYSIS

logger = logging.getLogger(__name__)


async def build_report(
    skills: list[str],
    *,
    chain_id: int | None = None,
    engine: MarketAnalysisEngine | None = None,
    price_feed: PriceFeedClient | None = None,
) -> dict:
    if engine is None or price_feed is None:
        reader = ChainReader(settings)
        engine = engine or MarketAnalysisEngine(reader, llm=LLMClient(settings), config=settings)
        price_feed = price_feed or PriceFeedClient(reader, config=settings)

    analysis, quote = await asyncio.gather(
        engine.analyze_market(skills),
        price_feed.get_latest_quote(chain_id),
    )
    chain = chain_id or price_feed.default_chain_id
    return {
        "analysis": analysis,
        "quote": quote,
        "currency": price_feed.get_currency_info(chain),
    }


def render_report(report: dict, *, as_json: bool = False) -> str:
    if as_json:
        return json.dumps(
            {key: value.model_dump(mode="json") for key, value in report.items()},
            indent=2,
        )
    quote = report["quote"]
    currency = report["currency"]
    price_line = f"{currency.symbol}/USD: ${quote.price:,.2f}"
    if quote.is_fallback:
        price_line += " (fallback, price feed unavailable)"
    return f"{summarize_analysis(report['analysis'])}\n{price_line}"


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Skill market analysis report from on-chain oracle data")
    parser.add_argument(
        "--skills",
        default=",".join(DEFAULT_SKILLS_FOR_ANALYSIS),
        help="Comma-separated skills to analyze",
    )
    parser.add_argument("--chain-id", type=int, default=None)
    parser.add_argument("--json", action="store_true", help="Print the full report as JSON")
    parser.add_argument("--log-level", default=None)
    args = parser.parse_args(argv)

    configure_logging(args.log_level)
    skills = [skill.strip() for skill in args.skills.split(",") if skill.strip()]
    try:
        report = asyncio.run(build_report(skills, chain_id=args.chain_id))
    except SkillMarketError as exc:
        logger.error("Market report failed: %s", exc)
        print(json.dumps({"error": type(exc).__name__, "message": str(exc)}), file=sys.stderr)
        return 1

    print(render_report(report, as_json=args.json))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
