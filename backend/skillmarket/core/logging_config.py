import logging
import sys

from skillmarket.core.config import settings


def configure_logging(level: str | None = None, fmt: str | None = None) -> None:
    logging.basicConfig(
        stream=sys.stderr,
        level=(level or settings.log_level).upper(),
        format=fmt or settings.log_format,
    )
    # web3 and httpx are chatty at INFO.
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("web3").setLevel(logging.WARNING)
