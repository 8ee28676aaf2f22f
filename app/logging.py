"""
Logging for the service: one stdout handler, `shopcore.*` module loggers,
uvicorn aligned to the same level and the Stripe SDK's request chatter muted.
"""
import logging
import sys

DEFAULT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logging(level: int | str = logging.INFO, format_string: str = DEFAULT_FORMAT) -> None:
    logging.basicConfig(level=level, format=format_string, stream=sys.stdout, force=True)
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access", "shopcore"):
        logging.getLogger(name).setLevel(level)
    # SDK logs every API call at INFO
    logging.getLogger("stripe").setLevel(logging.WARNING)
