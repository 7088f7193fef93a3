"""
Logging configuration for hosts embedding the engine.

Call setup_logging() once at startup. Every engine module gets its own
logger via:

    import logging
    logger = logging.getLogger(__name__)

Level mapping:
  DEBUG   – cache rebuilds, per-pair results, fallback tier misses
  INFO    – enable/disable, recompute summaries, recoveries
  WARNING – fallbacks, circuit-breaker trips, corrupt override flags
  ERROR   – failed evaluations that escaped a local fallback
"""

import logging
import sys


def setup_logging(
    level: str = "INFO", quiet: tuple[str, ...] = ("shapely",)
) -> None:
    """Configure root logger and quiet noisy third-party loggers."""
    fmt = "[%(name)s] %(message)s"
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=fmt,
        stream=sys.stdout,
        force=True,
    )

    for name in quiet:
        logging.getLogger(name).setLevel(logging.WARNING)
