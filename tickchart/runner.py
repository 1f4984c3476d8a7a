"""
Chart orchestration.
"""

import asyncio
import logging
import sys
from collections.abc import Callable
from typing import Optional

from tickchart.config import ChartConfig
from tickchart.feed import TickFeed
from tickchart.render import RenderSink
from tickchart.session import ChartSession


log = logging.getLogger(__name__)


__all__ = [
    "configure_logging",
    "run_chart",
]


def configure_logging(level: str = "INFO", force: bool = False) -> None:
    """
    Configure root logger with console output.

    By default, this is non-destructive: if the root logger already has handlers,
    it will do nothing (assuming the application has configured logging).

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR)
        force: If True, clear existing handlers and force this configuration
    """
    root_logger = logging.getLogger()

    if root_logger.hasHandlers() and not force:
        return

    root_logger.setLevel(level.upper())

    if force:
        root_logger.handlers.clear()

    formatter = logging.Formatter(
        "%(asctime)s %(levelname)s %(name)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    root_logger.addHandler(handler)


async def _async_run_chart(
    config: ChartConfig,
    feed_factory: Callable[[], TickFeed],
    sink: Optional[RenderSink],
    symbol: Optional[str],
) -> ChartSession:
    session = ChartSession(
        store=config.make_store(),
        sink=sink,
        interval_ms=config.interval_ms,
    )
    await session.select_instrument(symbol or config.default_symbol)

    feed = feed_factory()
    log.info(
        "Charting %s in %ds candles",
        session.instrument,
        config.interval_ms // 1000,
    )
    await session.run(feed)

    stats = session.stats()
    log.info("%s: %d closed candles", stats.instrument, stats.live_candles)
    return session


def run_chart(
    config: ChartConfig,
    feed_factory: Callable[[], TickFeed],
    sink: Optional[RenderSink] = None,
    symbol: Optional[str] = None,
    setup_logging: bool = True,
) -> None:
    """
    Run a live chart for one instrument until the feed ends.

    The framework will:
      - Build the candle store from `config`.
      - Select `symbol` (or `config.default_symbol`), restoring stored candles.
      - Construct the feed via `feed_factory()` and consume it.

    Args:
        config: Chart configuration.
        feed_factory: A callable that returns an unconnected `TickFeed`.
        sink: Where to push the merged candle list after every update.
        symbol: Instrument to chart; defaults to `config.default_symbol`.
        setup_logging: If `True`, configures the root logger from `config.log_level`.
    """
    if setup_logging:
        configure_logging(config.log_level)

    exit_code = 0

    try:
        asyncio.run(_async_run_chart(config, feed_factory, sink, symbol))

    except KeyboardInterrupt:
        log.info("Interrupted by user - shutting down gracefully")

    except Exception as e:
        log.exception("Fatal error in chart runner: %s", e)
        exit_code = 1

    finally:
        log.info("Tickchart shut down complete")

    if exit_code:
        sys.exit(exit_code)
