# examples/replay_chart.py
"""Replay a recorded tick file into a one-minute chart."""
import json
import logging
import sys
from pathlib import Path

from tickchart import ChartConfig, run_chart
from tickchart.feed import ReplayFeed
from tickchart.marketdata import CandleClosedEvent
from tickchart.events import get_dispatcher
from tickchart.render import SnapshotSink

log = logging.getLogger(__name__)


def log_close(event: CandleClosedEvent) -> None:
    c = event.candle
    log.info(
        "%s closed %s O=%.2f H=%.2f L=%.2f C=%.2f",
        event.instrument, c.bucket_start, c.open, c.high, c.low, c.close,
    )


if __name__ == "__main__":
    # One JSON payload per line: {"timestamp": ..., "tick": {"o", "h", "l", "c"}}
    ticks_path = Path(sys.argv[1])
    symbol = sys.argv[2] if len(sys.argv) > 2 else "HBL"

    payloads = [json.loads(line) for line in ticks_path.read_text().splitlines() if line.strip()]

    config = ChartConfig.from_raw({"storage_dir": "candles", "log_level": "INFO"})
    sink = SnapshotSink()
    get_dispatcher().subscribe(CandleClosedEvent, log_close, instrument=symbol)

    run_chart(
        config,
        lambda: ReplayFeed.from_payloads(symbol, payloads),
        sink=sink,
        symbol=symbol,
    )
    print(json.dumps(sink.rows(), indent=2))
