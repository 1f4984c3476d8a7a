# tests/conftest.py
import os
import sys

import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from tickchart.events import EventDispatcher
from tickchart.render import SnapshotSink
from tickchart.storage import MemoryCandleStore


MINUTE_MS = 60_000


def make_event(ts, o, h, l, c):
    """Feed payload in the upstream shape."""
    payload = {"tick": {"o": o, "h": h, "l": l, "c": c}}
    if ts is not None:
        payload["timestamp"] = ts
    return payload


@pytest.fixture
def store():
    return MemoryCandleStore()


@pytest.fixture
def sink():
    return SnapshotSink()


@pytest.fixture
def dispatcher():
    return EventDispatcher()
