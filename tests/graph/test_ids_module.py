"""Tests for :mod:`taskweave.graph.ids`."""

from __future__ import annotations

import time

from taskweave.graph import ids


def test_new_id_prefix_and_uniqueness():
    identifier = ids.new_id("undo")
    assert identifier.startswith("undo_")
    assert identifier != ids.new_id("undo")


def test_utc_now_returns_iso_format():
    timestamp = ids.utc_now()
    assert "T" in timestamp and timestamp.endswith("+00:00")


def test_now_ms_is_epoch_milliseconds():
    before = int(time.time() * 1000)
    value = ids.now_ms()
    after = int(time.time() * 1000)
    assert before - 1 <= value <= after + 1
