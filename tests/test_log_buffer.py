"""Tests for the bounded dev-stack output buffer."""

import pytest

from proofpack.core.log_buffer import LogBuffer


def test_keeps_only_last_capacity_lines():
    buf = LogBuffer(capacity=50)
    buf.extend(f"line {i}" for i in range(60))
    assert len(buf) == 50
    assert buf.tail()[0] == "line 10"
    assert buf.tail()[-1] == "line 59"


def test_tail_n():
    buf = LogBuffer(capacity=5)
    buf.extend(["a", "b", "c"])
    assert buf.tail(2) == ["b", "c"]
    assert buf.tail(10) == ["a", "b", "c"]
    assert buf.tail(0) == []


def test_skips_empty_lines_and_strips_newlines():
    buf = LogBuffer()
    buf.extend(["", "hello\r\n", "\n", "world\n"])
    assert buf.tail() == ["hello", "world"]


def test_feed_holds_back_partial_line():
    buf = LogBuffer()
    assert buf.feed("VITE v5 ready\nLocal: http://127.") == ["VITE v5 ready"]
    assert buf.tail() == ["VITE v5 ready"]
    assert buf.feed("0.0.1:5173/\r\n") == ["Local: http://127.0.0.1:5173/"]
    assert buf.tail()[-1] == "Local: http://127.0.0.1:5173/"


def test_flush_commits_trailing_partial():
    buf = LogBuffer()
    buf.feed("no newline at end")
    assert len(buf) == 0
    assert buf.flush() == ["no newline at end"]
    assert buf.tail() == ["no newline at end"]
    assert buf.flush() == []


def test_watched_pattern_survives_eviction():
    buf = LogBuffer(capacity=3)
    buf.watch("Failed to resolve import")
    buf.append('[vite] Failed to resolve import "./missing" from "src/App.jsx"')
    buf.extend(["noise 1", "noise 2", "noise 3", "noise 4"])
    assert all("Failed" not in line for line in buf)
    assert buf.first_match("Failed to resolve import").startswith("[vite] Failed")


def test_watch_keeps_first_match():
    buf = LogBuffer()
    buf.watch("ERR")
    buf.extend(["ERR one", "ERR two"])
    assert buf.first_match("ERR") == "ERR one"


def test_watch_picks_up_already_buffered_line():
    buf = LogBuffer()
    buf.append("EADDRINUSE 8787")
    buf.watch("EADDRINUSE")
    assert buf.first_match("EADDRINUSE") == "EADDRINUSE 8787"


def test_unwatched_first_match_scans_buffer():
    buf = LogBuffer()
    buf.extend(["alpha", "beta"])
    assert buf.first_match("et") == "beta"
    assert buf.first_match("gamma") is None


def test_rejects_zero_capacity():
    with pytest.raises(ValueError):
        LogBuffer(capacity=0)
