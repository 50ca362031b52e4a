"""Unit tests for status/progress reporting."""

import logging

import pytest

from tfhost.progress import LoggingStatusSink, ThrottledProgress, format_percent


class RecordingSink:
    def __init__(self):
        self.statuses = []
        self.progress = []
        self.cleared = 0

    def show_status(self, message):
        self.statuses.append(message)

    def show_progress(self, current, maximum, message):
        self.progress.append((current, maximum, message))

    def clear_status(self):
        self.cleared += 1


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


@pytest.mark.parametrize(
    "current, maximum, expected",
    [
        (0, 100, "0%"),
        (1, 8, "12.5%"),
        (1, 3, "33.33%"),
        (100, 100, "100%"),
        (5, 0, "?%"),
        (5, -1, "?%"),
    ],
)
def test_format_percent(current, maximum, expected):
    assert format_percent(current, maximum) == expected


class TestThrottledProgress:
    def test_first_update_passes(self):
        sink = RecordingSink()
        ThrottledProgress(sink, 0.1, clock=FakeClock())(1, 4, "Downloading model.zip")
        assert sink.progress == [(1, 4, "Downloading model.zip: 25%")]

    def test_updates_within_interval_dropped(self):
        sink = RecordingSink()
        clock = FakeClock()
        progress = ThrottledProgress(sink, 0.1, clock=clock)
        progress(1, 10, "x")
        clock.now += 0.05
        progress(2, 10, "x")
        clock.now += 0.06
        progress(3, 10, "x")
        assert [p[0] for p in sink.progress] == [1, 3]

    def test_zero_interval_passes_everything(self):
        sink = RecordingSink()
        progress = ThrottledProgress(sink, 0.0, clock=FakeClock())
        for i in range(5):
            progress(i, 5, "x")
        assert len(sink.progress) == 5

    def test_status_and_clear_forwarded(self):
        sink = RecordingSink()
        progress = ThrottledProgress(sink)
        progress.status("Installing TF 1.13.1")
        progress.clear()
        assert sink.statuses == ["Installing TF 1.13.1"]
        assert sink.cleared == 1


def test_logging_sink_logs_status(caplog):
    with caplog.at_level(logging.INFO, logger="tfhost.progress"):
        LoggingStatusSink().show_status("Using bundled TensorFlow")
    assert "Using bundled TensorFlow" in caplog.text
