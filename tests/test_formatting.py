"""Tests for playback position formatting."""
import math
from types import SimpleNamespace

import pytest

from resumewright.utils.formatting import (
    format_elapsed,
    format_progress_text,
    format_remaining,
)


class TestFormatElapsed:
    """Tests for format_elapsed."""

    @pytest.mark.parametrize("seconds, expected", [
        (0, "00:00"),
        (5, "00:05"),
        (59.9, "00:59"),
        (61, "01:01"),
        (3599, "59:59"),
        (3600, "1:00:00"),
        (3725, "1:02:05"),
        (36000, "10:00:00"),
    ])
    def test_values(self, seconds, expected):
        assert format_elapsed(seconds) == expected

    @pytest.mark.parametrize("value", [math.nan, math.inf, -math.inf, None, "abc"])
    def test_unusable_input_is_zero(self, value):
        assert format_elapsed(value) == "00:00"

    def test_negative_clamps_to_zero(self):
        assert format_elapsed(-30) == "00:00"


class TestRecordFormatting:
    """Tests for helpers taking a record."""

    def test_remaining(self):
        record = SimpleNamespace(current_time=600, duration=3725)
        assert format_remaining(record) == "52:05"

    def test_remaining_past_end(self):
        record = SimpleNamespace(current_time=4000, duration=3600)
        assert format_remaining(record) == "00:00"

    def test_progress_text(self):
        record = SimpleNamespace(current_time=1800, duration=3600, progress_percentage=50.0)
        assert format_progress_text(record) == "30:00 / 1:00:00 (50%)"
