"""
Unit tests for the date/time normalizer.
"""

import pytest
from datetime import date, datetime, time
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent.parent.parent))

from src.core.errors import EventValidationError
from src.nlp.datetime_normalizer import DateTimeNormalizer, format_date, format_time, parse_time


# Tuesday
BASE = datetime(2025, 3, 18, 10, 30)


@pytest.fixture
def normalizer():
    return DateTimeNormalizer()


# =============================================================================
# Time parsing
# =============================================================================

class TestParseTime:

    @pytest.mark.parametrize("fragment,expected", [
        ("4pm", (16, 0)),
        ("4 PM", (16, 0)),
        ("2:30pm", (14, 30)),
        ("4:00 p.m.", (16, 0)),
        ("12pm", (12, 0)),
        ("12:00am", (0, 0)),
        ("12:15 AM", (0, 15)),
        ("9am", (9, 0)),
        ("16:00", (16, 0)),
        ("07:05", (7, 5)),
        ("16:00:00", (16, 0)),
        ("noon", (12, 0)),
        ("midnight", (0, 0)),
    ])
    def test_valid_times(self, fragment, expected):
        assert parse_time(fragment) == expected

    @pytest.mark.parametrize("fragment", [
        None, "", "25:00", "13pm", "0am", "4:75", "four", "later today",
    ])
    def test_malformed_times(self, fragment):
        assert parse_time(fragment) is None

    def test_format_time(self):
        assert format_time(time(7, 5)) == "07:05"
        assert format_time(None) is None

    def test_format_date(self):
        assert format_date(date(2025, 3, 21)) == "March 21, 2025"
        assert format_date(date(2025, 3, 1)) == "March 1, 2025"


# =============================================================================
# Normalization
# =============================================================================

class TestNormalize:

    def test_iso_date_with_meridiem_time(self, normalizer):
        assert normalizer.normalize("2025-03-21", "4:00 PM", BASE) == datetime(2025, 3, 21, 16, 0)

    def test_tomorrow(self, normalizer):
        assert normalizer.normalize("tomorrow", "9am", BASE) == datetime(2025, 3, 19, 9, 0)

    def test_today(self, normalizer):
        assert normalizer.normalize("Today", "17:30", BASE) == datetime(2025, 3, 18, 17, 30)

    def test_weekday_resolves_forward(self, normalizer):
        assert normalizer.normalize("Friday", "5pm", BASE) == datetime(2025, 3, 21, 17, 0)

    def test_iso_datetime_time_is_used(self, normalizer):
        assert normalizer.normalize("2025-03-21T08:15:00") == datetime(2025, 3, 21, 8, 15)

    def test_explicit_time_beats_embedded_time(self, normalizer):
        assert normalizer.normalize("2025-03-21T08:15:00", "10am", BASE) == datetime(2025, 3, 21, 10, 0)

    def test_malformed_time_degrades_to_date(self, normalizer):
        assert normalizer.normalize("2025-03-21", "25:99", BASE) == datetime(2025, 3, 21, 0, 0)

    def test_missing_date_defaults_to_tomorrow(self, normalizer):
        assert normalizer.normalize(None, "4pm", BASE) == datetime(2025, 3, 19, 16, 0)

    def test_unparseable_date_defaults_to_tomorrow(self, normalizer):
        assert normalizer.resolve_date("qwertyuiop", BASE) == date(2025, 3, 19)

    def test_invalid_iso_date_defaults(self, normalizer):
        assert normalizer.resolve_date("2025-02-30", BASE) == date(2025, 3, 19)

    def test_default_policy_is_configurable(self):
        normalizer = DateTimeNormalizer(default_date_policy="today")
        assert normalizer.resolve_date(None, BASE) == date(2025, 3, 18)

    def test_unusable_policy_falls_back_to_tomorrow(self):
        normalizer = DateTimeNormalizer(default_date_policy="qwertyuiop")
        assert normalizer.resolve_date(None, BASE) == date(2025, 3, 19)

    def test_round_trip_through_display_format(self, normalizer):
        resolved = normalizer.normalize("2025-03-21", "16:00", BASE)

        assert format_date(resolved.date()) == "March 21, 2025"
        assert normalizer.resolve_date(resolved.date().isoformat(), BASE) == resolved.date()


class TestTimeRange:

    def test_end_after_start_passes(self, normalizer):
        normalizer.check_time_range(datetime(2025, 3, 21, 16, 0), datetime(2025, 3, 21, 17, 0))

    def test_missing_end_passes(self, normalizer):
        normalizer.check_time_range(datetime(2025, 3, 21, 16, 0), None)

    @pytest.mark.parametrize("end", [datetime(2025, 3, 21, 16, 0), datetime(2025, 3, 21, 15, 0)])
    def test_end_not_after_start_raises(self, normalizer, end):
        with pytest.raises(EventValidationError) as exc_info:
            normalizer.check_time_range(datetime(2025, 3, 21, 16, 0), end)

        assert exc_info.value.field == "end_time"
        assert exc_info.value.to_dict()["field"] == "end_time"
