"""Tests for notification timing and rendering helpers."""

from datetime import date, datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from will_scheduler.services.notification_domain import (
    minutes_apart,
    motivational_time,
    parse_hhmm,
    pre_session_bucket,
    render,
    short_cycle_window,
    stable_hash,
    within_window,
)
from will_scheduler.utils.timezone import LocalTime, local_time


def _t(value: str) -> LocalTime:
    return parse_hhmm(value)


# ------------------------------------------------------------------
# Time-of-day window
# ------------------------------------------------------------------


class TestWindowMatching:
    @pytest.mark.parametrize("current", ["19:55", "19:58", "20:00", "20:03", "20:05"])
    def test_inside_window(self, current):
        assert within_window(_t(current), _t("20:00"))

    @pytest.mark.parametrize("current", ["19:54", "20:06", "08:00"])
    def test_outside_window(self, current):
        assert not within_window(_t(current), _t("20:00"))

    def test_midnight_wraparound(self):
        assert within_window(_t("00:02"), _t("23:58"))
        assert within_window(_t("23:57"), _t("00:01"))
        assert not within_window(_t("00:04"), _t("23:58"))

    def test_minutes_apart_takes_short_way(self):
        assert minutes_apart(_t("00:00"), _t("23:00")) == 60
        assert minutes_apart(_t("06:00"), _t("18:00")) == 720

    def test_custom_window(self):
        assert within_window(_t("20:09"), _t("20:00"), window_minutes=10)
        assert not within_window(_t("20:01"), _t("20:00"), window_minutes=0)

    def test_local_wall_clock_is_matched(self):
        # 01:02 UTC is 20:02 the previous evening in New York (EST)
        now = datetime(2025, 1, 15, 1, 2, tzinfo=timezone.utc)
        assert within_window(local_time(now, "America/New_York"), _t("20:00"))
        assert not within_window(local_time(now, "UTC"), _t("20:00"))


class TestParseHHMM:
    def test_valid(self):
        assert parse_hhmm("20:00") == LocalTime(20, 0)
        assert parse_hhmm("8:05") == LocalTime(8, 5)
        assert parse_hhmm("07:30:00") == LocalTime(7, 30)

    @pytest.mark.parametrize("value", [None, "", "noon", "25:00", "12:60", "12"])
    def test_invalid(self, value):
        assert parse_hhmm(value) is None


# ------------------------------------------------------------------
# Deterministic daily time
# ------------------------------------------------------------------


class TestMotivationalTime:
    def test_hash_is_stable(self):
        assert stable_hash("42:2025-03-10") == stable_hash("42:2025-03-10")
        assert stable_hash("") == 0

    def test_same_user_and_date_same_time(self):
        day = date(2025, 3, 10)
        results = {motivational_time(42, day) for _ in range(20)}
        assert len(results) == 1

    def test_falls_inside_default_window(self):
        for offset in range(60):
            slot = motivational_time(7, date(2025, 1, 1) + timedelta(days=offset))
            assert 8 * 60 <= slot.total_minutes < 21 * 60

    def test_dates_usually_differ(self):
        days = [date(2025, 1, 1) + timedelta(days=i) for i in range(30)]
        slots = {motivational_time(42, d) for d in days}
        assert len(slots) >= 20

    def test_users_usually_differ(self):
        day = date(2025, 6, 1)
        slots = {motivational_time(user_id, day) for user_id in range(1, 31)}
        assert len(slots) >= 20

    def test_window_crossing_midnight(self):
        window = (LocalTime(22, 0), LocalTime(2, 0))
        for offset in range(60):
            slot = motivational_time(3, date(2025, 1, 1) + timedelta(days=offset), window)
            assert slot.total_minutes >= 22 * 60 or slot.total_minutes < 2 * 60

    def test_short_cycle_window(self):
        start = datetime(2025, 3, 10, 10, 0, tzinfo=timezone.utc)
        assert short_cycle_window(start, start + timedelta(hours=4), "UTC") == (
            LocalTime(10, 0),
            LocalTime(14, 0),
        )
        assert short_cycle_window(start, start + timedelta(hours=24), "UTC") is None
        assert short_cycle_window(start, None, "UTC") is None

    def test_short_cycle_window_in_local_time(self):
        start = datetime(2025, 3, 10, 10, 0, tzinfo=timezone.utc)
        window = short_cycle_window(start, start + timedelta(hours=3), "Asia/Tokyo")
        assert window == (LocalTime(19, 0), LocalTime(22, 0))


# ------------------------------------------------------------------
# Pre-session buckets
# ------------------------------------------------------------------


def _warns(now, session, offset):
    after, at_or_before = pre_session_bucket(now, offset)
    return after < session <= at_or_before


class TestPreSessionBucket:
    SESSION = datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc)

    @pytest.mark.parametrize(
        "now,expected",
        [
            (datetime(2025, 3, 10, 11, 45, 0, tzinfo=timezone.utc), True),
            (datetime(2025, 3, 10, 11, 45, 59, tzinfo=timezone.utc), True),
            (datetime(2025, 3, 10, 11, 46, 0, tzinfo=timezone.utc), False),
            (datetime(2025, 3, 10, 11, 44, 59, tzinfo=timezone.utc), False),
        ],
    )
    def test_fifteen_minute_bucket(self, now, expected):
        assert _warns(now, self.SESSION, 15) is expected

    def test_day_before_bucket(self):
        now = self.SESSION - timedelta(hours=24) + timedelta(seconds=30)
        assert _warns(now, self.SESSION, 1440)
        assert not _warns(now, self.SESSION, 15)

    def test_range_is_one_minute_ending_at_now_plus_offset(self):
        now = datetime(2025, 3, 10, 11, 45, 20, tzinfo=timezone.utc)
        after, at_or_before = pre_session_bucket(now, 15)
        assert at_or_before == datetime(2025, 3, 10, 12, 0, 20, tzinfo=timezone.utc)
        assert at_or_before - after == timedelta(minutes=1)


# ------------------------------------------------------------------
# Rendering
# ------------------------------------------------------------------


class TestRender:
    def test_configured_template(self):
        with patch(
            "will_scheduler.services.notification_domain.get_template",
            return_value={"title": "Half of {title}", "body": "Keep going"},
        ):
            assert render("midpoint", title="Runs") == ("Half of Runs", "Keep going")

    def test_falls_back_to_builtin_templates(self):
        with patch(
            "will_scheduler.services.notification_domain.get_template",
            return_value={},
        ):
            title, body = render("midpoint", title="Runs")
        assert title == "Halfway there"
        assert "Runs" in body

    def test_missing_placeholder_renders_empty(self):
        with patch(
            "will_scheduler.services.notification_domain.get_template",
            return_value={"title": "{title}", "body": "at {session_time}"},
        ):
            assert render("session_warning_15") == ("", "at ")

    def test_unknown_category(self):
        with patch(
            "will_scheduler.services.notification_domain.get_template",
            return_value={},
        ):
            assert render("brand_new") == ("Brand new", "")
