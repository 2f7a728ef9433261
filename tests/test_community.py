"""Tests for community pest and heat trends."""

import logging
from datetime import timedelta

import pytest

from community import (
    aggregate_community_trend,
    community_category_counts,
    compute_community_trend,
    count_heat_stress_levels,
    count_pest_categories,
    count_recent,
)
from errors import StoreError
from models import MicroclimateReading, PestReading


def pest_rows(*counts, created_at=None):
    return [
        PestReading(id=i + 1, dark_pixel_ratio=0.01, estimated_pest_count=c, created_at=created_at)
        for i, c in enumerate(counts)
    ]


def heat_rows(*levels, air=35.0, humidity=25.0, created_at=None):
    return [
        MicroclimateReading(
            id=i + 1,
            air_temperature=air,
            soil_temperature=28.0,
            soil_moisture=30.0,
            relative_humidity=humidity,
            heat_stress_level=level,
            created_at=created_at,
        )
        for i, level in enumerate(levels)
    ]


class TestPestTrend:

    def test_rising_significantly(self, clock):
        trend = compute_community_trend(pest_rows(30, 30, 30, 14), "pest", participation=2, now=clock())
        assert trend.trend == "rising_significantly"
        assert trend.level == "high"
        assert trend.confidence == "high"
        assert trend.description == (
            "High pest activity detected! 4 out of 4 recent submissions show high pest counts"
        )
        assert trend.average_level == 3.8

    def test_rising_moderately_reports_percentage(self, clock):
        trend = compute_community_trend(pest_rows(14, 14, 8), "pest", now=clock())
        assert trend.trend == "rising_moderately"
        assert trend.level == "moderate"
        assert trend.confidence == "medium"
        assert "67% of submissions" in trend.description

    def test_stable_moderate_is_high_confidence(self, clock):
        trend = compute_community_trend(pest_rows(*[8] * 6), "pest", now=clock())
        assert trend.trend == "stable_moderate"
        assert trend.level == "moderate"
        assert trend.confidence == "high"

    def test_stable_low(self, clock):
        trend = compute_community_trend(pest_rows(0, 1, 4), "pest", now=clock())
        assert trend.trend == "stable_low"
        assert trend.level == "low"

    @pytest.mark.parametrize("counts, trend_name", [
        ((26, 26, 14, 14), "rising_significantly"),  # mean exactly 3.5
        ((14, 8), "rising_moderately"),  # mean exactly 2.5
        ((8, 3), "stable_moderate"),  # mean exactly 1.5
    ])
    def test_band_minimums_are_inclusive(self, clock, counts, trend_name):
        assert compute_community_trend(pest_rows(*counts), "pest", now=clock()).trend == trend_name

    def test_no_data(self):
        trend = compute_community_trend([], "pest", participation=5)
        assert trend.trend == "no_data"
        assert trend.level == "low"
        assert trend.confidence == "low"
        assert trend.participation == 0
        assert trend.recent_activity == "No recent submissions"

    def test_to_dict_uses_risk_level_key(self, clock):
        payload = compute_community_trend(pest_rows(0), "pest", participation=1, now=clock()).to_dict()
        assert payload["risk_level"] == "low"
        assert payload["trend_description"].startswith("Low pest activity")
        assert payload["total_submissions"] == 1
        assert "heat_stress_level" not in payload


class TestHeatTrend:

    def test_elevated_conditions_report_averages(self, clock):
        trend = compute_community_trend(heat_rows("high", "high", "critical", "moderate"), "heat", now=clock())
        assert trend.trend == "elevated_conditions"
        assert trend.level == "high"
        assert trend.description == "High heat stress across community. Avg temp: 35.0°C, Humidity: 25.0%"
        assert trend.averages["average_air_temperature"] == 35.0
        assert trend.averages["average_soil_moisture"] == 30.0

    def test_critical_conditions(self, clock):
        trend = compute_community_trend(heat_rows("critical", "critical", "critical", "high"), "heat", now=clock())
        assert trend.trend == "critical_conditions"
        assert trend.level == "critical"
        assert "100% of community" in trend.description

    @pytest.mark.parametrize("levels, trend_name, level", [
        (("moderate", "moderate"), "moderate_conditions", "moderate"),
        (("low", "minimal", "low"), "mild_conditions", "low"),
        (("minimal", "minimal"), "optimal_conditions", "minimal"),
    ])
    def test_lower_bands(self, clock, levels, trend_name, level):
        trend = compute_community_trend(heat_rows(*levels), "heat", now=clock())
        assert trend.trend == trend_name
        assert trend.level == level

    def test_unknown_levels_count_as_minimal(self, clock):
        trend = compute_community_trend(heat_rows("scorching", None), "heat", now=clock())
        assert trend.trend == "optimal_conditions"

    def test_no_data(self):
        trend = compute_community_trend([], "heat")
        assert trend.trend == "no_data"
        assert trend.level == "minimal"
        assert trend.to_dict()["heat_stress_level"] == "minimal"

    def test_unknown_kind(self):
        with pytest.raises(ValueError):
            compute_community_trend([], "rain")


class TestRecentActivity:

    def test_counts_last_24_hours(self, clock):
        now = clock()
        rows = (
            pest_rows(1, created_at=now - timedelta(hours=1))
            + pest_rows(1, created_at=now - timedelta(hours=23))
            + pest_rows(1, created_at=now - timedelta(hours=25))
        )
        assert count_recent(rows, now) == 2
        trend = compute_community_trend(rows, "pest", now=now)
        assert trend.recent_activity == "2 submissions in last 24 hours"

    def test_naive_timestamps_are_utc(self, clock):
        now = clock()
        naive = (now - timedelta(hours=2)).replace(tzinfo=None)
        assert count_recent(pest_rows(1, created_at=naive), now) == 1

    def test_missing_timestamps_are_not_recent(self, clock):
        assert count_recent(pest_rows(1, 2), clock()) == 0


class TestAggregate:

    def test_participation_counts_distinct_users(self, store, clock):
        for user in ("ana", "ana", "ben", "cleo"):
            store.add_pest_reading(user, "Kenya", 0.01, 30)
            clock.advance(minutes=5)
        store.add_pest_reading("dan", "Peru", 0.01, 30)

        trend = aggregate_community_trend(store, "Kenya", "pest", now=clock())
        assert trend.participation == 3
        assert trend.total_submissions == 4
        assert trend.recent_activity == "4 submissions in last 24 hours"

    def test_window_depends_on_filter(self, store, clock):
        for _ in range(120):
            store.add_pest_reading("ana", "Kenya", 0.01, 0)
            clock.advance(minutes=1)

        assert aggregate_community_trend(store, "Kenya", "pest", "recent").total_submissions == 50
        assert aggregate_community_trend(store, "Kenya", "pest", "all").total_submissions == 100

    def test_uses_most_recent_rows(self, store, clock):
        for _ in range(60):
            store.add_pest_reading("ana", "Kenya", 0.01, 0)
            clock.advance(minutes=1)
        for _ in range(50):
            store.add_pest_reading("ana", "Kenya", 0.01, 30)
            clock.advance(minutes=1)

        trend = aggregate_community_trend(store, "Kenya", "pest", "recent")
        assert trend.trend == "rising_significantly"

    def test_empty_area(self, store):
        store.add_pest_reading("ana", "Peru", 0.01, 30)
        trend = aggregate_community_trend(store, "Kenya", "pest")
        assert trend.trend == "no_data"
        assert trend.participation == 0

    def test_heat_kind(self, store):
        store.add_microclimate_reading("ana", "Kenya", 36, 31, 15, 20, "critical")
        trend = aggregate_community_trend(store, "Kenya", "heat")
        assert trend.trend == "critical_conditions"
        assert trend.participation == 1

    def test_store_failure_becomes_error_trend(self, caplog):
        class BrokenStore:
            def get_community_pest_readings(self, area_id, limit):
                raise StoreError("connection refused")

        with caplog.at_level(logging.ERROR, logger="community"):
            trend = aggregate_community_trend(BrokenStore(), "Kenya", "pest")

        assert trend.trend == "error"
        assert trend.level == "unknown"
        assert trend.confidence == "low"
        assert trend.description == "Error analyzing community data"
        assert "connection refused" in caplog.text

    def test_bad_arguments_raise(self, store):
        with pytest.raises(ValueError):
            aggregate_community_trend(store, "Kenya", "rain")
        with pytest.raises(ValueError):
            aggregate_community_trend(store, "Kenya", "pest", filter_type="yesterday")


class TestCategoryCounts:

    def test_pest_categories(self):
        rows = pest_rows(1, 2, 3)
        rows[0].pest_amount = "very low"
        rows[1].pest_amount = "very low"
        rows[2].pest_amount = "High"
        counts = count_pest_categories(rows)
        assert counts == {"very_low": 2, "low": 0, "moderate": 0, "high": 1, "very_high": 0}

    def test_heat_levels_ignore_unknown(self):
        counts = count_heat_stress_levels(heat_rows("critical", "Low", "scorching", None))
        assert counts == {"minimal": 0, "low": 1, "moderate": 0, "high": 0, "critical": 1}

    def test_recent_vs_all(self, store, clock):
        for _ in range(60):
            store.add_pest_reading("ana", "Kenya", 0.01, 0, pest_amount="very low")
            clock.advance(minutes=1)

        recent = community_category_counts(store, "Kenya", "pest", "recent")
        everything = community_category_counts(store, "Kenya", "pest", "all")
        assert recent["total_submissions"] == 50
        assert recent["counts"]["very_low"] == 50
        assert recent["type"] == "recent"
        assert everything["total_submissions"] == 60

    def test_heat_counts_across_all_areas(self, store):
        store.add_microclimate_reading("ana", "Kenya", 20, 20, 50, 60, "minimal")
        store.add_microclimate_reading("ben", "Peru", 36, 31, 15, 20, "critical")
        result = community_category_counts(store, None, "heat", "all")
        assert result["total_submissions"] == 2
        assert result["counts"]["critical"] == 1
