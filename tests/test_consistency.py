# ABOUTME: Tests the week-over-week engagement consistency score.
# ABOUTME: Checks cadence bonuses, low-confidence flags, and cohort aggregation.

from datetime import datetime, timedelta, timezone

import pytest

from src.cohort_metrics.consistency import (
    calculate_consistency,
    score_student_consistency,
    weekday_concentration,
)
from src.event_stream.journeys import build_journeys
from src.event_stream.schemas import InteractionEvent

MONDAY = datetime(2024, 1, 1, 10, tzinfo=timezone.utc)


def _event(student: str, day_offset: float, content: str = "module_1_basics") -> InteractionEvent:
    return InteractionEvent(
        student_id=student, content_id=content, kind="activity", timestamp=MONDAY + timedelta(days=day_offset)
    )


def _weekly(student: str, days_per_week):
    return [_event(student, week * 7 + day) for week, days in enumerate(days_per_week) for day in days]


def test_fixed_weekday_cadence_scores_high():
    journeys = build_journeys(_weekly("steady", [(0, 2, 4)] * 8))

    report = calculate_consistency(journeys)
    student = report.student_scores[0]

    assert student.weeks_observed == 8
    assert student.weeks_active == 8
    assert student.score >= 90
    assert student.pattern == "high"
    assert not student.low_confidence


def test_scattered_weekdays_score_below_fixed_cadence_with_equal_volume():
    scattered_days = [(w % 7, (w + 2) % 7, (w + 5) % 7) for w in range(8)]
    events = _weekly("steady", [(0, 2, 4)] * 8) + _weekly("scattered", scattered_days)
    journeys = build_journeys(events)

    report = calculate_consistency(journeys)
    scores = {s.student_id: s for s in report.student_scores}

    assert scores["steady"].event_count == scores["scattered"].event_count == 24
    assert scores["scattered"].score < scores["steady"].score
    assert report.student_scores[0].student_id == "steady"


def test_lower_weekday_spread_never_scores_lower_for_same_active_weeks():
    mondays = _weekly("mondays", [(0,), (0,), (0,), (0,)])
    mixed = _weekly("mixed", [(0,), (3,), (0,), (0,)])
    journeys = build_journeys(mondays + mixed)
    now = MONDAY + timedelta(days=21)

    a = score_student_consistency(journeys["mondays"], now)
    b = score_student_consistency(journeys["mixed"], now)

    assert a.weeks_active == b.weeks_active == 4
    assert a.weekday_concentration > b.weekday_concentration
    assert a.score >= b.score


def test_adjacent_weekdays_outscore_spread_weekdays_with_equal_active_weeks():
    spread = _weekly("mon_thu", [(0, 3)] * 8)
    adjacent = _weekly("mon_tue_wed", [(0, 1, 2)] * 8)

    report = calculate_consistency(build_journeys(spread + adjacent))
    scores = {s.student_id: s for s in report.student_scores}

    assert scores["mon_thu"].weeks_active == scores["mon_tue_wed"].weeks_active == 8
    assert scores["mon_tue_wed"].weekday_concentration > scores["mon_thu"].weekday_concentration
    assert scores["mon_tue_wed"].score >= scores["mon_thu"].score


def test_sunday_and_monday_count_as_neighbouring_days():
    around_weekend = build_journeys(_weekly("a", [(-1, 0)] * 4))["a"]
    midweek_gap = build_journeys(_weekly("b", [(0, 3)] * 4))["b"]

    assert weekday_concentration(around_weekend) > weekday_concentration(midweek_gap)


def test_naive_reference_time_is_treated_as_utc():
    journeys = build_journeys(_weekly("s", [(0, 2)] * 3))

    naive = calculate_consistency(journeys, now=datetime(2024, 2, 1))
    aware = calculate_consistency(journeys, now=datetime(2024, 2, 1, tzinfo=timezone.utc))

    assert naive.to_dict() == aware.to_dict()
    assert naive.student_scores[0].weeks_observed == 5


def test_single_event_is_lowest_band():
    journey = build_journeys([_event("once", 0)])["once"]

    same_moment = score_student_consistency(journey, now=journey.start)
    much_later = score_student_consistency(journey, now=journey.start + timedelta(days=30))

    assert same_moment.pattern == "low"
    assert same_moment.score <= 39
    assert much_later.pattern == "low"


def test_short_history_is_flagged_low_confidence():
    journey = build_journeys([_event("new", 0), _event("new", 1), _event("new", 3)])["new"]

    result = score_student_consistency(journey)

    assert result.low_confidence
    assert result.weeks_observed == 1
    assert 0 <= result.score <= 100


def test_reference_time_extends_observed_weeks():
    journey = build_journeys(_weekly("faded", [(0, 2)] * 2))["faded"]

    recent = score_student_consistency(journey, now=journey.end)
    later = score_student_consistency(journey, now=journey.start + timedelta(days=55))

    assert later.weeks_observed == 8
    assert later.score < recent.score


def test_weekday_concentration_bounds():
    one_day = build_journeys(_weekly("a", [(0,)] * 3))["a"]
    every_day = build_journeys(_weekly("b", [tuple(range(7))]))["b"]

    assert weekday_concentration(one_day) == 1.0
    assert weekday_concentration(every_day) == pytest.approx(0.0, abs=1e-9)


def test_empty_input_returns_empty_report():
    report = calculate_consistency({})

    assert report.is_empty
    assert report.average_score == 0.0
    assert report.distribution == {"high": 0, "medium": 0, "low": 0}
    assert report.student_scores == []


def test_report_is_idempotent():
    journeys = build_journeys(_weekly("s", [(0, 2), (1,), (), (4,)]))

    assert calculate_consistency(journeys).to_dict() == calculate_consistency(journeys).to_dict()
