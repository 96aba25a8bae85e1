# ABOUTME: Tests aha-moment detection around engagement events.
# ABOUTME: Covers the spike rule, earliest-wins tie-break, eligibility, and stagnant students.

from datetime import datetime, timedelta, timezone

from src.cohort_metrics.breakthrough import calculate_breakthroughs, detect_breakthrough
from src.event_stream.journeys import build_journeys
from src.event_stream.schemas import InteractionEvent

T0 = datetime(2024, 2, 5, 9, tzinfo=timezone.utc)


def _event(student: str, content: str, days: float, kind: str = "activity") -> InteractionEvent:
    return InteractionEvent(student_id=student, content_id=content, kind=kind, timestamp=T0 + timedelta(days=days))


def _scenario(student: str = "s1"):
    return [
        _event(student, "content_a", 0),
        _event(student, "content_a", 1),
        _event(student, "content_b", 4, kind="engagement"),
        _event(student, "content_c", 5),
        _event(student, "content_d", 6),
        _event(student, "content_e", 7),
    ]


def test_spike_after_engagement_event_is_detected():
    journey = build_journeys(_scenario())["s1"]

    found = detect_breakthrough(journey)

    assert found is not None
    assert found.content_id == "content_b"
    assert found.content_name == "Content B"
    assert found.events_before == 2
    assert found.events_after == 3
    assert found.time_to_breakthrough_seconds == timedelta(days=4).total_seconds()
    assert found.time_to_breakthrough == "4.0d"


def test_earliest_qualifying_event_wins():
    events = [
        _event("s1", "kickoff_call", 0, kind="engagement"),
        _event("s1", "module_1_basics", 1),
        _event("s1", "module_1_basics", 2),
        _event("s1", "live_session", 8, kind="engagement"),
        _event("s1", "module_2_advanced", 9),
        _event("s1", "module_3_mastery", 10),
    ]

    found = detect_breakthrough(build_journeys(events)["s1"])

    assert found.content_id == "kickoff_call"
    assert found.time_to_breakthrough == "0m"


def test_no_spike_or_no_engagement_means_no_breakthrough():
    flat = [
        _event("s1", "a", 0),
        _event("s1", "b", 1),
        _event("s1", "c", 2),
        _event("s1", "live_session", 3, kind="engagement"),
        _event("s1", "d", 4),
        _event("s1", "e", 10),
    ]
    passive = [_event("s2", "a", day) for day in range(10)]
    journeys = build_journeys(flat + passive)

    assert detect_breakthrough(journeys["s1"]) is None
    assert detect_breakthrough(journeys["s2"]) is None


def test_report_aggregates_rate_triggers_and_timing():
    events = _scenario("s1") + _scenario("s2") + [_event("s3", "a", d) for d in range(0, 9, 2)]
    events += [_event("short", "a", 0), _event("short", "b", 2, kind="engagement"), _event("short", "c", 3)]

    report = calculate_breakthroughs(build_journeys(events))

    assert report.eligible_students == 3
    assert report.breakthrough_students == 2
    assert report.breakthrough_rate == 66.7
    assert report.top_triggers[0].content_id == "content_b"
    assert report.top_triggers[0].student_count == 2
    assert report.time_to_breakthrough_distribution["3-7d"] == 2
    assert report.average_time_to_breakthrough == "4.0d"
    assert [b.student_id for b in report.breakthroughs] == ["s1", "s2"]


def test_stagnant_students_are_measured_against_now():
    journeys = build_journeys(_scenario("s1") + [_event("quiet", "a", 0)])

    report = calculate_breakthroughs(journeys, now=T0 + timedelta(days=25))

    assert report.stagnant_students == 2
    assert report.stagnant_students_list[0].student_id == "quiet"
    assert report.stagnant_students_list[0].days_since_last_activity == 25
    assert report.stagnant_students_list[1].days_since_last_activity == 18


def test_naive_now_is_treated_as_utc():
    journeys = build_journeys(_scenario("s1") + [_event("quiet", "a", 0)])
    aware_now = T0 + timedelta(days=25)

    naive = calculate_breakthroughs(journeys, now=aware_now.replace(tzinfo=None))
    aware = calculate_breakthroughs(journeys, now=aware_now)

    assert naive.to_dict() == aware.to_dict()
    assert naive.stagnant_students == 2


def test_empty_input_returns_empty_report():
    report = calculate_breakthroughs({})

    assert report.is_empty
    assert report.breakthrough_rate == 0.0
    assert report.breakthroughs == []
    assert report.average_time_to_breakthrough == "N/A"
