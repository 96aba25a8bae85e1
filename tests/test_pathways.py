# ABOUTME: Tests content pathway mining, dead-end detection, and power combinations.
# ABOUTME: Uses small synthetic journeys with known completion and drop-off rates.

from datetime import datetime, timedelta, timezone

from src.cohort_metrics.pathways import calculate_content_pathways, mine_sequences
from src.cohort_metrics.synthetic import generate_cohort
from src.event_stream.journeys import build_journeys
from src.event_stream.normalization import normalize_events
from src.event_stream.schemas import InteractionEvent
from src.event_stream.settings import MetricThresholds

T0 = datetime(2024, 4, 1, 8, tzinfo=timezone.utc)


def _journey_events(student: str, contents, step_hours: float = 2.0):
    return [
        InteractionEvent(
            student_id=student, content_id=content, kind="activity", timestamp=T0 + timedelta(hours=i * step_hours)
        )
        for i, content in enumerate(contents)
    ]


def _scenario_events():
    events = []
    for i in range(5):
        events += _journey_events(f"cont_{i}", ["intro", "module1", "module2", "module3"])
    for i in range(2):
        events += _journey_events(f"stop_{i}", ["intro", "module1", "module2"])
    return events


def test_pathway_completion_rate_and_student_count():
    report = calculate_content_pathways(build_journeys(_scenario_events()))
    by_sequence = {p.sequence: p for p in report.top_pathways}

    pathway = by_sequence[("intro", "module1", "module2")]
    assert pathway.attempts == 7
    assert pathway.completions == 5
    assert pathway.completion_rate == 71.4
    assert pathway.student_count == 7
    assert pathway.avg_time_to_continue == "6.0h"
    assert pathway.sequence_names == ("Intro", "Module1", "Module2")


def test_pathways_rank_by_completion_rate_with_stable_ties():
    report = calculate_content_pathways(build_journeys(_scenario_events()))

    sequences = [p.sequence for p in report.top_pathways]
    assert sequences[0] == ("intro", "module1")
    assert sequences[1:3] == [("intro", "module1", "module2"), ("module1", "module2")]
    assert all(0 <= p.completion_rate <= 100 and p.attempts >= 3 for p in report.top_pathways)


def test_below_eighty_percent_is_not_a_power_combination():
    report = calculate_content_pathways(build_journeys(_scenario_events()))

    assert all(c.combination != ("intro", "module1", "module2") for c in report.power_combinations)


def test_power_combination_requires_frequency_and_success():
    events = []
    for i in range(6):
        events += _journey_events(f"s{i}", ["live_session", "module_2_advanced", "quiz_checkpoint_1", "bonus_content"])

    report = calculate_content_pathways(build_journeys(events))

    top = report.power_combinations[0]
    assert top.combination == ("live_session", "module_2_advanced", "quiz_checkpoint_1")
    assert top.success_rate == 100.0
    assert top.frequency == 6
    assert len(report.power_combinations) == 1


def test_dead_end_drop_off_rate():
    events = (
        _journey_events("s1", ["intro", "quiz_checkpoint_2"])
        + _journey_events("s2", ["intro", "module1", "quiz_checkpoint_2"])
        + _journey_events("s3", ["quiz_checkpoint_2"])
        + _journey_events("s4", ["quiz_checkpoint_2", "module1"])
    )

    report = calculate_content_pathways(build_journeys(events))

    assert len(report.dead_ends) == 1
    dead_end = report.dead_ends[0]
    assert dead_end.content_id == "quiz_checkpoint_2"
    assert dead_end.content_name == "Quiz Checkpoint 2"
    assert dead_end.drop_off_rate == 75.0
    assert dead_end.student_count == 4


def test_fifty_percent_drop_off_is_not_a_dead_end():
    events = (
        _journey_events("s1", ["resource_library"])
        + _journey_events("s2", ["resource_library"])
        + _journey_events("s3", ["resource_library", "community_forum"])
        + _journey_events("s4", ["resource_library", "community_forum"])
    )

    report = calculate_content_pathways(build_journeys(events))

    assert all(d.content_id != "resource_library" for d in report.dead_ends)


def test_power_combination_threshold_uses_unrounded_success_rate():
    events = []
    for i in range(2001):
        events += _journey_events(f"cont_{i}", ["x", "y", "z", "w"])
    for i in range(500):
        events += _journey_events(f"stop_{i}", ["x", "y", "z"])

    report = calculate_content_pathways(build_journeys(events))
    by_combination = {c.combination: c for c in report.power_combinations}

    assert ("x", "y", "z") in by_combination
    assert by_combination[("x", "y", "z")].success_rate == 80.0
    assert by_combination[("x", "y", "z")].frequency == 2501


def test_dead_end_threshold_uses_unrounded_drop_off_rate():
    events = []
    for i in range(1251):
        events += _journey_events(f"gone_{i}", ["intro", "quiz"])
    for i in range(1249):
        events += _journey_events(f"stay_{i}", ["intro", "quiz", "forum"])

    report = calculate_content_pathways(build_journeys(events))
    by_content = {d.content_id: d for d in report.dead_ends}

    assert "quiz" in by_content
    assert by_content["quiz"].drop_off_rate == 50.0
    assert by_content["quiz"].dropped_students == 1251
    assert by_content["quiz"].student_count == 2500


def test_revisited_content_counts_as_continued():
    events = (
        _journey_events("s1", ["forum", "intro", "forum"])
        + _journey_events("s2", ["forum"])
        + _journey_events("s3", ["forum"])
    )

    report = calculate_content_pathways(build_journeys(events))

    assert report.dead_ends[0].drop_off_rate == 66.7
    assert report.dead_ends[0].dropped_students == 2


def test_max_journey_length_bounds_enumeration():
    journeys = build_journeys(_journey_events("s1", ["a", "b", "c", "d", "e", "f"]))

    bounded = mine_sequences(journeys, 2, 5, max_journey_length=3)
    full = mine_sequences(journeys, 2, 5)

    assert set(bounded) == {("d", "e"), ("e", "f"), ("d", "e", "f")}
    assert ("a", "b") in full


def test_synthetic_cohort_respects_report_bounds():
    journeys = build_journeys(normalize_events(generate_cohort(students=40, seed=3).records))
    thresholds = MetricThresholds()

    report = calculate_content_pathways(journeys, thresholds)

    assert len(report.top_pathways) <= thresholds.top_pathways
    for pathway in report.top_pathways:
        assert 0 <= pathway.completion_rate <= 100
        assert pathway.attempts >= 3
    for dead_end in report.dead_ends:
        assert dead_end.drop_off_rate >= 50
        assert dead_end.student_count >= 3
    for combination in report.power_combinations:
        assert combination.success_rate >= 80
        assert combination.frequency >= 5


def test_empty_input_returns_empty_lists():
    report = calculate_content_pathways({})

    assert report.is_empty
    assert report.to_dict() == {"top_pathways": [], "dead_ends": [], "power_combinations": []}
