"""
Unit tests for report assembly helpers.
"""

from neurotrack.analysis.report import (
    PROGRESSION_NOTES,
    ReportAssembler,
    difficulty_adjustment,
    learning_style,
    next_session,
    therapist_notes,
)
from neurotrack.core.models import (
    Aggregates,
    Difficulty,
    DifficultyAdjustment,
    Domain,
    DomainScore,
    LearningStyle,
    Level,
    ProgressionTrend,
    Session,
    SessionSignals,
    SessionStatus,
)


def scores(**values):
    result = {}
    for domain in Domain:
        value = values.get(domain.value, 50.0)
        result[domain] = DomainScore(domain, value, Level.from_score(value))
    return result


def session(attempts=10, accuracy=80, duration_ms=600_000, load_level="low"):
    return Session(
        session_id="session_1",
        user_id="kid-1",
        activity_id="memory-game",
        difficulty=Difficulty.MEDIUM,
        start_time=0,
        end_time=duration_ms,
        status=SessionStatus.COMPLETED,
        aggregates=Aggregates(attempts=attempts, accuracy=accuracy),
        signals=SessionSignals(load_level=load_level),
    )


class TestLearningStyle:
    def test_mixed_when_close(self):
        assert learning_style(scores(visual=60, auditory=55, executive=50)) == LearningStyle.MIXED

    def test_dominant_modality(self):
        assert learning_style(scores(visual=80, auditory=40, executive=40)) == LearningStyle.VISUAL
        assert learning_style(scores(visual=40, auditory=80, executive=40)) == LearningStyle.AUDITORY
        assert learning_style(scores(visual=40, auditory=40, executive=80)) == LearningStyle.KINESTHETIC

    def test_tie_goes_to_visual(self):
        assert learning_style(scores(visual=80, auditory=80, executive=20)) == LearningStyle.VISUAL


class TestTherapistNotes:
    def test_strengths_concerns_and_trend(self):
        notes = therapist_notes(scores(visual=85, memory=20), ProgressionTrend.ADVANCING)

        assert notes[0] == "Pontos fortes identificados: visual"
        assert notes[1] == "Áreas que necessitam atenção: memory"
        assert notes[2] == PROGRESSION_NOTES[ProgressionTrend.ADVANCING]

    def test_maintaining_has_no_trend_note(self):
        assert therapist_notes(scores(), ProgressionTrend.MAINTAINING) == []


class TestNextSession:
    def test_defaults(self):
        suggestion = next_session(scores(), ProgressionTrend.MAINTAINING, Difficulty.MEDIUM)

        assert suggestion.duration_minutes == 15
        assert suggestion.difficulty == Difficulty.MEDIUM
        assert suggestion.modalities == ("visual", "auditory")
        assert suggestion.focus_areas == ()

    def test_attention_drives_duration(self):
        weak = next_session(scores(attention=20), ProgressionTrend.MAINTAINING)
        strong = next_session(scores(attention=90), ProgressionTrend.MAINTAINING)

        assert weak.duration_minutes == 10
        assert "frequent_breaks" in weak.accommodations
        assert strong.duration_minutes == 20

    def test_trend_drives_difficulty(self):
        assert next_session(scores(), ProgressionTrend.ADVANCING).difficulty == Difficulty.HARD
        assert next_session(scores(), ProgressionTrend.NEEDS_SUPPORT).difficulty == Difficulty.EASY

    def test_single_modality_on_large_gap(self):
        suggestion = next_session(scores(visual=90, auditory=50), ProgressionTrend.MAINTAINING)
        assert suggestion.modalities == ("visual",)


class TestDifficultyAdjustment:
    def test_no_attempts_maintains(self):
        assert difficulty_adjustment(session(attempts=0, accuracy=0)) == DifficultyAdjustment.MAINTAIN

    def test_fast_and_accurate_increases(self):
        assert difficulty_adjustment(session(accuracy=95, duration_ms=120_000)) == DifficultyAdjustment.INCREASE

    def test_long_session_does_not_increase(self):
        assert difficulty_adjustment(session(accuracy=95, duration_ms=600_000)) == DifficultyAdjustment.MAINTAIN

    def test_low_accuracy_or_overload_decreases(self):
        assert difficulty_adjustment(session(accuracy=30)) == DifficultyAdjustment.DECREASE
        assert difficulty_adjustment(session(load_level="critical")) == DifficultyAdjustment.DECREASE


class TestReportAssembler:
    def test_assemble(self):
        report = ReportAssembler().assemble(
            session(), scores(visual=85), [], ProgressionTrend.MAINTAINING, timestamp=123
        )

        assert report.timestamp == 123
        assert list(report.domain_scores) == list(Domain)
        assert report.overall_score == 55.8
        assert report.session_summary["duration"] == 600_000
        assert report.to_dict()["learning_style"] == "visual"
