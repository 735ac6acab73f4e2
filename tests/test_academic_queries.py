"""Tests for the role-gated read paths over a synthetic snapshot."""

from __future__ import annotations

from datetime import date

import pytest

from academic_aggregator import AcademicHistory
from academic_queries import (
    TRANSCRIPT_STATUSES,
    generate_transcript,
    get_academic_history,
    get_academic_progress,
    get_period_gpa,
    get_section_grade_distribution,
    get_student_dashboard,
)
from academic_records import AuthorizationError, EnrollmentStatus, NotFoundError
from access_control import Identity, UserRole
from synthetic_records import CURRICULUM, PROGRAM_ID


@pytest.fixture
def student() -> Identity:
    return Identity(user_id="s-1", role=UserRole.STUDENT)


@pytest.fixture
def admin() -> Identity:
    return Identity(user_id="admin-1", role=UserRole.ADMIN)


# ---------------------------------------------------------------------------
# History
# ---------------------------------------------------------------------------

class TestGetAcademicHistory:
    def test_student_gets_own_history(self, student, snapshot):
        history = get_academic_history(student, snapshot)
        assert history.total_periods == 3
        starts = [s.period.start_date for s in history.history]
        assert starts == sorted(starts, reverse=True)
        assert all(
            d.enrollment.student_id == "s-1"
            for summary in history.history for d in summary.enrollments
        )

    @pytest.mark.parametrize("identity", [
        None,
        Identity(user_id="admin-1", role=UserRole.ADMIN),
        Identity(user_id="prof-1", role=UserRole.PROFESSOR),
        Identity(user_id="s-404", role=UserRole.STUDENT),
    ])
    def test_empty_for_non_students(self, identity, snapshot):
        assert get_academic_history(identity, snapshot) == AcademicHistory.empty()


# ---------------------------------------------------------------------------
# Progress and period GPA
# ---------------------------------------------------------------------------

class TestGetAcademicProgress:
    def test_student_self(self, student, snapshot):
        progress = get_academic_progress(student, snapshot)
        assert progress.program_id == PROGRAM_ID
        assert 0 <= progress.completion_percentage <= 100

    def test_admin_names_student(self, admin, snapshot):
        assert get_academic_progress(admin, snapshot, "s-2").program_id == PROGRAM_ID

    def test_student_cannot_read_other(self, student, snapshot):
        with pytest.raises(AuthorizationError, match="Permission denied"):
            get_academic_progress(student, snapshot, "s-2")

    def test_admin_without_student_id(self, admin, snapshot):
        with pytest.raises(AuthorizationError):
            get_academic_progress(admin, snapshot)

    def test_unknown_student(self, admin, snapshot):
        with pytest.raises(NotFoundError):
            get_academic_progress(admin, snapshot, "s-404")


class TestGetPeriodGpa:
    def test_only_period_enrollments(self, student, snapshot):
        report = get_period_gpa(student, snapshot, "p-1")
        assert report.period.id == "p-1"
        assert report.courses_attempted == len(report.enrollments) > 0
        assert all(d.enrollment.period_id == "p-1" for d in report.enrollments)
        assert all(d.enrollment.counts_for_gpa for d in report.enrollments)
        assert 0 <= report.grade_summary.gpa <= 4

    def test_current_period_ungraded(self, student, snapshot):
        report = get_period_gpa(student, snapshot, "p-3")
        assert report.grade_summary.gpa == 0
        assert report.courses_completed == 0

    def test_unknown_period(self, student, snapshot):
        with pytest.raises(NotFoundError, match="Period"):
            get_period_gpa(student, snapshot, "p-99")


# ---------------------------------------------------------------------------
# Transcript
# ---------------------------------------------------------------------------

class TestGenerateTranscript:
    def test_default_excludes_in_progress(self, student, snapshot):
        transcript = generate_transcript(student, snapshot)
        statuses = {
            d.enrollment.status for s in transcript.history for d in s.enrollments
        }
        assert statuses <= set(TRANSCRIPT_STATUSES)
        assert "p-3" not in {s.period.id for s in transcript.history}
        assert transcript.graduation is not None
        assert transcript.locale == "en"

    def test_include_in_progress(self, student, snapshot):
        transcript = generate_transcript(student, snapshot, include_in_progress=True)
        assert transcript.history[0].period.id == "p-3"
        assert any(
            d.enrollment.status == EnrollmentStatus.ENROLLED
            for d in transcript.history[0].enrollments
        )

    def test_date_window(self, student, snapshot):
        p2 = snapshot.get_period("p-2")
        transcript = generate_transcript(
            student, snapshot, include_in_progress=True,
            from_date=p2.start_date, to_date=p2.end_date,
        )
        assert [s.period.id for s in transcript.history] == ["p-2"]

    def test_window_before_any_period(self, student, snapshot):
        transcript = generate_transcript(student, snapshot, to_date=date(2000, 1, 1))
        assert transcript.history == ()
        assert transcript.overall.gpa == 0

    def test_professor_denied(self, snapshot):
        with pytest.raises(AuthorizationError):
            generate_transcript(Identity(user_id="prof-1", role=UserRole.PROFESSOR), snapshot, "s-1")


# ---------------------------------------------------------------------------
# Dashboard
# ---------------------------------------------------------------------------

class TestStudentDashboard:
    def test_metrics(self, student, snapshot):
        dashboard = get_student_dashboard(student, snapshot)
        assert dashboard.current_period.id == "p-3"
        assert dashboard.subjects
        assert all(s.status == "in-progress" for s in dashboard.subjects)
        assert dashboard.period_gpa.gpa == 0
        program_credits = sum(credits for _, _, _, credits, _, _ in CURRICULUM)
        assert dashboard.total_credits == program_credits
        assert dashboard.credits_remaining == program_credits - dashboard.completed_credits
        assert dashboard.bimesters_remaining == 5
        assert dashboard.credits_in_progress == sum(s.credits for s in dashboard.subjects)

    def test_completed_credits_match_progress(self, student, snapshot):
        dashboard = get_student_dashboard(student, snapshot)
        progress = get_academic_progress(student, snapshot)
        assert dashboard.completed_credits == progress.credits_completed
        assert dashboard.cumulative_gpa == progress.grade_summary

    @pytest.mark.parametrize("identity", [
        None,
        Identity(user_id="admin-1", role=UserRole.ADMIN),
        Identity(user_id="s-404", role=UserRole.STUDENT),
    ])
    def test_none_for_others(self, identity, snapshot):
        assert get_student_dashboard(identity, snapshot) is None


# ---------------------------------------------------------------------------
# Section grade distribution
# ---------------------------------------------------------------------------

class TestSectionGradeDistribution:
    @pytest.fixture
    def graded_section(self, snapshot):
        enrollment = next(e for e in snapshot.enrollments if e.is_graded)
        return snapshot.get_section(enrollment.section_id)

    def test_owning_professor(self, snapshot, graded_section):
        owner = Identity(user_id=graded_section.professor_id, role=UserRole.PROFESSOR)
        section, dist = get_section_grade_distribution(owner, snapshot, graded_section.id)
        assert section == graded_section
        assert dist.graded_students >= 1
        assert sum(dist.distribution.values()) == dist.graded_students

    def test_other_professor_denied(self, snapshot, graded_section):
        other = Identity(user_id="prof-other", role=UserRole.PROFESSOR)
        with pytest.raises(AuthorizationError, match="Permission denied"):
            get_section_grade_distribution(other, snapshot, graded_section.id)

    def test_admin_any_section(self, admin, snapshot, graded_section):
        _, dist = get_section_grade_distribution(admin, snapshot, graded_section.id)
        assert dist.total_students >= dist.graded_students

    def test_student_denied(self, student, snapshot, graded_section):
        with pytest.raises(AuthorizationError):
            get_section_grade_distribution(student, snapshot, graded_section.id)

    def test_unknown_section(self, admin, snapshot):
        with pytest.raises(NotFoundError):
            get_section_grade_distribution(admin, snapshot, "sec-missing")
