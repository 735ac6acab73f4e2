"""
Role-gated read paths over a record snapshot.

Each query takes the caller's resolved ``Identity`` and a ``RecordSnapshot``
and returns aggregator output. Paths with a safe default (history,
dashboard) degrade to it for callers without a student profile; paths
without one raise ``AuthorizationError`` or ``NotFoundError``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date

from academic_aggregator import (
    AcademicHistory,
    AcademicProgress,
    CategoryCredits,
    GradeDistribution,
    GradeSummary,
    GraduationValidation,
    PeriodSummary,
    build_academic_history,
    build_period_history,
    calculate_academic_progress,
    calculate_gpa,
    calculate_grade_distribution,
    validate_graduation,
)
from academic_records import (
    PASSING_GRADE,
    AuthorizationError,
    CourseCategory,
    EnrollmentDetail,
    EnrollmentStatus,
    Period,
    Program,
    Section,
    Student,
)
from access_control import (
    Identity,
    UserRole,
    is_student,
    require_role,
    resolve_target_student,
)
from record_snapshot import RecordSnapshot

logger = logging.getLogger(__name__)

# Statuses shown on a transcript when in-progress work is excluded
TRANSCRIPT_STATUSES = (EnrollmentStatus.COMPLETED, EnrollmentStatus.FAILED)


@dataclass(frozen=True)
class PeriodGPAReport:
    period: Period
    grade_summary: GradeSummary
    enrollments: tuple[EnrollmentDetail, ...]

    @property
    def courses_attempted(self) -> int:
        return len(self.enrollments)

    @property
    def courses_completed(self) -> int:
        return sum(1 for d in self.enrollments if d.enrollment.is_completed)


@dataclass(frozen=True)
class Transcript:
    student: Student
    program: Program
    history: tuple[PeriodSummary, ...]
    overall: GradeSummary
    progress: AcademicProgress
    graduation: GraduationValidation | None
    locale: str = "en"


@dataclass(frozen=True)
class SubjectItem:
    """One current-period course as shown on the student dashboard."""
    code: str
    name: str
    credits: int
    letter_grade: str | None
    percentage_grade: float | None
    status: str  # completed | in-progress | pending


@dataclass(frozen=True)
class StudentDashboard:
    student: Student
    program: Program
    current_period: Period | None
    subjects: tuple[SubjectItem, ...]
    completed_credits: int
    total_credits: int
    completion_percentage: float
    cumulative_gpa: GradeSummary
    period_gpa: GradeSummary
    credit_distribution: dict[CourseCategory, CategoryCredits] = field(default_factory=dict)
    bimesters_remaining: int = 0

    @property
    def credits_in_progress(self) -> int:
        return sum(s.credits for s in self.subjects)

    @property
    def credits_remaining(self) -> int:
        return max(0, self.total_credits - self.completed_credits)


def _subject_status(status: EnrollmentStatus) -> str:
    if status == EnrollmentStatus.COMPLETED:
        return "completed"
    elif status in (EnrollmentStatus.ENROLLED, EnrollmentStatus.IN_PROGRESS):
        return "in-progress"
    return "pending"


# ──────────────────────────────────────────────────────────────────────────────
# STUDENT READ PATHS
# ──────────────────────────────────────────────────────────────────────────────

def get_academic_history(
    identity: Identity | None,
    snapshot: RecordSnapshot,
    passing_threshold: float = PASSING_GRADE,
) -> AcademicHistory:
    """The caller's own period history; empty for anyone without a student profile."""
    if identity is None or not is_student(identity.role):
        return AcademicHistory.empty()
    if identity.user_id not in snapshot.students:
        logger.info("No student profile for %s; returning empty history", identity.user_id)
        return AcademicHistory.empty()
    details = snapshot.enrollment_details(identity.user_id)
    return build_academic_history(details, passing_threshold)


def get_academic_progress(
    identity: Identity | None,
    snapshot: RecordSnapshot,
    student_id: str | None = None,
    passing_threshold: float = PASSING_GRADE,
) -> AcademicProgress:
    """Curriculum progress for the caller, or for a named student (admins)."""
    target = resolve_target_student(identity, student_id)
    student = snapshot.get_student(target)
    program = snapshot.get_program(student.program_id)
    return calculate_academic_progress(
        snapshot.enrollment_details(target),
        snapshot.curriculum(program.id),
        program,
        snapshot.requirements.get(program.id),
        passing_threshold=passing_threshold,
    )


def get_period_gpa(
    identity: Identity | None,
    snapshot: RecordSnapshot,
    period_id: str,
    student_id: str | None = None,
) -> PeriodGPAReport:
    """GPA for one period over the GPA-eligible enrollments in it."""
    target = resolve_target_student(identity, student_id)
    period = snapshot.get_period(period_id)
    details = [
        d for d in snapshot.enrollment_details(target, period_id=period_id)
        if d.enrollment.counts_for_gpa
    ]
    return PeriodGPAReport(
        period=period,
        grade_summary=calculate_gpa(details),
        enrollments=tuple(details),
    )


def generate_transcript(
    identity: Identity | None,
    snapshot: RecordSnapshot,
    student_id: str | None = None,
    include_in_progress: bool = False,
    from_date: date | None = None,
    to_date: date | None = None,
    locale: str = "en",
) -> Transcript:
    """Transcript data: filtered history, its GPA, progress and graduation check.

    Periods ending before ``from_date`` or starting after ``to_date`` are
    left out; without ``include_in_progress`` only completed and failed
    courses are listed, and periods left empty disappear.
    """
    target = resolve_target_student(identity, student_id)
    student = snapshot.get_student(target)
    program = snapshot.get_program(student.program_id)
    all_details = snapshot.enrollment_details(target)

    selected = []
    for detail in all_details:
        period = detail.period
        if period is None:
            continue
        if from_date and period.end_date < from_date:
            continue
        if to_date and period.start_date > to_date:
            continue
        if not include_in_progress and detail.enrollment.status not in TRANSCRIPT_STATUSES:
            continue
        selected.append(detail)

    requirements = snapshot.requirements.get(program.id)
    progress = calculate_academic_progress(
        all_details, snapshot.curriculum(program.id), program, requirements,
    )
    return Transcript(
        student=student,
        program=program,
        history=tuple(build_period_history(selected)),
        overall=calculate_gpa(selected),
        progress=progress,
        graduation=validate_graduation(progress, requirements) if requirements else None,
        locale=locale,
    )


def get_student_dashboard(
    identity: Identity | None,
    snapshot: RecordSnapshot,
) -> StudentDashboard | None:
    """Dashboard metrics for the calling student; None for everyone else."""
    if identity is None or not is_student(identity.role):
        return None
    student = snapshot.students.get(identity.user_id)
    if student is None:
        return None
    program = snapshot.get_program(student.program_id)

    details = snapshot.enrollment_details(student.id)
    current = snapshot.current_period()
    current_details = [
        d for d in details if current is not None and d.enrollment.period_id == current.id
    ]

    progress = calculate_academic_progress(
        details,
        snapshot.curriculum(program.id),
        program,
        snapshot.requirements.get(program.id),
    )
    periods_taken = {d.enrollment.period_id for d in details}

    return StudentDashboard(
        student=student,
        program=program,
        current_period=current,
        subjects=tuple(
            SubjectItem(
                code=d.course_code,
                name=d.course.name() if d.course else "Unknown Course",
                credits=d.credits,
                letter_grade=d.enrollment.letter_grade,
                percentage_grade=d.enrollment.percentage_grade,
                status=_subject_status(d.enrollment.status),
            )
            for d in current_details
        ),
        completed_credits=progress.credits_completed,
        total_credits=program.total_credits,
        completion_percentage=progress.completion_percentage,
        cumulative_gpa=progress.grade_summary,
        period_gpa=calculate_gpa(current_details),
        credit_distribution=dict(progress.credits_by_category),
        bimesters_remaining=max(0, program.duration_bimesters - len(periods_taken)),
    )


# ──────────────────────────────────────────────────────────────────────────────
# TEACHING READ PATHS
# ──────────────────────────────────────────────────────────────────────────────

def get_section_grade_distribution(
    identity: Identity | None,
    snapshot: RecordSnapshot,
    section_id: str,
) -> tuple[Section, GradeDistribution]:
    """Grade distribution for a section; admins or the section's professor only."""
    identity = require_role(identity, (UserRole.PROFESSOR, UserRole.ADMIN, UserRole.SUPERADMIN))
    section = snapshot.get_section(section_id)
    if not identity.is_admin and section.professor_id != identity.user_id:
        raise AuthorizationError("Permission denied")
    details = snapshot.enrollment_details(section_id=section_id)
    return section, calculate_grade_distribution(details)
