#!/usr/bin/env python3
"""
Academic Record Aggregator
=====================================================
Derives a student's academic rollups from an enrollment snapshot:

- Credit-weighted GPA with attempted / earned / graded credit totals
- Curriculum progress by category (core, humanities, elective, general)
- Period-by-period history with running credit accumulation
- Academic standing and graduation eligibility
- Section grade distribution for gradebook views

All rollups are pure functions of the records passed in: nothing is cached
or persisted, and identical snapshots produce identical output.

Usage:
    python academic_aggregator.py --data-dir ./snapshot --student-id s-1
    python academic_aggregator.py --data-dir ./snapshot --student-id s-1 --output json
    python academic_aggregator.py --data-dir ./snapshot --student-id s-1 --passing-grade 70 -v
"""

from __future__ import annotations

import argparse
import json
import logging
import math
import statistics
import sys
from collections import defaultdict
from dataclasses import asdict, dataclass, field
from typing import Any, Iterable, Sequence

from academic_records import (
    LETTER_GRADES,
    PASSING_GRADE,
    AcademicStanding,
    CourseCategory,
    EnrollmentDetail,
    EnrollmentStatus,
    GradeInfo,
    NotFoundError,
    Period,
    Program,
    ProgramCourse,
    ProgramRequirements,
    calculate_grade_points,
    is_passing_grade,
)

__all__ = [
    "GradeSummary",
    "CurriculumItem",
    "CategoryBucket",
    "CategoryCredits",
    "AcademicProgress",
    "PeriodSummary",
    "AcademicHistory",
    "GraduationValidation",
    "GradeDistribution",
    "calculate_gpa",
    "calculate_academic_progress",
    "build_period_history",
    "build_academic_history",
    "determine_academic_standing",
    "validate_graduation",
    "calculate_grade_distribution",
]

logger = logging.getLogger(__name__)


# ──────────────────────────────────────────────────────────────────────────────
# OUTPUT CONTRACTS
# ──────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class GradeSummary:
    """Credit-weighted GPA over a set of enrollments.

    ``gpa`` is rounded for display; ``exact_gpa`` keeps full precision for
    anything computed from it.
    """
    total_credits: int = 0        # credits of graded, GPA-eligible enrollments
    attempted_credits: int = 0    # credits of every GPA-eligible enrollment
    earned_credits: int = 0       # graded, GPA-eligible and completed
    grade_points: float = 0.0     # sum of grade points x credits

    @property
    def exact_gpa(self) -> float:
        return self.grade_points / self.total_credits if self.total_credits > 0 else 0.0

    @property
    def gpa(self) -> float:
        return round(self.exact_gpa, 2)

    @classmethod
    def empty(cls) -> GradeSummary:
        return cls()

    def to_dict(self) -> dict[str, Any]:
        return {
            "gpa": self.gpa,
            "total_credits": self.total_credits,
            "attempted_credits": self.attempted_credits,
            "earned_credits": self.earned_credits,
            "grade_points": self.grade_points,
        }


@dataclass(frozen=True)
class CurriculumItem:
    course: Any  # academic_records.Course
    is_required: bool
    is_completed: bool
    grade: GradeInfo | None = None
    is_passed: bool = False  # some completed attempt met the passing threshold


@dataclass(frozen=True)
class CategoryBucket:
    """Curriculum items partitioned by category."""
    core: tuple[CurriculumItem, ...] = ()
    humanities: tuple[CurriculumItem, ...] = ()
    elective: tuple[CurriculumItem, ...] = ()
    general: tuple[CurriculumItem, ...] = ()

    def items(self, category: CourseCategory) -> tuple[CurriculumItem, ...]:
        return getattr(self, category.value)

    def all_items(self) -> list[CurriculumItem]:
        return [item for category in CourseCategory for item in self.items(category)]

    def to_dict(self) -> dict[str, list[dict[str, Any]]]:
        return {
            category.value: [asdict(item) for item in self.items(category)]
            for category in CourseCategory
        }


@dataclass(frozen=True)
class CategoryCredits:
    required: int = 0
    completed: int = 0

    @property
    def remaining(self) -> int:
        return max(0, self.required - self.completed)


@dataclass(frozen=True)
class AcademicProgress:
    """Curriculum completion for one student against one program."""
    program_id: str
    total_credits_required: int
    credits_completed: int
    credits_by_category: dict[CourseCategory, CategoryCredits]
    curriculum: CategoryBucket
    grade_summary: GradeSummary
    academic_standing: AcademicStanding

    @property
    def completion_ratio(self) -> float:
        """Raw completed/required ratio; may exceed 1.0."""
        if self.total_credits_required <= 0:
            return 0.0
        return self.credits_completed / self.total_credits_required

    @property
    def completion_percentage(self) -> float:
        """Display percentage, clamped to [0, 100]."""
        return min(100.0, max(0.0, self.completion_ratio * 100))

    @property
    def missing_required_courses(self) -> list[str]:
        return [
            item.course.code for item in self.curriculum.all_items()
            if item.is_required and not item.is_passed
        ]

    def to_dict(self) -> dict[str, Any]:
        return {
            "program_id": self.program_id,
            "total_credits_required": self.total_credits_required,
            "credits_completed": self.credits_completed,
            "completion_percentage": round(self.completion_percentage, 2),
            "credits_by_category": {
                category.value: {
                    "required": credits.required,
                    "completed": credits.completed,
                    "remaining": credits.remaining,
                }
                for category, credits in self.credits_by_category.items()
            },
            "curriculum": self.curriculum.to_dict(),
            "gpa": self.grade_summary.to_dict(),
            "academic_standing": self.academic_standing,
        }


@dataclass(frozen=True)
class PeriodSummary:
    """One period of a student's history with running totals."""
    period: Period
    enrollments: tuple[EnrollmentDetail, ...]
    enrolled_credits: int
    approved_credits: int
    approval_percentage: float
    period_gpa: float
    accumulated_credits: int
    accumulated_approved_credits: int
    grade_summary: GradeSummary = field(default_factory=GradeSummary)

    def to_dict(self) -> dict[str, Any]:
        return {
            "period": asdict(self.period),
            "enrollments": [asdict(detail) for detail in self.enrollments],
            "enrolled_credits": self.enrolled_credits,
            "approved_credits": self.approved_credits,
            "approval_percentage": self.approval_percentage,
            "period_gpa": self.period_gpa,
            "accumulated_credits": self.accumulated_credits,
            "accumulated_approved_credits": self.accumulated_approved_credits,
        }


@dataclass(frozen=True)
class AcademicHistory:
    """Most-recent-first period history plus the cumulative GPA."""
    history: tuple[PeriodSummary, ...] = ()
    overall: GradeSummary = field(default_factory=GradeSummary)

    @property
    def total_periods(self) -> int:
        return len(self.history)

    @property
    def credits_attempted(self) -> int:
        return self.overall.attempted_credits

    @property
    def credits_earned(self) -> int:
        return self.overall.earned_credits

    @classmethod
    def empty(cls) -> AcademicHistory:
        return cls()

    def to_dict(self) -> dict[str, Any]:
        return {
            "history": [summary.to_dict() for summary in self.history],
            "overall_gpa": self.overall.to_dict(),
            "summary": {
                "total_periods_completed": self.total_periods,
                "total_credits_attempted": self.credits_attempted,
                "total_credits_earned": self.credits_earned,
            },
        }


@dataclass(frozen=True)
class GraduationValidation:
    is_eligible: bool
    total_credits_required: int
    total_credits_completed: int
    category_requirements: dict[CourseCategory, CategoryCredits]
    min_gpa: float
    current_gpa: float
    missing_courses: list[str]


@dataclass(frozen=True)
class GradeDistribution:
    """Letter-grade counts and score statistics for a section."""
    distribution: dict[str, int]
    total_students: int
    graded_students: int
    pending_grades: int
    average_grade: float
    median_grade: float
    pass_rate: float
    highest_grade: float
    lowest_grade: float


# ──────────────────────────────────────────────────────────────────────────────
# AGGREGATIONS (pure functions over enrollment details)
# ──────────────────────────────────────────────────────────────────────────────

def _grade_points_for(detail: EnrollmentDetail) -> float | None:
    enrollment = detail.enrollment
    if enrollment.grade_points is not None:
        return enrollment.grade_points
    if enrollment.percentage_grade is not None:
        return calculate_grade_points(enrollment.percentage_grade)
    return None


def calculate_gpa(details: Iterable[EnrollmentDetail]) -> GradeSummary:
    """Credit-weighted GPA over GPA-eligible enrollments.

    An enrollment counts when ``counts_for_gpa`` is set, it is not audited,
    and it carries a grade. Which attempt of a retaken course counts is
    already encoded in ``counts_for_gpa``. Enrollments whose course record
    is missing contribute zero credits.
    """
    total_credits = 0
    attempted_credits = 0
    earned_credits = 0
    quality_points: list[float] = []

    for detail in details:
        enrollment = detail.enrollment
        if not enrollment.counts_for_gpa or enrollment.is_auditing:
            continue

        credits = detail.credits
        attempted_credits += credits

        points = _grade_points_for(detail)
        if points is None:
            continue

        total_credits += credits
        quality_points.append(points * credits)
        if enrollment.status == EnrollmentStatus.COMPLETED:
            earned_credits += credits

    return GradeSummary(
        total_credits=total_credits,
        attempted_credits=attempted_credits,
        earned_credits=earned_credits,
        # fsum keeps the total independent of enrollment order
        grade_points=math.fsum(quality_points),
    )


def determine_academic_standing(
    gpa: float,
    requirements: ProgramRequirements | None = None,
) -> AcademicStanding:
    """Classify standing from cumulative GPA against the program thresholds."""
    requirements = requirements or ProgramRequirements(program_id="")
    if gpa < requirements.suspension_gpa:
        return AcademicStanding.SUSPENSION
    elif gpa < requirements.probation_gpa:
        return AcademicStanding.PROBATION
    return AcademicStanding.GOOD_STANDING


def _latest_completed(details: Sequence[EnrollmentDetail]) -> EnrollmentDetail | None:
    """Most recent completed attempt by period start; enrollment id breaks ties."""
    completed = [d for d in details if d.enrollment.is_completed]
    if not completed:
        return None
    return max(
        completed,
        key=lambda d: (
            d.period.sort_key if d.period else (),
            d.enrollment.id,
        ),
    )


def _grade_info(detail: EnrollmentDetail) -> GradeInfo | None:
    enrollment = detail.enrollment
    if enrollment.percentage_grade is None:
        return None
    return GradeInfo(
        percentage_grade=enrollment.percentage_grade,
        letter_grade=enrollment.letter_grade,
        grade_points=enrollment.grade_points,
        quality_points=(
            enrollment.quality_points
            if enrollment.quality_points is not None
            else enrollment.grade_points * detail.credits
        ),
        is_passing=is_passing_grade(enrollment.percentage_grade),
    )


def _passed(detail: EnrollmentDetail, passing_threshold: float) -> bool:
    enrollment = detail.enrollment
    return (
        enrollment.is_completed
        and enrollment.percentage_grade is not None
        and is_passing_grade(enrollment.percentage_grade, passing_threshold)
    )


def calculate_academic_progress(
    details: Sequence[EnrollmentDetail],
    curriculum: Sequence[ProgramCourse],
    program: Program,
    requirements: ProgramRequirements | None = None,
    passing_threshold: float = PASSING_GRADE,
) -> AcademicProgress:
    """Curriculum completion by category for one student.

    A curriculum course is completed when any enrollment in it has status
    ``completed``; its grade is taken from the most recent such attempt.
    Completed credits count each course once, and only for passing attempts
    that count toward progress. A required course stays missing until some
    completed attempt passes.
    """
    by_course: dict[str, list[EnrollmentDetail]] = defaultdict(list)
    for detail in details:
        by_course[detail.enrollment.course_id].append(detail)

    buckets: dict[CourseCategory, list[CurriculumItem]] = {c: [] for c in CourseCategory}
    program_category = {pc.course.id: pc.category for pc in curriculum}

    for entry in curriculum:
        attempts = by_course.get(entry.course.id, [])
        latest = _latest_completed(attempts)
        buckets[entry.category].append(CurriculumItem(
            course=entry.course,
            is_required=entry.is_required,
            is_completed=latest is not None,
            grade=_grade_info(latest) if latest else None,
            is_passed=any(_passed(d, passing_threshold) for d in attempts),
        ))

    completed_by_category: dict[CourseCategory, int] = defaultdict(int)
    for course_id, attempts in by_course.items():
        credited = [
            d for d in attempts
            if d.enrollment.counts_for_progress and _passed(d, passing_threshold)
        ]
        if not credited:
            continue
        detail = credited[0]
        category = program_category.get(course_id, detail.category)
        completed_by_category[category] += detail.credits

    credits_by_category = {
        category: CategoryCredits(
            required=requirements.required_credits(category) if requirements else 0,
            completed=completed_by_category[category],
        )
        for category in CourseCategory
    }

    grade_summary = calculate_gpa(details)

    return AcademicProgress(
        program_id=program.id,
        total_credits_required=program.total_credits,
        credits_completed=sum(completed_by_category.values()),
        credits_by_category=credits_by_category,
        curriculum=CategoryBucket(**{
            category.value: tuple(items) for category, items in buckets.items()
        }),
        grade_summary=grade_summary,
        academic_standing=determine_academic_standing(grade_summary.gpa, requirements),
    )


def build_period_history(
    details: Iterable[EnrollmentDetail],
    passing_threshold: float = PASSING_GRADE,
) -> list[PeriodSummary]:
    """Per-period credit and GPA rollup, most recent period first.

    Running totals are accumulated oldest-to-newest and the list is reversed
    afterwards, so each period's accumulated credits include every earlier
    period. Enrollments whose period record is missing are left out.
    """
    grouped: dict[str, list[EnrollmentDetail]] = defaultdict(list)
    periods: dict[str, Period] = {}
    for detail in details:
        if detail.period is None:
            logger.debug(
                "Enrollment %s references missing period %s; excluded from history",
                detail.enrollment.id, detail.enrollment.period_id,
            )
            continue
        grouped[detail.period.id].append(detail)
        periods[detail.period.id] = detail.period

    summaries: list[PeriodSummary] = []
    accumulated_credits = 0
    accumulated_approved = 0

    for period in sorted(periods.values(), key=lambda p: p.sort_key):
        enrollments = grouped[period.id]
        enrolled_credits = sum(d.credits for d in enrollments)
        approved_credits = sum(
            d.credits for d in enrollments
            if d.enrollment.is_completed
            and d.enrollment.percentage_grade is not None
            and d.enrollment.percentage_grade >= passing_threshold
        )
        accumulated_credits += enrolled_credits
        accumulated_approved += approved_credits

        grade_summary = calculate_gpa(enrollments)
        summaries.append(PeriodSummary(
            period=period,
            enrollments=tuple(enrollments),
            enrolled_credits=enrolled_credits,
            approved_credits=approved_credits,
            approval_percentage=(
                approved_credits / enrolled_credits * 100 if enrolled_credits > 0 else 0.0
            ),
            period_gpa=grade_summary.gpa,
            accumulated_credits=accumulated_credits,
            accumulated_approved_credits=accumulated_approved,
            grade_summary=grade_summary,
        ))

    summaries.reverse()
    return summaries


def build_academic_history(
    details: Sequence[EnrollmentDetail],
    passing_threshold: float = PASSING_GRADE,
) -> AcademicHistory:
    """Period history plus the cumulative GPA over every enrollment."""
    return AcademicHistory(
        history=tuple(build_period_history(details, passing_threshold)),
        overall=calculate_gpa(details),
    )


def validate_graduation(
    progress: AcademicProgress,
    requirements: ProgramRequirements,
) -> GraduationValidation:
    """Check credits, GPA, required courses and per-category minimums."""
    missing = progress.missing_required_courses
    gpa = progress.grade_summary.gpa
    is_eligible = (
        progress.credits_completed >= progress.total_credits_required
        and gpa >= requirements.min_gpa
        and not missing
        and all(c.remaining == 0 for c in progress.credits_by_category.values())
    )
    return GraduationValidation(
        is_eligible=is_eligible,
        total_credits_required=progress.total_credits_required,
        total_credits_completed=progress.credits_completed,
        category_requirements=dict(progress.credits_by_category),
        min_gpa=requirements.min_gpa,
        current_gpa=gpa,
        missing_courses=missing,
    )


def calculate_grade_distribution(
    details: Sequence[EnrollmentDetail],
    passing_threshold: float = PASSING_GRADE,
) -> GradeDistribution:
    """Letter counts and percentage statistics over a section's enrollments."""
    distribution = {letter: 0 for letter in LETTER_GRADES}
    graded = [d.enrollment for d in details if d.enrollment.is_graded]
    for enrollment in graded:
        if enrollment.letter_grade in distribution:
            distribution[enrollment.letter_grade] += 1

    scores = sorted(e.percentage_grade for e in graded)
    passed = sum(1 for s in scores if s >= passing_threshold)

    return GradeDistribution(
        distribution=distribution,
        total_students=len(details),
        graded_students=len(graded),
        pending_grades=len(details) - len(graded),
        average_grade=round(statistics.mean(scores), 2) if scores else 0.0,
        median_grade=statistics.median_high(scores) if scores else 0.0,
        pass_rate=round(passed / len(scores) * 100, 2) if scores else 0.0,
        highest_grade=max(scores, default=0.0),
        lowest_grade=min(scores, default=100.0),
    )


# ──────────────────────────────────────────────────────────────────────────────
# REPORT PRINTER
# ──────────────────────────────────────────────────────────────────────────────

def print_report(
    history: AcademicHistory,
    progress: AcademicProgress | None = None,
    locale: str = "es",
):
    """Print a transcript-style history report to stdout."""
    overall = history.overall

    print(f"\n{'=' * 72}")
    print("  ACADEMIC HISTORY REPORT")
    print(f"{'=' * 72}")
    print(f"  Cumulative GPA:    {overall.gpa:.2f}")
    print(f"  Credits attempted: {overall.attempted_credits:,}")
    print(f"  Credits earned:    {overall.earned_credits:,}")
    print(f"  Periods:           {history.total_periods}")

    for summary in history.history:
        print(f"\n{'─' * 72}")
        print(
            f"  {summary.period.name(locale):<28} GPA {summary.period_gpa:>5.2f} | "
            f"{summary.approved_credits}/{summary.enrolled_credits} cr "
            f"({summary.approval_percentage:.0f}%) | "
            f"cum {summary.accumulated_approved_credits}/{summary.accumulated_credits}"
        )
        print(f"  {'─' * 68}")
        for detail in summary.enrollments:
            enrollment = detail.enrollment
            name = detail.course.name(locale) if detail.course else "Unknown Course"
            grade = enrollment.letter_grade or "--"
            retake = " (R)" if enrollment.is_retake else ""
            print(
                f"  {detail.course_code:<10} {name[:32]:<32} {detail.credits:>3} cr "
                f"{grade:>3} {enrollment.status.value:<12}{retake}"
            )

    if progress is not None:
        print(f"\n{'─' * 72}")
        print(
            f"  CURRICULUM PROGRESS: {progress.credits_completed}/"
            f"{progress.total_credits_required} credits "
            f"({progress.completion_percentage:.0f}%) | "
            f"standing: {progress.academic_standing.value}"
        )
        print(f"  {'─' * 60}")
        for category, credits in progress.credits_by_category.items():
            items = progress.curriculum.items(category)
            done = sum(1 for item in items if item.is_completed)
            print(
                f"  {category.value:<12} {credits.completed:>4}/{credits.required:<4} cr  "
                f"{done}/{len(items)} courses"
            )
        missing = progress.missing_required_courses
        if missing:
            print(f"\n  Missing required: {', '.join(missing)}")

    print(f"\n{'=' * 72}\n")


# ──────────────────────────────────────────────────────────────────────────────
# CLI
# ──────────────────────────────────────────────────────────────────────────────

def main():
    from record_snapshot import RecordSnapshot

    parser = argparse.ArgumentParser(
        description="Academic record aggregator",
    )
    parser.add_argument("--data-dir", default="./snapshot", help="Snapshot directory (JSON tables)")
    parser.add_argument("--student-id", required=True, help="Student to aggregate")
    parser.add_argument(
        "--passing-grade", type=float, default=PASSING_GRADE,
        help="Minimum percentage for approved credits",
    )
    parser.add_argument("--locale", choices=["es", "en"], default="es", help="Display locale")
    parser.add_argument(
        "--output", choices=["report", "json"],
        default="report", help="Output format",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    snapshot = RecordSnapshot.from_json_dir(args.data_dir)
    details = snapshot.enrollment_details(args.student_id)
    history = build_academic_history(details, passing_threshold=args.passing_grade)

    progress = None
    try:
        student = snapshot.get_student(args.student_id)
        progress = calculate_academic_progress(
            details,
            snapshot.curriculum(student.program_id),
            snapshot.get_program(student.program_id),
            snapshot.requirements.get(student.program_id),
            passing_threshold=args.passing_grade,
        )
    except NotFoundError as e:
        logger.warning("Skipping curriculum progress: %s", e)

    if args.output == "json":
        payload = history.to_dict()
        payload["progress"] = progress.to_dict() if progress else None
        json.dump(payload, sys.stdout, indent=2, default=str)
        print()
    else:
        print_report(history, progress, locale=args.locale)


if __name__ == "__main__":
    main()
