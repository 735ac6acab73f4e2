"""
Academic Records Data Model
=====================================================
Typed records for the student-information system read paths:

- Courses, periods, sections, professors, students and programs
- Enrollments with derived grade fields (letter, points, quality points)
- American 4.0 grade scale rules (percentage -> letter -> points)
- Error taxonomy shared by the aggregator and the role-gated queries
- Row parsing for Supabase / JSON snapshot tables

Every record is built once from a fetched snapshot and never mutated;
rollups derived from them are recomputed on each read.
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any, TypedDict

__all__ = [
    "Course",
    "Period",
    "Section",
    "Professor",
    "Student",
    "Enrollment",
    "EnrollmentDetail",
    "Program",
    "ProgramCourse",
    "ProgramRequirements",
    "GradeInfo",
    "CourseCategory",
    "EnrollmentStatus",
    "AcademicStanding",
    "AuthorizationError",
    "NotFoundError",
    "DataIntegrityWarning",
    "calculate_letter_grade",
    "calculate_grade_points",
    "calculate_quality_points",
    "is_passing_grade",
    "calculate_grade_info",
    "localized_name",
]

logger = logging.getLogger(__name__)


# ──────────────────────────────────────────────────────────────────────────────
# ENUMS (str, Enum: serialize to JSON as plain strings)
# ──────────────────────────────────────────────────────────────────────────────

class CourseCategory(str, Enum):
    CORE = "core"
    HUMANITIES = "humanities"
    ELECTIVE = "elective"
    GENERAL = "general"


class EnrollmentStatus(str, Enum):
    ENROLLED = "enrolled"
    COMPLETED = "completed"
    FAILED = "failed"
    WITHDRAWN = "withdrawn"
    DROPPED = "dropped"
    INCOMPLETE = "incomplete"
    IN_PROGRESS = "in_progress"


class AcademicStanding(str, Enum):
    GOOD_STANDING = "good_standing"
    PROBATION = "probation"
    SUSPENSION = "suspension"


# ──────────────────────────────────────────────────────────────────────────────
# GRADE SCALE
# ──────────────────────────────────────────────────────────────────────────────

class GradeBand(TypedDict):
    minimum: float  # lowest percentage that earns this letter
    letter: str
    points: float


GRADE_SCALE: list[GradeBand] = [
    {"minimum": 97, "letter": "A+", "points": 4.0},
    {"minimum": 93, "letter": "A",  "points": 4.0},
    {"minimum": 90, "letter": "A-", "points": 3.7},
    {"minimum": 87, "letter": "B+", "points": 3.3},
    {"minimum": 83, "letter": "B",  "points": 3.0},
    {"minimum": 80, "letter": "B-", "points": 2.7},
    {"minimum": 77, "letter": "C+", "points": 2.3},
    {"minimum": 73, "letter": "C",  "points": 2.0},
    {"minimum": 70, "letter": "C-", "points": 1.7},
    {"minimum": 67, "letter": "D+", "points": 1.3},
    {"minimum": 65, "letter": "D",  "points": 1.0},
]

FAILING_LETTER = "F"
LETTER_GRADES = [band["letter"] for band in GRADE_SCALE] + [FAILING_LETTER]

PASSING_GRADE = 65              # Minimum percentage for a passing (D or better) grade
MAX_GRADE_POINTS = 4.0
DEFAULT_PROBATION_GPA = 2.0
DEFAULT_SUSPENSION_GPA = 1.0
FALLBACK_CATEGORY = CourseCategory.GENERAL


# ──────────────────────────────────────────────────────────────────────────────
# ERRORS
# ──────────────────────────────────────────────────────────────────────────────

class AuthorizationError(PermissionError):
    """Caller's role does not grant access to the requested read path."""


class NotFoundError(LookupError):
    """A referenced period, program, section or student does not exist."""


class DataIntegrityWarning(UserWarning):
    """An enrollment references a course/section/professor/period that is gone."""


# ──────────────────────────────────────────────────────────────────────────────
# BUSINESS RULES (pure functions)
# ──────────────────────────────────────────────────────────────────────────────

def _band_for(percentage_grade: float) -> GradeBand | None:
    for band in GRADE_SCALE:
        if percentage_grade >= band["minimum"]:
            return band
    return None


def calculate_letter_grade(percentage_grade: float) -> str:
    """Convert a 0-100 percentage to its letter grade."""
    band = _band_for(percentage_grade)
    return band["letter"] if band else FAILING_LETTER


def calculate_grade_points(percentage_grade: float) -> float:
    """Convert a 0-100 percentage to points on the 4.0 scale."""
    band = _band_for(percentage_grade)
    return band["points"] if band else 0.0


def calculate_quality_points(grade_points: float, credits: int) -> float:
    return grade_points * credits


def is_passing_grade(percentage_grade: float, threshold: float = PASSING_GRADE) -> bool:
    return percentage_grade >= threshold


def localized_name(name_es: str | None, name_en: str | None, locale: str) -> str:
    """Pick the display name for a locale, falling back to whichever exists."""
    if not name_es and not name_en:
        return ""
    if not name_en:
        return name_es or ""
    if not name_es:
        return name_en
    return name_en if locale == "en" else name_es


def _parse_date(value: Any) -> date:
    if isinstance(value, date):
        return value
    # Supabase returns ISO strings; timestamps may carry a time component
    return date.fromisoformat(str(value)[:10])


# ──────────────────────────────────────────────────────────────────────────────
# DATA MODELS (frozen dataclasses with row parsing)
# ──────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class GradeInfo:
    """Grade with all derived fields."""
    percentage_grade: float
    letter_grade: str
    grade_points: float
    quality_points: float
    is_passing: bool


def calculate_grade_info(percentage_grade: float, credits: int) -> GradeInfo:
    grade_points = calculate_grade_points(percentage_grade)
    return GradeInfo(
        percentage_grade=percentage_grade,
        letter_grade=calculate_letter_grade(percentage_grade),
        grade_points=grade_points,
        quality_points=calculate_quality_points(grade_points, credits),
        is_passing=is_passing_grade(percentage_grade),
    )


@dataclass(frozen=True)
class Course:
    """Course catalog entry."""
    id: str
    code: str
    name_es: str
    credits: int
    category: CourseCategory = CourseCategory.GENERAL
    name_en: str | None = None
    prerequisites: tuple[str, ...] = ()

    def __post_init__(self):
        if self.credits < 1:
            raise ValueError(f"credits must be >= 1, got {self.credits} for {self.code}")

    def name(self, locale: str = "es") -> str:
        return localized_name(self.name_es, self.name_en, locale)

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> Course:
        return cls(
            id=str(row["id"]),
            code=row["code"],
            name_es=row.get("name_es") or row.get("name", ""),
            name_en=row.get("name_en"),
            credits=int(row["credits"]),
            category=CourseCategory(row.get("category") or FALLBACK_CATEGORY),
            prerequisites=tuple(row.get("prerequisites") or ()),
        )


@dataclass(frozen=True)
class Period:
    """Academic term (bimester) with its date range."""
    id: str
    code: str
    name_es: str
    start_date: date
    end_date: date
    name_en: str | None = None
    year: int = 0
    bimester_number: int = 0
    is_current: bool = False

    def __post_init__(self):
        if self.start_date >= self.end_date:
            raise ValueError(
                f"start_date must be before end_date for period {self.code}: "
                f"{self.start_date} >= {self.end_date}"
            )

    @property
    def sort_key(self) -> tuple[date, str]:
        """Chronological ordering key; reverse it for most-recent-first views."""
        return (self.start_date, self.code)

    def name(self, locale: str = "es") -> str:
        return localized_name(self.name_es, self.name_en, locale)

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> Period:
        start = _parse_date(row["start_date"])
        return cls(
            id=str(row["id"]),
            code=row["code"],
            name_es=row.get("name_es") or row.get("name", row["code"]),
            name_en=row.get("name_en"),
            start_date=start,
            end_date=_parse_date(row["end_date"]),
            year=int(row.get("year") or start.year),
            bimester_number=int(row.get("bimester_number") or 0),
            is_current=bool(row.get("is_current", False)),
        )


@dataclass(frozen=True)
class Section:
    """A scheduled group of a course for a specific period."""
    id: str
    course_id: str
    period_id: str
    professor_id: str
    group_number: str = "01"

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> Section:
        return cls(
            id=str(row["id"]),
            course_id=str(row["course_id"]),
            period_id=str(row["period_id"]),
            professor_id=str(row["professor_id"]),
            group_number=str(row.get("group_number", "01")),
        )


@dataclass(frozen=True)
class Professor:
    id: str
    first_name: str
    last_name: str
    email: str = ""

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> Professor:
        return cls(
            id=str(row["id"]),
            first_name=row["first_name"],
            last_name=row["last_name"],
            email=row.get("email", ""),
        )


@dataclass(frozen=True)
class Student:
    """Student profile with the program it is enrolled in."""
    id: str
    student_code: str
    first_name: str
    last_name: str
    program_id: str
    email: str = ""

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> Student:
        return cls(
            id=str(row["id"]),
            student_code=row.get("student_code", ""),
            first_name=row["first_name"],
            last_name=row["last_name"],
            program_id=str(row["program_id"]),
            email=row.get("email", ""),
        )


@dataclass(frozen=True)
class Enrollment:
    """A student's registration in one course-section for one period.

    grade_points and letter_grade are present exactly when percentage_grade
    is; use ``with_grade`` to attach a grade so the derived fields agree.
    """
    id: str
    student_id: str
    course_id: str
    section_id: str
    professor_id: str
    period_id: str
    status: EnrollmentStatus = EnrollmentStatus.ENROLLED
    percentage_grade: float | None = None
    letter_grade: str | None = None
    grade_points: float | None = None
    quality_points: float | None = None
    is_retake: bool = False
    counts_for_gpa: bool = True
    counts_for_progress: bool = True
    is_auditing: bool = False

    def __post_init__(self):
        graded = self.percentage_grade is not None
        if graded and not 0 <= self.percentage_grade <= 100:
            raise ValueError(
                f"percentage_grade must be 0-100, got {self.percentage_grade} "
                f"for enrollment {self.id}"
            )
        if (self.grade_points is not None) != graded or (self.letter_grade is not None) != graded:
            raise ValueError(
                f"enrollment {self.id}: grade_points and letter_grade must be set "
                "together with percentage_grade"
            )
        if self.quality_points is not None and self.grade_points is None:
            raise ValueError(f"enrollment {self.id}: quality_points without grade_points")

    @property
    def is_graded(self) -> bool:
        return self.percentage_grade is not None

    @property
    def is_completed(self) -> bool:
        return self.status == EnrollmentStatus.COMPLETED

    def with_grade(self, percentage_grade: float, credits: int) -> Enrollment:
        """Return a copy carrying the grade and every field derived from it."""
        info = calculate_grade_info(percentage_grade, credits)
        return dataclasses.replace(
            self,
            percentage_grade=info.percentage_grade,
            letter_grade=info.letter_grade,
            grade_points=info.grade_points,
            quality_points=info.quality_points,
        )

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> Enrollment:
        percentage = row.get("percentage_grade")
        letter = row.get("letter_grade")
        points = row.get("grade_points")
        quality = row.get("quality_points")
        if percentage is not None:
            # Rows graded before the derived columns existed carry only the percentage
            letter = letter or calculate_letter_grade(float(percentage))
            points = points if points is not None else calculate_grade_points(float(percentage))
        elif letter is not None or points is not None or quality is not None:
            # A cleared grade can leave stale derived columns behind
            logger.debug("Enrollment %s: dropping grade columns without a percentage", row["id"])
            letter = points = quality = None
        return cls(
            id=str(row["id"]),
            student_id=str(row["student_id"]),
            course_id=str(row["course_id"]),
            section_id=str(row["section_id"]),
            professor_id=str(row["professor_id"]),
            period_id=str(row["period_id"]),
            status=EnrollmentStatus(row.get("status") or EnrollmentStatus.ENROLLED),
            percentage_grade=float(percentage) if percentage is not None else None,
            letter_grade=letter,
            grade_points=points,
            quality_points=quality,
            is_retake=bool(row.get("is_retake", False)),
            counts_for_gpa=bool(row.get("counts_for_gpa", True)),
            counts_for_progress=bool(row.get("counts_for_progress", True)),
            is_auditing=bool(row.get("is_auditing", False)),
        )


@dataclass(frozen=True)
class EnrollmentDetail:
    """An enrollment joined with the records it references.

    Any reference may be None when the snapshot no longer holds the record;
    aggregations then fall back to 0 credits and the general category.
    """
    enrollment: Enrollment
    course: Course | None = None
    section: Section | None = None
    professor: Professor | None = None
    period: Period | None = None

    @property
    def credits(self) -> int:
        return self.course.credits if self.course else 0

    @property
    def category(self) -> CourseCategory:
        return self.course.category if self.course else FALLBACK_CATEGORY

    @property
    def course_code(self) -> str:
        return self.course.code if self.course else "N/A"

    @property
    def professor_name(self) -> str:
        return self.professor.full_name if self.professor else "TBD"


@dataclass(frozen=True)
class Program:
    """Academic program with its credit and duration requirements."""
    id: str
    code: str
    name_es: str
    total_credits: int
    duration_bimesters: int = 8
    name_en: str | None = None

    def name(self, locale: str = "es") -> str:
        return localized_name(self.name_es, self.name_en, locale)

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> Program:
        return cls(
            id=str(row["id"]),
            code=row["code"],
            name_es=row.get("name_es") or row.get("name", ""),
            name_en=row.get("name_en"),
            total_credits=int(row["total_credits"]),
            duration_bimesters=int(row.get("duration_bimesters") or 8),
        )


@dataclass(frozen=True)
class ProgramCourse:
    """A curriculum entry: the course, its category within the program, required flag."""
    course: Course
    is_required: bool
    category: CourseCategory


@dataclass(frozen=True)
class ProgramRequirements:
    """Graduation and standing thresholds for a program."""
    program_id: str
    core_credits: int = 0
    humanities_credits: int = 0
    elective_credits: int = 0
    general_credits: int = 0
    min_gpa: float = 2.0
    probation_gpa: float = DEFAULT_PROBATION_GPA
    suspension_gpa: float = DEFAULT_SUSPENSION_GPA

    def required_credits(self, category: CourseCategory) -> int:
        return {
            CourseCategory.CORE: self.core_credits,
            CourseCategory.HUMANITIES: self.humanities_credits,
            CourseCategory.ELECTIVE: self.elective_credits,
            CourseCategory.GENERAL: self.general_credits,
        }[category]

    @property
    def total_credits(self) -> int:
        return sum(self.required_credits(c) for c in CourseCategory)

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> ProgramRequirements:
        def value(key: str, default: float) -> float:
            # Null columns fall back to the default; an explicit 0 is kept
            raw = row.get(key)
            return default if raw is None else raw

        return cls(
            program_id=str(row["program_id"]),
            core_credits=int(value("core_credits", 0)),
            humanities_credits=int(value("humanities_credits", 0)),
            elective_credits=int(value("elective_credits", 0)),
            general_credits=int(value("general_credits", 0)),
            min_gpa=float(value("min_gpa", 2.0)),
            probation_gpa=float(value("probation_gpa", DEFAULT_PROBATION_GPA)),
            suspension_gpa=float(value("suspension_gpa", DEFAULT_SUSPENSION_GPA)),
        )
