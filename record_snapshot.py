#!/usr/bin/env python3
"""
Record Snapshot
====================================
Immutable in-memory copy of the store tables an aggregation reads.

A snapshot is fetched once (from Supabase or from an exported JSON
directory), joined into enrollment details, and handed to the aggregator.
Missing references never abort a read: the join emits a
DataIntegrityWarning and leaves the reference empty.

Usage:
    # Export one student's records from Supabase to JSON:
    python record_snapshot.py \\
        --url https://your-project.supabase.co \\
        --key your-service-role-key \\
        --student-id s-1 --output-dir ./snapshot

    # Or use environment variables:
    export SUPABASE_URL=https://your-project.supabase.co
    export SUPABASE_KEY=your-service-role-key
    python record_snapshot.py --output-dir ./snapshot

    # Preview an existing export without connecting:
    python record_snapshot.py --output-dir ./snapshot --dry-run
"""

from __future__ import annotations

import argparse
import dataclasses
import json
import logging
import os
import sys
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from supabase import Client, create_client

from academic_records import (
    Course,
    CourseCategory,
    DataIntegrityWarning,
    Enrollment,
    EnrollmentDetail,
    NotFoundError,
    Period,
    Professor,
    Program,
    ProgramCourse,
    ProgramRequirements,
    Section,
    Student,
    calculate_quality_points,
)

logger = logging.getLogger(__name__)

PAGE_SIZE = 1000  # Supabase REST default row limit per request

# Reference tables first, then the student-owned rows
TABLES = [
    "courses",
    "periods",
    "sections",
    "professors",
    "programs",
    "program_courses",
    "program_requirements",
    "students",
    "enrollments",
]

# Tables filtered down to one student when a student id is given
STUDENT_FILTERS = {
    "students": "id",
    "enrollments": "student_id",
}


@dataclass(frozen=True)
class ProgramCourseLink:
    """Join row placing a course in a program's curriculum."""
    program_id: str
    course_id: str
    is_required: bool
    category_override: CourseCategory | None = None
    is_active: bool = True

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> ProgramCourseLink:
        override = row.get("category_override")
        return cls(
            program_id=str(row["program_id"]),
            course_id=str(row["course_id"]),
            is_required=bool(row.get("is_required", False)),
            category_override=CourseCategory(override) if override else None,
            is_active=bool(row.get("is_active", True)),
        )


# ──────────────────────────────────────────────────────────────────────────────
# TABLE I/O
# ──────────────────────────────────────────────────────────────────────────────

def load_json(path: Path) -> list[dict]:
    """Load JSON file, return list of records."""
    with open(path) as f:
        data = json.load(f)
    return data if isinstance(data, list) else [data]


def read_tables(data_dir: Path) -> dict[str, list[dict]]:
    """Read every known table from a directory; absent files are empty tables."""
    tables: dict[str, list[dict]] = {}
    for table in TABLES:
        path = data_dir / f"{table}.json"
        tables[table] = load_json(path) if path.exists() else []
        logger.debug("%s: %d rows from %s", table, len(tables[table]), path)
    return tables


def write_tables(tables: dict[str, list[dict]], output_dir: Path) -> dict[str, str]:
    """Write tables as one JSON file each; returns table -> path."""
    output_dir.mkdir(parents=True, exist_ok=True)
    files = {}
    for table, rows in tables.items():
        path = output_dir / f"{table}.json"
        path.write_text(json.dumps(rows, indent=2, default=str))
        files[table] = str(path)
    return files


def fetch_table(
    client: Client,
    table: str,
    filters: dict[str, str] | None = None,
    page_size: int = PAGE_SIZE,
) -> list[dict]:
    """Select all rows of a table, paging past the REST row limit."""
    rows: list[dict] = []
    start = 0
    while True:
        query = client.table(table).select("*")
        for column, value in (filters or {}).items():
            query = query.eq(column, value)
        page = query.range(start, start + page_size - 1).execute().data or []
        rows.extend(page)
        logger.debug("%s: fetched %d rows (offset %d)", table, len(page), start)
        if len(page) < page_size:
            return rows
        start += page_size


def fetch_tables(client: Client, student_id: str | None = None) -> dict[str, list[dict]]:
    """Fetch every snapshot table, narrowing student-owned tables when asked."""
    tables = {}
    for table in TABLES:
        filters = None
        if student_id and table in STUDENT_FILTERS:
            filters = {STUDENT_FILTERS[table]: student_id}
        tables[table] = fetch_table(client, table, filters)
    return tables


# ──────────────────────────────────────────────────────────────────────────────
# SNAPSHOT
# ──────────────────────────────────────────────────────────────────────────────

def _index(records) -> dict:
    return {r.id: r for r in records}


@dataclass(frozen=True)
class RecordSnapshot:
    """Read-only view over the fetched tables, keyed by record id."""
    courses: dict[str, Course] = field(default_factory=dict)
    periods: dict[str, Period] = field(default_factory=dict)
    sections: dict[str, Section] = field(default_factory=dict)
    professors: dict[str, Professor] = field(default_factory=dict)
    students: dict[str, Student] = field(default_factory=dict)
    programs: dict[str, Program] = field(default_factory=dict)
    enrollments: tuple[Enrollment, ...] = ()
    program_courses: tuple[ProgramCourseLink, ...] = ()
    requirements: dict[str, ProgramRequirements] = field(default_factory=dict)

    # ── Construction ──────────────────────────────────────────────────────

    @classmethod
    def from_tables(cls, tables: dict[str, list[dict]]) -> RecordSnapshot:
        rows = {table: tables.get(table) or [] for table in TABLES}
        snapshot = cls(
            courses=_index(Course.from_row(r) for r in rows["courses"]),
            periods=_index(Period.from_row(r) for r in rows["periods"]),
            sections=_index(Section.from_row(r) for r in rows["sections"]),
            professors=_index(Professor.from_row(r) for r in rows["professors"]),
            students=_index(Student.from_row(r) for r in rows["students"]),
            programs=_index(Program.from_row(r) for r in rows["programs"]),
            enrollments=tuple(Enrollment.from_row(r) for r in rows["enrollments"]),
            program_courses=tuple(ProgramCourseLink.from_row(r) for r in rows["program_courses"]),
            requirements={
                req.program_id: req
                for req in (ProgramRequirements.from_row(r) for r in rows["program_requirements"])
            },
        )
        logger.info(
            "Loaded snapshot: %d courses, %d periods, %d students, %d enrollments",
            len(snapshot.courses), len(snapshot.periods),
            len(snapshot.students), len(snapshot.enrollments),
        )
        return snapshot

    @classmethod
    def from_json_dir(cls, data_dir: str | Path) -> RecordSnapshot:
        data_dir = Path(data_dir)
        if not data_dir.is_dir():
            raise NotFoundError(f"Snapshot directory not found: {data_dir}")
        return cls.from_tables(read_tables(data_dir))

    @classmethod
    def from_supabase(cls, client: Client, student_id: str | None = None) -> RecordSnapshot:
        return cls.from_tables(fetch_tables(client, student_id))

    # ── Lookups ───────────────────────────────────────────────────────────

    def get_student(self, student_id: str) -> Student:
        try:
            return self.students[student_id]
        except KeyError:
            raise NotFoundError(f"Student not found: {student_id}") from None

    def get_program(self, program_id: str) -> Program:
        try:
            return self.programs[program_id]
        except KeyError:
            raise NotFoundError(f"Program not found: {program_id}") from None

    def get_period(self, period_id: str) -> Period:
        try:
            return self.periods[period_id]
        except KeyError:
            raise NotFoundError(f"Period not found: {period_id}") from None

    def get_section(self, section_id: str) -> Section:
        try:
            return self.sections[section_id]
        except KeyError:
            raise NotFoundError(f"Section not found: {section_id}") from None

    def current_period(self) -> Period | None:
        current = [p for p in self.periods.values() if p.is_current]
        return max(current, key=lambda p: p.sort_key) if current else None

    # ── Joins ─────────────────────────────────────────────────────────────

    def enrollment_details(
        self,
        student_id: str | None = None,
        *,
        period_id: str | None = None,
        section_id: str | None = None,
    ) -> list[EnrollmentDetail]:
        """Join enrollments with their course, section, professor and period.

        A dangling reference becomes None and raises a DataIntegrityWarning;
        the aggregator then applies its zero-credit / general-category fallback.
        """
        details = []
        for enrollment in self.enrollments:
            if student_id is not None and enrollment.student_id != student_id:
                continue
            if period_id is not None and enrollment.period_id != period_id:
                continue
            if section_id is not None and enrollment.section_id != section_id:
                continue

            course = self.courses.get(enrollment.course_id)
            # Exports without the derived column still carry points and credits
            if (
                course is not None
                and enrollment.grade_points is not None
                and enrollment.quality_points is None
            ):
                enrollment = dataclasses.replace(
                    enrollment,
                    quality_points=calculate_quality_points(enrollment.grade_points, course.credits),
                )

            detail = EnrollmentDetail(
                enrollment=enrollment,
                course=course,
                section=self.sections.get(enrollment.section_id),
                professor=self.professors.get(enrollment.professor_id),
                period=self.periods.get(enrollment.period_id),
            )
            missing = [
                name for name in ("course", "section", "professor", "period")
                if getattr(detail, name) is None
            ]
            if missing:
                warnings.warn(
                    f"Enrollment {enrollment.id} references missing {', '.join(missing)}",
                    DataIntegrityWarning,
                    stacklevel=2,
                )
            details.append(detail)
        return details

    def curriculum(self, program_id: str) -> list[ProgramCourse]:
        """Active curriculum entries for a program, with category overrides applied."""
        entries = []
        for link in self.program_courses:
            if link.program_id != program_id or not link.is_active:
                continue
            course = self.courses.get(link.course_id)
            if course is None:
                warnings.warn(
                    f"Program {program_id} lists missing course {link.course_id}",
                    DataIntegrityWarning,
                    stacklevel=2,
                )
                continue
            entries.append(ProgramCourse(
                course=course,
                is_required=link.is_required,
                category=link.category_override or course.category,
            ))
        return entries


# ──────────────────────────────────────────────────────────────────────────────
# CLI
# ──────────────────────────────────────────────────────────────────────────────

def main():
    parser = argparse.ArgumentParser(description="Export an academic record snapshot from Supabase")
    parser.add_argument(
        "--url",
        default=os.environ.get("SUPABASE_URL", ""),
        help="Supabase project URL (or set SUPABASE_URL env var)",
    )
    parser.add_argument(
        "--key",
        default=os.environ.get("SUPABASE_KEY", os.environ.get("SUPABASE_SERVICE_ROLE_KEY", "")),
        help="Supabase API key (or set SUPABASE_KEY env var)",
    )
    parser.add_argument("--student-id", default=None, help="Only export this student's rows")
    parser.add_argument("--output-dir", default="./snapshot", help="Directory for JSON tables")
    parser.add_argument("--dry-run", action="store_true", help="Preview an existing export without connecting")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    output_dir = Path(args.output_dir)

    if args.dry_run:
        print("=" * 60)
        print("  Dry Run — Snapshot Preview")
        print("=" * 60)
        for table in TABLES:
            path = output_dir / f"{table}.json"
            if path.exists():
                print(f"  {table + '.json':<28} {len(load_json(path)):>8,} records")
            else:
                print(f"  {table + '.json':<28} NOT FOUND")
        print("\n  Nothing was fetched.")
        sys.exit(0)

    if not args.url or not args.key:
        print("ERROR: Supabase URL and key are required.")
        print()
        print("  Option 1 — CLI args:")
        print("    python record_snapshot.py \\")
        print("        --url https://your-project.supabase.co \\")
        print("        --key your-service-role-key")
        print()
        print("  Option 2 — env vars:")
        print("    export SUPABASE_URL=https://your-project.supabase.co")
        print("    export SUPABASE_KEY=your-service-role-key")
        sys.exit(1)

    print("=" * 60)
    print("  Snapshot Export")
    print("=" * 60)
    print(f"  URL: {args.url}")
    print(f"  Key: {args.key[:12]}...{args.key[-4:]}")
    print(f"  Student: {args.student_id or 'all'}")

    client = create_client(args.url, args.key)
    tables = fetch_tables(client, args.student_id)
    files = write_tables(tables, output_dir)

    for table, rows in tables.items():
        print(f"  {table:<24} {len(rows):>8,} rows")
    print(f"\n  Done! {len(files)} tables -> {output_dir}/")


if __name__ == "__main__":
    main()
