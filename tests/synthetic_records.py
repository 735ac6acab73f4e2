"""
Seeded generator of store-shaped academic tables for tests.

Produces the same table rows a Supabase export holds (courses, periods,
sections, professors, students, programs, curriculum links, requirements,
enrollments) so tests exercise row parsing, joins and aggregation together.
Grades correlate with a per-student ability score; failed courses are
retaken in a later period with the superseded attempt excluded from GPA.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import date, timedelta
from random import Random
from typing import Any

from academic_records import (
    PASSING_GRADE,
    calculate_grade_points,
    calculate_letter_grade,
    calculate_quality_points,
)

# (code, name_es, name_en, credits, category, required)
CURRICULUM: list[tuple[str, str, str, int, str, bool]] = [
    ("MAT101", "Cálculo I", "Calculus I", 4, "core", True),
    ("MAT102", "Cálculo II", "Calculus II", 4, "core", True),
    ("CS101", "Programación I", "Programming I", 3, "core", True),
    ("CS201", "Estructuras de Datos", "Data Structures", 3, "core", True),
    ("CS301", "Bases de Datos", "Database Systems", 3, "core", True),
    ("HUM101", "Ética", "Ethics", 2, "humanities", True),
    ("HUM201", "Historia del Arte", "Art History", 2, "humanities", False),
    ("ELE301", "Aprendizaje Automático", "Machine Learning", 3, "elective", False),
    ("ELE302", "Redes", "Computer Networks", 3, "elective", False),
    ("GEN101", "Comunicación Escrita", "Written Communication", 2, "general", True),
]

PROFESSORS = [
    ("Ana", "Torres"), ("Luis", "Gómez"), ("Marta", "Ruiz"),
    ("Jorge", "Díaz"), ("Elena", "Castro"),
]

FIRST_NAMES = ["Camila", "Mateo", "Valentina", "Santiago", "Lucía", "Diego", "Sofía", "Andrés"]
LAST_NAMES = ["Rojas", "Vargas", "Herrera", "Moreno", "Jiménez", "Ortiz", "Silva", "Mendoza"]

PROGRAM_ID = "prog-cs"


def correlated_percentage(rng: Random, ability: float) -> float:
    """Percentage grade centered on a student's ability, clamped to 0-100."""
    return round(max(0.0, min(100.0, rng.gauss(ability, 9.0))), 1)


def build_tables(
    num_students: int = 6,
    num_periods: int = 4,
    start_year: int = 2024,
    seed: int = 42,
    withdraw_rate: float = 0.08,
) -> dict[str, list[dict[str, Any]]]:
    """Generate a complete snapshot; the last period is current and ungraded."""
    if num_students < 1:
        raise ValueError(f"num_students must be >= 1, got {num_students}")
    if num_periods < 1:
        raise ValueError(f"num_periods must be >= 1, got {num_periods}")

    rng = Random(seed)

    courses = [
        {
            "id": f"c-{code.lower()}",
            "code": code,
            "name_es": name_es,
            "name_en": name_en,
            "credits": credits,
            "category": category,
            "prerequisites": [],
        }
        for code, name_es, name_en, credits, category, _ in CURRICULUM
    ]
    program_courses = [
        {
            "program_id": PROGRAM_ID,
            "course_id": f"c-{code.lower()}",
            "is_required": required,
            "category_override": None,
            "is_active": True,
        }
        for code, _, _, _, _, required in CURRICULUM
    ]

    periods = []
    first_start = date(start_year, 1, 8)
    for i in range(num_periods):
        start = first_start + timedelta(weeks=9 * i)
        bimester = i % 6 + 1
        year = start_year + i // 6
        periods.append({
            "id": f"p-{i + 1}",
            "code": f"{year}-B{bimester}",
            "name_es": f"Bimestre {bimester} {year}",
            "name_en": f"Bimester {bimester} {year}",
            "start_date": start.isoformat(),
            "end_date": (start + timedelta(weeks=8)).isoformat(),
            "year": year,
            "bimester_number": bimester,
            "is_current": i == num_periods - 1,
        })

    professors = [
        {
            "id": f"prof-{i + 1}",
            "first_name": first,
            "last_name": last,
            "email": f"{first.lower()}.{last.lower()}@university.edu",
        }
        for i, (first, last) in enumerate(PROFESSORS)
    ]

    sections = []
    section_lookup: dict[tuple[str, str], dict] = {}
    for period in periods:
        for course in courses:
            section = {
                "id": f"sec-{course['code'].lower()}-{period['id']}",
                "course_id": course["id"],
                "period_id": period["id"],
                "professor_id": rng.choice(professors)["id"],
                "group_number": "01",
            }
            sections.append(section)
            section_lookup[(course["id"], period["id"])] = section

    students = []
    enrollments = []
    counter = 0
    for s in range(num_students):
        student_id = f"s-{s + 1}"
        first = rng.choice(FIRST_NAMES)
        last = rng.choice(LAST_NAMES)
        students.append({
            "id": student_id,
            "student_code": f"A{start_year % 100:02d}{s + 1:04d}",
            "first_name": first,
            "last_name": last,
            "email": f"{first.lower()}.{last.lower()}{s + 1}@university.edu",
            "program_id": PROGRAM_ID,
        })

        ability = rng.uniform(60, 95)
        passed: set[str] = set()
        failed_attempts: dict[str, list[dict]] = defaultdict(list)

        for p_idx, period in enumerate(periods):
            is_current = p_idx == num_periods - 1
            retakes = [cid for cid in failed_attempts if cid not in passed]
            fresh = [
                c["id"] for c in courses
                if c["id"] not in passed and c["id"] not in failed_attempts
            ]
            rng.shuffle(fresh)
            load = retakes + fresh[:max(0, rng.randint(2, 4) - len(retakes))]

            for course_id in load:
                course = next(c for c in courses if c["id"] == course_id)
                section = section_lookup[(course_id, period["id"])]
                counter += 1
                row = {
                    "id": f"e-{counter}",
                    "student_id": student_id,
                    "course_id": course_id,
                    "section_id": section["id"],
                    "professor_id": section["professor_id"],
                    "period_id": period["id"],
                    "status": "enrolled",
                    "percentage_grade": None,
                    "letter_grade": None,
                    "grade_points": None,
                    "quality_points": None,
                    "is_retake": course_id in failed_attempts,
                    "counts_for_gpa": True,
                    "counts_for_progress": True,
                    "is_auditing": False,
                }
                enrollments.append(row)
                if is_current:
                    continue

                if rng.random() < withdraw_rate:
                    row["status"] = "withdrawn"
                    continue

                pct = correlated_percentage(rng, ability)
                points = calculate_grade_points(pct)
                row.update({
                    "percentage_grade": pct,
                    "letter_grade": calculate_letter_grade(pct),
                    "grade_points": points,
                    "quality_points": calculate_quality_points(points, course["credits"]),
                })
                if pct >= PASSING_GRADE:
                    row["status"] = "completed"
                    passed.add(course_id)
                    # Superseded attempts stop counting once the retake passes
                    for earlier in failed_attempts.get(course_id, []):
                        earlier["counts_for_gpa"] = False
                else:
                    row["status"] = "failed"
                    failed_attempts[course_id].append(row)

    return {
        "courses": courses,
        "periods": periods,
        "sections": sections,
        "professors": professors,
        "programs": [{
            "id": PROGRAM_ID,
            "code": "CS-BS",
            "name_es": "Ingeniería de Sistemas",
            "name_en": "Computer Science",
            "total_credits": sum(c[3] for c in CURRICULUM),
            "duration_bimesters": 8,
        }],
        "program_courses": program_courses,
        "program_requirements": [{
            "program_id": PROGRAM_ID,
            "core_credits": 17,
            "humanities_credits": 2,
            "elective_credits": 3,
            "general_credits": 2,
            "min_gpa": 2.0,
            "probation_gpa": 2.0,
            "suspension_gpa": 1.0,
        }],
        "students": students,
        "enrollments": enrollments,
    }
