"""Shared fixtures: hand-built reference records and a seeded synthetic snapshot."""

from __future__ import annotations

import warnings
from datetime import date

import pytest

from academic_records import Course, CourseCategory, Period
from record_snapshot import RecordSnapshot
from synthetic_records import build_tables


@pytest.fixture
def calculus() -> Course:
    return Course(
        id="c-mat101", code="MAT101", name_es="Cálculo I", name_en="Calculus I",
        credits=3, category=CourseCategory.CORE,
    )


@pytest.fixture
def ethics() -> Course:
    return Course(
        id="c-hum101", code="HUM101", name_es="Ética", name_en="Ethics",
        credits=3, category=CourseCategory.HUMANITIES,
    )


@pytest.fixture
def networks() -> Course:
    return Course(
        id="c-ele302", code="ELE302", name_es="Redes", credits=3,
        category=CourseCategory.ELECTIVE,
    )


@pytest.fixture
def first_period() -> Period:
    return Period(
        id="p-1", code="2024-B1", name_es="Bimestre 1 2024", name_en="Bimester 1 2024",
        start_date=date(2024, 1, 8), end_date=date(2024, 3, 4), year=2024, bimester_number=1,
    )


@pytest.fixture
def second_period() -> Period:
    return Period(
        id="p-2", code="2024-B2", name_es="Bimestre 2 2024", name_en="Bimester 2 2024",
        start_date=date(2024, 3, 11), end_date=date(2024, 5, 6), year=2024, bimester_number=2,
    )


@pytest.fixture
def tables() -> dict:
    return build_tables(num_students=6, num_periods=3, seed=7)


@pytest.fixture
def snapshot(tables) -> RecordSnapshot:
    return RecordSnapshot.from_tables(tables)


@pytest.fixture
def quiet_integrity():
    """Silence DataIntegrityWarning for tests that feed dangling references on purpose."""
    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        yield
