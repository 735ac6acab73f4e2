#!/usr/bin/env python3
"""
Academic History Charts
=========================================================
Renders a student's period history and curriculum progress as PNG charts.

Usage:
    python visualize_academic_history.py --data-dir ./snapshot --student-id s-1
    python visualize_academic_history.py --data-dir ./snapshot --student-id s-1 --output-dir ./charts
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

import matplotlib
matplotlib.use("Agg")  # headless rendering
import matplotlib.pyplot as plt
import pandas as pd

from academic_aggregator import (
    AcademicProgress,
    PeriodSummary,
    build_period_history,
    calculate_academic_progress,
)
from academic_records import DEFAULT_PROBATION_GPA, NotFoundError
from record_snapshot import RecordSnapshot


# ── Theme ─────────────────────────────────────────────────────────────────

THEME_COLORS = {
    "primary": "#1B3A5C",      # dark navy
    "secondary": "#2E86AB",    # bright blue
    "accent": "#F18F01",       # orange
    "success": "#2CA58D",      # teal/green
    "danger": "#C1292E",       # red
    "light": "#E8EEF2",        # light gray-blue
    "text": "#2C3E50",         # dark text
}

CATEGORY_COLORS = {
    "core": THEME_COLORS["primary"],
    "humanities": THEME_COLORS["accent"],
    "elective": THEME_COLORS["secondary"],
    "general": THEME_COLORS["success"],
}


def apply_theme():
    """Apply theme styling to matplotlib."""
    plt.rcParams.update({
        "font.family": "sans-serif",
        "font.sans-serif": ["Helvetica Neue", "Arial", "DejaVu Sans"],
        "font.size": 11,
        "axes.titlesize": 14,
        "axes.titleweight": "bold",
        "axes.labelsize": 12,
        "axes.facecolor": "#FAFBFC",
        "axes.edgecolor": "#DEE2E6",
        "axes.grid": True,
        "grid.alpha": 0.3,
        "grid.color": "#CED4DA",
        "figure.facecolor": "white",
        "figure.dpi": 150,
        "savefig.dpi": 200,
        "savefig.bbox": "tight",
        "savefig.pad_inches": 0.3,
    })


# ── Frames ────────────────────────────────────────────────────────────────

def history_frame(history: list[PeriodSummary], locale: str = "es") -> pd.DataFrame:
    """Period history as a chronological DataFrame (oldest period first)."""
    rows = [
        {
            "period": summary.period.name(locale),
            "start_date": summary.period.start_date,
            "enrolled_credits": summary.enrolled_credits,
            "approved_credits": summary.approved_credits,
            "approval_percentage": summary.approval_percentage,
            "period_gpa": summary.period_gpa,
            "accumulated_credits": summary.accumulated_credits,
            "accumulated_approved_credits": summary.accumulated_approved_credits,
        }
        for summary in history
    ]
    columns = [
        "period", "start_date", "enrolled_credits", "approved_credits",
        "approval_percentage", "period_gpa", "accumulated_credits",
        "accumulated_approved_credits",
    ]
    df = pd.DataFrame(rows, columns=columns)
    return df.sort_values("start_date").reset_index(drop=True)


def category_frame(progress: AcademicProgress) -> pd.DataFrame:
    """Completed vs required credits per curriculum category."""
    return pd.DataFrame([
        {
            "category": category.value,
            "completed": credits.completed,
            "required": credits.required,
            "remaining": credits.remaining,
        }
        for category, credits in progress.credits_by_category.items()
    ])


# ── Chart Builders ────────────────────────────────────────────────────────

def chart_period_history(df: pd.DataFrame, output_dir: Path):
    """Credits per period as bars with period GPA on a secondary axis."""
    if df.empty:
        return None

    x = range(len(df))
    fig, ax1 = plt.subplots(figsize=(12, 6))

    ax1.bar(
        [i - 0.2 for i in x], df["enrolled_credits"], width=0.4,
        color=THEME_COLORS["light"], edgecolor=THEME_COLORS["secondary"],
        label="Enrolled Credits",
    )
    ax1.bar(
        [i + 0.2 for i in x], df["approved_credits"], width=0.4,
        color=THEME_COLORS["secondary"], alpha=0.85, label="Approved Credits",
    )
    ax1.set_ylabel("Credits")
    ax1.set_xticks(list(x))
    ax1.set_xticklabels(df["period"], rotation=30, ha="right")

    ax2 = ax1.twinx()
    ax2.plot(
        list(x), df["period_gpa"],
        color=THEME_COLORS["accent"], marker="o", linewidth=2.5,
        markersize=8, label="Period GPA", zorder=5,
    )
    for i, gpa in zip(x, df["period_gpa"]):
        ax2.annotate(
            f"{gpa:.2f}", (i, gpa),
            textcoords="offset points", xytext=(0, 10),
            ha="center", fontsize=9, fontweight="bold",
        )
    ax2.axhline(
        y=DEFAULT_PROBATION_GPA, color=THEME_COLORS["danger"],
        linestyle="--", alpha=0.6, label=f"Probation ({DEFAULT_PROBATION_GPA})",
    )
    ax2.set_ylabel("GPA", color=THEME_COLORS["accent"])
    ax2.set_ylim(0, 4.2)
    ax2.grid(False)

    lines1, labels1 = ax1.get_legend_handles_labels()
    lines2, labels2 = ax2.get_legend_handles_labels()
    ax1.legend(lines1 + lines2, labels1 + labels2, loc="upper left", framealpha=0.9)

    fig.suptitle(
        "Credits and GPA by Period",
        fontsize=16, fontweight="bold", color=THEME_COLORS["primary"], y=1.02,
    )

    path = output_dir / "period_history.png"
    fig.savefig(path)
    plt.close(fig)
    return path


def chart_accumulated_credits(df: pd.DataFrame, output_dir: Path):
    """Running enrolled vs approved credit totals."""
    if df.empty:
        return None

    x = list(range(len(df)))
    fig, ax = plt.subplots(figsize=(10, 5))
    ax.plot(x, df["accumulated_credits"], color=THEME_COLORS["primary"],
            marker="s", linewidth=2.5, label="Accumulated")
    ax.plot(x, df["accumulated_approved_credits"], color=THEME_COLORS["success"],
            marker="o", linewidth=2.5, label="Accumulated Approved")
    ax.fill_between(x, df["accumulated_approved_credits"], df["accumulated_credits"],
                    alpha=0.15, color=THEME_COLORS["danger"])
    ax.set_xticks(x)
    ax.set_xticklabels(df["period"], rotation=30, ha="right")
    ax.set_ylabel("Credits")
    ax.legend(loc="upper left", framealpha=0.9)

    fig.suptitle(
        "Accumulated Credits",
        fontsize=16, fontweight="bold", color=THEME_COLORS["primary"], y=1.02,
    )

    path = output_dir / "accumulated_credits.png"
    fig.savefig(path)
    plt.close(fig)
    return path


def chart_category_progress(df: pd.DataFrame, output_dir: Path):
    """Horizontal completed/required bars per curriculum category."""
    if df.empty:
        return None

    fig, ax = plt.subplots(figsize=(10, 4))
    y = range(len(df))
    ax.barh(list(y), df["required"], color=THEME_COLORS["light"],
            edgecolor="#CED4DA", label="Required")
    ax.barh(list(y), df["completed"],
            color=[CATEGORY_COLORS.get(c, THEME_COLORS["secondary"]) for c in df["category"]],
            label="Completed")
    for i, (done, req) in enumerate(zip(df["completed"], df["required"])):
        ax.text(max(done, req) + 0.5, i, f"{done}/{req}", va="center", fontsize=9)
    ax.set_yticks(list(y))
    ax.set_yticklabels([c.title() for c in df["category"]])
    ax.set_xlabel("Credits")
    ax.legend(loc="lower right", framealpha=0.9)

    fig.suptitle(
        "Curriculum Progress by Category",
        fontsize=16, fontweight="bold", color=THEME_COLORS["primary"], y=1.02,
    )

    path = output_dir / "category_progress.png"
    fig.savefig(path)
    plt.close(fig)
    return path


# ── CLI ───────────────────────────────────────────────────────────────────

def main():
    parser = argparse.ArgumentParser(description="Academic History Visualizer")
    parser.add_argument("--data-dir", default="./snapshot", help="Snapshot directory (JSON tables)")
    parser.add_argument("--student-id", required=True, help="Student to chart")
    parser.add_argument("--output-dir", default="./charts", help="Directory to save charts")
    parser.add_argument("--locale", choices=["es", "en"], default="es", help="Period name locale")
    args = parser.parse_args()

    out = Path(args.output_dir)
    try:
        snapshot = RecordSnapshot.from_json_dir(args.data_dir)
        student = snapshot.get_student(args.student_id)
        program = snapshot.get_program(student.program_id)
    except NotFoundError as e:
        print(f"ERROR: {e}")
        print("Export a snapshot first:")
        print("  python record_snapshot.py --output-dir ./snapshot")
        sys.exit(1)

    out.mkdir(parents=True, exist_ok=True)
    apply_theme()

    details = snapshot.enrollment_details(student.id)
    history = history_frame(build_period_history(details), locale=args.locale)
    progress = calculate_academic_progress(
        details, snapshot.curriculum(program.id), program,
        snapshot.requirements.get(program.id),
    )

    print("Generating charts...")

    charts = []
    charts.append(("Period History", chart_period_history(history, out)))
    charts.append(("Accumulated Credits", chart_accumulated_credits(history, out)))
    charts.append(("Category Progress", chart_category_progress(category_frame(progress), out)))

    generated = [(n, p) for n, p in charts if p]
    print(f"\nGenerated {len(generated)} charts:")
    for name, path in generated:
        print(f"  {name:25s} -> {path}")

    print(f"\nAll charts saved to: {out}/")


if __name__ == "__main__":
    main()
