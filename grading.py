"""
grading.py - Grade Computation
Pure functions for turning grade items into a course mark, a mark into a
letter / GPA points / risk status, and finished courses into a cumulative
academic record. Nothing here touches the database.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional


@dataclass(frozen=True)
class GradeBand:
    min_mark: float
    letter: str
    points: float


# Inclusive lower bounds, descending. The 0 row makes the table total.
GRADE_TABLE = (
    GradeBand(95, 'A', 3.75),
    GradeBand(90, 'A-', 3.50),
    GradeBand(85, 'B+', 3.25),
    GradeBand(80, 'B', 3.00),
    GradeBand(75, 'B-', 2.75),
    GradeBand(70, 'C+', 2.50),
    GradeBand(65, 'C', 2.25),
    GradeBand(60, 'C-', 2.00),
    GradeBand(55, 'D+', 1.75),
    GradeBand(50, 'D', 1.50),
    GradeBand(0, 'F', 0.00),
)

RISK_SAFE = 'safe'
RISK_NORMAL = 'normal'
RISK_AT_RISK = 'at_risk'
RISK_HIGH = 'high_risk'


def clamp_0_100(value: float) -> float:
    return max(0.0, min(100.0, float(value)))


def round_half_up(value: float, places: int = 2) -> float:
    """
    Round like a person would (2.675 -> 2.68), not banker's rounding.

    Rounds the float's shortest repr (``str(value)``), not its exact binary
    value, so a computed 86.005 rounds up the same as the literal does.
    """
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


# ---------------------------------------------------------------------------
# Grade scale
# ---------------------------------------------------------------------------

def grade_for(mark: Optional[float]) -> Optional[GradeBand]:
    if mark is None:
        return None
    m = clamp_0_100(mark)
    for band in GRADE_TABLE:
        if m >= band.min_mark:
            return band
    return GRADE_TABLE[-1]


def letter_grade(mark: Optional[float]) -> Optional[str]:
    band = grade_for(mark)
    return band.letter if band else None


def gpa_points(mark: Optional[float]) -> Optional[float]:
    band = grade_for(mark)
    return band.points if band else None


def risk_status(mark: Optional[float]) -> str:
    """
    Coarse status used for dashboard badges and status notes.

    An ungraded course (mark is None) reads as ``normal`` here; for averages
    it is excluded instead, never counted as 0.
    """
    if mark is None:
        return RISK_NORMAL
    if mark >= 80:
        return RISK_SAFE
    if mark >= 70:
        return RISK_NORMAL
    if mark >= 60:
        return RISK_AT_RISK
    return RISK_HIGH


# ---------------------------------------------------------------------------
# Course mark
# ---------------------------------------------------------------------------

def compute_course_mark(items: Iterable) -> Optional[float]:
    """
    Weighted average of item percentages.

    Items need ``score``, ``max_score`` and ``weight`` attributes. Items with
    weight <= 0 are skipped entirely. Returns None when no weight remains,
    which means "no mark yet" and is different from a mark of 0.
    """
    weighted_sum = 0.0
    weight_total = 0.0

    for item in items:
        weight = float(item.weight or 0)
        if weight <= 0:
            continue
        max_score = float(item.max_score or 0)
        percentage = (float(item.score or 0) / max_score) * 100 if max_score > 0 else 0.0
        weighted_sum += percentage * weight
        weight_total += weight

    if weight_total == 0:
        return None

    return round_half_up(clamp_0_100(weighted_sum / weight_total))


def total_weight(items: Iterable) -> float:
    """Plain sum of every item's weight, used for the auto-finalize threshold."""
    return sum(float(item.weight or 0) for item in items)


# ---------------------------------------------------------------------------
# Semester (live, open courses only)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SemesterSummary:
    gpa: float
    percent: float
    credits: int


def compute_semester_summary(courses: Iterable) -> SemesterSummary:
    """
    Credit-weighted GPA and percent over courses with ``current_grade`` and
    ``credit_hours``. Ungraded courses and courses without credit hours are
    left out of both sums. No eligible course gives 0, not None.
    """
    points_sum = 0.0
    percent_sum = 0.0
    credits = 0

    for course in courses:
        hours = course.credit_hours or 0
        mark = course.current_grade
        if hours <= 0 or mark is None:
            continue
        points_sum += gpa_points(mark) * hours
        percent_sum += clamp_0_100(mark) * hours
        credits += hours

    if credits == 0:
        return SemesterSummary(gpa=0.0, percent=0.0, credits=0)

    return SemesterSummary(
        gpa=round_half_up(points_sum / credits),
        percent=round_half_up(percent_sum / credits),
        credits=credits,
    )


# ---------------------------------------------------------------------------
# Cumulative record
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RecordState:
    cgpa: float = 0.0
    cumulative_percent: float = 0.0
    credits_completed: float = 0.0
    credits_carried: float = 0.0


def _running_average(old_value, old_credits, new_value, new_credits):
    return round_half_up(
        (old_value * old_credits + new_value * new_credits) / (old_credits + new_credits)
    )


def apply_course_outcome(state: RecordState, credit_hours, mark: float, passed: bool) -> RecordState:
    """
    Fold one finished course into the record.

    The old record acts as a single course carrying every completed credit at
    the old average. A failed course only adds its hours to the carried
    bucket; its mark never enters CGPA or cumulative percent.
    """
    hours = credit_hours or 0
    if hours <= 0:
        return state

    if not passed:
        return replace(state, credits_carried=state.credits_carried + hours)

    completed = state.credits_completed
    return replace(
        state,
        cgpa=_running_average(state.cgpa, completed, gpa_points(mark), hours),
        cumulative_percent=_running_average(state.cumulative_percent, completed, clamp_0_100(mark), hours),
        credits_completed=completed + hours,
    )


def fold_ledger(entries: Iterable) -> RecordState:
    """Rebuild a record from ledger entries (``credit_hours``, ``mark``, ``passed``) in order."""
    state = RecordState()
    for entry in entries:
        state = apply_course_outcome(state, entry.credit_hours, entry.mark, entry.passed)
    return state


def project_cumulative(state: RecordState, semester: SemesterSummary) -> RecordState:
    """
    What the record would read if every open, graded course finished as it
    stands now. Display only; pass/fail is ignored here.
    """
    if semester.credits <= 0:
        return state

    completed = state.credits_completed
    return replace(
        state,
        cgpa=_running_average(state.cgpa, completed, semester.gpa, semester.credits),
        cumulative_percent=_running_average(
            state.cumulative_percent, completed, semester.percent, semester.credits
        ),
        credits_completed=completed + semester.credits,
    )
