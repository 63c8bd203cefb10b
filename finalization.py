"""
finalization.py - Course Mark & Finalization Flow
Recomputes a course's mark after grade writes, decides when the course is
finished, and folds the outcome into the student's academic record exactly once.

Grade routes call record_grade_change() after every create/update/delete;
the manual "course finished" action calls finalize_course_manually().
Both run inside unit_of_work() so the mark, the finalized flag and the
record update commit together or not at all.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime

from flask import current_app

from extensions import db
from grading import apply_course_outcome, fold_ledger, gpa_points
from models import AcademicRecord, FinalizedCourse, StudentCourse
import notifier

logger = logging.getLogger(__name__)

MODE_AUTOMATIC = 'automatic'
MODE_MANUAL = 'manual'


class NoMarkError(ValueError):
    """Manual finalize on a course with no computable mark."""

    def __init__(self, message='Enter at least one grade before marking course as finished.'):
        super().__init__(message)


@dataclass(frozen=True)
class FinalizeResult:
    course: StudentCourse
    already: bool = False


@contextmanager
def unit_of_work():
    """
    Commit everything done inside the block, or roll all of it back
    """
    try:
        yield db.session
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise


def recalculate_course_mark(course):
    """
    Recompute current_grade from the course's full item set
    """
    mark = course.compute_mark()
    course.current_grade = mark
    logger.debug("Course %s mark recomputed: %s", course.id, mark)
    return mark


def maybe_finalize_course(course):
    """
    Automatic mode: finalize once item weights reach the threshold and a mark exists

    Returns:
        bool: True if this call finalized the course
    """
    if course.is_finalized:
        return False

    threshold = current_app.config['AUTO_FINALIZE_WEIGHT_THRESHOLD']
    weight = course.total_item_weight()
    mark = course.current_grade

    if weight < threshold or mark is None:
        logger.debug(
            "Course %s stays open (weight %.2f, mark %s)", course.id, weight, mark
        )
        return False

    apply_finalization(course, mark, MODE_AUTOMATIC)
    return True


def finalize_course_manually(course):
    """
    Manual mode: student marks the course finished, no weight requirement

    Returns:
        FinalizeResult: already=True when the course was finalized before

    Raises:
        NoMarkError: If the course has no grade to finalize with
    """
    if course.is_finalized:
        logger.info("Course %s already finalized, nothing to do", course.id)
        return FinalizeResult(course=course, already=True)

    mark = recalculate_course_mark(course)
    if mark is None:
        logger.warning("Rejected manual finalize of course %s: no mark yet", course.id)
        raise NoMarkError()

    apply_finalization(course, mark, MODE_MANUAL)
    return FinalizeResult(course=course, already=False)


def apply_finalization(course, mark, mode):
    """
    Set the course Finalized, append a ledger row and update the record
    """
    passed = mark >= current_app.config['PASSING_MARK']
    now = datetime.utcnow()

    course.mark_finalized(passed=passed, at=now)

    entry = FinalizedCourse(
        user_id=course.user_id,
        student_course_id=course.id,
        course_code=course.course_code,
        course_name=course.course_name,
        mark=mark,
        credit_hours=course.credit_hours or 0,
        passed=passed,
        gpa_points=gpa_points(mark),
        mode=mode,
        finalized_at=now,
    )
    db.session.add(entry)

    logger.info(
        "Course %s finalized (%s): mark=%s passed=%s credits=%s",
        course.id, mode, mark, passed, course.credit_hours
    )

    _accumulate(course.user_id, course.credit_hours, mark, passed)


def _accumulate(user_id, credit_hours, mark, passed):
    if not credit_hours or credit_hours <= 0:
        # No weight in any credit average; record stays as it is
        return

    record = AcademicRecord.query.filter_by(user_id=user_id).first()
    if record is None:
        record = AcademicRecord(
            user_id=user_id,
            cgpa=0.0,
            cumulative_percent=0.0,
            total_credits_completed=0.0,
            total_credits_carried=0.0,
        )
        db.session.add(record)

    new_state = apply_course_outcome(record.to_state(), credit_hours, mark, passed)
    record.load_state(new_state)

    logger.info(
        "Academic record for user %s: cgpa=%s percent=%s completed=%s carried=%s",
        user_id, new_state.cgpa, new_state.cumulative_percent,
        new_state.credits_completed, new_state.credits_carried
    )


def record_grade_change(course):
    """
    Run after any grade item create/update/delete on the course:
    recompute the mark, refresh its status note, then check auto-finalization.

    Returns:
        bool: True if the course was finalized by this change
    """
    db.session.flush()
    db.session.expire(course, ['grade_items'])

    recalculate_course_mark(course)
    notifier.upsert_course_note(course)
    return maybe_finalize_course(course)


def rebuild_record_from_ledger(user_id):
    """
    Fold the user's ledger in finalization order. Must equal the stored record.
    """
    entries = FinalizedCourse.query.filter_by(user_id=user_id).order_by(FinalizedCourse.id).all()
    return fold_ledger(entries)
