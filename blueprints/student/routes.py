"""
blueprints/student/routes.py - Student Blueprint
Handles student-facing routes: catalog, enrolled courses, grade items,
course finalization, dashboard and academic record.
"""

import logging
import math

from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user, login_required

from config import Config
from extensions import db
from finalization import (
    NoMarkError,
    finalize_course_manually,
    rebuild_record_from_ledger,
    record_grade_change,
    unit_of_work,
)
from grading import (
    RISK_AT_RISK,
    RISK_HIGH,
    RecordState,
    compute_semester_summary,
    gpa_points,
    letter_grade,
    project_cumulative,
    risk_status,
)
from models import (
    AcademicRecord,
    CatalogCourse,
    FinalizedCourse,
    GradeItem,
    Note,
    PlannerEvent,
    PlannerTask,
    StudentCourse,
)

logger = logging.getLogger(__name__)

# Initialize the blueprint for student-related routes
student_bp = Blueprint('student', __name__)

EDITABLE_COURSE_FIELDS = (
    'course_name', 'course_code', 'credit_hours', 'semester', 'difficulty',
    'target_grade', 'professor_name', 'description',
)
DERIVED_COURSE_FIELDS = ('current_grade', 'finalized_at', 'passed')


def _json_body():
    return request.get_json(silent=True) or {}


def _number(data, key, default=None):
    """Read a finite numeric field from the request body"""
    value = data.get(key, default)
    if value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"{key} must be a number")
    if not math.isfinite(number):
        raise ValueError(f"{key} must be a finite number")
    return number


def _owned_course(course_id):
    """Course owned by the current user, or 404"""
    return StudentCourse.query.filter_by(
        id=course_id,
        user_id=current_user.id
    ).first_or_404()


def _owned_grade_item(item_id):
    """Grade item whose course is owned by the current user, or 404"""
    return GradeItem.query.join(StudentCourse).filter(
        GradeItem.id == item_id,
        StudentCourse.user_id == current_user.id
    ).first_or_404()


def _error(message, status=400):
    return jsonify({'success': False, 'error': message}), status


def _course_state(course):
    return {
        'current_grade': course.current_grade,
        'letter_grade': letter_grade(course.current_grade),
        'grade_status': risk_status(course.current_grade),
        'finalized_at': course.finalized_at.isoformat() if course.finalized_at else None,
        'passed': course.passed,
    }


# ============================================================================
# CATALOG
# ============================================================================

@student_bp.route('/catalog/courses')
@login_required
def catalog_courses():
    courses = CatalogCourse.query.order_by(CatalogCourse.order, CatalogCourse.id).all()
    return jsonify([c.to_dict() for c in courses])


@student_bp.route('/catalog/courses/<int:catalog_id>')
@login_required
def catalog_course(catalog_id):
    course = CatalogCourse.query.filter_by(id=catalog_id).first_or_404()
    data = course.to_dict()
    data['grade_scheme'] = [item.to_dict() for item in course.grade_scheme]
    data['resources'] = [r.to_dict() for r in course.resources]
    return jsonify(data)


# ============================================================================
# ENROLLED COURSES
# ============================================================================

@student_bp.route('/student/courses')
@login_required
def list_courses():
    courses = StudentCourse.query.filter_by(user_id=current_user.id).order_by(StudentCourse.id).all()
    return jsonify([c.to_dict() for c in courses])


@student_bp.route('/student/courses/<int:course_id>')
@login_required
def get_course(course_id):
    return jsonify(_owned_course(course_id).to_dict())


@student_bp.route('/student/courses', methods=['POST'])
@login_required
def create_course():
    """
    Enroll in a course, either from the catalog or entered by hand.
    Catalog enrollment requires the prerequisite course to be finished.
    """
    data = _json_body()
    catalog = None

    catalog_id = data.get('catalog_course_id')
    if catalog_id is not None:
        try:
            catalog_id = int(catalog_id)
        except (TypeError, ValueError):
            return _error('catalog_course_id must be an integer')

        catalog = db.session.get(CatalogCourse, catalog_id)
        if catalog is None:
            return _error('Catalog course not found')

        already = StudentCourse.query.filter_by(
            user_id=current_user.id,
            catalog_course_id=catalog_id
        ).first()
        if already:
            return _error('Already enrolled in this course')

        if catalog.prerequisite_id is not None:
            prereq = StudentCourse.query.filter_by(
                user_id=current_user.id,
                catalog_course_id=catalog.prerequisite_id
            ).first()
            if prereq is None or not prereq.is_finalized:
                return _error(
                    'Complete the prerequisite course first: mark it as finished '
                    'and enter all grades, then you can enroll in this course.'
                )

    cfg = current_app.config
    course_name = data.get('course_name') or (catalog.course_name if catalog else None) \
        or data.get('course_code') or 'Course'
    course_code = data.get('course_code') or (catalog.course_code if catalog else '')
    credit_hours = data.get('credit_hours')
    if credit_hours is None:
        credit_hours = catalog.credit_hours if catalog else cfg['DEFAULT_CREDIT_HOURS']

    try:
        course = StudentCourse(
            user_id=current_user.id,
            catalog_course_id=catalog.id if catalog else None,
            course_name=course_name,
            course_code=course_code,
            credit_hours=int(credit_hours),
            semester=data.get('semester') or Config.get_current_semester(),
            difficulty=int(data.get('difficulty', cfg['DEFAULT_DIFFICULTY'])),
            target_grade=_number(data, 'target_grade', cfg['DEFAULT_TARGET_GRADE']),
            professor_name=data.get('professor_name') or '',
            description=data.get('description') or (catalog.description if catalog else '') or '',
        )
    except (TypeError, ValueError) as e:
        return _error(str(e))

    db.session.add(course)
    db.session.commit()

    return jsonify(course.to_dict()), 201


@student_bp.route('/student/courses/<int:course_id>', methods=['PATCH'])
@login_required
def update_course(course_id):
    """
    Update course details. Mark and finalization fields are derived and read-only.
    """
    course = _owned_course(course_id)
    data = _json_body()

    derived = [key for key in DERIVED_COURSE_FIELDS if key in data]
    if derived:
        return _error(f"Read-only fields: {', '.join(derived)}")

    try:
        with unit_of_work():
            for key in EDITABLE_COURSE_FIELDS:
                if key not in data:
                    continue
                value = data[key]
                if key == 'credit_hours':
                    if course.is_finalized and int(value) != course.credit_hours:
                        raise ValueError('Credit hours cannot change after the course is finalized')
                    value = int(value)
                elif key == 'difficulty':
                    value = int(value)
                elif key == 'target_grade':
                    value = _number(data, key)
                setattr(course, key, value)
    except (TypeError, ValueError) as e:
        return _error(str(e))

    return jsonify(course.to_dict())


@student_bp.route('/student/courses/<int:course_id>', methods=['DELETE'])
@login_required
def delete_course(course_id):
    """
    Delete a course and its grade items. The academic record is not touched;
    ledger rows, notes and planner entries keep their content but lose the
    course link.
    """
    course = _owned_course(course_id)

    with unit_of_work():
        Note.query.filter_by(student_course_id=course.id, type='app').delete()
        Note.query.filter_by(student_course_id=course.id).update({'student_course_id': None})
        FinalizedCourse.query.filter_by(student_course_id=course.id).update({'student_course_id': None})
        PlannerEvent.query.filter_by(student_course_id=course.id).update({'student_course_id': None})
        PlannerTask.query.filter_by(student_course_id=course.id).update({'student_course_id': None})
        db.session.delete(course)

    return '', 204


# ============================================================================
# GRADE ITEMS
# ============================================================================

@student_bp.route('/courses/<int:course_id>/grades')
@login_required
def list_grades(course_id):
    course = _owned_course(course_id)
    return jsonify([item.to_dict() for item in course.grade_items])


@student_bp.route('/courses/<int:course_id>/grades', methods=['POST'])
@login_required
def create_grade(course_id):
    """
    Add a grade item, then recompute the course mark and check finalization
    """
    course = _owned_course(course_id)
    data = _json_body()

    try:
        with unit_of_work():
            item = GradeItem.build(
                course,
                item_type=data.get('item_type') or 'quiz',
                title=data.get('title') or 'Grade',
                score=_number(data, 'score', 0),
                max_score=_number(data, 'max_score', 100),
                weight=_number(data, 'weight', 0),
            )
            db.session.add(item)
            finalized_now = record_grade_change(course)
    except ValueError as e:
        return _error(str(e))

    return jsonify({
        'success': True,
        'item': item.to_dict(),
        'course': _course_state(course),
        'finalized_now': finalized_now,
    }), 201


@student_bp.route('/grades/<int:item_id>', methods=['PATCH'])
@login_required
def update_grade(item_id):
    """
    Edit a grade item (partial update), then recompute the course mark
    """
    item = _owned_grade_item(item_id)
    course = item.student_course
    data = _json_body()

    try:
        with unit_of_work():
            item.apply_changes(
                item_type=data.get('item_type'),
                title=data.get('title'),
                score=_number(data, 'score'),
                max_score=_number(data, 'max_score'),
                weight=_number(data, 'weight'),
            )
            finalized_now = record_grade_change(course)
    except ValueError as e:
        return _error(str(e))

    return jsonify({
        'success': True,
        'item': item.to_dict(),
        'course': _course_state(course),
        'finalized_now': finalized_now,
    })


@student_bp.route('/grades/<int:item_id>', methods=['DELETE'])
@login_required
def delete_grade(item_id):
    """
    Delete a grade item, then recompute the course mark
    """
    item = _owned_grade_item(item_id)
    course = item.student_course

    with unit_of_work():
        db.session.delete(item)
        finalized_now = record_grade_change(course)

    return jsonify({
        'success': True,
        'course': _course_state(course),
        'finalized_now': finalized_now,
    })


# ============================================================================
# FINALIZATION
# ============================================================================

@student_bp.route('/courses/<int:course_id>/finalize', methods=['POST'])
@login_required
def finalize_course(course_id):
    """
    Student marks the course as finished
    Outcomes: finalized now, already finalized, or rejected (no mark yet)
    """
    course = _owned_course(course_id)

    try:
        with unit_of_work():
            result = finalize_course_manually(course)
    except NoMarkError as e:
        return _error(str(e))

    return jsonify({
        'success': True,
        'finalized': True,
        'already': result.already,
        'passed': course.passed,
        'mark': course.current_grade,
    })


# ============================================================================
# DASHBOARD & RECORD
# ============================================================================

def _record_state(user_id):
    record = AcademicRecord.query.filter_by(user_id=user_id).first()
    return record.to_state() if record else RecordState()


def _outcome_row(course):
    mark = course.current_grade
    return {
        'id': course.id,
        'course_name': course.course_name,
        'course_code': course.course_code,
        'credit_hours': course.credit_hours,
        'percent': mark,
        'gpa_points': gpa_points(mark),
        'letter_grade': letter_grade(mark),
    }


@student_bp.route('/dashboard/summary')
@login_required
def dashboard_summary():
    """
    Dashboard numbers, recomputed on every request:
    stored record as-is, live semester over open courses, and a projection
    """
    courses = StudentCourse.query.filter_by(user_id=current_user.id).order_by(StudentCourse.id).all()

    open_courses = [c for c in courses if not c.is_finalized]
    passed_courses = [c for c in courses if c.is_finalized and c.passed]
    carried_courses = [c for c in courses if c.is_finalized and not c.passed]

    record = _record_state(current_user.id)
    semester = compute_semester_summary(open_courses)
    projected = project_cumulative(record, semester)

    at_risk_count = sum(
        1 for c in open_courses
        if c.current_grade is not None and risk_status(c.current_grade) in (RISK_AT_RISK, RISK_HIGH)
    )

    return jsonify({
        'courses_count': len(courses),
        'semester_gpa': semester.gpa,
        'semester_percent': semester.percent,
        'semester_graded_credits': semester.credits,
        'credits_current': sum(c.credit_hours or 0 for c in open_courses),
        'cgpa': record.cgpa,
        'cumulative_percent': record.cumulative_percent,
        'credits_completed': record.credits_completed,
        'credits_carried': record.credits_carried,
        'projected_cgpa': projected.cgpa,
        'projected_cumulative_percent': projected.cumulative_percent,
        'at_risk_count': at_risk_count,
        'completed_courses': [_outcome_row(c) for c in passed_courses],
        'carried_courses': [_outcome_row(c) for c in carried_courses],
        'courses': [c.to_dict() for c in courses],
    })


@student_bp.route('/student/record')
@login_required
def academic_record():
    """
    Stored record next to the ledger it was built from
    """
    record = _record_state(current_user.id)
    rebuilt = rebuild_record_from_ledger(current_user.id)
    ledger = FinalizedCourse.query.filter_by(user_id=current_user.id).order_by(FinalizedCourse.id).all()

    if rebuilt != record:
        logger.warning("Academic record for user %s does not match its ledger", current_user.id)

    return jsonify({
        'cgpa': record.cgpa,
        'cumulative_percent': record.cumulative_percent,
        'credits_completed': record.credits_completed,
        'credits_carried': record.credits_carried,
        'consistent_with_ledger': rebuilt == record,
        'ledger': [entry.to_dict() for entry in ledger],
    })
