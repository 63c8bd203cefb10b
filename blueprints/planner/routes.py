"""
blueprints/planner/routes.py - Planner Blueprint
Calendar events and dated tasks, optionally linked to one of the student's courses.
"""

import logging
from datetime import date

from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from extensions import db
from finalization import unit_of_work
from models import PlannerEvent, PlannerTask, StudentCourse

logger = logging.getLogger(__name__)

planner_bp = Blueprint('planner', __name__)


def _json_body():
    return request.get_json(silent=True) or {}


def _error(message, status=400):
    return jsonify({'success': False, 'error': message}), status


def _course_link(data, current=None):
    """
    Resolve student_course_id from the body to one of the user's courses

    Returns:
        int or None: the course id to store

    Raises:
        ValueError: If the id is not a course owned by the user
    """
    if 'student_course_id' not in data:
        return current

    value = data.get('student_course_id')
    if value is None or value == '':
        return None
    try:
        course_id = int(value)
    except (TypeError, ValueError):
        raise ValueError('Invalid course')

    owned = StudentCourse.query.filter_by(id=course_id, user_id=current_user.id).first()
    if owned is None:
        raise ValueError('Invalid course')
    return course_id


def _query_date(name='date'):
    value = request.args.get(name)
    if not value:
        return None
    return date.fromisoformat(value)


# ============================================================================
# EVENTS
# ============================================================================

@planner_bp.route('/events')
@login_required
def list_events():
    events = PlannerEvent.query.filter_by(user_id=current_user.id).order_by(
        PlannerEvent.start_date, PlannerEvent.start_time, PlannerEvent.id
    ).all()
    return jsonify([e.to_dict() for e in events])


@planner_bp.route('/events', methods=['POST'])
@login_required
def create_event():
    data = _json_body()

    try:
        with unit_of_work():
            event = PlannerEvent(user_id=current_user.id)
            event.student_course_id = _course_link(data)
            event.apply_changes(data)
            db.session.add(event)
    except ValueError as e:
        return _error(str(e))

    return jsonify(event.to_dict()), 201


@planner_bp.route('/events/<int:event_id>')
@login_required
def get_event(event_id):
    event = PlannerEvent.query.filter_by(id=event_id, user_id=current_user.id).first_or_404()
    return jsonify(event.to_dict())


@planner_bp.route('/events/<int:event_id>', methods=['PATCH'])
@login_required
def update_event(event_id):
    event = PlannerEvent.query.filter_by(id=event_id, user_id=current_user.id).first_or_404()
    data = _json_body()

    try:
        with unit_of_work():
            event.student_course_id = _course_link(data, event.student_course_id)
            event.apply_changes(data)
    except ValueError as e:
        return _error(str(e))

    return jsonify(event.to_dict())


@planner_bp.route('/events/<int:event_id>', methods=['DELETE'])
@login_required
def delete_event(event_id):
    event = PlannerEvent.query.filter_by(id=event_id, user_id=current_user.id).first_or_404()
    db.session.delete(event)
    db.session.commit()
    return '', 204


# ============================================================================
# TASKS
# ============================================================================

@planner_bp.route('/tasks')
@login_required
def list_tasks():
    """
    List tasks, optionally only those due on ?date=YYYY-MM-DD
    """
    try:
        due = _query_date()
    except ValueError:
        return _error('date must be a date (YYYY-MM-DD)')

    query = PlannerTask.query.filter_by(user_id=current_user.id)
    if due is not None:
        query = query.filter_by(due_date=due)

    tasks = query.order_by(PlannerTask.sort_order, PlannerTask.priority.desc(), PlannerTask.id).all()
    return jsonify([t.to_dict() for t in tasks])


@planner_bp.route('/tasks', methods=['POST'])
@login_required
def create_task():
    data = _json_body()

    try:
        with unit_of_work():
            task = PlannerTask(user_id=current_user.id)
            task.student_course_id = _course_link(data)
            task.apply_changes(data)

            last = db.session.query(db.func.max(PlannerTask.sort_order)).filter(
                PlannerTask.user_id == current_user.id
            ).scalar()
            task.sort_order = (last or 0) + 1
            db.session.add(task)
    except ValueError as e:
        return _error(str(e))

    return jsonify(task.to_dict()), 201


@planner_bp.route('/tasks/<int:task_id>', methods=['PATCH'])
@login_required
def update_task(task_id):
    task = PlannerTask.query.filter_by(id=task_id, user_id=current_user.id).first_or_404()
    data = _json_body()

    try:
        with unit_of_work():
            task.student_course_id = _course_link(data, task.student_course_id)
            task.apply_changes(data)
    except ValueError as e:
        return _error(str(e))

    return jsonify(task.to_dict())


@planner_bp.route('/tasks/<int:task_id>', methods=['DELETE'])
@login_required
def delete_task(task_id):
    task = PlannerTask.query.filter_by(id=task_id, user_id=current_user.id).first_or_404()
    db.session.delete(task)
    db.session.commit()
    return '', 204


# ============================================================================
# DAILY VIEW
# ============================================================================

@planner_bp.route('/daily')
@login_required
def daily():
    """
    Events running on the day plus tasks due that day (default: today)
    """
    try:
        day = _query_date() or date.today()
    except ValueError:
        return _error('date must be a date (YYYY-MM-DD)')

    events = PlannerEvent.query.filter(
        PlannerEvent.user_id == current_user.id,
        PlannerEvent.start_date <= day,
        PlannerEvent.end_date >= day,
    ).order_by(PlannerEvent.start_time, PlannerEvent.id).all()

    tasks = PlannerTask.query.filter_by(user_id=current_user.id, due_date=day).order_by(
        PlannerTask.sort_order, PlannerTask.priority.desc()
    ).all()

    logger.debug("Daily plan for user %s on %s: %d events, %d tasks",
                 current_user.id, day, len(events), len(tasks))

    return jsonify({
        'date': day.isoformat(),
        'events': [e.to_dict() for e in events],
        'tasks': [t.to_dict() for t in tasks],
    })
