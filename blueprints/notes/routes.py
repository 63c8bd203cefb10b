"""
blueprints/notes/routes.py - Notes Blueprint
Student notes plus the app-generated status notes derived from course marks.
"""

from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from extensions import db
from finalization import unit_of_work
from models import Note, StudentCourse
from notifier import sync_app_notes

notes_bp = Blueprint('notes', __name__)


@notes_bp.route('/')
@login_required
def list_notes():
    """
    Refresh app notes from current marks, then list notes
    Supports ?type=student|app
    """
    with unit_of_work():
        sync_app_notes(current_user.id)

    query = Note.query.filter_by(user_id=current_user.id)
    note_type = request.args.get('type')
    if note_type in ('student', 'app'):
        query = query.filter_by(type=note_type)

    notes = query.order_by(Note.created_at.desc(), Note.id.desc()).all()
    return jsonify([n.to_dict() for n in notes])


@notes_bp.route('/', methods=['POST'])
@login_required
def create_note():
    data = request.get_json(silent=True) or {}
    content = (data.get('content') or '').strip()
    if not content:
        return jsonify({'success': False, 'error': 'Content is required'}), 400

    course_id = data.get('student_course_id')
    if course_id is not None:
        StudentCourse.query.filter_by(id=course_id, user_id=current_user.id).first_or_404()

    note = Note(user_id=current_user.id, student_course_id=course_id, content=content, type='student')
    db.session.add(note)
    db.session.commit()

    return jsonify(note.to_dict()), 201


@notes_bp.route('/<int:note_id>', methods=['PATCH'])
@login_required
def update_note(note_id):
    note = Note.query.filter_by(id=note_id, user_id=current_user.id).first_or_404()
    if note.type != 'student':
        return jsonify({'success': False, 'error': 'Only student notes can be edited'}), 403

    data = request.get_json(silent=True) or {}
    content = (data.get('content') or '').strip()
    if not content:
        return jsonify({'success': False, 'error': 'Content is required'}), 400

    note.content = content
    db.session.commit()
    return jsonify(note.to_dict())


@notes_bp.route('/<int:note_id>', methods=['DELETE'])
@login_required
def delete_note(note_id):
    note = Note.query.filter_by(id=note_id, user_id=current_user.id).first_or_404()
    db.session.delete(note)
    db.session.commit()
    return '', 204
