"""
blueprints/admin/routes.py - Admin Blueprint
User management, the course catalog and its grade schemes, system settings
"""

from functools import wraps

from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from config import Config
from extensions import db
from models import CatalogCourse, CatalogResource, StudentCourse, SystemSettings, User

admin_bp = Blueprint('admin', __name__)

ROLES = ('admin', 'student')


def admin_required(f):
    """Ensure only admins can access the route"""
    @wraps(f)
    @login_required
    def decorated_function(*args, **kwargs):
        if not current_user.is_admin():
            return jsonify({'success': False, 'error': 'Admin only'}), 403
        return f(*args, **kwargs)
    return decorated_function


def _error(message, status=400):
    return jsonify({'success': False, 'error': message}), status


@admin_bp.route('/stats')
@admin_required
def stats():
    return jsonify({
        'total_users': User.query.count(),
        'total_students': User.query.filter_by(role='student').count(),
        'total_catalog_courses': CatalogCourse.query.count(),
        'total_enrollments': StudentCourse.query.count(),
        'finalized_enrollments': StudentCourse.query.filter(StudentCourse.finalized_at.isnot(None)).count(),
    })


# ============================================================================
# USERS
# ============================================================================

@admin_bp.route('/users')
@admin_required
def list_users():
    users = User.query.order_by(User.id).all()
    return jsonify([u.to_dict() for u in users])


@admin_bp.route('/users/<int:user_id>/role', methods=['PATCH'])
@admin_required
def change_role(user_id):
    data = request.get_json(silent=True) or {}
    role = data.get('role') or request.args.get('role')
    if role not in ROLES:
        return _error('role must be admin or student')

    user = User.query.filter_by(id=user_id).first_or_404()
    user.role = role
    db.session.commit()
    return jsonify(user.to_dict())


@admin_bp.route('/users/<int:user_id>', methods=['DELETE'])
@admin_required
def delete_user(user_id):
    """Delete a user; courses, notes, record and ledger go with it"""
    user = User.query.filter_by(id=user_id).first_or_404()
    if user.id == current_user.id:
        return _error('You cannot delete your own account')

    db.session.delete(user)
    db.session.commit()
    return '', 204


# ============================================================================
# CATALOG
# ============================================================================

CATALOG_FIELDS = ('course_code', 'course_name', 'department', 'description', 'credit_hours', 'order', 'prerequisite_id')


def _apply_catalog_fields(course, data):
    for key in CATALOG_FIELDS:
        if key not in data:
            continue
        value = data[key]
        if key in ('credit_hours', 'order'):
            value = int(value)
        elif key == 'prerequisite_id':
            value = int(value) if value else None
            if value is not None:
                if value == course.id:
                    raise ValueError('A course cannot be its own prerequisite')
                if db.session.get(CatalogCourse, value) is None:
                    raise ValueError('Prerequisite course not found')
        setattr(course, key, value)


@admin_bp.route('/catalog/courses', methods=['POST'])
@admin_required
def create_catalog_course():
    data = request.get_json(silent=True) or {}
    if not data.get('course_code') or not data.get('course_name') or not data.get('department'):
        return _error('course_code, course_name, department required')

    course = CatalogCourse(credit_hours=3, order=999)
    try:
        _apply_catalog_fields(course, data)
    except (TypeError, ValueError) as e:
        return _error(str(e))

    db.session.add(course)
    db.session.commit()
    return jsonify(course.to_dict()), 201


@admin_bp.route('/catalog/courses/<int:catalog_id>', methods=['PATCH'])
@admin_required
def update_catalog_course(catalog_id):
    course = CatalogCourse.query.filter_by(id=catalog_id).first_or_404()
    data = request.get_json(silent=True) or {}

    try:
        _apply_catalog_fields(course, data)
    except (TypeError, ValueError) as e:
        db.session.rollback()
        return _error(str(e))

    db.session.commit()
    return jsonify(course.to_dict())


@admin_bp.route('/catalog/courses/<int:catalog_id>', methods=['DELETE'])
@admin_required
def delete_catalog_course(catalog_id):
    """Delete a catalog course; enrollments keep their own copy of name/code/credits"""
    course = CatalogCourse.query.filter_by(id=catalog_id).first_or_404()

    CatalogCourse.query.filter_by(prerequisite_id=course.id).update({'prerequisite_id': None})
    StudentCourse.query.filter_by(catalog_course_id=course.id).update({'catalog_course_id': None})
    db.session.delete(course)
    db.session.commit()
    return '', 204


@admin_bp.route('/catalog/courses/<int:catalog_id>/grade-scheme')
@admin_required
def get_grade_scheme(catalog_id):
    course = CatalogCourse.query.filter_by(id=catalog_id).first_or_404()
    return jsonify([item.to_dict() for item in course.grade_scheme])


@admin_bp.route('/catalog/courses/<int:catalog_id>/grade-scheme', methods=['PUT'])
@admin_required
def replace_grade_scheme(catalog_id):
    """
    Replace the grade distribution of a catalog course
    Weights must total 100%
    """
    course = CatalogCourse.query.filter_by(id=catalog_id).first_or_404()
    data = request.get_json(silent=True) or {}

    try:
        course.set_grade_scheme(data.get('items'))
        db.session.commit()
    except (TypeError, ValueError) as e:
        db.session.rollback()
        return _error(str(e))

    return jsonify([item.to_dict() for item in course.grade_scheme])


def _apply_resource_fields(resource, data):
    if 'title' in data or resource.id is None:
        resource.title = str(data.get('title') or '').strip() or 'File'
    if 'url' in data:
        resource.url = str(data.get('url') or '').strip() or None


@admin_bp.route('/catalog/courses/<int:catalog_id>/resources')
@admin_required
def list_resources(catalog_id):
    course = CatalogCourse.query.filter_by(id=catalog_id).first_or_404()
    return jsonify([r.to_dict() for r in course.resources])


@admin_bp.route('/catalog/courses/<int:catalog_id>/resources', methods=['POST'])
@admin_required
def create_resource(catalog_id):
    course = CatalogCourse.query.filter_by(id=catalog_id).first_or_404()
    data = request.get_json(silent=True) or {}

    resource = CatalogResource(catalog_course_id=course.id)
    _apply_resource_fields(resource, data)
    db.session.add(resource)
    db.session.commit()
    return jsonify(resource.to_dict()), 201


@admin_bp.route('/catalog/courses/<int:catalog_id>/resources/<int:resource_id>', methods=['PATCH'])
@admin_required
def update_resource(catalog_id, resource_id):
    resource = CatalogResource.query.filter_by(id=resource_id, catalog_course_id=catalog_id).first_or_404()
    _apply_resource_fields(resource, request.get_json(silent=True) or {})
    db.session.commit()
    return jsonify(resource.to_dict())


@admin_bp.route('/catalog/courses/<int:catalog_id>/resources/<int:resource_id>', methods=['DELETE'])
@admin_required
def delete_resource(catalog_id, resource_id):
    resource = CatalogResource.query.filter_by(id=resource_id, catalog_course_id=catalog_id).first_or_404()
    db.session.delete(resource)
    db.session.commit()
    return '', 204


# ============================================================================
# SETTINGS
# ============================================================================

@admin_bp.route('/settings/semester')
@admin_required
def get_semester():
    stored = SystemSettings.get_setting('current_semester')
    return jsonify({
        'current_semester': Config.get_current_semester(),
        'is_override': stored is not None,
    })


@admin_bp.route('/settings/semester', methods=['PUT'])
@admin_required
def set_semester():
    data = request.get_json(silent=True) or {}
    value = (data.get('current_semester') or '').strip()
    if not value:
        return _error('current_semester is required')

    SystemSettings.set_setting('current_semester', value, updated_by=current_user.email)
    db.session.commit()
    return jsonify({'current_semester': value, 'is_override': True})


@admin_bp.route('/settings/semester', methods=['DELETE'])
@admin_required
def reset_semester():
    SystemSettings.delete_setting('current_semester')
    db.session.commit()
    return jsonify({'current_semester': Config.get_current_semester(), 'is_override': False})
