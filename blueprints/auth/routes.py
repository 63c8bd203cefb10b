"""
blueprints/auth/routes.py - Authentication Blueprint
Handles registration, login, logout, and password management.
"""

from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required, login_user, logout_user

from extensions import bcrypt, db
from models import User

# Create blueprint
auth_bp = Blueprint('auth', __name__)

MIN_PASSWORD_LENGTH = 6


@auth_bp.route('/register', methods=['POST'])
def register():
    """
    Create a student account and log it in
    """
    data = request.get_json(silent=True) or {}
    email = (data.get('email') or '').strip().lower()
    password = data.get('password') or ''
    full_name = (data.get('full_name') or '').strip()

    # Validate input
    if not email or not password or not full_name:
        return jsonify({'success': False, 'error': 'email, password and full_name are required'}), 400

    if len(password) < MIN_PASSWORD_LENGTH:
        return jsonify({
            'success': False,
            'error': f'Password must be at least {MIN_PASSWORD_LENGTH} characters long'
        }), 400

    if User.query.filter_by(email=email).first():
        return jsonify({'success': False, 'error': 'Email already registered'}), 400

    user = User(
        email=email,
        password=bcrypt.generate_password_hash(password).decode('utf-8'),
        full_name=full_name,
        role='student'
    )
    db.session.add(user)
    db.session.commit()

    login_user(user, remember=True)
    return jsonify({'success': True, 'user': user.to_dict()}), 201


@auth_bp.route('/login', methods=['POST'])
def login():
    """
    Log in with email and password
    """
    data = request.get_json(silent=True) or {}
    email = (data.get('email') or '').strip().lower()
    password = data.get('password') or ''

    if not email or not password:
        return jsonify({'success': False, 'error': 'Please enter both email and password'}), 400

    user = User.query.filter_by(email=email).first()

    if user is None or not bcrypt.check_password_hash(user.password, password):
        return jsonify({'success': False, 'error': 'Invalid email or password'}), 401

    login_user(user, remember=True)
    return jsonify({'success': True, 'user': user.to_dict()})


@auth_bp.route('/logout', methods=['POST'])
@login_required
def logout():
    logout_user()
    return jsonify({'success': True})


@auth_bp.route('/me')
@login_required
def me():
    return jsonify({'success': True, 'user': current_user.to_dict()})


@auth_bp.route('/change-password', methods=['POST'])
@login_required
def change_password():
    """
    Change the logged-in user's password
    """
    data = request.get_json(silent=True) or {}
    current_password = (data.get('current_password') or '').strip()
    new_password = (data.get('new_password') or '').strip()
    confirm_password = (data.get('confirm_password') or '').strip()

    # Validation
    if not all([current_password, new_password, confirm_password]):
        return jsonify({'success': False, 'error': 'All fields are required'}), 400

    if new_password != confirm_password:
        return jsonify({'success': False, 'error': 'New passwords do not match'}), 400

    if len(new_password) < MIN_PASSWORD_LENGTH:
        return jsonify({
            'success': False,
            'error': f'Password must be at least {MIN_PASSWORD_LENGTH} characters long'
        }), 400

    if not bcrypt.check_password_hash(current_user.password, current_password):
        return jsonify({'success': False, 'error': 'Current password is incorrect'}), 400

    current_user.password = bcrypt.generate_password_hash(new_password).decode('utf-8')
    db.session.commit()

    return jsonify({'success': True, 'message': 'Password updated successfully'})
