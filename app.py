"""
app.py - Application Factory
Entry point for the UniPilot Flask API.
Uses the Application Factory pattern for modularity and testing.
"""

import logging
import sys

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from config import config
from extensions import db, migrate, login_manager, bcrypt


def create_app(config_name='development'):
    """
    Application Factory Function

    Args:
        config_name (str): Configuration to use ('development', 'production', 'testing')

    Returns:
        Flask: Configured Flask application instance
    """
    app = Flask(__name__)

    # Load configuration from config.py based on environment
    config_class = config[config_name]
    app.config.from_object(config_class)
    config_class.init_app(app)

    configure_logging(app)

    # Initialize extensions with the app
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    bcrypt.init_app(app)

    # User loader callback for Flask-Login
    @login_manager.user_loader
    def load_user(user_id):
        """Load user by ID for Flask-Login session management"""
        from models import User
        return db.session.get(User, int(user_id))

    # JSON API: answer 401 instead of redirecting to a login page
    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({'success': False, 'error': 'Authentication required'}), 401

    register_blueprints(app)
    register_error_handlers(app)

    # Import models so Flask-Migrate can detect them
    with app.app_context():
        import models  # noqa: F401

    return app


def configure_logging(app):
    """
    Root logging at LOG_LEVEL; every module logger (logging.getLogger(__name__))
    and app.logger propagate to it
    """
    level = getattr(logging, app.config.get('LOG_LEVEL', 'INFO'), logging.INFO)

    logging.basicConfig(level=level, format=app.config['LOG_FORMAT'], stream=sys.stdout)
    logging.getLogger().setLevel(level)
    app.logger.setLevel(level)


def register_blueprints(app):
    """
    Register all application blueprints (modular route handlers)
    """
    from blueprints.auth.routes import auth_bp
    from blueprints.student.routes import student_bp
    from blueprints.notes.routes import notes_bp
    from blueprints.admin.routes import admin_bp
    from blueprints.planner.routes import planner_bp

    app.register_blueprint(auth_bp, url_prefix='/api/auth')
    app.register_blueprint(student_bp, url_prefix='/api')
    app.register_blueprint(notes_bp, url_prefix='/api/notes')
    app.register_blueprint(admin_bp, url_prefix='/api/admin')
    app.register_blueprint(planner_bp, url_prefix='/api/planner')

    @app.route('/api/health')
    def health():
        return jsonify({'status': 'ok'})


def register_error_handlers(app):
    """
    Register JSON error handlers for common HTTP errors
    """
    @app.errorhandler(404)
    def not_found(error):
        return jsonify({'success': False, 'error': 'Not found'}), 404

    @app.errorhandler(403)
    def forbidden(error):
        return jsonify({'success': False, 'error': 'Access denied'}), 403

    @app.errorhandler(400)
    def bad_request(error):
        return jsonify({'success': False, 'error': error.description or 'Bad request'}), 400

    @app.errorhandler(500)
    def internal_error(error):
        db.session.rollback()  # Rollback any failed database transactions
        return jsonify({'success': False, 'error': 'Internal server error'}), 500

    @app.errorhandler(Exception)
    def unhandled_exception(error):
        if isinstance(error, HTTPException):
            return jsonify({'success': False, 'error': error.description}), error.code
        db.session.rollback()
        app.logger.exception("Unhandled error: %s", error)
        return jsonify({'success': False, 'error': 'Internal server error'}), 500


# Run the application
if __name__ == '__main__':
    app = create_app('development')

    with app.app_context():
        db.create_all()

    app.run(
        host='0.0.0.0',
        port=5000,
        debug=True
    )
