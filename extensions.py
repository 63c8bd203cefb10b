"""
extensions.py - Flask Extensions
Initialize Flask extensions here to avoid circular imports.
Extensions are created here but initialized in app.py with init_app().
"""

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_login import LoginManager
from flask_bcrypt import Bcrypt

# Database ORM
# Courses, grade items and the academic record all live in this one store
db = SQLAlchemy()

# Database Migration Tool
# Usage: flask db init, flask db migrate, flask db upgrade
migrate = Migrate()

# User Session Management
# Every course/grade/note row is owned by current_user
login_manager = LoginManager()

# Password Hashing
bcrypt = Bcrypt()
