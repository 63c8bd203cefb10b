"""
create_admin.py - Quick script to create an admin account
Run this from your project root directory: python create_admin.py

Credentials can be overridden with ADMIN_EMAIL / ADMIN_PASSWORD / ADMIN_NAME.
"""

import os

from app import create_app
from extensions import db, bcrypt
from models import User


def create_admin(email, password, full_name='Administrator'):
    """
    Create the admin user if it does not exist yet

    Returns:
        tuple: (User, created)
    """
    existing = User.query.filter_by(email=email).first()
    if existing:
        return existing, False

    admin = User(
        email=email,
        password=bcrypt.generate_password_hash(password).decode('utf-8'),
        full_name=full_name,
        role='admin'
    )
    db.session.add(admin)
    db.session.commit()
    return admin, True


if __name__ == '__main__':
    app = create_app(os.environ.get('FLASK_CONFIG', 'development'))

    email = os.environ.get('ADMIN_EMAIL', 'admin@unipilot.edu')
    password = os.environ.get('ADMIN_PASSWORD', 'admin123')
    full_name = os.environ.get('ADMIN_NAME', 'Administrator')

    with app.app_context():
        db.create_all()

        admin, created = create_admin(email, password, full_name)

        if not created:
            print("❌ Admin account already exists!")
            print(f"   Email: {admin.email}")
            print(f"   Role: {admin.role}")
        else:
            print("✅ Admin account created successfully!")
            print("-" * 50)
            print("Login credentials:")
            print(f"  Email: {email}")
            print(f"  Password: {password}")
            print("-" * 50)
            print("⚠️ IMPORTANT: Change this password after first login!")

        # Show all users
        all_users = User.query.all()
        print(f"\n📊 Total users in database: {len(all_users)}")

        if all_users:
            print("\nAll users:")
            for user in all_users:
                print(f"  • {user.email} ({user.role})")
