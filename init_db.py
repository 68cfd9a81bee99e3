"""
Create the database tables and, optionally, a first admin account.

Usage:
    python init_db.py
    ADMIN_EMAIL=admin@example.com ADMIN_PASSWORD=secret python init_db.py
"""

import os

from app import create_app
from models import db, User


def create_admin(email, password, name='Administrator'):
    """Create an admin user unless one with this email already exists."""
    existing = User.query.filter_by(email=email.lower()).first()
    if existing:
        print(f"User {email} already exists")
        return existing

    user = User(name=name, email=email.lower(), role='admin')
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    print(f"Created admin user {email}")
    return user


def init_db():
    app = create_app()
    with app.app_context():
        db.create_all()
        print(f"Tables created in {app.config['SQLALCHEMY_DATABASE_URI']}")

        email = os.getenv('ADMIN_EMAIL')
        password = os.getenv('ADMIN_PASSWORD')
        if email and password:
            create_admin(email, password, os.getenv('ADMIN_NAME', 'Administrator'))


if __name__ == '__main__':
    init_db()
