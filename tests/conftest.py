"""
Shared pytest fixtures.

Service tests run inside an application context (`ctx`) and get real
User objects. HTTP tests use the Flask test client without holding a
context open, so each request resolves its own user from the bearer token.
"""

import sys
from datetime import datetime
from pathlib import Path
from types import SimpleNamespace

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from app import create_app
from models import db, User, Loop, DocumentTemplate
from services.storage import TEMPLATES_BUCKET, get_bucket


@pytest.fixture
def app(tmp_path):
    app = create_app('config.TestConfig')
    app.config['UPLOAD_ROOT'] = str(tmp_path / 'uploads')

    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def ctx(app):
    with app.app_context():
        yield


def _create_user(name, email, role='agent', password='password123', **kwargs):
    user = User(name=name, email=email, role=role, **kwargs)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    return user


# =============================================================================
# SERVICE-LEVEL FIXTURES (inside an app context)
# =============================================================================

@pytest.fixture
def admin(ctx):
    return _create_user('Admin User', 'admin@test.com', role='admin')


@pytest.fixture
def agent(ctx):
    return _create_user('Agent Smith', 'agent@test.com')


@pytest.fixture
def other_agent(ctx):
    return _create_user('Other Agent', 'other@test.com')


@pytest.fixture
def make_loop(ctx):
    """Factory creating committed loops; keyword arguments override defaults."""
    def _make_loop(creator=None, **overrides):
        values = {
            'type': 'Purchase',
            'property_address': '123 Main St',
            'status': 'pre-offer',
        }
        values.update(overrides)
        loop = Loop(creator_id=creator.id if creator else None, **values)
        db.session.add(loop)
        db.session.commit()
        return loop
    return _make_loop


@pytest.fixture
def make_template(ctx):
    """Factory storing a template file and creating its record."""
    def _make_template(content=b'Buyer: {{buyer}}', name='Purchase Agreement',
                       file_type='doc', mappings=None, category='contract', store_file=True):
        handle = f"{name.replace(' ', '_').lower()}_{datetime.utcnow().timestamp()}.{file_type}"
        if store_file:
            get_bucket(TEMPLATES_BUCKET).put_as(handle, content)
        template = DocumentTemplate(
            name=name,
            category=category,
            file_path=handle,
            file_name=f"{name}.{file_type}",
            file_type=file_type,
            file_size=len(content),
            fields_mapped=bool(mappings),
            field_mappings=mappings or [],
        )
        db.session.add(template)
        db.session.commit()
        return template
    return _make_template


# =============================================================================
# HTTP FIXTURES (no app context held open)
# =============================================================================

def _api_user_for(app, name, email, role='agent'):
    with app.app_context():
        user = _create_user(name, email, role=role)
        return SimpleNamespace(
            id=user.id,
            headers={'Authorization': f'Bearer {user.get_auth_token()}'}
        )


@pytest.fixture
def api_admin(app):
    return _api_user_for(app, 'Admin User', 'admin@test.com', role='admin')


@pytest.fixture
def api_agent(app):
    return _api_user_for(app, 'Agent Smith', 'agent@test.com')


@pytest.fixture
def api_other_agent(app):
    return _api_user_for(app, 'Other Agent', 'other@test.com')
