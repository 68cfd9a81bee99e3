"""
Admin Service - user management for administrators.

Covers suspension, promotion, notification preferences and bulk user
import from CSV.
"""

import csv
import logging
import secrets
from io import StringIO

from email_validator import validate_email, EmailNotValidError

from models import db, User
from services import audit_service
from services.exceptions import NotFound, PermissionDenied, ValidationError
from utils import parse_bool

logger = logging.getLogger(__name__)

REQUIRED_IMPORT_COLUMNS = ('username', 'email')
NOTIFICATION_FIELDS = ('notify_on_new_loops', 'notify_on_updated_loops')


def _require_admin(actor):
    if not getattr(actor, 'is_admin', False):
        raise PermissionDenied('Admin access required')


def get_user(user_id) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFound('User not found')
    return user


def list_users():
    return User.query.order_by(User.created_at.desc(), User.id.desc()).all()


def suspend_user(user_id, actor) -> User:
    _require_admin(actor)
    user = get_user(user_id)
    if user.id == actor.id:
        raise ValidationError('You cannot suspend your own account',
                              {'user_id': ['Cannot suspend yourself']})
    user.suspended = True
    db.session.commit()
    audit_service.log_user_suspended(user, actor_id=actor.id)
    return user


def unsuspend_user(user_id, actor) -> User:
    _require_admin(actor)
    user = get_user(user_id)
    user.suspended = False
    db.session.commit()
    audit_service.log_user_unsuspended(user, actor_id=actor.id)
    return user


def promote_user(user_id, actor) -> User:
    _require_admin(actor)
    user = get_user(user_id)
    if user.is_admin:
        raise ValidationError('User is already an admin', {'user_id': ['Already an admin']})
    user.role = 'admin'
    db.session.commit()
    audit_service.log_user_promoted(user, actor_id=actor.id)
    return user


def update_notification_preferences(data, actor) -> User:
    """
    Update the actor's own notification opt-ins (admins only).

    Only keys present in data are changed.
    """
    _require_admin(actor)
    changes = {}
    for field in NOTIFICATION_FIELDS:
        if field in data:
            value = parse_bool(data.get(field))
            if getattr(actor, field) != value:
                changes[field] = value
            setattr(actor, field, value)

    if not any(field in data for field in NOTIFICATION_FIELDS):
        raise ValidationError('No notification settings provided', {
            field: ['Provide true or false'] for field in NOTIFICATION_FIELDS
        })

    db.session.commit()
    audit_service.log_settings_updated(actor, changes, actor_id=actor.id)
    return actor


def import_users(csv_text, actor):
    """
    Create users from CSV text with `username` and `email` columns.

    Each row is handled on its own: a bad row is reported and skipped,
    earlier and later rows still import. New users get a random password.

    Returns:
        {successful, failed, total, errors: [{line, message}], successfulUsers}
    """
    _require_admin(actor)

    reader = csv.DictReader(StringIO(csv_text.lstrip('\ufeff')))
    fieldnames = [name.strip().lower() for name in (reader.fieldnames or [])]
    missing = [col for col in REQUIRED_IMPORT_COLUMNS if col not in fieldnames]
    if missing:
        raise ValidationError(
            f"Missing required columns: {', '.join(missing)}",
            {'file': [f"CSV must include columns: {', '.join(REQUIRED_IMPORT_COLUMNS)}"]}
        )
    reader.fieldnames = fieldnames

    results = {
        'successful': 0,
        'failed': 0,
        'total': 0,
        'errors': [],
        'successfulUsers': [],
    }
    seen_emails = set()

    # Header is line 1
    for line, row in enumerate(reader, start=2):
        results['total'] += 1
        name = (row.get('username') or '').strip()
        email = (row.get('email') or '').strip().lower()
        role = (row.get('role') or 'agent').strip().lower()

        error = None
        if not name or not email:
            error = 'Username and email are required'
        else:
            try:
                email = validate_email(email, check_deliverability=False).normalized.lower()
            except EmailNotValidError as e:
                error = f"Invalid email: {e}"
        if not error and role not in ('agent', 'admin'):
            error = f"Invalid role '{role}'"
        if not error and (email in seen_emails or User.query.filter_by(email=email).first()):
            error = f"User with email {email} already exists"

        if error:
            results['failed'] += 1
            results['errors'].append({'line': line, 'message': error})
            continue

        try:
            user = User(name=name, email=email, role=role)
            user.set_password(secrets.token_urlsafe(12))
            db.session.add(user)
            db.session.commit()
        except Exception as e:
            db.session.rollback()
            logger.exception(f"Failed to import user on line {line}: {e}")
            results['failed'] += 1
            results['errors'].append({'line': line, 'message': 'Could not create user'})
            continue

        seen_emails.add(email)
        results['successful'] += 1
        results['successfulUsers'].append({'id': user.id, 'name': user.name, 'email': user.email})

    logger.info(f"User import: {results['successful']} created, {results['failed']} failed")
    audit_service.log_users_imported(results['successful'], results['failed'], actor_id=actor.id)
    return results
