import logging
from datetime import datetime

from flask import Blueprint, jsonify
from flask_login import login_required

from forms import LoginForm
from models import User, db
from services import audit_service
from services.exceptions import ValidationError
from .helpers import get_actor, get_payload

logger = logging.getLogger(__name__)

auth_bp = Blueprint('auth', __name__, url_prefix='/api/auth')


@auth_bp.route('/login', methods=['POST'])
def login():
    form = LoginForm(get_payload())
    if not form.validate():
        raise ValidationError('Validation failed', form.error_map())

    user = User.query.filter(db.func.lower(User.email) == form.email.data.strip().lower()).first()
    if not user or not user.check_password(form.password.data):
        logger.info(f"Failed login for {form.email.data}")
        return jsonify({'success': False, 'error': 'Invalid email or password'}), 401

    if user.suspended:
        return jsonify({'success': False, 'error': 'Account suspended'}), 403

    user.last_active = datetime.utcnow()
    db.session.commit()
    audit_service.log_login(user)

    return jsonify({
        'success': True,
        'token': user.get_auth_token(),
        'user': user.to_dict()
    })


@auth_bp.route('/logout', methods=['POST'])
@login_required
def logout():
    # Tokens are stateless; the client discards its copy
    audit_service.log_logout(get_actor())
    return jsonify({'success': True})


@auth_bp.route('/profile')
@login_required
def profile():
    return jsonify({'success': True, 'user': get_actor().to_dict()})


@auth_bp.route('/password', methods=['PUT'])
@login_required
def change_password():
    data = get_payload()
    user = get_actor()
    current_password = data.get('current_password') or ''
    new_password = data.get('new_password') or ''

    errors = {}
    if not user.check_password(current_password):
        errors['current_password'] = ['Current password is incorrect']
    if len(new_password) < 8:
        errors['new_password'] = ['Password must be at least 8 characters']
    if errors:
        raise ValidationError('Validation failed', errors)

    user.set_password(new_password)
    db.session.commit()
    audit_service.log_password_changed(user)
    return jsonify({'success': True, 'message': 'Password updated'})
