# routes/settings.py
"""
Settings routes: notification preferences.
"""

from flask import Blueprint, jsonify
from flask_login import login_required

from services import admin_service
from .decorators import admin_required
from .helpers import get_actor, get_payload

settings_bp = Blueprint('settings', __name__, url_prefix='/api/settings')


def _settings(user):
    return {
        'notify_on_new_loops': user.notify_on_new_loops,
        'notify_on_updated_loops': user.notify_on_updated_loops,
    }


@settings_bp.route('', methods=['GET'])
@login_required
def get_settings():
    return jsonify({'success': True, 'settings': _settings(get_actor())})


@settings_bp.route('/notifications', methods=['PUT'])
@login_required
@admin_required
def update_notifications():
    user = admin_service.update_notification_preferences(get_payload(), get_actor())
    return jsonify({
        'success': True,
        'message': 'Notification settings updated',
        'settings': _settings(user)
    })
