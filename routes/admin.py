# routes/admin.py
"""
Admin routes: users, activity logs and bulk user import.
"""

from datetime import datetime

from flask import Blueprint, request, jsonify, Response
from flask_login import login_required

from services import admin_service, audit_service
from services.exceptions import ValidationError
from services.loops.export import generate_activity_csv, generate_users_csv
from utils import local_today, parse_int
from .decorators import admin_required
from .helpers import get_actor

admin_bp = Blueprint('admin', __name__, url_prefix='/api/admin')

DEFAULT_LOG_LIMIT = 100
MAX_LOG_LIMIT = 1000


def _parse_date(value, field):
    if not value:
        return None
    try:
        return datetime.strptime(value, '%Y-%m-%d').date()
    except ValueError:
        raise ValidationError('Invalid date filter', {field: ['Use YYYY-MM-DD']})


def _activity_filters():
    args = request.args
    return {
        'user_id': parse_int(args.get('user_id')),
        'action_type': args.get('action_type') or None,
        'start_date': _parse_date(args.get('start_date'), 'start_date'),
        'end_date': _parse_date(args.get('end_date'), 'end_date'),
        'search': (args.get('search') or '').strip() or None,
    }


def _csv_response(content, filename):
    return Response(
        content,
        mimetype='text/csv',
        headers={
            "Content-Disposition": f"attachment; filename={filename}",
            "Content-Type": "text/csv",
        }
    )


# =============================================================================
# USERS
# =============================================================================

@admin_bp.route('/users')
@login_required
@admin_required
def list_users():
    users = admin_service.list_users()
    return jsonify({'success': True, 'users': [u.to_dict() for u in users]})


@admin_bp.route('/users/activity')
@login_required
@admin_required
def user_activity_summary():
    return jsonify({'success': True, 'users': audit_service.get_user_activity_summary()})


@admin_bp.route('/users/export')
@login_required
@admin_required
def export_users():
    users = admin_service.list_users()
    audit_service.log_export('users_csv', len(users), actor_id=get_actor().id)
    return _csv_response(generate_users_csv(users), f"users_{local_today().isoformat()}.csv")


@admin_bp.route('/users/<int:user_id>/suspend', methods=['POST'])
@login_required
@admin_required
def suspend_user(user_id):
    user = admin_service.suspend_user(user_id, get_actor())
    return jsonify({'success': True, 'message': 'User suspended', 'user': user.to_dict()})


@admin_bp.route('/users/<int:user_id>/unsuspend', methods=['POST'])
@login_required
@admin_required
def unsuspend_user(user_id):
    user = admin_service.unsuspend_user(user_id, get_actor())
    return jsonify({'success': True, 'message': 'User unsuspended', 'user': user.to_dict()})


@admin_bp.route('/users/<int:user_id>/promote', methods=['POST'])
@login_required
@admin_required
def promote_user(user_id):
    user = admin_service.promote_user(user_id, get_actor())
    return jsonify({'success': True, 'message': 'User promoted to admin', 'user': user.to_dict()})


@admin_bp.route('/users/import', methods=['POST'])
@login_required
@admin_required
def import_users():
    """Create users from an uploaded CSV file (multipart field `file`)."""
    file = request.files.get('file')
    if not file or not file.filename:
        raise ValidationError('No file uploaded', {'file': ['CSV file is required']})
    if not file.filename.lower().endswith('.csv'):
        raise ValidationError('Please upload a CSV file', {'file': ['File must be a .csv']})

    csv_text = file.stream.read().decode('utf-8-sig')
    results = admin_service.import_users(csv_text, get_actor())
    return jsonify({'success': True, 'results': results})


# =============================================================================
# ACTIVITY LOGS
# =============================================================================

@admin_bp.route('/activity-logs')
@login_required
@admin_required
def list_activity_logs():
    limit = min(parse_int(request.args.get('limit')) or DEFAULT_LOG_LIMIT, MAX_LOG_LIMIT)
    offset = parse_int(request.args.get('offset')) or 0
    logs = audit_service.get_activity_logs(limit=limit, offset=offset, **_activity_filters())
    return jsonify({
        'success': True,
        'logs': [audit_service.format_event_for_display(log) for log in logs],
        'count': len(logs)
    })


@admin_bp.route('/activity-logs', methods=['DELETE'])
@login_required
@admin_required
def clear_activity_logs():
    count = audit_service.clear_all_logs()
    return jsonify({'success': True, 'message': f'Cleared {count} log entries', 'count': count})


@admin_bp.route('/activity-logs/stats')
@login_required
@admin_required
def activity_stats():
    days = parse_int(request.args.get('days')) or 30
    return jsonify({'success': True, 'stats': audit_service.get_activity_stats(days=days)})


@admin_bp.route('/activity-logs/export')
@login_required
@admin_required
def export_activity_logs():
    entries = audit_service.build_activity_query(**_activity_filters()).all()
    audit_service.log_export('activity_logs_csv', len(entries), actor_id=get_actor().id)
    return _csv_response(
        generate_activity_csv(entries),
        f"activity_logs_{local_today().isoformat()}.csv"
    )
