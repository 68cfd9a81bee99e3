# routes/decorators.py
"""
Shared decorators for API routes.
"""

from functools import wraps
from flask import jsonify
from flask_login import current_user


def admin_required(f):
    """Reject non-admin users with a JSON 403."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not current_user.is_authenticated or current_user.role != 'admin':
            return jsonify({'success': False, 'error': 'Admin access required'}), 403
        return f(*args, **kwargs)
    return decorated_function
