# routes/helpers.py
"""
Shared helper functions for API routes.
"""

from flask import request
from flask_login import current_user


def get_payload():
    """JSON body if present, otherwise the submitted form fields."""
    data = request.get_json(silent=True)
    if isinstance(data, dict):
        return data
    return request.form.to_dict()


def get_actor():
    """The authenticated user object (not the werkzeug proxy)."""
    return current_user._get_current_object()
