# routes/errors.py
"""
JSON error handlers for the API.
"""

import logging

from flask import jsonify
from werkzeug.exceptions import HTTPException

from models import db
from services.exceptions import LoopManagerError, ValidationError

logger = logging.getLogger(__name__)


def register_error_handlers(app):

    @app.errorhandler(LoopManagerError)
    def handle_service_error(error):
        body = {'success': False, 'error': error.message}
        if isinstance(error, ValidationError) and error.errors:
            body['errors'] = error.errors
        return jsonify(body), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        return jsonify({'success': False, 'error': error.description}), error.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(error):
        db.session.rollback()
        logger.exception(f"Unhandled error: {error}")
        return jsonify({'success': False, 'error': 'Server Error'}), 500
