# routes/loops/images.py
"""
Loop image routes (serve, delete).
"""

from flask import jsonify, send_file
from flask_login import login_required

from services.loops import service as loop_service
from ..helpers import get_actor
from . import loops_bp


@loops_bp.route('/<int:loop_id>/images/<path:filename>', methods=['GET'])
@login_required
def get_image(loop_id, filename):
    path = loop_service.loop_image_path(loop_id, filename, get_actor())
    return send_file(path)


@loops_bp.route('/<int:loop_id>/images/<path:filename>', methods=['DELETE'])
@login_required
def delete_image(loop_id, filename):
    loop = loop_service.delete_loop_image(loop_id, filename, get_actor())
    return jsonify({
        'success': True,
        'message': 'Image deleted successfully',
        'loop': loop.to_dict()
    })
