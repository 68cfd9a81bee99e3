# routes/loops/crud.py
"""
Loop CRUD routes (list, create, get, update, delete, archive).
"""

from flask import request, jsonify
from flask_login import login_required

from services.loops import LoopFilters
from services.loops import service as loop_service
from utils import parse_bool
from ..decorators import admin_required
from ..helpers import get_actor, get_payload
from . import loops_bp


# =============================================================================
# LIST / CREATE
# =============================================================================

@loops_bp.route('', methods=['GET'])
@login_required
def list_loops():
    """List loops matching the query-string filters."""
    filters = LoopFilters.from_args(request.args)
    loops = loop_service.list_loops(filters, get_actor())
    return jsonify({
        'success': True,
        'loops': [loop.to_dict() for loop in loops],
        'count': len(loops)
    })


@loops_bp.route('', methods=['POST'])
@login_required
def create_loop():
    """Create a loop from JSON or multipart form data (with optional images)."""
    loop = loop_service.create_loop(
        get_payload(),
        get_actor(),
        images=request.files.getlist('images')
    )
    return jsonify({
        'success': True,
        'message': 'Loop created successfully',
        'loop': loop.to_dict()
    }), 201


# =============================================================================
# SINGLE LOOP
# =============================================================================

@loops_bp.route('/<int:loop_id>', methods=['GET'])
@login_required
def get_loop(loop_id):
    loop = loop_service.get_loop(loop_id, get_actor())
    return jsonify({'success': True, 'loop': loop.to_dict()})


@loops_bp.route('/<int:loop_id>', methods=['PUT', 'PATCH'])
@login_required
def update_loop(loop_id):
    """Partially update a loop; only submitted fields change."""
    payload = dict(get_payload())
    replace_images = parse_bool(payload.pop('replaceImages', None))
    loop = loop_service.update_loop(
        loop_id,
        payload,
        get_actor(),
        images=request.files.getlist('images'),
        replace_images=replace_images
    )
    return jsonify({
        'success': True,
        'message': 'Loop updated successfully',
        'loop': loop.to_dict()
    })


@loops_bp.route('/<int:loop_id>', methods=['DELETE'])
@login_required
@admin_required
def delete_loop(loop_id):
    loop_service.delete_loop(loop_id, get_actor())
    return jsonify({'success': True, 'message': 'Loop deleted successfully'})


# =============================================================================
# ARCHIVE
# =============================================================================

@loops_bp.route('/<int:loop_id>/archive', methods=['POST'])
@login_required
@admin_required
def archive_loop(loop_id):
    loop = loop_service.archive_loop(loop_id, get_actor())
    return jsonify({'success': True, 'message': 'Loop archived', 'loop': loop.to_dict()})


@loops_bp.route('/<int:loop_id>/unarchive', methods=['POST'])
@login_required
@admin_required
def unarchive_loop(loop_id):
    loop = loop_service.unarchive_loop(loop_id, get_actor())
    return jsonify({'success': True, 'message': 'Loop restored', 'loop': loop.to_dict()})
