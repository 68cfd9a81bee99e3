# routes/documents.py
"""
Generated document routes: pick a mapped template, generate for a loop,
list, download and delete the results.
"""

from flask import Blueprint, jsonify, send_file
from flask_login import login_required

from services.documents import service as document_service
from services.exceptions import ValidationError
from utils import parse_int
from .decorators import admin_required
from .helpers import get_actor, get_payload

documents_bp = Blueprint('documents', __name__, url_prefix='/api/documents')


@documents_bp.route('/templates')
@login_required
def mapped_templates():
    """Templates with field mappings, available for generation."""
    templates = document_service.mapped_templates()
    return jsonify({
        'success': True,
        'templates': [t.to_dict() for t in templates]
    })


@documents_bp.route('/generate', methods=['POST'])
@login_required
def generate_document():
    data = get_payload()
    template_id = parse_int(data.get('templateId') or data.get('template_id'))
    loop_id = parse_int(data.get('loopId') or data.get('loop_id'))

    errors = {}
    if template_id is None:
        errors['templateId'] = ['Template ID is required']
    if loop_id is None:
        errors['loopId'] = ['Loop ID is required']
    if errors:
        raise ValidationError('Template ID and Loop ID are required', errors)

    result = document_service.generate_document(template_id, loop_id, get_actor())
    return jsonify(result.to_dict())


@documents_bp.route('/loop/<int:loop_id>')
@login_required
def list_loop_documents(loop_id):
    documents = document_service.list_generated_for_loop(loop_id, get_actor())
    return jsonify({
        'success': True,
        'documents': [d.to_dict() for d in documents],
        'count': len(documents)
    })


@documents_bp.route('/download/<path:file_name>')
@login_required
def download_document(file_name):
    path = document_service.resolve_generated_download(file_name, get_actor())
    return send_file(path, as_attachment=True, download_name=file_name)


@documents_bp.route('/<path:file_name>', methods=['DELETE'])
@login_required
@admin_required
def delete_document(file_name):
    document_service.delete_generated_document(file_name, get_actor())
    return jsonify({'success': True, 'message': 'Document deleted successfully'})
