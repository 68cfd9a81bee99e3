# routes/templates.py
"""
Admin routes for document templates: upload, details, field mappings,
preview and delete.
"""

from flask import Blueprint, request, jsonify, send_file
from flask_login import login_required

from services.documents import service as document_service
from services.documents import MAPPABLE_LOOP_FIELDS, FieldType, TemplateCategory, TemplateStore
from services.exceptions import ValidationError
from .decorators import admin_required
from .helpers import get_actor, get_payload

templates_bp = Blueprint('templates', __name__, url_prefix='/api/admin/templates')


@templates_bp.route('', methods=['GET'])
@login_required
@admin_required
def list_templates():
    templates = document_service.list_templates(category=request.args.get('category'))
    return jsonify({
        'success': True,
        'templates': [t.to_dict() for t in templates],
        'count': len(templates)
    })


@templates_bp.route('', methods=['POST'])
@login_required
@admin_required
def upload_template():
    """Upload a template file (multipart field `template`) with name and category."""
    template = document_service.upload_template(
        request.files.get('template'),
        request.form.to_dict(),
        get_actor()
    )
    return jsonify({
        'success': True,
        'message': 'Template uploaded successfully',
        'template': template.to_dict()
    }), 201


@templates_bp.route('/stats')
@login_required
@admin_required
def template_stats():
    return jsonify({'success': True, 'stats': TemplateStore.stats()})


@templates_bp.route('/options')
@login_required
@admin_required
def mapping_options():
    """Values the mapping editor offers: loop fields, field types, categories."""
    return jsonify({
        'success': True,
        'loop_fields': list(MAPPABLE_LOOP_FIELDS),
        'field_types': [t.value for t in FieldType],
        'categories': [c.value for c in TemplateCategory]
    })


@templates_bp.route('/<int:template_id>', methods=['GET'])
@login_required
@admin_required
def get_template(template_id):
    template = document_service.get_template(template_id)
    return jsonify({'success': True, 'template': template.to_dict()})


@templates_bp.route('/<int:template_id>', methods=['PUT'])
@login_required
@admin_required
def update_template(template_id):
    template = document_service.update_template_info(template_id, get_payload(), get_actor())
    return jsonify({
        'success': True,
        'message': 'Template updated successfully',
        'template': template.to_dict()
    })


@templates_bp.route('/<int:template_id>', methods=['DELETE'])
@login_required
@admin_required
def delete_template(template_id):
    document_service.delete_template(template_id, get_actor())
    return jsonify({'success': True, 'message': 'Template deleted successfully'})


@templates_bp.route('/<int:template_id>/fields', methods=['PUT'])
@login_required
@admin_required
def set_template_fields(template_id):
    """
    Replace the template's field mappings with the submitted list.

    Accepts {"mappings": [...]} or {"fields": [...]}; an explicit empty
    list clears the mappings.
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError('Mappings are required', {'mappings': ['Mappings are required']})
    raw_mappings = data['mappings'] if 'mappings' in data else data.get('fields')
    mappings = document_service.set_template_fields(template_id, raw_mappings, get_actor())
    return jsonify({
        'success': True,
        'message': 'Field mappings saved successfully',
        'mappings': [m.to_dict() for m in mappings],
        'fields_mapped': bool(mappings)
    })


@templates_bp.route('/<int:template_id>/preview')
@login_required
@admin_required
def preview_template(template_id):
    template, path = document_service.template_file_path(template_id)
    return send_file(path, download_name=template.file_name, as_attachment=False)
