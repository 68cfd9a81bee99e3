"""
Document Service

Operations behind the template-admin and document routes. Each function
takes the acting user explicitly; routes pass current_user.
"""

import logging
import os

from flask import current_app

from forms import TemplateInfoForm
from models import db, DocumentTemplate
from services import audit_service
from services.exceptions import NotFound, PermissionDenied, ValidationError
from services.loops import service as loop_service
from services.storage import TEMPLATES_BUCKET, get_bucket
from .field_mapping import define_mappings
from .generator import DocumentGenerator, loop_id_from_file_name
from .template_store import TemplateStore
from .types import FileType, TemplateCategory

logger = logging.getLogger(__name__)

ALLOWED_TEMPLATE_MIMETYPES = {
    'application/pdf': FileType.PDF,
    'application/msword': FileType.DOC,
    'application/vnd.openxmlformats-officedocument.wordprocessingml.document': FileType.DOC,
    'application/rtf': FileType.DOC,
    'text/rtf': FileType.DOC,
    'text/plain': FileType.DOC,
}

TEMPLATE_CATEGORIES = tuple(c.value for c in TemplateCategory)


def _actor_id(actor):
    return getattr(actor, 'id', None)


def _require_admin(actor):
    if not getattr(actor, 'is_admin', False):
        raise PermissionDenied('Admin access required')


def _validate_template_info(data) -> dict:
    form = TemplateInfoForm(data)
    errors = {} if form.validate() else form.error_map()

    category = (form.category.data or '').strip()
    if category and category not in TEMPLATE_CATEGORIES:
        errors.setdefault('category', []).append(
            f"Category must be one of: {', '.join(TEMPLATE_CATEGORIES)}"
        )

    if errors:
        raise ValidationError('Invalid template details', errors)

    return {
        'name': form.name.data.strip(),
        'description': (form.description.data or '').strip() or None,
        'category': category,
    }


def detect_file_type(mimetype: str, filename: str = '') -> FileType:
    """
    Map an upload's mimetype to a stored file type.

    Raises:
        ValidationError: unsupported mimetype
    """
    mimetype = (mimetype or '').split(';')[0].strip().lower()
    if mimetype in ALLOWED_TEMPLATE_MIMETYPES:
        return ALLOWED_TEMPLATE_MIMETYPES[mimetype]
    raise ValidationError(
        'Only PDF and Word documents are allowed',
        {'template': [f"Unsupported file type: {mimetype or filename or 'unknown'}"]}
    )


# =============================================================================
# TEMPLATE MANAGEMENT (admin)
# =============================================================================

def list_templates(category=None):
    if category:
        return TemplateStore.get_by_category(category)
    return TemplateStore.get_all()


def get_template(template_id) -> DocumentTemplate:
    template = TemplateStore.get_by_id(template_id)
    if template is None:
        raise NotFound('Template not found')
    return template


def upload_template(file_storage, data, actor) -> DocumentTemplate:
    """
    Store an uploaded template file and create its record.

    Args:
        file_storage: werkzeug FileStorage from request.files['template']
        data: form fields (name, description, category)
        actor: uploading user (admin)
    """
    _require_admin(actor)

    if file_storage is None or not file_storage.filename:
        raise ValidationError('No file uploaded', {'template': ['File is required']})

    info = _validate_template_info(data)
    file_type = detect_file_type(file_storage.mimetype, file_storage.filename)

    content = file_storage.read()
    max_bytes = current_app.config.get('TEMPLATE_MAX_BYTES', 10 * 1024 * 1024)
    if len(content) > max_bytes:
        raise ValidationError(
            'Template file is too large',
            {'template': [f"File must be {max_bytes // (1024 * 1024)}MB or smaller"]}
        )
    if not content:
        raise ValidationError('Template file is empty', {'template': ['File is empty']})

    handle = get_bucket(TEMPLATES_BUCKET).put(content, file_storage.filename)

    template = DocumentTemplate(
        name=info['name'],
        description=info['description'],
        category=info['category'],
        file_path=handle,
        file_name=os.path.basename(file_storage.filename),
        file_type=file_type.value,
        file_size=len(content),
        fields_mapped=False,
        field_mappings=[],
        created_by=_actor_id(actor),
    )
    try:
        TemplateStore.create(template)
    except Exception:
        db.session.rollback()
        get_bucket(TEMPLATES_BUCKET).delete(handle)
        raise

    audit_service.log_template_uploaded(template, actor_id=_actor_id(actor))
    return template


def update_template_info(template_id, data, actor) -> DocumentTemplate:
    _require_admin(actor)
    info = _validate_template_info(data)

    if TemplateStore.update(template_id, info['name'], info['description'], info['category']) == 0:
        raise NotFound('Template not found')

    template = TemplateStore.get_by_id(template_id)
    audit_service.log_template_updated(template, actor_id=_actor_id(actor))
    return template


def delete_template(template_id, actor) -> None:
    """
    Delete a template record and, best-effort, its stored file.

    A file that cannot be removed is logged; the record is deleted anyway.
    """
    _require_admin(actor)
    template = get_template(template_id)
    name, handle = template.name, template.file_path

    if not get_bucket(TEMPLATES_BUCKET).delete(handle):
        logger.warning(f"Template file {handle} for template {template_id} was not removed")

    if TemplateStore.delete(template_id) == 0:
        raise NotFound('Template not found')

    audit_service.log_template_deleted(template_id, name, actor_id=_actor_id(actor))


def set_template_fields(template_id, raw_mappings, actor):
    _require_admin(actor)
    return define_mappings(template_id, raw_mappings, actor)


def template_file_path(template_id):
    """Path of a template's stored file for preview."""
    template = get_template(template_id)
    path = get_bucket(TEMPLATES_BUCKET).path(template.file_path)
    if path is None or not path.is_file():
        raise NotFound('Template file missing')
    return template, path


# =============================================================================
# GENERATED DOCUMENTS
# =============================================================================

def mapped_templates():
    """Templates ready for generation."""
    return TemplateStore.get_mapped()


def generate_document(template_id, loop_id, actor):
    """Generate a document for a loop the actor may view."""
    get_template(template_id)
    loop_service.get_loop(loop_id, actor)

    result = DocumentGenerator.generate(template_id, loop_id)
    audit_service.log_document_generated(result, actor_id=_actor_id(actor))
    return result


def list_generated_for_loop(loop_id, actor):
    loop_service.get_loop(loop_id, actor)
    return DocumentGenerator.list_for_loop(loop_id)


def resolve_generated_download(file_name, actor):
    """
    Path of a generated file the actor may download.

    Non-admins may only download documents for loops they can view.
    """
    path = DocumentGenerator.resolve_download(file_name)
    if not getattr(actor, 'is_admin', False):
        loop_id = loop_id_from_file_name(file_name)
        if loop_id is None:
            raise NotFound('Document not found')
        loop_service.get_loop(loop_id, actor)
    return path


def delete_generated_document(file_name, actor) -> None:
    _require_admin(actor)
    DocumentGenerator.delete_generated(file_name)
    audit_service.log_document_deleted(file_name, actor_id=_actor_id(actor))
