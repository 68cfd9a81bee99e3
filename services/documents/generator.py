"""
Document Generator

Produces populated documents from a template and a loop.

Text-like templates have every literal {{name}} placeholder replaced with
the formatted loop value. PDF templates cannot be edited structurally and
are copied verbatim; the result says so. Any failure while substituting
falls back to a verbatim copy.

Generated files live in the `generated` bucket and are correlated with
their loop by the `_{loopId}_` token in the file name.
"""

import logging
from datetime import datetime, timezone
from typing import List, Tuple

from models import db, Loop
from services.exceptions import InvalidState, NotFound
from services.storage import GENERATED_BUCKET, TEMPLATES_BUCKET, get_bucket
from utils import sanitize_name
from .template_store import TemplateStore
from .transforms import format_value
from .types import FileType, GeneratedDocument, GenerationResult

logger = logging.getLogger(__name__)

PDF_COPY_MESSAGE = 'PDF generated (template copied, field substitution is not supported for PDF files)'
FALLBACK_COPY_MESSAGE = 'Document generated (template copied, field replacement failed)'


def build_output_name(template_name: str, loop_id, file_type: str, now: datetime = None) -> str:
    """
    Build a generated document name.

    Example:
        ("Listing Agreement", 42, "doc") -> "Listing_Agreement_42_1767225600000.doc"
    """
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        # Naive datetimes are UTC throughout the app
        now = now.replace(tzinfo=timezone.utc)
    millis = int(now.timestamp() * 1000)
    return f"{sanitize_name(template_name)}_{loop_id}_{millis}.{file_type}"


def loop_token(loop_id) -> str:
    return f"_{loop_id}_"


class DocumentGenerator:
    """Generate, list and resolve documents built from templates."""

    @classmethod
    def substitute(cls, text: str, mappings, loop) -> Tuple[str, int]:
        """
        Replace each mapped placeholder in text.

        Returns:
            (new_text, number of mappings whose placeholder occurred)
        """
        replaced = 0
        for mapping in mappings:
            placeholder = mapping.placeholder
            if placeholder not in text:
                continue
            value = format_value(getattr(loop, mapping.loop_field, None), mapping.type)
            text = text.replace(placeholder, value)
            replaced += 1
        return text, replaced

    @classmethod
    def generate(cls, template_id, loop_id) -> GenerationResult:
        """
        Generate a document for a loop.

        Raises:
            NotFound: template, loop or stored template file is missing
            InvalidState: template has no field mappings
        """
        template = TemplateStore.get_by_id(template_id)
        if template is None:
            raise NotFound('Template not found')

        loop = db.session.get(Loop, loop_id)
        if loop is None:
            raise NotFound('Loop not found')

        mappings = template.mappings
        if not mappings:
            raise InvalidState('Template has no field mappings')

        templates = get_bucket(TEMPLATES_BUCKET)
        source = templates.path(template.file_path)
        if source is None or not source.is_file():
            raise NotFound('Template file missing')

        generated = get_bucket(GENERATED_BUCKET)
        generated_at = datetime.now(timezone.utc)
        file_name = build_output_name(template.name, loop.id, template.file_type, generated_at)

        result = GenerationResult(
            file_name=file_name,
            file_type=template.file_type,
            template_id=template.id,
            template_name=template.name,
            loop_id=loop.id,
            generated_at=generated_at,
        )

        if template.file_type == FileType.PDF.value:
            generated.copy_from(source, file_name)
            result.message = PDF_COPY_MESSAGE
        else:
            try:
                text = source.read_bytes().decode('utf-8')
                text, replaced = cls.substitute(text, mappings, loop)
                generated.put_as(file_name, text.encode('utf-8'))
                result.substituted = True
                result.fields_replaced = replaced
            except Exception as e:
                logger.exception(f"Field replacement failed for template {template.id}: {e}")
                generated.copy_from(source, file_name)
                result.message = FALLBACK_COPY_MESSAGE

        result.size = generated.path(file_name).stat().st_size
        logger.info(f"Generated {file_name} from template {template.id} for loop {loop.id}")
        return result

    @classmethod
    def list_for_loop(cls, loop_id) -> List[GeneratedDocument]:
        """Generated documents for a loop, newest first (ties by name)."""
        token = loop_token(loop_id)
        documents = []
        for entry in get_bucket(GENERATED_BUCKET).entries():
            if token not in entry.name:
                continue
            file_type = entry.name.rsplit('.', 1)[1] if '.' in entry.name else ''
            documents.append(GeneratedDocument(
                file_name=entry.name,
                file_type=file_type,
                loop_id=int(loop_id),
                size=entry.size,
                created_at=entry.created_at,
                modified_at=entry.modified_at,
                template_label=entry.name.split(token, 1)[0],
            ))

        documents.sort(key=lambda d: d.file_name)
        documents.sort(key=lambda d: d.created_at, reverse=True)
        return documents

    @classmethod
    def resolve_download(cls, file_name: str):
        """
        Resolve a generated file name to its path.

        Raises:
            NotFound: name escapes the bucket or the file does not exist
        """
        path = get_bucket(GENERATED_BUCKET).path(file_name)
        if path is None or not path.is_file():
            raise NotFound('Document not found')
        return path

    @classmethod
    def delete_generated(cls, file_name: str) -> None:
        cls.resolve_download(file_name)
        if not get_bucket(GENERATED_BUCKET).delete(file_name):
            raise NotFound('Document not found')


def loop_id_from_file_name(file_name: str):
    """
    Recover the loop id from a generated file name.

    Example:
        "Listing_Agreement_42_1767225600000.doc" -> 42
    """
    stem = file_name.rsplit('.', 1)[0]
    parts = stem.split('_')
    if len(parts) < 3:
        return None
    try:
        return int(parts[-2])
    except ValueError:
        return None
