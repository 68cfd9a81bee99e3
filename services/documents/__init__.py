"""
Document Generation System

Templates are uploaded files containing {{placeholder}} tokens. Each
template carries a list of field mappings binding a placeholder name to a
loop attribute and a formatting type. Generation resolves every mapping
against a loop and writes a populated copy to the generated bucket.

Usage:
    from services.documents import define_mappings, DocumentGenerator

    define_mappings(template.id, [
        {'name': 'buyer', 'loopField': 'client_name', 'type': 'text'},
        {'name': 'price', 'loopField': 'sale', 'type': 'currency'},
    ], actor=current_user)

    result = DocumentGenerator.generate(template.id, loop.id)
"""

from .types import (
    FieldType,
    TemplateCategory,
    FileType,
    FieldMapping,
    GenerationResult,
    GeneratedDocument,
    MAPPABLE_LOOP_FIELDS,
)

from .template_store import TemplateStore
from .field_mapping import validate_mappings, define_mappings
from .generator import DocumentGenerator
from .transforms import FORMATTERS, format_value

__all__ = [
    # Types
    'FieldType',
    'TemplateCategory',
    'FileType',
    'FieldMapping',
    'GenerationResult',
    'GeneratedDocument',
    'MAPPABLE_LOOP_FIELDS',

    # Services
    'TemplateStore',
    'DocumentGenerator',
    'validate_mappings',
    'define_mappings',

    # Formatting
    'FORMATTERS',
    'format_value',
]
