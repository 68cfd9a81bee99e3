"""
Document System Type Definitions

Dataclasses for template field mappings and generation results.
Field mappings are stored on DocumentTemplate.field_mappings as a JSON
list and converted to FieldMapping objects on read.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


class FieldType(Enum):
    """Formatting applied to a mapped loop value."""
    TEXT = "text"
    NUMBER = "number"
    DATE = "date"
    CURRENCY = "currency"


class TemplateCategory(Enum):
    CONTRACT = "contract"
    LISTING = "listing"
    DISCLOSURE = "disclosure"
    ADDENDUM = "addendum"
    NOTICE = "notice"
    OTHER = "other"


class FileType(Enum):
    """
    Stored template formats.

    PDF templates are copied verbatim; DOC covers every text-substitutable
    upload (Word, RTF, plain text).
    """
    PDF = "pdf"
    DOC = "doc"


# Loop attributes a template placeholder may pull from
MAPPABLE_LOOP_FIELDS = (
    'property_address',
    'client_name',
    'client_email',
    'client_phone',
    'sale',
    'status',
    'type',
    'start_date',
    'end_date',
    'tags',
    'notes',
    'creator_name',
)


@dataclass(frozen=True)
class FieldMapping:
    """
    One placeholder-to-loop-field binding.

    Attributes:
        name: Literal placeholder token; appears as {{name}} in the template
        loop_field: Loop attribute to pull from (see MAPPABLE_LOOP_FIELDS)
        type: Formatting applied to the value
    """
    name: str
    loop_field: str
    type: FieldType = FieldType.TEXT

    @property
    def placeholder(self) -> str:
        return '{{' + self.name + '}}'

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'FieldMapping':
        """Build from a stored/submitted dict; accepts loopField or loop_field."""
        return cls(
            name=data['name'],
            loop_field=data.get('loopField') or data.get('loop_field'),
            type=FieldType(data.get('type') or FieldType.TEXT.value),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'loopField': self.loop_field,
            'type': self.type.value,
        }


@dataclass
class GenerationResult:
    """
    Outcome of one generate() call.

    Exactly one of fields_replaced / message is meaningful: fields_replaced
    when placeholders were substituted, message when the template was
    copied verbatim (pdf, or a text template that could not be processed).
    """
    file_name: str
    file_type: str
    template_id: int
    template_name: str
    loop_id: int
    generated_at: datetime
    size: int = 0
    substituted: bool = False
    fields_replaced: Optional[int] = None
    message: Optional[str] = None
    success: bool = True

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'success': self.success,
            'file_name': self.file_name,
            'file_type': self.file_type,
            'size': self.size,
            'generated_at': self.generated_at.isoformat(),
            'template_id': self.template_id,
            'template_name': self.template_name,
            'loop_id': self.loop_id,
            'substituted': self.substituted,
        }
        if self.fields_replaced is not None:
            data['fields_replaced'] = self.fields_replaced
        if self.message:
            data['message'] = self.message
        return data


@dataclass
class GeneratedDocument:
    """A previously generated file found in the generated bucket."""
    file_name: str
    file_type: str
    loop_id: int
    size: int
    created_at: datetime
    modified_at: datetime
    template_label: str = field(default='')

    def to_dict(self) -> Dict[str, Any]:
        return {
            'file_name': self.file_name,
            'file_type': self.file_type,
            'loop_id': self.loop_id,
            'template_label': self.template_label,
            'size': self.size,
            'created_at': self.created_at.isoformat(),
            'modified_at': self.modified_at.isoformat(),
        }
