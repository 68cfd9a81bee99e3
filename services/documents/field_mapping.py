"""
Field Mapping Engine

Validates and stores the placeholder-to-loop-field bindings of a template.
A submitted set is validated as a whole: every problem is collected and
reported together, and nothing is persisted unless the whole set passes.
"""

import logging
from typing import Any, Dict, List

from services import audit_service
from services.exceptions import NotFound, ValidationError
from .template_store import TemplateStore
from .types import FieldMapping, FieldType, MAPPABLE_LOOP_FIELDS

logger = logging.getLogger(__name__)

VALID_FIELD_TYPES = tuple(t.value for t in FieldType)


def validate_mappings(raw_mappings: Any) -> List[FieldMapping]:
    """
    Validate a submitted mapping list.

    Args:
        raw_mappings: List of {name, loopField, type} dicts

    Returns:
        List of FieldMapping in submitted order

    Raises:
        ValidationError: with every problem found, keyed by "mappings[i]"
    """
    if raw_mappings is None:
        raise ValidationError('Mappings are required', {'mappings': ['Mappings are required']})
    if not isinstance(raw_mappings, list):
        raise ValidationError('Mappings must be a list', {'mappings': ['Expected a list']})

    errors: Dict[str, List[str]] = {}
    mappings: List[FieldMapping] = []
    seen_names = set()

    for i, raw in enumerate(raw_mappings):
        key = f"mappings[{i}]"
        item_errors = []

        if not isinstance(raw, dict):
            errors[key] = ['Mapping must be an object']
            continue

        name = raw.get('name')
        name = name.strip() if isinstance(name, str) else ''
        if not name:
            item_errors.append('Name is required')
        elif name in seen_names:
            item_errors.append(f"Duplicate name '{name}'")
        else:
            seen_names.add(name)

        loop_field = raw.get('loopField') or raw.get('loop_field')
        if loop_field not in MAPPABLE_LOOP_FIELDS:
            item_errors.append(f"Unknown loop field '{loop_field}'")

        field_type = raw.get('type') or FieldType.TEXT.value
        if field_type not in VALID_FIELD_TYPES:
            item_errors.append(
                f"Invalid type '{field_type}'. Must be one of: {', '.join(VALID_FIELD_TYPES)}"
            )

        if item_errors:
            errors[key] = item_errors
            continue

        mappings.append(FieldMapping(name=name, loop_field=loop_field, type=FieldType(field_type)))

    if errors:
        raise ValidationError('Invalid field mappings', errors)

    return mappings


def define_mappings(template_id, raw_mappings, actor) -> List[FieldMapping]:
    """
    Replace a template's field mappings with a validated set.

    An empty list clears the mappings and marks the template unmapped.

    Raises:
        NotFound: template does not exist
        ValidationError: the submitted set is invalid (nothing is stored)
    """
    template = TemplateStore.get_by_id(template_id)
    if template is None:
        raise NotFound('Template not found')

    mappings = validate_mappings(raw_mappings)

    if TemplateStore.update_field_mappings(template_id, mappings) == 0:
        raise NotFound('Template not found')

    logger.info(f"Template {template_id}: {len(mappings)} field mappings saved")
    audit_service.log_template_fields_mapped(
        template, len(mappings), actor_id=getattr(actor, 'id', None)
    )
    return mappings
