"""
Template Store

Persistence for DocumentTemplate rows. Every write commits; callers get
an affected-row count back and decide whether 0 means NotFound.
The store never touches the file bucket.
"""

import logging
from datetime import datetime
from typing import List, Optional

from models import db, DocumentTemplate
from .types import FieldMapping, TemplateCategory

logger = logging.getLogger(__name__)


class TemplateStore:
    """CRUD over document templates."""

    @classmethod
    def create(cls, template: DocumentTemplate) -> int:
        db.session.add(template)
        db.session.commit()
        logger.info(f"Created template {template.id} ({template.name})")
        return template.id

    @classmethod
    def get_by_id(cls, template_id) -> Optional[DocumentTemplate]:
        return db.session.get(DocumentTemplate, template_id)

    @classmethod
    def get_all(cls) -> List[DocumentTemplate]:
        """All templates, newest first."""
        return DocumentTemplate.query.order_by(
            DocumentTemplate.created_at.desc(),
            DocumentTemplate.id.desc()
        ).all()

    @classmethod
    def get_by_category(cls, category: str) -> List[DocumentTemplate]:
        return DocumentTemplate.query.filter_by(category=category).order_by(
            DocumentTemplate.created_at.desc(),
            DocumentTemplate.id.desc()
        ).all()

    @classmethod
    def get_mapped(cls) -> List[DocumentTemplate]:
        """Templates that can be used for generation."""
        return DocumentTemplate.query.filter_by(fields_mapped=True).order_by(
            DocumentTemplate.name.asc()
        ).all()

    @classmethod
    def update_field_mappings(cls, template_id, mappings: List[FieldMapping]) -> int:
        """
        Replace a template's mapping set.

        Returns:
            Number of rows updated (0 if the template does not exist)
        """
        count = DocumentTemplate.query.filter_by(id=template_id).update({
            'field_mappings': [m.to_dict() for m in mappings],
            'fields_mapped': bool(mappings),
            'updated_at': datetime.utcnow(),
        }, synchronize_session='fetch')
        db.session.commit()
        return count

    @classmethod
    def update(cls, template_id, name: str, description: Optional[str], category: str) -> int:
        count = DocumentTemplate.query.filter_by(id=template_id).update({
            'name': name,
            'description': description,
            'category': category,
            'updated_at': datetime.utcnow(),
        }, synchronize_session='fetch')
        db.session.commit()
        return count

    @classmethod
    def delete(cls, template_id) -> int:
        count = DocumentTemplate.query.filter_by(id=template_id).delete(
            synchronize_session='fetch'
        )
        db.session.commit()
        return count

    @classmethod
    def stats(cls) -> dict:
        total = DocumentTemplate.query.count()
        mapped = DocumentTemplate.query.filter_by(fields_mapped=True).count()
        contracts = DocumentTemplate.query.filter_by(
            category=TemplateCategory.CONTRACT.value
        ).count()
        listings = DocumentTemplate.query.filter_by(
            category=TemplateCategory.LISTING.value
        ).count()
        return {
            'total': total,
            'mapped': mapped,
            'contracts': contracts,
            'listings': listings,
        }
