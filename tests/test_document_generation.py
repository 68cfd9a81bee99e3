"""
Document Generation Test Harness

Covers field formatting, field-mapping validation and the generator.

Run with: python -m pytest tests/test_document_generation.py -v
"""

import io
import time
from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest
from werkzeug.datastructures import FileStorage

from models import db, ActivityLog
from services.documents import (
    DocumentGenerator,
    FieldMapping,
    FieldType,
    TemplateStore,
    define_mappings,
    format_value,
    validate_mappings,
)
from services.documents.generator import (
    FALLBACK_COPY_MESSAGE,
    build_output_name,
    loop_id_from_file_name,
)
from services.documents.transforms import (
    format_currency,
    format_date,
    format_number,
    format_text,
)
from services.documents import service as document_service
from services.exceptions import InvalidState, NotFound, ValidationError
from services.storage import GENERATED_BUCKET, TEMPLATES_BUCKET, StoredFile, LocalBlobStore, get_bucket


class TestTransforms:
    """Test field value formatting."""

    def test_currency_transform(self):
        """Currency should be grouped with two decimals."""
        assert format_currency(500000) == "$500,000.00"
        assert format_currency("500000") == "$500,000.00"
        assert format_currency(1234.5) == "$1,234.50"
        assert format_currency(Decimal('350000.00')) == "$350,000.00"

    def test_currency_empty_values(self):
        """Empty, absent or zero currency renders as $0."""
        assert format_currency(None) == "$0"
        assert format_currency("") == "$0"
        assert format_currency(0) == "$0"
        assert format_currency("0.00") == "$0"

    def test_date_transform(self):
        """Dates render as month/day/year without padding."""
        assert format_date(date(2026, 1, 5)) == "1/5/2026"
        assert format_date(datetime(2026, 12, 31, 15, 30)) == "12/31/2026"
        assert format_date("2026-03-09") == "3/9/2026"
        assert format_date(None) == ""
        assert format_date("") == ""

    def test_number_transform(self):
        """Numbers drop a trailing .0."""
        assert format_number(1500) == "1500"
        assert format_number(Decimal('1500.00')) == "1500"
        assert format_number("2.50") == "2.5"
        assert format_number(None) == "0"

    def test_text_transform(self):
        assert format_text(None) == ""
        assert format_text(42) == "42"
        assert format_text("Jane Doe") == "Jane Doe"

    def test_unparseable_value_passes_through(self):
        assert format_currency("call agent") == "call agent"
        assert format_date("someday") == "someday"

    def test_format_value_dispatches_by_type(self):
        assert format_value(250000, FieldType.CURRENCY) == "$250,000.00"
        assert format_value(250000, FieldType.NUMBER) == "250000"
        assert format_value(250000, FieldType.TEXT) == "250000"
        assert format_value(date(2026, 7, 4), FieldType.DATE) == "7/4/2026"


class TestFieldMappingValidation:
    """Test validation of submitted mapping sets."""

    def test_valid_set_keeps_order(self):
        mappings = validate_mappings([
            {'name': 'buyer', 'loopField': 'client_name', 'type': 'text'},
            {'name': 'price', 'loopField': 'sale', 'type': 'currency'},
        ])
        assert [m.name for m in mappings] == ['buyer', 'price']
        assert mappings[1].type == FieldType.CURRENCY

    def test_type_defaults_to_text(self):
        mappings = validate_mappings([{'name': 'addr', 'loopField': 'property_address'}])
        assert mappings[0].type == FieldType.TEXT

    def test_all_errors_reported_together(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_mappings([
                {'name': '', 'loopField': 'client_name'},
                {'name': 'price', 'loopField': 'salary'},
                {'name': 'closing', 'loopField': 'end_date', 'type': 'datetime'},
                'not-a-mapping',
            ])

        errors = exc_info.value.errors
        assert set(errors) == {'mappings[0]', 'mappings[1]', 'mappings[2]', 'mappings[3]'}
        assert 'Name is required' in errors['mappings[0]']

    def test_duplicate_names_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_mappings([
                {'name': 'buyer', 'loopField': 'client_name'},
                {'name': 'buyer', 'loopField': 'client_email'},
            ])
        assert 'mappings[1]' in exc_info.value.errors
        assert 'mappings[0]' not in exc_info.value.errors

    def test_empty_list_is_valid(self):
        assert validate_mappings([]) == []

    def test_missing_set_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_mappings(None)
        assert 'mappings' in exc_info.value.errors


class TestDefineMappings:
    """Test persisting mapping sets on templates."""

    def test_replaces_existing_set(self, admin, make_template):
        template = make_template(mappings=[
            {'name': 'old', 'loopField': 'notes', 'type': 'text'},
        ])

        define_mappings(template.id, [
            {'name': 'buyer', 'loopField': 'client_name', 'type': 'text'},
        ], admin)

        stored = TemplateStore.get_by_id(template.id)
        assert stored.fields_mapped is True
        assert [m.name for m in stored.mappings] == ['buyer']
        assert ActivityLog.query.filter_by(action_type=ActivityLog.TEMPLATE_FIELDS_MAPPED).count() == 1

    def test_invalid_set_stores_nothing(self, admin, make_template):
        template = make_template(mappings=[
            {'name': 'old', 'loopField': 'notes', 'type': 'text'},
        ])

        with pytest.raises(ValidationError):
            define_mappings(template.id, [{'name': 'x', 'loopField': 'nope'}], admin)

        stored = TemplateStore.get_by_id(template.id)
        assert [m.name for m in stored.mappings] == ['old']

    def test_empty_set_clears_mappings(self, admin, make_template):
        template = make_template(mappings=[
            {'name': 'old', 'loopField': 'notes', 'type': 'text'},
        ])

        define_mappings(template.id, [], admin)

        stored = TemplateStore.get_by_id(template.id)
        assert stored.fields_mapped is False
        assert stored.mappings == []

    def test_missing_template(self, admin):
        with pytest.raises(NotFound):
            define_mappings(9999, [], admin)


class TestGenerator:
    """Test document generation from templates."""

    MAPPINGS = [
        {'name': 'buyer', 'loopField': 'client_name', 'type': 'text'},
        {'name': 'price', 'loopField': 'sale', 'type': 'currency'},
        {'name': 'closing', 'loopField': 'end_date', 'type': 'date'},
        {'name': 'unused', 'loopField': 'notes', 'type': 'text'},
    ]

    def test_text_substitution(self, agent, make_loop, make_template):
        loop = make_loop(agent, client_name='Jane Buyer', sale=Decimal('350000'),
                         end_date=date(2026, 6, 30))
        template = make_template(
            content=b'Buyer {{buyer}} pays {{price}} by {{closing}}. Again: {{buyer}}',
            mappings=self.MAPPINGS,
        )

        result = DocumentGenerator.generate(template.id, loop.id)

        output = get_bucket(GENERATED_BUCKET).get(result.file_name).decode('utf-8')
        assert output == 'Buyer Jane Buyer pays $350,000.00 by 6/30/2026. Again: Jane Buyer'
        assert result.substituted is True
        assert result.fields_replaced == 3
        assert result.message is None
        assert result.file_name.startswith(f"Purchase_Agreement_{loop.id}_")
        assert result.file_name.endswith('.doc')

    def test_empty_values_are_formatted(self, agent, make_loop, make_template):
        loop = make_loop(agent)
        template = make_template(content=b'[{{buyer}}] [{{price}}] [{{closing}}]', mappings=self.MAPPINGS)

        result = DocumentGenerator.generate(template.id, loop.id)

        output = get_bucket(GENERATED_BUCKET).get(result.file_name).decode('utf-8')
        assert output == '[] [$0] []'

    def test_pdf_is_copied_verbatim(self, agent, make_loop, make_template):
        content = b'%PDF-1.4 {{buyer}} binary'
        loop = make_loop(agent, client_name='Jane Buyer')
        template = make_template(content=content, file_type='pdf', mappings=self.MAPPINGS)

        result = DocumentGenerator.generate(template.id, loop.id)

        assert get_bucket(GENERATED_BUCKET).get(result.file_name) == content
        assert result.substituted is False
        assert result.fields_replaced is None
        assert 'PDF' in result.message
        assert result.file_name.endswith('.pdf')

    def test_undecodable_text_falls_back_to_copy(self, agent, make_loop, make_template):
        content = b'\xff\xfe{{buyer}}\x00\x81'
        loop = make_loop(agent, client_name='Jane Buyer')
        template = make_template(content=content, mappings=self.MAPPINGS)

        result = DocumentGenerator.generate(template.id, loop.id)

        assert result.success is True
        assert result.message == FALLBACK_COPY_MESSAGE
        assert get_bucket(GENERATED_BUCKET).get(result.file_name) == content

    def test_no_mappings_writes_nothing(self, agent, make_loop, make_template):
        loop = make_loop(agent)
        template = make_template(mappings=[])

        with pytest.raises(InvalidState):
            DocumentGenerator.generate(template.id, loop.id)

        assert get_bucket(GENERATED_BUCKET).entries() == []

    def test_missing_template_or_loop(self, agent, make_loop, make_template):
        loop = make_loop(agent)
        template = make_template(mappings=self.MAPPINGS)

        with pytest.raises(NotFound, match='Template not found'):
            DocumentGenerator.generate(9999, loop.id)
        with pytest.raises(NotFound, match='Loop not found'):
            DocumentGenerator.generate(template.id, 9999)

    def test_missing_template_file(self, agent, make_loop, make_template):
        loop = make_loop(agent)
        template = make_template(mappings=self.MAPPINGS, store_file=False)

        with pytest.raises(NotFound, match='Template file missing'):
            DocumentGenerator.generate(template.id, loop.id)

    def test_output_name_is_sanitized(self):
        name = build_output_name('Listing (v2) / Final', 7, 'doc', datetime(2026, 1, 1))
        assert name.startswith('Listing__v2____Final_7_')
        assert name.endswith('.doc')
        assert loop_id_from_file_name(name) == 7

    @pytest.mark.skipif(not hasattr(time, 'tzset'), reason='needs time.tzset')
    def test_output_millis_are_epoch_utc_in_any_local_zone(self, monkeypatch):
        monkeypatch.setenv('TZ', 'America/Los_Angeles')
        time.tzset()
        try:
            fixed = build_output_name('T', 1, 'doc', datetime(2026, 1, 1))
            before = int(time.time() * 1000)
            current = build_output_name('T', 1, 'doc')
            after = int(time.time() * 1000)
        finally:
            monkeypatch.undo()
            time.tzset()

        assert fixed == 'T_1_1767225600000.doc'
        millis = int(current.rsplit('_', 1)[1].split('.')[0])
        assert before <= millis <= after

    def test_generated_at_is_utc_aware(self, agent, make_loop, make_template):
        loop = make_loop(agent, client_name='Jane')
        template = make_template(mappings=self.MAPPINGS)

        result = DocumentGenerator.generate(template.id, loop.id)

        assert result.generated_at.utcoffset() == timedelta(0)
        assert result.to_dict()['generated_at'].endswith('+00:00')


class TestGeneratedDocuments:
    """Test listing and resolving generated files."""

    def test_list_matches_loop_token_only(self, agent, make_loop, make_template):
        loop = make_loop(agent)
        template = make_template(mappings=TestGenerator.MAPPINGS)
        DocumentGenerator.generate(template.id, loop.id)
        get_bucket(GENERATED_BUCKET).put_as(f"Other_{loop.id + 10}_1.doc", b'x')

        documents = DocumentGenerator.list_for_loop(loop.id)

        assert len(documents) == 1
        assert documents[0].template_label == 'Purchase_Agreement'
        assert documents[0].loop_id == loop.id

    def test_list_order_newest_first_then_name(self, app, monkeypatch):
        older = datetime(2026, 1, 1, 9, 0)
        newer = datetime(2026, 1, 2, 9, 0)
        entries = [
            StoredFile('B_5_100.doc', 10, older, older),
            StoredFile('A_5_100.doc', 10, older, older),
            StoredFile('C_5_200.doc', 10, newer, newer),
        ]
        monkeypatch.setattr(LocalBlobStore, 'entries', lambda self: entries)

        with app.app_context():
            names = [d.file_name for d in DocumentGenerator.list_for_loop(5)]

        assert names == ['C_5_200.doc', 'A_5_100.doc', 'B_5_100.doc']

    def test_repeated_listing_is_stable(self, agent, make_loop, make_template):
        loop = make_loop(agent)
        template = make_template(mappings=TestGenerator.MAPPINGS)
        DocumentGenerator.generate(template.id, loop.id)
        DocumentGenerator.generate(template.id, loop.id)

        first = [d.to_dict() for d in DocumentGenerator.list_for_loop(loop.id)]
        second = [d.to_dict() for d in DocumentGenerator.list_for_loop(loop.id)]

        assert first == second
        assert len(first) >= 1

    def test_download_rejects_traversal(self, ctx):
        for name in ('../config.py', '..\\config.py', '/etc/passwd', ''):
            with pytest.raises(NotFound):
                DocumentGenerator.resolve_download(name)

    def test_download_missing_file(self, ctx):
        with pytest.raises(NotFound):
            DocumentGenerator.resolve_download('Nope_1_1.doc')


class TestTemplateUpload:

    def _upload(self, filename='agreement.txt'):
        return FileStorage(stream=io.BytesIO(b'Buyer: {{buyer}}'), filename=filename,
                           content_type='text/plain')

    def test_failed_create_removes_stored_file(self, admin, monkeypatch):
        def broken_create(template):
            raise RuntimeError('database unavailable')

        monkeypatch.setattr(TemplateStore, 'create', broken_create)

        with pytest.raises(RuntimeError):
            document_service.upload_template(
                self._upload(), {'name': 'Agreement', 'category': 'contract'}, admin
            )

        assert get_bucket(TEMPLATES_BUCKET).entries() == []

    def test_upload_stores_file_and_record(self, admin):
        template = document_service.upload_template(
            self._upload('Agreement.TXT'), {'name': 'Agreement', 'category': 'contract'}, admin
        )

        assert template.file_type == 'doc'
        assert template.file_path.endswith('.txt')
        assert get_bucket(TEMPLATES_BUCKET).exists(template.file_path)


class TestTemplateDeletion:

    def test_delete_when_file_already_gone(self, admin, make_template):
        template = make_template()
        template_id = template.id
        templates = get_bucket(TEMPLATES_BUCKET)
        templates.path(template.file_path).unlink()

        document_service.delete_template(template_id, admin)

        assert TemplateStore.get_by_id(template_id) is None
        assert ActivityLog.query.filter_by(action_type=ActivityLog.TEMPLATE_DELETED).count() == 1

    def test_delete_removes_stored_file(self, admin, make_template):
        template = make_template()
        handle = template.file_path

        document_service.delete_template(template.id, admin)

        assert not get_bucket(TEMPLATES_BUCKET).exists(handle)


class TestFieldMappingType:

    def test_round_trip_dict_uses_loop_field_key(self):
        mapping = FieldMapping.from_dict({'name': 'price', 'loop_field': 'sale', 'type': 'currency'})
        assert mapping.to_dict() == {'name': 'price', 'loopField': 'sale', 'type': 'currency'}
        assert mapping.placeholder == '{{price}}'


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
