"""create users, loops, document_templates and activity_logs tables

Revision ID: 4e1a7c2b9d10
Revises:
Create Date: 2026-10-19

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect

# revision identifiers, used by Alembic.
revision = '4e1a7c2b9d10'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    conn = op.get_bind()
    inspector = inspect(conn)
    tables = inspector.get_table_names()

    if 'user' not in tables:
        op.create_table(
            'user',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('name', sa.String(length=120), nullable=False),
            sa.Column('email', sa.String(length=120), nullable=False),
            sa.Column('password_hash', sa.String(length=256), nullable=True),
            sa.Column('role', sa.String(length=20), nullable=False, server_default='agent'),
            sa.Column('notify_on_new_loops', sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column('notify_on_updated_loops', sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column('suspended', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
            sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
            sa.Column('last_active', sa.DateTime(), nullable=True),
            sa.PrimaryKeyConstraint('id', name='pk_user'),
            sa.UniqueConstraint('email', name='uq_user_email')
        )

    if 'loops' not in tables:
        op.create_table(
            'loops',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('type', sa.String(length=100), nullable=False),
            sa.Column('sale', sa.Numeric(precision=14, scale=2), nullable=True),
            sa.Column('creator_id', sa.Integer(), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
            sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
            sa.Column('start_date', sa.Date(), nullable=True),
            sa.Column('end_date', sa.Date(), nullable=True),
            sa.Column('tags', sa.Text(), nullable=True),
            sa.Column('status', sa.String(length=20), nullable=False, server_default='pre-offer'),
            sa.Column('property_address', sa.String(length=255), nullable=False),
            sa.Column('client_name', sa.String(length=200), nullable=True),
            sa.Column('client_email', sa.String(length=120), nullable=True),
            sa.Column('client_phone', sa.String(length=30), nullable=True),
            sa.Column('notes', sa.Text(), nullable=True),
            sa.Column('images', sa.JSON(), nullable=True),
            sa.Column('archived', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.ForeignKeyConstraint(['creator_id'], ['user.id'], name='fk_loops_creator_id', ondelete='SET NULL'),
            sa.PrimaryKeyConstraint('id', name='pk_loops')
        )

        # Indexes for dashboard filters
        op.create_index('ix_loops_status', 'loops', ['status'], unique=False)
        op.create_index('ix_loops_creator_id', 'loops', ['creator_id'], unique=False)
        op.create_index('ix_loops_end_date', 'loops', ['end_date'], unique=False)
        op.create_index('ix_loops_archived', 'loops', ['archived'], unique=False)

    if 'document_templates' not in tables:
        op.create_table(
            'document_templates',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('name', sa.String(length=200), nullable=False),
            sa.Column('description', sa.Text(), nullable=True),
            sa.Column('category', sa.String(length=50), nullable=False),
            sa.Column('file_path', sa.String(length=500), nullable=False),
            sa.Column('file_name', sa.String(length=255), nullable=False),
            sa.Column('file_type', sa.String(length=10), nullable=False),
            sa.Column('file_size', sa.Integer(), nullable=False),
            sa.Column('fields_mapped', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('field_mappings', sa.JSON(), nullable=True),
            sa.Column('created_by', sa.Integer(), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
            sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
            sa.ForeignKeyConstraint(['created_by'], ['user.id'], name='fk_document_templates_created_by', ondelete='SET NULL'),
            sa.PrimaryKeyConstraint('id', name='pk_document_templates')
        )
        op.create_index('ix_document_templates_category', 'document_templates', ['category'], unique=False)

    if 'activity_logs' not in tables:
        op.create_table(
            'activity_logs',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.Integer(), nullable=True),
            sa.Column('action_type', sa.String(length=50), nullable=False),
            sa.Column('description', sa.String(length=500), nullable=False),
            sa.Column('ip_address', sa.String(length=45), nullable=True),
            sa.Column('user_agent', sa.String(length=500), nullable=True),
            sa.Column('event_data', sa.JSON(), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
            sa.ForeignKeyConstraint(['user_id'], ['user.id'], name='fk_activity_logs_user_id', ondelete='SET NULL'),
            sa.PrimaryKeyConstraint('id', name='pk_activity_logs')
        )
        op.create_index('ix_activity_logs_user_id', 'activity_logs', ['user_id'], unique=False)
        op.create_index('ix_activity_logs_action_type', 'activity_logs', ['action_type'], unique=False)
        op.create_index('ix_activity_logs_created_at', 'activity_logs', ['created_at'], unique=False)


def downgrade():
    conn = op.get_bind()
    inspector = inspect(conn)
    tables = inspector.get_table_names()

    if 'activity_logs' in tables:
        op.drop_index('ix_activity_logs_created_at', table_name='activity_logs')
        op.drop_index('ix_activity_logs_action_type', table_name='activity_logs')
        op.drop_index('ix_activity_logs_user_id', table_name='activity_logs')
        op.drop_table('activity_logs')

    if 'document_templates' in tables:
        op.drop_index('ix_document_templates_category', table_name='document_templates')
        op.drop_table('document_templates')

    if 'loops' in tables:
        op.drop_index('ix_loops_archived', table_name='loops')
        op.drop_index('ix_loops_end_date', table_name='loops')
        op.drop_index('ix_loops_creator_id', table_name='loops')
        op.drop_index('ix_loops_status', table_name='loops')
        op.drop_table('loops')

    if 'user' in tables:
        op.drop_table('user')
