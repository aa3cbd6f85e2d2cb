"""Create quote engine tables

Revision ID: 001
Revises:
Create Date: 2026-10-17

WHAT: Creates quote_templates, quotes and quote_number_sequences.

WHY: Quotes are the commercial document of the portal; templates are the
stock packages they start from; the sequence table hands out unique
quote numbers per month.

HOW:
- Status and discount type as VARCHAR(32) with CHECK constraints (no
  native PostgreSQL enum types)
- Line items and snapshots as JSONB
- Derived totals as NUMERIC(12, 2)
- quotes.template_id / source_quote_id ON DELETE SET NULL
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

QUOTE_STATUSES = ('draft', 'pending_review', 'sent', 'viewed', 'accepted', 'rejected', 'expired')
DISCOUNT_TYPES = ('percentage', 'fixed')

JSON = sa.JSON().with_variant(postgresql.JSONB(), 'postgresql')


def upgrade() -> None:
    """Create quote tables and indexes."""
    op.create_table(
        'quote_templates',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('category', sa.String(100), nullable=True),
        sa.Column('is_default', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('line_items', JSON, nullable=False),
        sa.Column('settings', JSON, nullable=False),
        sa.Column('usage_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_by', sa.String(64), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_quote_templates_id', 'quote_templates', ['id'])
    op.create_index('ix_quote_templates_category', 'quote_templates', ['category'])

    op.create_table(
        'quotes',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('quote_number', sa.String(32), nullable=False,
                  comment='Human-facing unique quote number'),
        sa.Column('title', sa.String(255), nullable=False, comment='Quote title'),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('status', sa.String(32), nullable=False, server_default='draft',
                  comment='Current lifecycle status'),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('project_id', sa.String(64), nullable=True, comment='External project reference'),
        sa.Column('template_id', sa.Integer(), nullable=True),
        sa.Column('source_quote_id', sa.Integer(), nullable=True,
                  comment='Quote this was duplicated from'),
        sa.Column('client_info', JSON, nullable=False),
        sa.Column('client_name', sa.String(255), nullable=True),
        sa.Column('client_company', sa.String(255), nullable=True),
        sa.Column('project_data', JSON, nullable=True),
        sa.Column('line_items', JSON, nullable=False, comment='Ordered line items'),
        sa.Column('settings', JSON, nullable=False),
        sa.Column('tax_rate', sa.Numeric(5, 2), nullable=False, server_default='10'),
        sa.Column('discount_type', sa.String(32), nullable=False, server_default='percentage'),
        sa.Column('discount_value', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('subtotal', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('discount_amount', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('tax_amount', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('total_ex_tax', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('total', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('valid_until', sa.DateTime(), nullable=False),
        sa.Column('submitted_at', sa.DateTime(), nullable=True),
        sa.Column('sent_at', sa.DateTime(), nullable=True),
        sa.Column('viewed_at', sa.DateTime(), nullable=True),
        sa.Column('accepted_at', sa.DateTime(), nullable=True),
        sa.Column('rejected_at', sa.DateTime(), nullable=True),
        sa.Column('expired_at', sa.DateTime(), nullable=True),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.Column('decision_notes', sa.Text(), nullable=True),
        sa.Column('view_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('share_token', sa.String(64), nullable=True),
        sa.Column('created_by', sa.String(64), nullable=True),
        sa.Column('assigned_to', sa.String(64), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['template_id'], ['quote_templates.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['source_quote_id'], ['quotes.id'], ondelete='SET NULL'),
        sa.CheckConstraint(
            "status IN ({})".format(", ".join(f"'{s}'" for s in QUOTE_STATUSES)),
            name='quotestatus',
        ),
        sa.CheckConstraint(
            "discount_type IN ({})".format(", ".join(f"'{d}'" for d in DISCOUNT_TYPES)),
            name='discounttype',
        ),
        sa.CheckConstraint('total >= 0', name='ck_quotes_total_non_negative'),
    )
    op.create_index('ix_quotes_id', 'quotes', ['id'])
    op.create_index('ix_quotes_quote_number', 'quotes', ['quote_number'], unique=True)
    op.create_index('ix_quotes_status', 'quotes', ['status'])
    op.create_index('ix_quotes_project_id', 'quotes', ['project_id'])
    op.create_index('ix_quotes_template_id', 'quotes', ['template_id'])
    op.create_index('ix_quotes_client_name', 'quotes', ['client_name'])
    op.create_index('ix_quotes_total', 'quotes', ['total'])
    op.create_index('ix_quotes_share_token', 'quotes', ['share_token'], unique=True)
    # Expiry sweep scans open quotes by validity date
    op.create_index('ix_quotes_status_valid_until', 'quotes', ['status', 'valid_until'])

    op.create_table(
        'quote_number_sequences',
        sa.Column('period', sa.String(16), nullable=False),
        sa.Column('last_value', sa.Integer(), nullable=False, server_default='0'),
        sa.PrimaryKeyConstraint('period'),
    )


def downgrade() -> None:
    """Drop quote tables."""
    op.drop_table('quote_number_sequences')

    op.drop_index('ix_quotes_status_valid_until', table_name='quotes')
    op.drop_index('ix_quotes_share_token', table_name='quotes')
    op.drop_index('ix_quotes_total', table_name='quotes')
    op.drop_index('ix_quotes_client_name', table_name='quotes')
    op.drop_index('ix_quotes_template_id', table_name='quotes')
    op.drop_index('ix_quotes_project_id', table_name='quotes')
    op.drop_index('ix_quotes_status', table_name='quotes')
    op.drop_index('ix_quotes_quote_number', table_name='quotes')
    op.drop_index('ix_quotes_id', table_name='quotes')
    op.drop_table('quotes')

    op.drop_index('ix_quote_templates_category', table_name='quote_templates')
    op.drop_index('ix_quote_templates_id', table_name='quote_templates')
    op.drop_table('quote_templates')
