"""Create controller credential and mirror tables

Revision ID: 4f2a9c1d7e30
Revises:
Create Date: 2026-10-19 10:12:41.118203

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '4f2a9c1d7e30'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Enable pgcrypto and create the credential and mirror tables."""
    # Client secrets are encrypted with pgp_sym_encrypt
    op.execute('CREATE EXTENSION IF NOT EXISTS pgcrypto')

    op.create_table(
        'controller_credentials',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('controller_url', sa.String(length=500), nullable=False),
        sa.Column('tenant_id', sa.String(length=100), nullable=False),
        sa.Column('client_id', sa.String(length=200), nullable=False),
        sa.Column('client_secret', postgresql.BYTEA(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'sites',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('remote_site_id', sa.String(length=100), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('location', sa.String(length=255), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('last_synced_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_sites_remote_site_id', 'sites', ['remote_site_id'], unique=True)

    op.create_table(
        'site_usage',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('site_id', sa.String(length=36), nullable=False),
        sa.Column('total', sa.Integer(), nullable=False),
        sa.Column('unused', sa.Integer(), nullable=False),
        sa.Column('used', sa.Integer(), nullable=False),
        sa.Column('in_use', sa.Integer(), nullable=False),
        sa.Column('expired', sa.Integer(), nullable=False),
        sa.Column('total_amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('raw_summary', postgresql.JSONB(), nullable=True),
        sa.Column('captured_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['site_id'], ['sites.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('site_id'),
    )

    op.create_table(
        'vouchers',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('remote_voucher_id', sa.String(length=100), nullable=False),
        sa.Column('site_id', sa.String(length=36), nullable=False),
        sa.Column('plan_id', sa.String(length=100), nullable=True),
        sa.Column('group_id', sa.String(length=100), nullable=True),
        sa.Column('code', sa.String(length=64), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('unit_price', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('used_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['site_id'], ['sites.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_vouchers_site_id', 'vouchers', ['site_id'])
    op.create_index('ix_vouchers_group_id', 'vouchers', ['group_id'])
    op.create_index(
        'ix_voucher_remote_lookup', 'vouchers', ['site_id', 'remote_voucher_id'], unique=True
    )


def downgrade() -> None:
    """Drop the mirror and credential tables."""
    op.drop_index('ix_voucher_remote_lookup', table_name='vouchers')
    op.drop_index('ix_vouchers_group_id', table_name='vouchers')
    op.drop_index('ix_vouchers_site_id', table_name='vouchers')
    op.drop_table('vouchers')
    op.drop_table('site_usage')
    op.drop_index('ix_sites_remote_site_id', table_name='sites')
    op.drop_table('sites')
    op.drop_table('controller_credentials')
