# alembic/versions/001_initial.py

"""Initial schema: holdings and user settings

Revision ID: 001
Revises:
Create Date: 2026-10-18
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # Create portfolios table (one row per owner + symbol)
    op.create_table('portfolios',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('symbol', sa.String(length=32), nullable=False),
        sa.Column('shares', sa.Numeric(precision=18, scale=6), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'symbol', name='uq_portfolios_user_symbol')
    )
    op.create_index('ix_portfolios_user_id', 'portfolios', ['user_id'])

    # Create user_settings table (cash balance)
    op.create_table('user_settings',
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('buying_power', sa.Numeric(precision=18, scale=2), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('user_id')
    )


def downgrade():
    op.drop_table('user_settings')
    op.drop_index('ix_portfolios_user_id', table_name='portfolios')
    op.drop_table('portfolios')
