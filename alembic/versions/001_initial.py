# alembic/versions/001_initial.py

"""Initial schema

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


HOLDING_STATUS = ('Fresh-Buy', 'Hold', 'addon-buy', 'Sell')
PRICE_HISTORY_ACTION = ('allocate', 'buy', 'partial_sell', 'complete_sell')


def upgrade():
    op.create_table('portfolio',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('description', sa.Text(), nullable=False, server_default=''),
        sa.Column('category', sa.String(length=50), nullable=False, server_default='Basic'),
        sa.Column('min_investment', sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column('cash_balance', sa.Numeric(precision=14, scale=2), nullable=False, server_default='0'),
        sa.Column('current_value', sa.Numeric(precision=14, scale=2), nullable=True),
        sa.Column('monthly_contribution', sa.Numeric(precision=14, scale=2), nullable=False, server_default='0'),
        sa.Column('duration_months', sa.Integer(), nullable=False),
        sa.Column('expiry_date', sa.DateTime(), nullable=True),
        sa.Column('compare_with', sa.String(length=50), nullable=True),
        sa.Column('time_horizon', sa.String(length=100), nullable=True),
        sa.Column('rebalancing', sa.String(length=100), nullable=True),
        sa.Column('index_name', sa.String(length=100), nullable=True),
        sa.Column('details', sa.Text(), nullable=True),
        sa.Column('last_rebalance_date', sa.Date(), nullable=True),
        sa.Column('next_rebalance_date', sa.Date(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_portfolio_name', 'portfolio', ['name'], unique=True)

    op.create_table('holding',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('portfolio_id', sa.Integer(), nullable=False),
        sa.Column('symbol', sa.String(length=50), nullable=False),
        sa.Column('sector', sa.String(length=100), nullable=False, server_default=''),
        sa.Column('stock_cap_type', sa.String(length=20), nullable=True),
        sa.Column('buy_price', sa.Numeric(precision=14, scale=4), nullable=False),
        sa.Column('original_buy_price', sa.Numeric(precision=14, scale=4), nullable=False),
        sa.Column('current_price', sa.Numeric(precision=14, scale=4), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('weight', sa.Numeric(precision=8, scale=4), nullable=False, server_default='0'),
        sa.Column('realized_pnl', sa.Numeric(precision=14, scale=2), nullable=False, server_default='0'),
        sa.Column('status', sa.Enum(*HOLDING_STATUS, name='holding_status'), nullable=False),
        sa.Column('last_updated', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['portfolio_id'], ['portfolio.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('portfolio_id', 'symbol', name='uq_holding_portfolio_symbol')
    )
    op.create_index('ix_holding_portfolio_id', 'holding', ['portfolio_id'])

    op.create_table('holding_price_history',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('holding_id', sa.Integer(), nullable=False),
        sa.Column('date', sa.DateTime(), nullable=False),
        sa.Column('price', sa.Numeric(precision=14, scale=4), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('action', sa.Enum(*PRICE_HISTORY_ACTION, name='price_history_action'), nullable=False),
        sa.ForeignKeyConstraint(['holding_id'], ['holding.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_holding_price_history_holding_id', 'holding_price_history', ['holding_id'])

    op.create_table('price_log',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('portfolio_id', sa.Integer(), nullable=False),
        sa.Column('date', sa.DateTime(), nullable=False),
        sa.Column('date_only', sa.Date(), nullable=False),
        sa.Column('portfolio_value', sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column('cash_remaining', sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column('benchmark_value', sa.Numeric(precision=14, scale=4), nullable=True),
        sa.Column('update_count', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('used_closing_prices', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('data_verified', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('data_quality_issues', sa.JSON(), nullable=False),
        sa.ForeignKeyConstraint(['portfolio_id'], ['portfolio.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    # One row per portfolio per IST day; upserts target this index
    op.create_index('uq_price_log_portfolio_day', 'price_log', ['portfolio_id', 'date_only'], unique=True)
    op.create_index('idx_price_log_portfolio_date', 'price_log', ['portfolio_id', 'date'])


def downgrade():
    op.drop_index('idx_price_log_portfolio_date', table_name='price_log')
    op.drop_index('uq_price_log_portfolio_day', table_name='price_log')
    op.drop_table('price_log')
    op.drop_index('ix_holding_price_history_holding_id', table_name='holding_price_history')
    op.drop_table('holding_price_history')
    op.drop_index('ix_holding_portfolio_id', table_name='holding')
    op.drop_table('holding')
    op.drop_index('ix_portfolio_name', table_name='portfolio')
    op.drop_table('portfolio')
    sa.Enum(name='price_history_action').drop(op.get_bind(), checkfirst=True)
    sa.Enum(name='holding_status').drop(op.get_bind(), checkfirst=True)
