"""Create stock card, transaction and log tables

Revision ID: 3f2a9c1d7e40
Revises: 
Create Date: 2026-10-19 09:12:44.318204

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# Revision identifiers used by Alembic
revision: str = '3f2a9c1d7e40'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'stock_cards',
        sa.Column('id', sa.String(length=32), nullable=False),
        sa.Column('entity_name', sa.String(), nullable=True),
        sa.Column('fund_cluster', sa.String(), nullable=True),
        sa.Column('item_name', sa.String(), nullable=False),
        sa.Column('stock_no', sa.String(), nullable=True),
        sa.Column('description', sa.String(), nullable=True),
        sa.Column('unit_of_measurement', sa.String(), nullable=True),
        sa.Column('reorder_point', sa.Float(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
        sa.CheckConstraint('reorder_point IS NULL OR reorder_point >= 0'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_stock_cards_item_name'), 'stock_cards', ['item_name'], unique=False)
    op.create_index(op.f('ix_stock_cards_stock_no'), 'stock_cards', ['stock_no'], unique=False)

    # Ledger lines, removed together with their card
    op.create_table(
        'stock_card_transactions',
        sa.Column('id', sa.String(length=32), nullable=False),
        sa.Column('stock_card_id', sa.String(length=32), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('month', sa.Integer(), nullable=True),
        sa.Column('year', sa.Integer(), nullable=True),
        sa.Column('reference', sa.String(), nullable=True),
        sa.Column('receipt_qty', sa.Float(), nullable=False),
        sa.Column('issue_qty', sa.Float(), nullable=False),
        sa.Column('issue_office', sa.String(), nullable=True),
        sa.Column('balance_qty', sa.Float(), nullable=False),
        sa.Column('days_to_consume', sa.Float(), nullable=False),
        sa.Column('seq', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
        sa.CheckConstraint('receipt_qty >= 0'),
        sa.CheckConstraint('issue_qty >= 0'),
        sa.ForeignKeyConstraint(['stock_card_id'], ['stock_cards.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('stock_card_id', 'seq', name='uq_stock_card_transactions_card_seq'),
    )
    op.create_index(op.f('ix_stock_card_transactions_stock_card_id'), 'stock_card_transactions', ['stock_card_id'], unique=False)
    op.create_index('ix_stock_card_transactions_card_date_seq', 'stock_card_transactions', ['stock_card_id', 'date', 'seq'], unique=False)

    op.create_table(
        'logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('ts', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
        sa.Column('action', sa.String(length=50), nullable=True),
        sa.Column('resource', sa.String(length=50), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=True),
        sa.Column('ip', sa.String(length=64), nullable=True),
        sa.Column('meta', sa.JSON(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_logs_id'), 'logs', ['id'], unique=False)
    op.create_index(op.f('ix_logs_ts'), 'logs', ['ts'], unique=False)
    op.create_index(op.f('ix_logs_action'), 'logs', ['action'], unique=False)
    op.create_index(op.f('ix_logs_resource'), 'logs', ['resource'], unique=False)
    op.create_index(op.f('ix_logs_status'), 'logs', ['status'], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index(op.f('ix_logs_status'), table_name='logs')
    op.drop_index(op.f('ix_logs_resource'), table_name='logs')
    op.drop_index(op.f('ix_logs_action'), table_name='logs')
    op.drop_index(op.f('ix_logs_ts'), table_name='logs')
    op.drop_index(op.f('ix_logs_id'), table_name='logs')
    op.drop_table('logs')
    op.drop_index('ix_stock_card_transactions_card_date_seq', table_name='stock_card_transactions')
    op.drop_index(op.f('ix_stock_card_transactions_stock_card_id'), table_name='stock_card_transactions')
    op.drop_table('stock_card_transactions')
    op.drop_index(op.f('ix_stock_cards_stock_no'), table_name='stock_cards')
    op.drop_index(op.f('ix_stock_cards_item_name'), table_name='stock_cards')
    op.drop_table('stock_cards')
