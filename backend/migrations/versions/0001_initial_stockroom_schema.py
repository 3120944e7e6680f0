"""initial stockroom schema

Revision ID: 0001_stockroom
Revises:
Create Date: 2026-10-19 00:00:00.000000

Creates the warehouse schema:
- categories, suppliers, items (current stock + optimistic version)
- one header table and one line table per transaction kind
- stock_movements: append-only audit of every stock change
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0001_stockroom'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
    ]


def _transaction_columns():
    return [
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('number', sa.String(length=64), nullable=False),
        sa.Column('status', sa.String(length=24), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_by_user_id', sa.Integer(), nullable=False),
        sa.Column('submitted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('approved_by_user_id', sa.Integer(), nullable=True),
        sa.Column('approved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('signature_image', sa.Text(), nullable=True),
        sa.Column('rejected_by_user_id', sa.Integer(), nullable=True),
        sa.Column('rejected_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('reject_reason', sa.Text(), nullable=True),
    ] + _timestamps()


def _create_transaction_tables(table, line_table, header_columns, line_columns=()):
    op.create_table(
        table,
        *_transaction_columns(),
        *header_columns,
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('number'),
        sqlite_autoincrement=True
    )
    op.create_index(f'ix_{table}_status', table, ['status'])
    op.create_index(f'ix_{table}_created_by_user_id', table, ['created_by_user_id'])
    op.create_index(f'ix_{table}_created_at', table, ['created_at'])

    op.create_table(
        line_table,
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('transaction_id', sa.Integer(), nullable=False),
        sa.Column('item_id', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        *line_columns,
        sa.CheckConstraint('quantity > 0', name=f'ck_{line_table}_quantity_positive'),
        sa.ForeignKeyConstraint(['transaction_id'], [f'{table}.id'], ),
        sa.ForeignKeyConstraint(['item_id'], ['items.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index(f'ix_{line_table}_transaction_id', line_table, ['transaction_id'])
    op.create_index(f'ix_{line_table}_item_id', line_table, ['item_id'])


def upgrade():
    op.create_table(
        'categories',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name'),
        sqlite_autoincrement=True
    )

    op.create_table(
        'suppliers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('contact_person', sa.String(length=255), nullable=True),
        sa.Column('phone', sa.String(length=64), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )

    # ============================================================================
    # items: current_stock is owned by the item ledger; version_id is the
    # optimistic lock used to detect concurrent stock writes
    # ============================================================================
    op.create_table(
        'items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sku', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('category_id', sa.Integer(), nullable=False),
        sa.Column('unit', sa.String(length=32), nullable=False),
        sa.Column('min_stock', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('current_stock', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('location', sa.String(length=120), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        *_timestamps(),
        sa.CheckConstraint('min_stock >= 0', name='ck_items_min_stock_non_negative'),
        sa.ForeignKeyConstraint(['category_id'], ['categories.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('sku'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_items_category_id', 'items', ['category_id'])
    op.create_index('ix_items_category_name', 'items', ['category_id', 'name'])

    _create_transaction_tables(
        'incoming_goods', 'incoming_goods_lines',
        [
            sa.Column('supplier_id', sa.Integer(), sa.ForeignKey('suppliers.id'), nullable=False, index=True),
            sa.Column('reference_number', sa.String(length=64), nullable=True),
            sa.Column('received_at', sa.DateTime(timezone=True), nullable=True),
            sa.Column('received_by_user_id', sa.Integer(), nullable=True),
        ],
        [sa.Column('unit_price', sa.Numeric(14, 2), nullable=True)],
    )
    _create_transaction_tables(
        'outgoing_goods', 'outgoing_goods_lines',
        [
            sa.Column('destination', sa.String(length=255), nullable=False),
            sa.Column('recipient_name', sa.String(length=255), nullable=False),
            sa.Column('issued_by_user_id', sa.Integer(), nullable=True),
        ],
    )
    _create_transaction_tables(
        'item_requests', 'item_request_lines',
        [
            sa.Column('requested_by', sa.String(length=255), nullable=False),
            sa.Column('department', sa.String(length=255), nullable=False),
            sa.Column('required_date', sa.DateTime(timezone=True), nullable=True),
            sa.Column('reason', sa.Text(), nullable=True),
        ],
    )
    _create_transaction_tables(
        'purchase_orders', 'purchase_order_lines',
        [
            sa.Column('supplier_id', sa.Integer(), sa.ForeignKey('suppliers.id'), nullable=False, index=True),
            sa.Column('expected_date', sa.DateTime(timezone=True), nullable=True),
        ],
    )

    # ============================================================================
    # stock_movements: append-only; reference is the transaction number
    # (soft reference, survives deletion of the transaction row)
    # ============================================================================
    op.create_table(
        'stock_movements',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('item_id', sa.Integer(), nullable=False),
        sa.Column('direction', sa.String(length=8), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('previous_stock', sa.Integer(), nullable=False),
        sa.Column('new_stock', sa.Integer(), nullable=False),
        sa.Column('reference', sa.String(length=64), nullable=False),
        sa.Column('transaction_kind', sa.String(length=32), nullable=True),
        sa.Column('performed_by_user_id', sa.Integer(), nullable=False),
        sa.Column('notes', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.CheckConstraint('quantity > 0', name='ck_stock_movements_quantity_positive'),
        sa.CheckConstraint("direction IN ('in', 'out')", name='ck_stock_movements_direction'),
        sa.ForeignKeyConstraint(['item_id'], ['items.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_stock_movements_item_id', 'stock_movements', ['item_id'])
    op.create_index('ix_stock_movements_reference', 'stock_movements', ['reference'])
    op.create_index('ix_stock_movements_performed_by_user_id', 'stock_movements', ['performed_by_user_id'])
    op.create_index('ix_stock_movements_created_at', 'stock_movements', ['created_at'])
    op.create_index('ix_stock_movements_item_created', 'stock_movements', ['item_id', 'created_at'])


def downgrade():
    op.drop_table('stock_movements')
    for table, line_table in (
        ('purchase_orders', 'purchase_order_lines'),
        ('item_requests', 'item_request_lines'),
        ('outgoing_goods', 'outgoing_goods_lines'),
        ('incoming_goods', 'incoming_goods_lines'),
    ):
        op.drop_table(line_table)
        op.drop_table(table)
    op.drop_table('items')
    op.drop_table('suppliers')
    op.drop_table('categories')
