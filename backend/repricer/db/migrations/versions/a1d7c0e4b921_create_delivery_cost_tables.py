"""create delivery cost attribution tables

Revision ID: a1d7c0e4b921
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = 'a1d7c0e4b921'
down_revision = None
branch_labels = None
depends_on = None


RUN_KIND_VALUES = ('recalculate', 'import', 'fill_missing')
RUN_STATUS_VALUES = ('pending', 'running', 'completed', 'failed')

_JSON = sa.JSON().with_variant(postgresql.JSONB(), 'postgresql')


def upgrade() -> None:
    # 订单
    op.create_table(
        'orders',
        sa.Column('account_id', sa.String(length=64), nullable=False),
        sa.Column('order_id', sa.String(length=64), nullable=False),
        sa.Column('channel_order_no', sa.String(length=128), nullable=False),
        sa.Column('channel_name', sa.String(length=64), nullable=True),
        sa.Column('order_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('status', sa.String(length=32), nullable=True),
        sa.Column('delivery_carrier', sa.String(length=32), nullable=True),
        sa.Column('delivery_carrier_raw', sa.String(length=255), nullable=True),
        sa.Column('delivery_parcels', sa.Integer(), nullable=True),
        sa.Column('delivery_imported_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.PrimaryKeyConstraint('account_id', 'order_id', name=op.f('pk_orders')),
    )
    op.create_index('ix_orders_account_channel_order_no', 'orders', ['account_id', 'channel_order_no'])
    op.create_index('ix_orders_account_delivery_carrier', 'orders', ['account_id', 'delivery_carrier'])

    # 订单行
    op.create_table(
        'order_lines',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('account_id', sa.String(length=64), nullable=False),
        sa.Column('order_id', sa.String(length=64), nullable=False),
        sa.Column('line_no', sa.Integer(), nullable=False),
        sa.Column('sku', sa.String(length=255), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=True),
        sa.Column('unit_price_incl_vat', sa.Numeric(12, 2), nullable=True),
        sa.Column('unit_price_excl_vat', sa.Numeric(12, 2), nullable=True),
        sa.Column('line_total_incl_vat', sa.Numeric(12, 2), nullable=True),
        sa.ForeignKeyConstraint(
            ['account_id', 'order_id'], ['orders.account_id', 'orders.order_id'],
            name=op.f('fk_order_lines_account_id_orders'), ondelete='CASCADE',
        ),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_order_lines')),
    )
    op.create_index('ix_order_lines_account_order', 'order_lines', ['account_id', 'order_id'])

    # 商品
    op.create_table(
        'products',
        sa.Column('account_id', sa.String(length=64), nullable=False),
        sa.Column('sku', sa.String(length=255), nullable=False),
        sa.Column('title', sa.String(length=512), nullable=True),
        sa.Column('brand', sa.String(length=255), nullable=True),
        sa.Column('category', sa.String(length=512), nullable=True),
        sa.Column('weight', sa.Numeric(10, 3), nullable=True),
        sa.Column('delivery_cost', sa.Numeric(10, 2), nullable=True),
        sa.Column('delivery_cost_source', sa.String(length=32), nullable=True),
        sa.Column('delivery_carrier_counts', _JSON, nullable=True),
        sa.Column('delivery_cost_updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.PrimaryKeyConstraint('account_id', 'sku', name=op.f('pk_products')),
    )
    op.create_index('ix_products_account_category', 'products', ['account_id', 'category'])

    # 承运商运费
    op.create_table(
        'carrier_costs',
        sa.Column('account_id', sa.String(length=64), nullable=False),
        sa.Column('carrier_id', sa.String(length=32), nullable=False),
        sa.Column('carrier_name', sa.String(length=128), nullable=False),
        sa.Column('cost_per_shipment', sa.Numeric(10, 2), nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default=sa.text('true'), nullable=False),
        sa.Column('last_updated', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.PrimaryKeyConstraint('account_id', 'carrier_id', name=op.f('pk_carrier_costs')),
    )

    # 运行记录
    op.create_table(
        'delivery_cost_runs',
        sa.Column('id', sa.String(length=32), nullable=False),
        sa.Column('account_id', sa.String(length=64), nullable=False),
        sa.Column('kind', sa.Enum(*RUN_KIND_VALUES, name='delivery_cost_run_kind', create_constraint=True), nullable=False),
        sa.Column('status', sa.Enum(*RUN_STATUS_VALUES, name='delivery_cost_run_status', create_constraint=True), nullable=False),
        sa.Column('triggered_by', sa.String(length=32), nullable=True),
        sa.Column('rows_in', sa.Integer(), nullable=True),
        sa.Column('products_changed', sa.Integer(), nullable=True),
        sa.Column('message', sa.Text(), nullable=True),
        sa.Column('report', _JSON, nullable=True),
        sa.Column('finished_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_delivery_cost_runs')),
    )
    op.create_index(op.f('ix_delivery_cost_runs_account_id'), 'delivery_cost_runs', ['account_id'])


def downgrade() -> None:
    op.drop_index(op.f('ix_delivery_cost_runs_account_id'), table_name='delivery_cost_runs')
    op.drop_table('delivery_cost_runs')
    op.drop_table('carrier_costs')
    op.drop_index('ix_products_account_category', table_name='products')
    op.drop_table('products')
    op.drop_index('ix_order_lines_account_order', table_name='order_lines')
    op.drop_table('order_lines')
    op.drop_index('ix_orders_account_delivery_carrier', table_name='orders')
    op.drop_index('ix_orders_account_channel_order_no', table_name='orders')
    op.drop_table('orders')

    bind = op.get_bind()
    if bind.dialect.name == 'postgresql':
        sa.Enum(name='delivery_cost_run_status').drop(bind, checkfirst=True)
        sa.Enum(name='delivery_cost_run_kind').drop(bind, checkfirst=True)
