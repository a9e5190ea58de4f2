"""initial supply chain schema

Revision ID: c7d8e9f0a1b2
Revises:
Create Date: 2026-10-19 00:00:00.000000

Creates:
- users / session_tokens: identity references and hashed bearer tokens
- products: tracked products with version_id for optimistic locking
- product_timeline_entries: append-only per-product audit sequence
- transactions: ledger of product movements
- transaction_timeline_entries / transaction_delays: ledger shipment history
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'c7d8e9f0a1b2'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('username', sa.String(length=64), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('role', sa.String(length=32), nullable=False, server_default='customer'),
        sa.Column('company_name', sa.String(length=255), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_users_username', 'users', ['username'], unique=True)
    op.create_index('ix_users_role', 'users', ['role'])

    op.create_table(
        'session_tokens',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('token_hash', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_revoked', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_session_tokens_user_id', 'session_tokens', ['user_id'])
    op.create_index('ix_session_tokens_token_hash', 'session_tokens', ['token_hash'], unique=True)
    op.create_index('ix_session_tokens_expires_at', 'session_tokens', ['expires_at'])
    op.create_index('ix_session_tokens_is_revoked', 'session_tokens', ['is_revoked'])
    op.create_index('ix_session_tokens_user_active', 'session_tokens', ['user_id', 'is_revoked'])

    # ============================================================================
    # products: version_id is the ORM version counter (conditional UPDATEs)
    # ============================================================================
    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('tracking_number', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('category', sa.String(length=64), nullable=False),
        sa.Column('sub_category', sa.String(length=128), nullable=True),
        sa.Column('specifications', sa.JSON(), nullable=False),
        sa.Column('manufacturer_id', sa.Integer(), nullable=False),
        sa.Column('current_owner_id', sa.Integer(), nullable=False),
        sa.Column('current_location', sa.String(length=255), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False, server_default='manufactured'),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('price_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('batch_number', sa.String(length=64), nullable=True),
        sa.Column('manufacturing_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('expiry_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.CheckConstraint('quantity >= 0', name='ck_products_quantity_nonnegative'),
        sa.CheckConstraint('price_cents >= 0', name='ck_products_price_nonnegative'),
        sa.ForeignKeyConstraint(['manufacturer_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['current_owner_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_products_tracking_number', 'products', ['tracking_number'], unique=True)
    op.create_index('ix_products_category', 'products', ['category'])
    op.create_index('ix_products_status', 'products', ['status'])
    op.create_index('ix_products_manufacturer_id', 'products', ['manufacturer_id'])
    op.create_index('ix_products_current_owner_id', 'products', ['current_owner_id'])
    op.create_index('ix_products_batch_number', 'products', ['batch_number'])
    op.create_index('ix_products_category_status', 'products', ['category', 'status'])

    op.create_table(
        'product_timeline_entries',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('occurred_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('location', sa.String(length=255), nullable=True),
        sa.Column('handler_user_id', sa.Integer(), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.ForeignKeyConstraint(['handler_user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('product_id', 'position', name='uq_product_timeline_position'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_product_timeline_entries_product_id', 'product_timeline_entries', ['product_id'])
    op.create_index('ix_product_timeline_entries_handler_user_id', 'product_timeline_entries', ['handler_user_id'])

    # ============================================================================
    # transactions: movement ledger (never deleted)
    # ============================================================================
    op.create_table(
        'transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('transaction_id', sa.String(length=64), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('product_tracking_number', sa.String(length=64), nullable=False),
        sa.Column('from_user_id', sa.Integer(), nullable=False),
        sa.Column('to_user_id', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False, server_default='pending'),
        sa.Column('label', sa.String(length=32), nullable=False),
        sa.Column('total_amount_cents', sa.Integer(), nullable=False),
        sa.Column('payment_status', sa.String(length=32), nullable=False, server_default='pending'),
        sa.Column('carrier', sa.String(length=128), nullable=False, server_default='Internal'),
        sa.Column('shipment_tracking_number', sa.String(length=64), nullable=False),
        sa.Column('origin_address', sa.String(length=255), nullable=False),
        sa.Column('origin_coordinates', sa.JSON(), nullable=False),
        sa.Column('destination_address', sa.String(length=255), nullable=False),
        sa.Column('destination_coordinates', sa.JSON(), nullable=False),
        sa.Column('current_location_address', sa.String(length=255), nullable=True),
        sa.Column('current_location_updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('estimated_delivery', sa.DateTime(timezone=True), nullable=True),
        sa.Column('actual_delivery', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_by_user_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.CheckConstraint('quantity > 0', name='ck_transactions_quantity_positive'),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.ForeignKeyConstraint(['from_user_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['to_user_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['created_by_user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_transactions_transaction_id', 'transactions', ['transaction_id'], unique=True)
    op.create_index('ix_transactions_product_id', 'transactions', ['product_id'])
    op.create_index('ix_transactions_product_tracking_number', 'transactions', ['product_tracking_number'])
    op.create_index('ix_transactions_from_user_id', 'transactions', ['from_user_id'])
    op.create_index('ix_transactions_to_user_id', 'transactions', ['to_user_id'])
    op.create_index('ix_transactions_status', 'transactions', ['status'])
    op.create_index('ix_transactions_status_created', 'transactions', ['status', 'created_at'])

    op.create_table(
        'transaction_timeline_entries',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('transaction_pk', sa.Integer(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False),
        sa.Column('location_address', sa.String(length=255), nullable=True),
        sa.Column('location_coordinates', sa.JSON(), nullable=False),
        sa.Column('occurred_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('handled_by_user_id', sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(['transaction_pk'], ['transactions.id'], ),
        sa.ForeignKeyConstraint(['handled_by_user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('transaction_pk', 'position', name='uq_transaction_timeline_position'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_transaction_timeline_entries_transaction_pk',
                    'transaction_timeline_entries', ['transaction_pk'])

    op.create_table(
        'transaction_delays',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('transaction_pk', sa.Integer(), nullable=False),
        sa.Column('reason', sa.String(length=255), nullable=False),
        sa.Column('location', sa.String(length=255), nullable=True),
        sa.Column('reported_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('estimated_resolution', sa.DateTime(timezone=True), nullable=True),
        sa.Column('resolved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='active'),
        sa.ForeignKeyConstraint(['transaction_pk'], ['transactions.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_transaction_delays_transaction_pk', 'transaction_delays', ['transaction_pk'])


def downgrade():
    """Drop all tables (destructive operation)."""
    op.drop_table('transaction_delays')
    op.drop_table('transaction_timeline_entries')
    op.drop_table('transactions')
    op.drop_table('product_timeline_entries')
    op.drop_table('products')
    op.drop_table('session_tokens')
    op.drop_table('users')
