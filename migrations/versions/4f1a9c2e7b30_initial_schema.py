"""initial_schema

Revision ID: 4f1a9c2e7b30
Revises:
Create Date: 2026-10-18 09:12:44.218031+00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '4f1a9c2e7b30'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # 1. users (no FKs)
    op.create_table('users',
    sa.Column('id', sa.Uuid(), nullable=False),
    sa.Column('auth_id', sa.String(length=255), nullable=False),
    sa.Column('email', sa.String(length=255), nullable=False),
    sa.Column('name', sa.String(length=200), nullable=False),
    sa.Column('role', sa.String(length=20), nullable=False),
    sa.Column('verified', sa.Boolean(), nullable=True),
    sa.Column('status', sa.String(length=20), nullable=True),
    sa.Column('company_name', sa.String(length=200), nullable=True),
    sa.Column('phone', sa.String(length=30), nullable=True),
    sa.Column('address', sa.Text(), nullable=True),
    sa.Column('avatar', sa.Text(), nullable=True),
    sa.Column('categories', sa.JSON(), nullable=True),
    sa.Column('quotation_preference', sa.String(length=40), nullable=True),
    sa.Column('trust_score', sa.Numeric(precision=5, scale=1, asdecimal=False), nullable=True),
    sa.Column('average_rating', sa.Numeric(precision=3, scale=2, asdecimal=False), nullable=True),
    sa.Column('total_ratings', sa.Integer(), nullable=True),
    sa.Column('organization_role', sa.String(length=40), nullable=True),
    sa.Column('approval_level', sa.Integer(), nullable=True),
    sa.Column('can_approve_up_to_cents', sa.BigInteger(), nullable=True),
    sa.Column('whatsapp_notifications', sa.Boolean(), nullable=True),
    sa.Column('email_notifications', sa.Boolean(), nullable=True),
    sa.Column('registered_at', sa.DateTime(), nullable=True),
    sa.CheckConstraint("role IN ('admin','vendor','buyer')", name='chk_user_role'),
    sa.CheckConstraint("status IN ('pending','approved','rejected')", name='chk_user_status'),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('auth_id')
    )
    op.create_index('idx_users_role', 'users', ['role'], unique=False)
    op.create_index('idx_users_email', 'users', ['email'], unique=False)
    op.create_index('idx_users_company', 'users', ['company_name'], unique=False)

    # 2. catalog
    op.create_table('categories',
    sa.Column('id', sa.Uuid(), nullable=False),
    sa.Column('name', sa.String(length=200), nullable=False),
    sa.Column('slug', sa.String(length=220), nullable=False),
    sa.Column('description', sa.Text(), nullable=True),
    sa.Column('icon', sa.String(length=100), nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=True),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('slug')
    )
    op.create_table('products',
    sa.Column('id', sa.Uuid(), nullable=False),
    sa.Column('name', sa.String(length=300), nullable=False),
    sa.Column('normalized_name', sa.String(length=300), nullable=False),
    sa.Column('slug', sa.String(length=320), nullable=False),
    sa.Column('category_id', sa.Uuid(), nullable=False),
    sa.Column('description', sa.Text(), nullable=True),
    sa.Column('sku', sa.String(length=100), nullable=True),
    sa.Column('specifications', sa.Text(), nullable=True),
    sa.Column('image', sa.Text(), nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=True),
    sa.ForeignKeyConstraint(['category_id'], ['categories.id'], ),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('normalized_name'),
    sa.UniqueConstraint('slug')
    )
    op.create_index('idx_products_category', 'products', ['category_id'], unique=False)

    # 3. rfqs + items
    op.create_table('rfqs',
    sa.Column('id', sa.Uuid(), nullable=False),
    sa.Column('buyer_id', sa.Uuid(), nullable=True),
    sa.Column('is_guest', sa.Boolean(), nullable=True),
    sa.Column('guest_name', sa.String(length=200), nullable=True),
    sa.Column('guest_company_name', sa.String(length=200), nullable=True),
    sa.Column('guest_phone', sa.String(length=30), nullable=True),
    sa.Column('guest_email', sa.String(length=255), nullable=True),
    sa.Column('status', sa.String(length=20), nullable=True),
    sa.Column('is_broker', sa.Boolean(), nullable=True),
    sa.Column('expected_delivery_time', sa.String(length=100), nullable=False),
    sa.Column('approval_status', sa.String(length=20), nullable=True),
    sa.Column('requires_approval', sa.Boolean(), nullable=True),
    sa.Column('estimated_value_cents', sa.BigInteger(), nullable=True),
    sa.Column('submitted_by', sa.Uuid(), nullable=True),
    sa.Column('submitted_at', sa.DateTime(), nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=True),
    sa.CheckConstraint("status IN ('pending','quoted','completed')", name='chk_rfq_status'),
    sa.CheckConstraint(
        "approval_status IS NULL OR approval_status IN "
        "('draft','pending_approval','approved','rejected')",
        name='chk_rfq_approval_status'),
    sa.CheckConstraint(
        "(buyer_id IS NOT NULL AND is_guest = false) OR "
        "(buyer_id IS NULL AND is_guest = true)",
        name='chk_rfq_identity'),
    sa.ForeignKeyConstraint(['buyer_id'], ['users.id'], ),
    sa.ForeignKeyConstraint(['submitted_by'], ['users.id'], ),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_rfqs_buyer', 'rfqs', ['buyer_id'], unique=False)
    op.create_index('idx_rfqs_status', 'rfqs', ['status'], unique=False)
    op.create_table('rfq_items',
    sa.Column('id', sa.Uuid(), nullable=False),
    sa.Column('rfq_id', sa.Uuid(), nullable=False),
    sa.Column('product_id', sa.Uuid(), nullable=False),
    sa.Column('quantity', sa.Integer(), nullable=False),
    sa.CheckConstraint('quantity > 0', name='chk_rfq_item_qty'),
    sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
    sa.ForeignKeyConstraint(['rfq_id'], ['rfqs.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_rfq_items_rfq', 'rfq_items', ['rfq_id'], unique=False)

    # 4. price lists and delivered quotations
    op.create_table('vendor_quotations',
    sa.Column('id', sa.Uuid(), nullable=False),
    sa.Column('vendor_id', sa.Uuid(), nullable=False),
    sa.Column('product_id', sa.Uuid(), nullable=False),
    sa.Column('rfq_id', sa.Uuid(), nullable=True),
    sa.Column('quotation_type', sa.String(length=20), nullable=True),
    sa.Column('source', sa.String(length=20), nullable=True),
    sa.Column('price_cents', sa.BigInteger(), nullable=False),
    sa.Column('quantity', sa.Integer(), nullable=False),
    sa.Column('payment_terms', sa.String(length=10), nullable=False),
    sa.Column('delivery_time', sa.String(length=100), nullable=False),
    sa.Column('warranty_period', sa.String(length=100), nullable=False),
    sa.Column('country_of_origin', sa.String(length=100), nullable=True),
    sa.Column('product_specifications', sa.Text(), nullable=True),
    sa.Column('product_photo', sa.Text(), nullable=True),
    sa.Column('product_description', sa.Text(), nullable=True),
    sa.Column('brand', sa.String(length=100), nullable=True),
    sa.Column('active', sa.Boolean(), nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=True),
    sa.Column('updated_at', sa.DateTime(), nullable=True),
    sa.CheckConstraint('price_cents > 0', name='chk_vq_price_positive'),
    sa.CheckConstraint('quantity > 0', name='chk_vq_qty_positive'),
    sa.CheckConstraint("payment_terms IN ('cash','credit')", name='chk_vq_payment_terms'),
    sa.CheckConstraint("quotation_type IN ('pre-filled','on-demand')", name='chk_vq_type'),
    sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
    sa.ForeignKeyConstraint(['rfq_id'], ['rfqs.id'], ),
    sa.ForeignKeyConstraint(['vendor_id'], ['users.id'], ),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_vq_vendor', 'vendor_quotations', ['vendor_id'], unique=False)
    op.create_index('idx_vq_product', 'vendor_quotations', ['product_id'], unique=False)
    op.create_index('idx_vq_vendor_product', 'vendor_quotations', ['vendor_id', 'product_id'], unique=False)
    op.create_index('idx_vq_rfq', 'vendor_quotations', ['rfq_id'], unique=False)
    op.create_table('sent_quotations',
    sa.Column('id', sa.Uuid(), nullable=False),
    sa.Column('rfq_id', sa.Uuid(), nullable=False),
    sa.Column('buyer_id', sa.Uuid(), nullable=False),
    sa.Column('vendor_id', sa.Uuid(), nullable=False),
    sa.Column('product_id', sa.Uuid(), nullable=False),
    sa.Column('quotation_id', sa.Uuid(), nullable=False),
    sa.Column('quotation_type', sa.String(length=20), nullable=False),
    sa.Column('price_cents', sa.BigInteger(), nullable=False),
    sa.Column('quantity', sa.Integer(), nullable=False),
    sa.Column('payment_terms', sa.String(length=10), nullable=False),
    sa.Column('delivery_time', sa.String(length=100), nullable=False),
    sa.Column('warranty_period', sa.String(length=100), nullable=False),
    sa.Column('country_of_origin', sa.String(length=100), nullable=True),
    sa.Column('brand', sa.String(length=100), nullable=True),
    sa.Column('product_specifications', sa.Text(), nullable=True),
    sa.Column('product_photo', sa.Text(), nullable=True),
    sa.Column('product_description', sa.Text(), nullable=True),
    sa.Column('opened', sa.Boolean(), nullable=True),
    sa.Column('chosen', sa.Boolean(), nullable=True),
    sa.Column('sent_at', sa.DateTime(), nullable=True),
    sa.CheckConstraint('price_cents > 0', name='chk_sq_price_positive'),
    sa.ForeignKeyConstraint(['buyer_id'], ['users.id'], ),
    sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
    sa.ForeignKeyConstraint(['rfq_id'], ['rfqs.id'], ondelete='CASCADE'),
    sa.ForeignKeyConstraint(['vendor_id'], ['users.id'], ),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_sq_rfq', 'sent_quotations', ['rfq_id'], unique=False)
    op.create_index('idx_sq_buyer', 'sent_quotations', ['buyer_id'], unique=False)
    op.create_index('idx_sq_vendor', 'sent_quotations', ['vendor_id'], unique=False)
    op.create_index('idx_sq_product', 'sent_quotations', ['product_id'], unique=False)

    # 5. orders, approvals, ratings
    op.create_table('orders',
    sa.Column('id', sa.Uuid(), nullable=False),
    sa.Column('rfq_id', sa.Uuid(), nullable=False),
    sa.Column('quotation_id', sa.Uuid(), nullable=False),
    sa.Column('buyer_id', sa.Uuid(), nullable=False),
    sa.Column('vendor_id', sa.Uuid(), nullable=False),
    sa.Column('product_id', sa.Uuid(), nullable=False),
    sa.Column('quantity', sa.Integer(), nullable=False),
    sa.Column('total_amount_cents', sa.BigInteger(), nullable=False),
    sa.Column('status', sa.String(length=20), nullable=True),
    sa.Column('order_date', sa.DateTime(), nullable=True),
    sa.Column('last_updated', sa.DateTime(), nullable=True),
    sa.Column('tracking_number', sa.String(length=100), nullable=True),
    sa.Column('estimated_delivery_date', sa.DateTime(), nullable=True),
    sa.Column('actual_delivery_date', sa.DateTime(), nullable=True),
    sa.Column('delivery_notes', sa.Text(), nullable=True),
    sa.Column('cancel_reason', sa.Text(), nullable=True),
    sa.Column('proof_of_delivery', sa.Text(), nullable=True),
    sa.CheckConstraint(
        "status IN ('ordered','confirmed','processing','shipped','delivered','cancelled')",
        name='chk_order_status'),
    sa.ForeignKeyConstraint(['buyer_id'], ['users.id'], ),
    sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
    sa.ForeignKeyConstraint(['quotation_id'], ['sent_quotations.id'], ),
    sa.ForeignKeyConstraint(['rfq_id'], ['rfqs.id'], ),
    sa.ForeignKeyConstraint(['vendor_id'], ['users.id'], ),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('quotation_id')
    )
    op.create_index('idx_orders_buyer', 'orders', ['buyer_id'], unique=False)
    op.create_index('idx_orders_vendor', 'orders', ['vendor_id'], unique=False)
    op.create_index('idx_orders_rfq', 'orders', ['rfq_id'], unique=False)
    op.create_table('approval_requests',
    sa.Column('id', sa.Uuid(), nullable=False),
    sa.Column('rfq_id', sa.Uuid(), nullable=False),
    sa.Column('requested_by', sa.Uuid(), nullable=False),
    sa.Column('approver_id', sa.Uuid(), nullable=False),
    sa.Column('approver_level', sa.Integer(), nullable=True),
    sa.Column('status', sa.String(length=20), nullable=True),
    sa.Column('comments', sa.Text(), nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=True),
    sa.Column('responded_at', sa.DateTime(), nullable=True),
    sa.CheckConstraint("status IN ('pending','approved','rejected')", name='chk_approval_request_status'),
    sa.ForeignKeyConstraint(['approver_id'], ['users.id'], ),
    sa.ForeignKeyConstraint(['requested_by'], ['users.id'], ),
    sa.ForeignKeyConstraint(['rfq_id'], ['rfqs.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_approval_requests_rfq', 'approval_requests', ['rfq_id'], unique=False)
    op.create_index('idx_approval_requests_approver', 'approval_requests', ['approver_id', 'status'], unique=False)
    op.create_table('ratings',
    sa.Column('id', sa.Uuid(), nullable=False),
    sa.Column('buyer_id', sa.Uuid(), nullable=False),
    sa.Column('vendor_id', sa.Uuid(), nullable=False),
    sa.Column('rfq_id', sa.Uuid(), nullable=False),
    sa.Column('rating', sa.Integer(), nullable=False),
    sa.Column('delivery_rating', sa.Integer(), nullable=True),
    sa.Column('communication_rating', sa.Integer(), nullable=True),
    sa.Column('quality_rating', sa.Integer(), nullable=True),
    sa.Column('would_recommend', sa.Boolean(), nullable=True),
    sa.Column('review', sa.Text(), nullable=True),
    sa.Column('order_value_cents', sa.BigInteger(), nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=True),
    sa.CheckConstraint('rating BETWEEN 1 AND 5', name='chk_rating_range'),
    sa.ForeignKeyConstraint(['buyer_id'], ['users.id'], ),
    sa.ForeignKeyConstraint(['rfq_id'], ['rfqs.id'], ),
    sa.ForeignKeyConstraint(['vendor_id'], ['users.id'], ),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('buyer_id', 'vendor_id', 'rfq_id', name='uq_rating_triple')
    )
    op.create_index('idx_ratings_vendor', 'ratings', ['vendor_id'], unique=False)
    op.create_index('idx_ratings_buyer', 'ratings', ['buyer_id'], unique=False)

    # 6. notifications and analytics
    op.create_table('notifications',
    sa.Column('id', sa.Uuid(), nullable=False),
    sa.Column('user_id', sa.Uuid(), nullable=False),
    sa.Column('type', sa.String(length=50), nullable=False),
    sa.Column('title', sa.String(length=255), nullable=False),
    sa.Column('message', sa.Text(), nullable=False),
    sa.Column('read', sa.Boolean(), nullable=True),
    sa.Column('related_kind', sa.String(length=30), nullable=True),
    sa.Column('related_id', sa.Uuid(), nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=True),
    sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_notifications_user', 'notifications', ['user_id', 'read'], unique=False)
    op.create_table('analytics_events',
    sa.Column('id', sa.Uuid(), nullable=False),
    sa.Column('type', sa.String(length=30), nullable=False),
    sa.Column('event_metadata', sa.JSON(), nullable=True),
    sa.Column('timestamp', sa.DateTime(), nullable=True),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_analytics_events_type_ts', 'analytics_events', ['type', 'timestamp'], unique=False)

    # 7. group buying
    op.create_table('group_buys',
    sa.Column('id', sa.Uuid(), nullable=False),
    sa.Column('product_id', sa.Uuid(), nullable=False),
    sa.Column('title', sa.String(length=300), nullable=False),
    sa.Column('description', sa.Text(), nullable=True),
    sa.Column('target_quantity', sa.Integer(), nullable=False),
    sa.Column('current_quantity', sa.Integer(), nullable=True),
    sa.Column('status', sa.String(length=20), nullable=True),
    sa.Column('deadline', sa.DateTime(), nullable=False),
    sa.Column('created_by', sa.Uuid(), nullable=False),
    sa.Column('minimum_participants', sa.Integer(), nullable=True),
    sa.Column('rfq_id', sa.Uuid(), nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=True),
    sa.CheckConstraint("status IN ('open','closed','cancelled')", name='chk_group_buy_status'),
    sa.CheckConstraint('target_quantity > 0', name='chk_group_buy_target'),
    sa.ForeignKeyConstraint(['created_by'], ['users.id'], ),
    sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
    sa.ForeignKeyConstraint(['rfq_id'], ['rfqs.id'], ),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_group_buys_status', 'group_buys', ['status'], unique=False)
    op.create_table('group_buy_participants',
    sa.Column('id', sa.Uuid(), nullable=False),
    sa.Column('group_buy_id', sa.Uuid(), nullable=False),
    sa.Column('hospital_id', sa.Uuid(), nullable=False),
    sa.Column('rfq_id', sa.Uuid(), nullable=True),
    sa.Column('quantity', sa.Integer(), nullable=False),
    sa.Column('status', sa.String(length=20), nullable=True),
    sa.Column('joined_at', sa.DateTime(), nullable=True),
    sa.CheckConstraint("status IN ('active','withdrawn','completed')", name='chk_gb_participant_status'),
    sa.CheckConstraint('quantity > 0', name='chk_gb_participant_qty'),
    sa.ForeignKeyConstraint(['group_buy_id'], ['group_buys.id'], ondelete='CASCADE'),
    sa.ForeignKeyConstraint(['hospital_id'], ['users.id'], ),
    sa.ForeignKeyConstraint(['rfq_id'], ['rfqs.id'], ),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_gb_participants_group', 'group_buy_participants', ['group_buy_id'], unique=False)
    op.create_index('idx_gb_participants_hospital', 'group_buy_participants', ['hospital_id'], unique=False)


def downgrade() -> None:
    for table in (
        'group_buy_participants',
        'group_buys',
        'analytics_events',
        'notifications',
        'ratings',
        'approval_requests',
        'orders',
        'sent_quotations',
        'vendor_quotations',
        'rfq_items',
        'rfqs',
        'products',
        'categories',
        'users',
    ):
        op.drop_table(table)
