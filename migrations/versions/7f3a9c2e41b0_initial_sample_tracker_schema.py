"""initial_sample_tracker_schema

Create profiles, requests, request_items, request_status_history and
product_templates.

Revision ID: 7f3a9c2e41b0
Revises:
Create Date: 2026-10-18 09:00:00.000000
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = "7f3a9c2e41b0"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    inspector = sa_inspect(bind)
    existing_tables = set(inspector.get_table_names())

    if "profiles" not in existing_tables:
        op.create_table(
            "profiles",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("role", sa.String(length=30), nullable=False, server_default="requester"),
            sa.Column("full_name", sa.String(length=200), nullable=False),
            sa.Column("email", sa.String(length=200), nullable=True),
            sa.Column("phone", sa.String(length=40), nullable=True),
            sa.Column("department", sa.String(length=50), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_profiles_role", "profiles", ["role"])

    if "requests" not in existing_tables:
        op.create_table(
            "requests",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("request_number", sa.String(length=20), nullable=False),
            sa.Column("status", sa.String(length=30), nullable=False, server_default="draft"),
            sa.Column("created_by", sa.String(length=36), nullable=True),
            sa.Column("assigned_to", sa.String(length=36), nullable=True),
            sa.Column("category", sa.String(length=20), nullable=True),
            sa.Column("priority", sa.String(length=20), nullable=False, server_default="normal"),
            sa.Column("required_by", sa.DateTime(timezone=True), nullable=True),
            sa.Column("required_by_history", sa.JSON(), nullable=False),
            sa.Column("department", sa.String(length=50), nullable=True),
            sa.Column("mobile_no", sa.String(length=40), nullable=True),
            sa.Column("client_type", sa.String(length=30), nullable=True),
            sa.Column("client_type_remarks", sa.Text(), nullable=True),
            sa.Column("client_contact_name", sa.String(length=200), nullable=True),
            sa.Column("client_phone", sa.String(length=40), nullable=True),
            sa.Column("client_email", sa.String(length=200), nullable=True),
            sa.Column("firm_name", sa.String(length=200), nullable=True),
            sa.Column("site_location", sa.String(length=300), nullable=True),
            sa.Column("purpose", sa.String(length=50), nullable=True),
            sa.Column("packing_details", sa.String(length=50), nullable=True),
            sa.Column("packing_remarks", sa.Text(), nullable=True),
            sa.Column("pickup_responsibility", sa.String(length=30), nullable=True),
            sa.Column("pickup_remarks", sa.Text(), nullable=True),
            sa.Column("delivery_address", sa.Text(), nullable=True),
            sa.Column("is_address_edited", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("address_edit_remark", sa.Text(), nullable=True),
            sa.Column("is_delivery_method_edited", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("delivery_method_remark", sa.Text(), nullable=True),
            sa.Column("requester_message", sa.Text(), nullable=True),
            sa.Column("coordinator_message", sa.Text(), nullable=True),
            sa.Column("dispatch_notes", sa.Text(), nullable=True),
            sa.Column("item_count", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("dispatched_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("received_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("received_by", sa.String(length=36), nullable=True),
            sa.ForeignKeyConstraint(["created_by"], ["profiles.id"], ondelete="SET NULL"),
            sa.ForeignKeyConstraint(["assigned_to"], ["profiles.id"], ondelete="SET NULL"),
            sa.ForeignKeyConstraint(["received_by"], ["profiles.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("request_number"),
        )
        op.create_index("idx_requests_status_created", "requests", ["status", "created_at"])
        op.create_index("idx_requests_created_by", "requests", ["created_by"])
        op.create_index("idx_requests_assigned_to", "requests", ["assigned_to"])
        op.create_index("idx_requests_category", "requests", ["category"])

    if "request_items" not in existing_tables:
        op.create_table(
            "request_items",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("request_id", sa.String(length=36), nullable=False),
            sa.Column("item_index", sa.Integer(), nullable=False),
            sa.Column("product_type", sa.String(length=20), nullable=False),
            sa.Column("sub_category", sa.String(length=20), nullable=True),
            sa.Column("quality", sa.String(length=200), nullable=False),
            sa.Column("quality_custom", sa.String(length=200), nullable=True),
            sa.Column("sample_size", sa.String(length=50), nullable=False),
            sa.Column("sample_size_remarks", sa.Text(), nullable=True),
            sa.Column("thickness", sa.String(length=50), nullable=False),
            sa.Column("thickness_remarks", sa.Text(), nullable=True),
            sa.Column("finish", sa.String(length=50), nullable=True),
            sa.Column("finish_remarks", sa.Text(), nullable=True),
            sa.Column("quantity", sa.Integer(), nullable=False, server_default="1"),
            sa.Column("image_url", sa.String(length=500), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(["request_id"], ["requests.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("request_id", "item_index", name="uq_request_items_index"),
            sa.CheckConstraint("quantity > 0", name="ck_request_items_quantity_positive"),
        )
        op.create_index("ix_request_items_request_id", "request_items", ["request_id"])

    if "request_status_history" not in existing_tables:
        op.create_table(
            "request_status_history",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("request_id", sa.String(length=36), nullable=False),
            sa.Column("status", sa.String(length=30), nullable=False),
            sa.Column("changed_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("changed_by", sa.String(length=36), nullable=True),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.ForeignKeyConstraint(["request_id"], ["requests.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["changed_by"], ["profiles.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("idx_history_request_changed", "request_status_history", ["request_id", "changed_at"])
        op.create_index("idx_history_status_changed_by", "request_status_history", ["status", "changed_by"])

    if "product_templates" not in existing_tables:
        op.create_table(
            "product_templates",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("user_id", sa.String(length=36), nullable=False),
            sa.Column("template_name", sa.String(length=200), nullable=False),
            sa.Column("items", sa.JSON(), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(["user_id"], ["profiles.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("user_id", "template_name", name="uq_template_name_per_user"),
        )
        op.create_index("ix_product_templates_user_id", "product_templates", ["user_id"])


def downgrade():
    bind = op.get_bind()
    inspector = sa_inspect(bind)
    existing_tables = set(inspector.get_table_names())

    for table in ("product_templates", "request_status_history", "request_items", "requests", "profiles"):
        if table in existing_tables:
            op.drop_table(table)
