"""reserve_lifecycle_tables

Create users, stored_objects, reserve_projects and window_settings.

Revision ID: 3f6a1c9e2b40
Revises:
Create Date: 2026-10-18 09:30:00.000000
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = "3f6a1c9e2b40"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    inspector = sa_inspect(bind)
    existing_tables = set(inspector.get_table_names())

    if "users" not in existing_tables:
        op.create_table(
            "users",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("user_name", sa.String(length=100), nullable=False),
            sa.Column("display_name", sa.String(length=200), nullable=True),
            sa.Column("is_admin", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_users_user_name", "users", ["user_name"], unique=True)

    if "stored_objects" not in existing_tables:
        op.create_table(
            "stored_objects",
            sa.Column("id", sa.String(length=64), nullable=False, comment="uuid4 hex"),
            sa.Column("file_name", sa.String(length=255), nullable=False),
            sa.Column("content_type", sa.String(length=100), nullable=True),
            sa.Column("size", sa.Integer(), nullable=False, server_default="0", comment="Size in bytes"),
            sa.Column("sha256", sa.String(length=64), nullable=False),
            sa.Column("storage_path", sa.String(length=500), nullable=False,
                      comment="Path relative to OBJECT_STORE_ROOT"),
            sa.Column("created_by", sa.String(length=100), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint("id"),
        )

    if "reserve_projects" not in existing_tables:
        op.create_table(
            "reserve_projects",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("level", sa.String(length=100), nullable=True),
            sa.Column("project_type", sa.String(length=100), nullable=True),
            sa.Column("construct_subject", sa.String(length=100), nullable=True),
            sa.Column("address", sa.String(length=300), nullable=True),
            sa.Column("contact", sa.String(length=100), nullable=True),
            sa.Column("phone", sa.String(length=50), nullable=True),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("invest_detail", sa.Text(), nullable=True),
            sa.Column("status", sa.String(length=30), nullable=False, server_default="draft"),
            sa.Column("is_case_finish", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("is_research", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("site_photo", sa.String(length=64), nullable=True),
            sa.Column("upload_cad_id", sa.String(length=64), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("created_by", sa.String(length=100), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("updated_by", sa.String(length=100), nullable=True),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_reserve_projects_status", "reserve_projects", ["status"])
        op.create_index("ix_reserve_projects_created_by", "reserve_projects", ["created_by"])
        op.create_index("ix_reserve_projects_created", "reserve_projects", ["created_at", "id"])
        op.create_index(
            "ix_reserve_projects_owner_created",
            "reserve_projects",
            ["created_by", "created_at"],
        )

    if "window_settings" not in existing_tables:
        op.create_table(
            "window_settings",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("start_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("end_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("updated_by", sa.String(length=100), nullable=True),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_window_settings_start_at", "window_settings", ["start_at"])


def downgrade():
    bind = op.get_bind()
    inspector = sa_inspect(bind)
    existing_tables = set(inspector.get_table_names())

    if "window_settings" in existing_tables:
        op.drop_index("ix_window_settings_start_at", table_name="window_settings")
        op.drop_table("window_settings")

    if "reserve_projects" in existing_tables:
        op.drop_index("ix_reserve_projects_owner_created", table_name="reserve_projects")
        op.drop_index("ix_reserve_projects_created", table_name="reserve_projects")
        op.drop_index("ix_reserve_projects_created_by", table_name="reserve_projects")
        op.drop_index("ix_reserve_projects_status", table_name="reserve_projects")
        op.drop_table("reserve_projects")

    if "stored_objects" in existing_tables:
        op.drop_table("stored_objects")

    if "users" in existing_tables:
        op.drop_index("ix_users_user_name", table_name="users")
        op.drop_table("users")
