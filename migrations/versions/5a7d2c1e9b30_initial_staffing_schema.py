"""initial staffing schema

Revision ID: 5a7d2c1e9b30
Revises:
Create Date: 2026-10-19 09:12:41.208113

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '5a7d2c1e9b30'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create users, RBAC, angel type membership and audit tables."""
    # Check if tables already exist (idempotent)
    conn = op.get_bind()
    inspector = sa.inspect(conn)
    existing_tables = set(inspector.get_table_names())

    if "users" not in existing_tables:
        op.create_table(
            "users",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("name", sa.String(64), nullable=False),
            sa.Column("email", sa.String(320), nullable=False),
            sa.Column("password_hash", sa.String(255), nullable=False, server_default=""),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.UniqueConstraint("name", name="uq_users_name"),
            sa.UniqueConstraint("email", name="uq_users_email"),
        )

    if "users_personal_data" not in existing_tables:
        op.create_table(
            "users_personal_data",
            sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
            sa.Column("pronoun", sa.String(15), nullable=True),
            sa.Column("first_name", sa.String(64), nullable=True),
            sa.Column("last_name", sa.String(64), nullable=True),
            sa.Column("planned_arrival_date", sa.Date(), nullable=True),
            sa.Column("planned_departure_date", sa.Date(), nullable=True),
            sa.Column("shirt_size", sa.String(4), nullable=True),
        )

    if "users_contact" not in existing_tables:
        op.create_table(
            "users_contact",
            sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
            sa.Column("dect", sa.String(40), nullable=True),
            sa.Column("mobile", sa.String(40), nullable=True),
        )

    if "users_settings" not in existing_tables:
        op.create_table(
            "users_settings",
            sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
            sa.Column("language", sa.String(64), nullable=False, server_default="en_US"),
            sa.Column("theme", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("email_shiftinfo", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("email_news", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("email_human", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("email_goody", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("mobile_show", sa.Boolean(), nullable=False, server_default=sa.false()),
        )

    if "roles" not in existing_tables:
        op.create_table(
            "roles",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("key", sa.String(64), nullable=False),
            sa.Column("name", sa.String(128), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.UniqueConstraint("key", name="uq_roles_key"),
        )

    if "permissions" not in existing_tables:
        op.create_table(
            "permissions",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("key", sa.String(128), nullable=False),
            sa.Column("name", sa.String(128), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.UniqueConstraint("key", name="uq_permissions_key"),
        )

    if "user_roles" not in existing_tables:
        op.create_table(
            "user_roles",
            sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
            sa.Column("role_id", sa.Integer(), sa.ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
        )

    if "role_permissions" not in existing_tables:
        op.create_table(
            "role_permissions",
            sa.Column("role_id", sa.Integer(), sa.ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
            sa.Column(
                "permission_id", sa.Integer(), sa.ForeignKey("permissions.id", ondelete="CASCADE"), primary_key=True
            ),
        )

    if "angel_types" not in existing_tables:
        op.create_table(
            "angel_types",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("name", sa.String(255), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("restricted", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.UniqueConstraint("name", name="uq_angel_types_name"),
        )

    if "user_angel_types" not in existing_tables:
        op.create_table(
            "user_angel_types",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
            sa.Column(
                "angeltype_id", sa.Integer(), sa.ForeignKey("angel_types.id", ondelete="CASCADE"), nullable=False
            ),
            sa.Column("confirm_user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
            sa.Column("supporter", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.UniqueConstraint("user_id", "angeltype_id", name="uq_user_angel_types_user_angeltype"),
        )
        op.create_index("idx_user_angel_types_angeltype", "user_angel_types", ["angeltype_id"])

    if "audit_events" not in existing_tables:
        op.create_table(
            "audit_events",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.Column("request_id", sa.String(64), nullable=True),
            sa.Column("actor_user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
            sa.Column("actor_user_name", sa.String(64), nullable=True),
            sa.Column("action", sa.String(128), nullable=False),
            sa.Column("entity_type", sa.String(128), nullable=True),
            sa.Column("entity_id", sa.String(128), nullable=True),
            sa.Column("reason", sa.String(512), nullable=True),
            sa.Column("metadata_json", sa.Text(), nullable=True),
        )
        op.create_index("idx_audit_events_created_at", "audit_events", ["created_at"])


def downgrade() -> None:
    op.drop_index("idx_audit_events_created_at", table_name="audit_events")
    op.drop_table("audit_events")
    op.drop_index("idx_user_angel_types_angeltype", table_name="user_angel_types")
    op.drop_table("user_angel_types")
    op.drop_table("angel_types")
    op.drop_table("role_permissions")
    op.drop_table("user_roles")
    op.drop_table("permissions")
    op.drop_table("roles")
    op.drop_table("users_settings")
    op.drop_table("users_contact")
    op.drop_table("users_personal_data")
    op.drop_table("users")
