from __future__ import annotations

"""init schema"""

from alembic import op
import sqlalchemy as sa


revision = "0001_init_schema"
down_revision = None
branch_labels = None
depends_on = None


def _uuid_pk() -> sa.Column:
    return sa.Column(
        "id",
        sa.dialects.postgresql.UUID(as_uuid=True),
        primary_key=True,
        server_default=sa.text("gen_random_uuid()"),
    )


def _user_fk() -> sa.Column:
    return sa.Column(
        "user_id",
        sa.dialects.postgresql.UUID(as_uuid=True),
        sa.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )


def upgrade() -> None:
    # Extensions
    op.execute("CREATE EXTENSION IF NOT EXISTS pgcrypto;")

    op.create_table(
        "users",
        _uuid_pk(),
        sa.Column("email", sa.String(length=255), nullable=False, unique=True),
        sa.Column("display_name", sa.String(length=100)),
        sa.Column("password_hash", sa.String(length=255)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=False),
    )

    op.create_table(
        "conversations",
        _uuid_pk(),
        _user_fk(),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("status", sa.String(length=20), server_default="active", nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=False),
        sa.CheckConstraint("status IN ('active', 'archived')", name="ck_conversations_status"),
    )
    op.create_index("idx_conversations_user_updated", "conversations", ["user_id", "updated_at"])

    op.create_table(
        "messages",
        _uuid_pk(),
        sa.Column(
            "conversation_id",
            sa.dialects.postgresql.UUID(as_uuid=True),
            sa.ForeignKey("conversations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("role", sa.String(length=20), nullable=False),
        sa.Column("content", sa.Text, nullable=False),
        sa.Column("agent_type", sa.String(length=20)),
        sa.Column("tool_calls", sa.dialects.postgresql.JSONB),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=False),
        sa.CheckConstraint("role IN ('user', 'assistant', 'system')", name="ck_messages_role"),
        sa.CheckConstraint(
            "agent_type IS NULL OR agent_type IN ('router', 'support', 'order', 'billing')",
            name="ck_messages_agent_type",
        ),
    )
    op.create_index("idx_messages_conversation_created", "messages", ["conversation_id", "created_at"])

    op.create_table(
        "orders",
        _uuid_pk(),
        _user_fk(),
        sa.Column("order_number", sa.String(length=50), nullable=False, unique=True),
        sa.Column("status", sa.String(length=20), server_default="pending", nullable=False),
        sa.Column("total_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("items", sa.dialects.postgresql.JSONB, nullable=False),
        sa.Column("delivery_status", sa.String(length=255)),
        sa.Column("tracking_number", sa.String(length=100)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=False),
        sa.CheckConstraint(
            "status IN ('pending', 'processing', 'shipped', 'delivered', 'cancelled')",
            name="ck_orders_status",
        ),
    )
    op.create_index("idx_orders_user_created", "orders", ["user_id", "created_at"])

    op.create_table(
        "invoices",
        _uuid_pk(),
        _user_fk(),
        sa.Column("invoice_number", sa.String(length=50), nullable=False, unique=True),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("status", sa.String(length=20), server_default="pending", nullable=False),
        sa.Column("payment_method", sa.String(length=50)),
        sa.Column("refund_status", sa.String(length=20), server_default="none", nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=False),
        sa.Column("due_date", sa.DateTime(timezone=True)),
        sa.CheckConstraint("status IN ('paid', 'pending', 'refunded', 'failed')", name="ck_invoices_status"),
        sa.CheckConstraint(
            "refund_status IN ('none', 'requested', 'processing', 'completed')",
            name="ck_invoices_refund_status",
        ),
    )
    op.create_index("idx_invoices_user_created", "invoices", ["user_id", "created_at"])

    op.create_table(
        "support_articles",
        _uuid_pk(),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("content", sa.Text, nullable=False),
        sa.Column("category", sa.String(length=100), nullable=False),
        sa.Column("tags", sa.dialects.postgresql.JSONB),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=False),
    )
    op.create_index("idx_support_articles_category", "support_articles", ["category"])

    # Seed default user for the localhost no-auth bypass
    op.execute(
        """
        INSERT INTO users (email, display_name)
        VALUES ('demo@supportdesk.dev', 'Demo User')
        ON CONFLICT (email) DO NOTHING;
        """
    )


def downgrade() -> None:
    op.drop_index("idx_support_articles_category", table_name="support_articles")
    op.drop_table("support_articles")

    op.drop_index("idx_invoices_user_created", table_name="invoices")
    op.drop_table("invoices")

    op.drop_index("idx_orders_user_created", table_name="orders")
    op.drop_table("orders")

    op.drop_index("idx_messages_conversation_created", table_name="messages")
    op.drop_table("messages")

    op.drop_index("idx_conversations_user_updated", table_name="conversations")
    op.drop_table("conversations")

    op.drop_table("users")
