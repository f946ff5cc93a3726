from __future__ import annotations
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers
revision = "20261001_0002"
down_revision = "20261001_0001"
branch_labels = None
depends_on = None

def upgrade() -> None:
    # services is owned by the listings API; created here only if missing so local setups work
    op.execute("""
    CREATE TABLE IF NOT EXISTS services (
        id UUID PRIMARY KEY,
        provider_id UUID NOT NULL,
        title VARCHAR(200) NOT NULL,
        price NUMERIC(12,2) NOT NULL DEFAULT 0,
        currency VARCHAR(8) NOT NULL DEFAULT 'USD',
        pricing_type VARCHAR(16) NOT NULL DEFAULT 'fixed',
        status VARCHAR(16) NOT NULL DEFAULT 'pending',
        average_rating NUMERIC(2,1) NOT NULL DEFAULT 0,
        total_reviews INTEGER NOT NULL DEFAULT 0,
        created_at TIMESTAMPTZ NOT NULL DEFAULT now()
    );
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_services_provider_id ON services (provider_id);")

    op.create_table(
        "bookings",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("client_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("provider_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("service_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("scheduled_time", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("duration_hours", sa.Integer(), nullable=True),
        sa.Column("total_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="pending"),
        sa.Column("client_confirmed", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("provider_confirmed", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("location_details", sa.Text(), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_bookings"),
        sa.ForeignKeyConstraint(["service_id"], ["services.id"], ondelete="RESTRICT", name="fk_bookings_service_id_services"),
        sa.CheckConstraint("total_price >= 0", name="ck_bookings_total_price_non_negative"),
        sa.CheckConstraint("status IN ('pending','confirmed','cancelled','completed')", name="ck_bookings_status_valid"),
        sa.CheckConstraint("duration_hours IS NULL OR duration_hours > 0", name="ck_bookings_duration_positive"),
    )
    op.create_index("ix_bookings_client_id", "bookings", ["client_id"])
    op.create_index("ix_bookings_provider_id", "bookings", ["provider_id"])
    op.create_index("ix_bookings_service_id", "bookings", ["service_id"])
    # schedule query: a provider's open bookings
    op.create_index(
        "ix_bookings_provider_open", "bookings", ["provider_id", "scheduled_time"],
        postgresql_where=sa.text("status IN ('pending','confirmed')"),
    )

def downgrade() -> None:
    op.drop_index("ix_bookings_provider_open", table_name="bookings")
    op.drop_index("ix_bookings_service_id", table_name="bookings")
    op.drop_index("ix_bookings_provider_id", table_name="bookings")
    op.drop_index("ix_bookings_client_id", table_name="bookings")
    op.drop_table("bookings")
