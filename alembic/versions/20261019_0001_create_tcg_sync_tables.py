"""create cards, price, grading and key-value tables

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19 09:00:00
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None

JSON_PAYLOAD = sa.JSON().with_variant(postgresql.JSONB(astext_type=sa.Text()), "postgresql")


def upgrade() -> None:
    op.create_table(
        "cards",
        sa.Column("id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("series", sa.String(length=255), nullable=False),
        sa.Column("number", sa.String(length=64), nullable=False),
        sa.Column("game_type", sa.String(length=32), nullable=False, comment="pokemon, one-piece, ..."),
        sa.Column(
            "details",
            JSON_PAYLOAD,
            nullable=True,
            comment="Card metadata merged from card data sources",
        ),
        sa.Column("last_pricing_update", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_grading_update", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_card_data_update", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_cards_name", "cards", ["name"], unique=False)
    op.create_index("ix_cards_game_type", "cards", ["game_type"], unique=False)

    op.create_table(
        "card_price_records",
        sa.Column("id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("card_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("source", sa.String(length=64), nullable=False),
        sa.Column("price", sa.Float(), nullable=False),
        sa.Column("currency", sa.String(length=8), nullable=False),
        sa.Column("raw_payload", JSON_PAYLOAD, nullable=True),
        sa.Column("recorded_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["card_id"], ["cards.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_card_price_records_card_id_source",
        "card_price_records",
        ["card_id", "source"],
        unique=False,
    )
    op.create_index(
        "ix_card_price_records_recorded_at",
        "card_price_records",
        ["recorded_at"],
        unique=False,
    )

    op.create_table(
        "card_grading_records",
        sa.Column("id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("card_id", sa.Uuid(as_uuid=True), nullable=True),
        sa.Column("card_name", sa.String(length=255), nullable=False),
        sa.Column("card_series", sa.String(length=255), nullable=False),
        sa.Column("card_number", sa.String(length=64), nullable=False),
        sa.Column("authority", sa.String(length=32), nullable=False, comment="psa, cgc, ars or overall"),
        sa.Column("total_graded", sa.Integer(), nullable=False),
        sa.Column("grade_distribution", JSON_PAYLOAD, nullable=False),
        sa.Column("average_grade", sa.Float(), nullable=False),
        sa.Column("highest_grade", sa.Float(), nullable=False),
        sa.Column("lowest_grade", sa.Float(), nullable=False),
        sa.Column("fetched_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["card_id"], ["cards.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_card_grading_records_card_name_series",
        "card_grading_records",
        ["card_name", "card_series"],
        unique=False,
    )
    op.create_index(
        "ix_card_grading_records_fetched_at",
        "card_grading_records",
        ["fetched_at"],
        unique=False,
    )

    op.create_table(
        "key_value_entries",
        sa.Column("key", sa.String(length=512), nullable=False),
        sa.Column("value", JSON_PAYLOAD, nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("key"),
    )


def downgrade() -> None:
    op.drop_table("key_value_entries")
    op.drop_index("ix_card_grading_records_fetched_at", table_name="card_grading_records")
    op.drop_index("ix_card_grading_records_card_name_series", table_name="card_grading_records")
    op.drop_table("card_grading_records")
    op.drop_index("ix_card_price_records_recorded_at", table_name="card_price_records")
    op.drop_index("ix_card_price_records_card_id_source", table_name="card_price_records")
    op.drop_table("card_price_records")
    op.drop_index("ix_cards_game_type", table_name="cards")
    op.drop_index("ix_cards_name", table_name="cards")
    op.drop_table("cards")
