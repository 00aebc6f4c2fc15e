"""Create forecasts table.

Revision ID: 001
Revises:
Create Date: 2024-01-08
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "forecasts",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("temperature_c", sa.Integer(), nullable=False),
        sa.Column("summary", sa.String(length=200), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_forecasts_date", "forecasts", ["date"])


def downgrade() -> None:
    op.drop_index("ix_forecasts_date", table_name="forecasts")
    op.drop_table("forecasts")
