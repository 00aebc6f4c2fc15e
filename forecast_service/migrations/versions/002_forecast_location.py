"""Add forecast location and one-record-per-key index.

Revision ID: 002
Revises: 001
Create Date: 2024-02-19

NULL locations compare equal inside the index through coalesce(), so
legacy (location-less) forecasts are also unique per day.
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "002"
down_revision = "001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column("forecasts", sa.Column("location", sa.String(length=200), nullable=True))
    op.create_index(
        "uq_forecasts_date_location",
        "forecasts",
        ["date", sa.text("coalesce(location, '')")],
        unique=True,
    )


def downgrade() -> None:
    op.drop_index("uq_forecasts_date_location", table_name="forecasts")
    with op.batch_alter_table("forecasts") as batch_op:
        batch_op.drop_column("location")
