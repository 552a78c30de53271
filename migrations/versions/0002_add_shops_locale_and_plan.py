"""Add shops.locale and shops.plan."""

from __future__ import annotations

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "0002_add_shops_locale_and_plan"
down_revision: Union[str, None] = "0001_initial_schema"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.add_column("shops", sa.Column("locale", sa.Text(), nullable=True))
    op.add_column("shops", sa.Column("plan", sa.Text(), nullable=True))


def downgrade() -> None:
    # Batch mode so the downgrade also works on SQLite.
    with op.batch_alter_table("shops") as batch_op:
        batch_op.drop_column("plan")
        batch_op.drop_column("locale")
