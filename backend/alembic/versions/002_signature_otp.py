"""Signature verification codes

Revision ID: 002
Revises: 001
Create Date: 2025-02-03 00:00:00.000000+00:00

What:  Adds the pending one-time code of a signature request (digest,
       expiry and failed attempts).

Rollback: downgrade() drops the three columns.
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    with op.batch_alter_table("signatures") as batch:
        batch.add_column(sa.Column("otp_digest", sa.String(64), nullable=True))
        batch.add_column(sa.Column("otp_expires_at", sa.DateTime(timezone=True), nullable=True))
        batch.add_column(
            sa.Column("otp_attempts", sa.Integer(), nullable=False, server_default="0")
        )


def downgrade() -> None:
    with op.batch_alter_table("signatures") as batch:
        batch.drop_column("otp_attempts")
        batch.drop_column("otp_expires_at")
        batch.drop_column("otp_digest")
