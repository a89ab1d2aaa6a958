"""Add index on expires_at

Revision ID: 9b3a1a2f1f7a
Revises: 4c1e7d2a9b10
Create Date: 2026-10-14 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '9b3a1a2f1f7a'
down_revision: Union[str, Sequence[str], None] = '4c1e7d2a9b10'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # the sweep scans expires_at < now
    op.create_index(
        'ix_pastes_expires_at',
        'pastes',
        ['expires_at'],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index('ix_pastes_expires_at', table_name='pastes')
