"""Create pastes table

Revision ID: 4c1e7d2a9b10
Revises:
Create Date: 2026-10-12 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '4c1e7d2a9b10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'pastes',
        sa.Column('id', sa.String(12), primary_key=True),
        sa.Column('title', sa.String(255), nullable=True),
        sa.Column('language', sa.String(50), nullable=False, server_default='text'),
        sa.Column('is_encrypted', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('encryption_iv', sa.String(64), nullable=True),
        sa.Column('encryption_salt', sa.String(64), nullable=True),
        sa.Column('burn_after', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('view_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('size_bytes', sa.Integer(), nullable=False),
        sa.Column('content_key', sa.String(255), nullable=False),
        sa.Column(
            'created_at',
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column('ip_hash', sa.String(64), nullable=True),
    )


def downgrade() -> None:
    op.drop_table('pastes')
