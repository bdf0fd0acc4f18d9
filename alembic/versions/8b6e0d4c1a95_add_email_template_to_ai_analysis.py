"""Add email_template to ai_analysis

Revision ID: 8b6e0d4c1a95
Revises: 3f1a9c7d2e40
Create Date: 2026-10-19 15:30:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '8b6e0d4c1a95'
down_revision: Union[str, Sequence[str], None] = '3f1a9c7d2e40'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.add_column('ai_analysis', sa.Column('email_template', sa.Text(), nullable=True))


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_column('ai_analysis', 'email_template')
