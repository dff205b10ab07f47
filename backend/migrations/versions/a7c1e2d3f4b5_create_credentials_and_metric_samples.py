"""create user credentials and metric samples

Revision ID: a7c1e2d3f4b5
Revises:
Create Date: 2026-10-16

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'a7c1e2d3f4b5'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Encrypted OAuth credentials, one per (user, platform)
    op.create_table(
        'user_credentials',
        sa.Column('id', sa.Uuid(as_uuid=False), nullable=False),
        sa.Column('user_id', sa.String(255), nullable=False),
        sa.Column('platform', sa.String(50), nullable=False),
        sa.Column('token_data', sa.Text(), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'platform', name='uq_user_credentials_user_platform'),
    )
    op.create_index('ix_user_credentials_expires_at', 'user_credentials', ['expires_at'])
    op.create_index('ix_user_credentials_platform', 'user_credentials', ['platform'])

    # Metric history for growth and trend analytics
    op.create_table(
        'metric_samples',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.String(255), nullable=False),
        sa.Column('platform_name', sa.String(50), nullable=False),
        sa.Column('platform_identifier', sa.String(255), nullable=False),
        sa.Column('metric_name', sa.String(50), nullable=False),
        sa.Column('metric_value', sa.BigInteger(), nullable=False),
        sa.Column('recorded_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint(
            'user_id', 'platform_name', 'platform_identifier', 'metric_name', 'recorded_at',
            name='uq_metric_samples_key',
        ),
    )
    op.create_index('ix_metric_samples_user_platform', 'metric_samples', ['user_id', 'platform_name'])
    op.create_index('ix_metric_samples_platform_metric', 'metric_samples', ['platform_name', 'metric_name'])
    op.create_index('ix_metric_samples_recorded_at', 'metric_samples', ['recorded_at'])


def downgrade() -> None:
    op.drop_index('ix_metric_samples_recorded_at', table_name='metric_samples')
    op.drop_index('ix_metric_samples_platform_metric', table_name='metric_samples')
    op.drop_index('ix_metric_samples_user_platform', table_name='metric_samples')
    op.drop_table('metric_samples')
    op.drop_index('ix_user_credentials_platform', table_name='user_credentials')
    op.drop_index('ix_user_credentials_expires_at', table_name='user_credentials')
    op.drop_table('user_credentials')
