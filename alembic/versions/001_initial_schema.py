"""users and ranking history

Revision ID: 001
Create Date: 2026-10-19 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def _history_table(name: str) -> None:
    op.create_table(
        name,
        sa.Column('history_id', sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.BigInteger(),
                  sa.ForeignKey('users.user_id', onupdate='CASCADE', ondelete='CASCADE'),
                  nullable=False),
        sa.Column('update_time', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('spotify_id', sa.String(255), nullable=False),
        sa.Column('timeframe', sa.SmallInteger(), nullable=False),
        sa.Column('ranking', sa.SmallInteger(), nullable=False),
        sa.CheckConstraint('timeframe BETWEEN 0 AND 2', name=f'chk_{name}_timeframe'),
        sa.CheckConstraint('ranking >= 0', name=f'chk_{name}_ranking'),
    )
    op.create_index(f'idx_{name}_user_id', name, ['user_id'])
    op.create_index(f'idx_{name}_update_time', name, ['update_time'])


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('user_id', sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column('spotify_id', sa.String(255), nullable=False, unique=True),
        sa.Column('username', sa.Text(), nullable=False),
        sa.Column('token', sa.Text(), nullable=False),
        sa.Column('refresh_token', sa.Text(), nullable=False),
        sa.Column('creation_time', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('last_update_time', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('idx_users_spotify_id', 'users', ['spotify_id'])
    op.create_index('idx_users_last_update_time', 'users', ['last_update_time'])

    _history_table('track_history')
    _history_table('artist_history')


def downgrade() -> None:
    op.drop_table('artist_history')
    op.drop_table('track_history')
    op.drop_table('users')
