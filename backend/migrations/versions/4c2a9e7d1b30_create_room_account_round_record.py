"""create room, account and round_record tables

Revision ID: 4c2a9e7d1b30
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '4c2a9e7d1b30'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    existing_tables = set(sa.inspect(bind).get_table_names())

    if 'room' not in existing_tables:
        op.create_table(
            'room',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('room_code', sa.String(length=6), nullable=False),
            sa.Column('version', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('document', sa.Text(), nullable=False),
            sa.Column('created_at', sa.BigInteger(), nullable=False),
            sa.Column('updated_at', sa.BigInteger(), nullable=False),
            sa.PrimaryKeyConstraint('id'),
        )
        op.create_index(op.f('ix_room_room_code'), 'room', ['room_code'], unique=True)
        op.create_index(op.f('ix_room_updated_at'), 'room', ['updated_at'], unique=False)

    if 'account' not in existing_tables:
        op.create_table(
            'account',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('username', sa.String(length=64), nullable=False),
            sa.Column('xp', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('coins', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('games_played', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('games_won', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('total_points', sa.Integer(), nullable=False, server_default='0'),
            sa.PrimaryKeyConstraint('id'),
        )
        op.create_index(op.f('ix_account_username'), 'account', ['username'], unique=True)

    if 'round_record' not in existing_tables:
        op.create_table(
            'round_record',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('room_code', sa.String(length=6), nullable=False),
            sa.Column('round_number', sa.Integer(), nullable=False),
            sa.Column('secret_word', sa.String(length=128), nullable=True),
            sa.Column('accused_player_id', sa.String(length=64), nullable=True),
            sa.Column('was_imposter', sa.Boolean(), nullable=False),
            sa.Column('points', sa.Text(), nullable=True),
            sa.Column('completed_at', sa.BigInteger(), nullable=False),
            sa.PrimaryKeyConstraint('id'),
        )
        op.create_index(op.f('ix_round_record_room_code'), 'round_record', ['room_code'], unique=False)


def downgrade():
    op.drop_index(op.f('ix_round_record_room_code'), table_name='round_record')
    op.drop_table('round_record')
    op.drop_index(op.f('ix_account_username'), table_name='account')
    op.drop_table('account')
    op.drop_index(op.f('ix_room_updated_at'), table_name='room')
    op.drop_index(op.f('ix_room_room_code'), table_name='room')
    op.drop_table('room')
