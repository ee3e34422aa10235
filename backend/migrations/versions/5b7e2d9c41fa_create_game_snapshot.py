"""create game_snapshot table

Revision ID: 5b7e2d9c41fa
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '5b7e2d9c41fa'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    if 'game_snapshot' in set(insp.get_table_names()):
        return

    op.create_table(
        'game_snapshot',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('session_id', sa.String(length=64), nullable=False),
        sa.Column('payload', sa.Text(), nullable=False),
        sa.Column('updated_at', sa.Float(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    with op.batch_alter_table('game_snapshot') as batch_op:
        batch_op.create_index('ix_game_snapshot_session_id', ['session_id'], unique=False)


def downgrade():
    with op.batch_alter_table('game_snapshot') as batch_op:
        batch_op.drop_index('ix_game_snapshot_session_id')
    op.drop_table('game_snapshot')
