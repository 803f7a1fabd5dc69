"""create bank_question table

Revision ID: 3a7c9e1f2b40
Revises:
Create Date: 2026-10-18 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '3a7c9e1f2b40'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)

    # Tables created by `flask seed-questions` (db.create_all) are left as they are
    if 'bank_question' in set(insp.get_table_names()):
        return

    op.create_table(
        'bank_question',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('question', sa.Text(), nullable=False),
        sa.Column('category', sa.String(length=128), nullable=True),
        sa.Column('level', sa.String(length=32), nullable=False, server_default='beginner'),
        sa.Column('answers', sa.Text(), nullable=False),
        sa.Column('used', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.PrimaryKeyConstraint('id'),
    )


def downgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    if 'bank_question' in set(insp.get_table_names()):
        op.drop_table('bank_question')
