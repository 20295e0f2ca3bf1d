"""index attempts by trainee and creation time

Revision ID: 0002_attempt_indexes
Revises: 0001_initial
Create Date: 2026-10-17 10:03:55.482951

"""
from alembic import op

revision = '0002_attempt_indexes'
down_revision = '0001_initial'
branch_labels = None
depends_on = None


def upgrade():
    op.create_index('ix_attempts_trainee_id', 'attempts', ['trainee_id'])
    op.create_index('ix_attempts_created_at', 'attempts', ['created_at'])


def downgrade():
    op.drop_index('ix_attempts_created_at', table_name='attempts')
    op.drop_index('ix_attempts_trainee_id', table_name='attempts')
