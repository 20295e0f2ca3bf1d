"""departments, trainees, simulations, campaigns and attempts

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-17 09:12:40.118223

"""
from alembic import op
import sqlalchemy as sa

revision = '0001_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'departments',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('name', sa.String(255), nullable=False, unique=True),
        sa.Column('risk_score', sa.Integer, nullable=False, server_default='100'),
    )
    op.create_table(
        'trainees',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('email', sa.String(255), nullable=False, unique=True),
        sa.Column('dept_id', sa.Integer, sa.ForeignKey('departments.id'), nullable=True),
        sa.Column('security_score', sa.Integer, nullable=False, server_default='100'),
        sa.Column('simulations_completed', sa.Integer, nullable=False, server_default='0'),
        sa.Column('current_streak', sa.Integer, nullable=False, server_default='0'),
        sa.Column('best_streak', sa.Integer, nullable=False, server_default='0'),
        sa.Column('xp', sa.Integer, nullable=False, server_default='0'),
        sa.Column('level', sa.Integer, nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime),
    )
    op.create_table(
        'simulations',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('type', sa.String(20), nullable=False),
        sa.Column('difficulty', sa.Integer, nullable=False),
        sa.Column('content', sa.JSON, nullable=True),
        sa.Column('created_at', sa.DateTime),
    )
    op.create_table(
        'campaigns',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='active'),
        sa.Column('target_dept_id', sa.Integer, sa.ForeignKey('departments.id'), nullable=False),
        sa.Column('sim_type', sa.String(20), nullable=False),
        sa.Column('launched_at', sa.DateTime),
    )
    op.create_table(
        'attempts',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('trainee_id', sa.Integer, sa.ForeignKey('trainees.id'), nullable=False),
        sa.Column('simulation_id', sa.Integer, sa.ForeignKey('simulations.id'), nullable=False),
        sa.Column('campaign_id', sa.Integer, sa.ForeignKey('campaigns.id', ondelete='SET NULL'), nullable=True),
        sa.Column('sim_type', sa.String(20), nullable=False, server_default='email'),
        sa.Column('is_correct', sa.Boolean, nullable=False),
        sa.Column('score', sa.Integer, nullable=False, server_default='0'),
        sa.Column('response_time_ms', sa.Integer, nullable=False, server_default='0'),
        sa.Column('difficulty', sa.Integer, nullable=False, server_default='1'),
        sa.Column('flags_identified', sa.JSON, nullable=True),
        sa.Column('flags_missed', sa.JSON, nullable=True),
        sa.Column('feedback', sa.Text, nullable=False, server_default=''),
        sa.Column('created_at', sa.DateTime),
    )


def downgrade():
    op.drop_table('attempts')
    op.drop_table('campaigns')
    op.drop_table('simulations')
    op.drop_table('trainees')
    op.drop_table('departments')
