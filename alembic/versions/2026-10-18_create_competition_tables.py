"""Create check-in and competition tables

Revision ID: 7b1f4c2a9d30
Revises: 
Create Date: 2026-10-18 10:12:41.503218

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '7b1f4c2a9d30'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'meal_check_ins',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('patient_id', sa.String(), nullable=False),
        sa.Column('meal_type', sa.String(), nullable=False),
        sa.Column('timestamp', sa.DateTime(timezone=True), nullable=True),
        sa.Column('hunger_rating', sa.Integer(), nullable=True),
        sa.Column('satiety_rating', sa.Integer(), nullable=True),
        sa.Column('satisfaction_rating', sa.Integer(), nullable=True),
        sa.Column('photo_url', sa.String(), nullable=True),
        sa.Column('tag', sa.String(), nullable=True),
        sa.Column('observations', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_meal_check_ins_patient_id', 'meal_check_ins', ['patient_id'])
    op.create_index('ix_meal_check_ins_timestamp', 'meal_check_ins', ['timestamp'])

    op.create_table(
        'competitions',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('nutritionist_id', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('scoring_criteria', postgresql.JSONB(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_competitions_nutritionist_id', 'competitions', ['nutritionist_id'])

    op.create_table(
        'competition_participants',
        sa.Column('competition_id', sa.String(), nullable=False),
        sa.Column('patient_id', sa.String(), nullable=False),
        sa.Column('joined_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['competition_id'], ['competitions.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('competition_id', 'patient_id')
    )
    op.create_index(
        'ix_competition_participants_patient_id', 'competition_participants', ['patient_id']
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table('competition_participants')
    op.drop_table('competitions')
    op.drop_table('meal_check_ins')
