"""Initial schema

Revision ID: 001_initial
Revises: 
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Users table (relationship managers)
    op.create_table(
        'users',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False, server_default=sa.text('gen_random_uuid()')),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('role', sa.String(50), nullable=False, server_default='RM'),  # 'RM', 'Senior RM', 'Head of RM'
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email'),
    )

    # Teams table
    op.create_table(
        'teams',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False, server_default=sa.text('gen_random_uuid()')),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('auto_assign_clients', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )

    # Resources table (client records)
    op.create_table(
        'resources',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False, server_default=sa.text('gen_random_uuid()')),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('type', sa.String(50), nullable=False, server_default='client'),
        sa.Column('segment', sa.String(50), nullable=False),  # 'Private', 'Corporate', 'Retail'
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )

    # Manager edges: manager_id manages user_id
    op.create_table(
        'user_managers',
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('manager_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('manager_type', sa.String(20), nullable=False, server_default='line_manager'),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=True),
        sa.PrimaryKeyConstraint('user_id', 'manager_id'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['manager_id'], ['users.id'], ondelete='CASCADE'),
        sa.CheckConstraint('user_id <> manager_id', name='ck_user_managers_no_self'),
    )
    op.create_index('idx_user_managers_manager', 'user_managers', ['manager_id'])

    # Materialized team access: direct members and manager-derived rows
    op.create_table(
        'team_members',
        sa.Column('team_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('access_type', sa.String(20), nullable=False),  # 'direct', 'manager'
        sa.Column('granted_via', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('joined_at', sa.DateTime(), server_default=sa.text('now()'), nullable=True),
        sa.PrimaryKeyConstraint('team_id', 'user_id'),
        sa.ForeignKeyConstraint(['team_id'], ['teams.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['granted_via'], ['users.id'], ondelete='RESTRICT'),
        sa.CheckConstraint(
            "(access_type = 'direct' AND granted_via IS NULL) OR "
            "(access_type = 'manager' AND granted_via IS NOT NULL)",
            name='ck_team_members_granted_via',
        ),
    )
    op.create_index('idx_team_members_user', 'team_members', ['user_id'])
    op.create_index('idx_team_members_granted_via', 'team_members', ['team_id', 'granted_via'])

    # Resource visibility per team
    op.create_table(
        'team_resources',
        sa.Column('team_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('resource_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('assigned_at', sa.DateTime(), server_default=sa.text('now()'), nullable=True),
        sa.PrimaryKeyConstraint('team_id', 'resource_id'),
        sa.ForeignKeyConstraint(['team_id'], ['teams.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['resource_id'], ['resources.id'], ondelete='CASCADE'),
    )
    op.create_index('idx_team_resources_resource', 'team_resources', ['resource_id'])


def downgrade() -> None:
    op.drop_index('idx_team_resources_resource', table_name='team_resources')
    op.drop_table('team_resources')
    op.drop_index('idx_team_members_granted_via', table_name='team_members')
    op.drop_index('idx_team_members_user', table_name='team_members')
    op.drop_table('team_members')
    op.drop_index('idx_user_managers_manager', table_name='user_managers')
    op.drop_table('user_managers')
    op.drop_table('resources')
    op.drop_table('teams')
    op.drop_table('users')
