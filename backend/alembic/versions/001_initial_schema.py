"""Initial schema

Revision ID: 001
Revises:
Create Date: 2026-10-17 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

SUNDRY_COLUMNS = (
    'masking_paper_roll', 'plastic_roll', 'putty_spackle_tub', 'caulk_tube',
    'white_tape_roll', 'orange_tape_roll', 'floor_paper_roll', 'tip',
    'sanding_sponge', 'inch_roller_cover_18', 'inch_roller_cover_9',
    'mini_cover', 'masks', 'brick_tape_roll',
)


def upgrade() -> None:
    # Timesheets
    op.create_table('time_entries',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('user_id', sa.String(length=100), nullable=False),
    sa.Column('user_email', sa.String(length=255), nullable=False),
    sa.Column('job_id', sa.String(length=100), nullable=False),
    sa.Column('job_name', sa.Text(), nullable=False),
    sa.Column('entry_date', sa.Date(), nullable=False),
    sa.Column('notes', sa.Text(), nullable=False, server_default=''),
    sa.Column('change_order', sa.Text(), nullable=False, server_default=''),
    sa.Column('total_crew_hours', sa.Float(), nullable=False, server_default='0'),
    sa.Column('synced', sa.Boolean(), nullable=False, server_default=sa.false()),
    sa.Column('zoho_parent_id', sa.String(length=100), nullable=True),
    *[sa.Column(name, sa.Integer(), nullable=False, server_default='0') for name in SUNDRY_COLUMNS],
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_time_entries_user_id'), 'time_entries', ['user_id'], unique=False)
    op.create_index(op.f('ix_time_entries_job_id'), 'time_entries', ['job_id'], unique=False)
    op.create_index(op.f('ix_time_entries_entry_date'), 'time_entries', ['entry_date'], unique=False)
    op.create_index(op.f('ix_time_entries_synced'), 'time_entries', ['synced'], unique=False)
    op.create_index('idx_time_entries_user_synced', 'time_entries', ['user_id', 'synced'], unique=False)

    # Crew rows
    op.create_table('timesheet_painters',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('timesheet_id', sa.String(length=36), nullable=False),
    sa.Column('painter_id', sa.String(length=100), nullable=False),
    sa.Column('painter_name', sa.String(length=255), nullable=False),
    sa.Column('start_time', sa.String(length=5), nullable=False),
    sa.Column('end_time', sa.String(length=5), nullable=False),
    sa.Column('lunch_start', sa.String(length=5), nullable=False, server_default=''),
    sa.Column('lunch_end', sa.String(length=5), nullable=False, server_default=''),
    sa.Column('total_hours', sa.Float(), nullable=False, server_default='0'),
    sa.Column('zoho_junction_id', sa.String(length=100), nullable=True),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.ForeignKeyConstraint(['timesheet_id'], ['time_entries.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('timesheet_id', 'painter_id', name='uq_timesheet_painter')
    )
    op.create_index(op.f('ix_timesheet_painters_timesheet_id'), 'timesheet_painters', ['timesheet_id'], unique=False)
    op.create_index(op.f('ix_timesheet_painters_painter_id'), 'timesheet_painters', ['painter_id'], unique=False)

    # Projects
    op.create_table('projects',
    sa.Column('id', sa.String(length=100), nullable=False),
    sa.Column('name', sa.Text(), nullable=False),
    sa.Column('customer', sa.Text(), nullable=False, server_default=''),
    sa.Column('status', sa.String(length=100), nullable=False, server_default='Project Accepted'),
    sa.Column('date', sa.String(length=20), nullable=False, server_default=''),
    sa.Column('address', sa.Text(), nullable=False, server_default=''),
    sa.Column('sales_rep', sa.String(length=255), nullable=False, server_default=''),
    sa.Column('supplier_color', sa.String(length=255), nullable=False, server_default=''),
    sa.Column('trim_color', sa.String(length=255), nullable=False, server_default=''),
    sa.Column('accessory_color', sa.String(length=255), nullable=False, server_default=''),
    sa.Column('gutter_type', sa.String(length=255), nullable=False, server_default=''),
    sa.Column('siding_style', sa.String(length=255), nullable=False, server_default=''),
    sa.Column('work_order_link', sa.Text(), nullable=False, server_default=''),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_projects_status'), 'projects', ['status'], unique=False)

    # User -> project grants
    op.create_table('user_projects',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('user_email', sa.String(length=255), nullable=False),
    sa.Column('project_id', sa.String(length=100), nullable=False),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('user_email', 'project_id', name='uq_user_project')
    )
    op.create_index(op.f('ix_user_projects_user_email'), 'user_projects', ['user_email'], unique=False)
    op.create_index(op.f('ix_user_projects_project_id'), 'user_projects', ['project_id'], unique=False)

    # Portal users
    op.create_table('users',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('email', sa.String(length=255), nullable=False),
    sa.Column('username', sa.String(length=255), nullable=False),
    sa.Column('zoho_id', sa.String(length=100), nullable=True),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_users_email'), 'users', ['email'], unique=True)
    op.create_index(op.f('ix_users_zoho_id'), 'users', ['zoho_id'], unique=False)

    # Painter directory
    op.create_table('painters',
    sa.Column('id', sa.String(length=100), nullable=False),
    sa.Column('name', sa.String(length=255), nullable=False),
    sa.Column('email', sa.String(length=255), nullable=True),
    sa.Column('phone', sa.String(length=50), nullable=True),
    sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_painters_name'), 'painters', ['name'], unique=False)
    op.create_index(op.f('ix_painters_active'), 'painters', ['active'], unique=False)

    # Reconciliation history
    op.create_table('reconcile_runs',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('trigger_type', sa.String(length=50), nullable=False, server_default='manual'),
    sa.Column('start_time', sa.DateTime(timezone=True), nullable=False),
    sa.Column('end_time', sa.DateTime(timezone=True), nullable=True),
    sa.Column('status', sa.String(length=50), nullable=False),
    sa.Column('projects_count', sa.Integer(), nullable=False, server_default='0'),
    sa.Column('users_synced', sa.Integer(), nullable=False, server_default='0'),
    sa.Column('connections_processed', sa.Integer(), nullable=False, server_default='0'),
    sa.Column('painters_synced', sa.Integer(), nullable=False, server_default='0'),
    sa.Column('step_errors', sa.JSON(), nullable=True),
    sa.Column('error_message', sa.Text(), nullable=True),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_reconcile_runs_id'), 'reconcile_runs', ['id'], unique=False)


def downgrade() -> None:
    op.drop_index(op.f('ix_reconcile_runs_id'), table_name='reconcile_runs')
    op.drop_table('reconcile_runs')

    op.drop_index(op.f('ix_painters_active'), table_name='painters')
    op.drop_index(op.f('ix_painters_name'), table_name='painters')
    op.drop_table('painters')

    op.drop_index(op.f('ix_users_zoho_id'), table_name='users')
    op.drop_index(op.f('ix_users_email'), table_name='users')
    op.drop_table('users')

    op.drop_index(op.f('ix_user_projects_project_id'), table_name='user_projects')
    op.drop_index(op.f('ix_user_projects_user_email'), table_name='user_projects')
    op.drop_table('user_projects')

    op.drop_index(op.f('ix_projects_status'), table_name='projects')
    op.drop_table('projects')

    op.drop_index(op.f('ix_timesheet_painters_painter_id'), table_name='timesheet_painters')
    op.drop_index(op.f('ix_timesheet_painters_timesheet_id'), table_name='timesheet_painters')
    op.drop_table('timesheet_painters')

    op.drop_index('idx_time_entries_user_synced', table_name='time_entries')
    op.drop_index(op.f('ix_time_entries_synced'), table_name='time_entries')
    op.drop_index(op.f('ix_time_entries_entry_date'), table_name='time_entries')
    op.drop_index(op.f('ix_time_entries_job_id'), table_name='time_entries')
    op.drop_index(op.f('ix_time_entries_user_id'), table_name='time_entries')
    op.drop_table('time_entries')
