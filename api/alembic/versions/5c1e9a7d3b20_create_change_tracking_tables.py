"""create_change_tracking_tables

Revision ID: 5c1e9a7d3b20
Revises:
Create Date: 2024-03-01 09:12:44.118302

"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '5c1e9a7d3b20'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('full_name', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=50), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('user_id'),
        sa.UniqueConstraint('email')
    )

    op.create_table(
        'applications',
        sa.Column('application_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('owner_id', sa.Integer(), nullable=True,
                  comment='Application owner / single point of contact'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['owner_id'], ['users.user_id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('application_id')
    )
    op.create_index('ix_applications_owner_id', 'applications', ['owner_id'])

    op.create_table(
        'change_requests',
        sa.Column('change_request_id', sa.Integer(), nullable=False),
        sa.Column('change_id', sa.String(length=50), nullable=False,
                  comment='Human readable code, e.g. CR-2024-001234'),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('change_type', sa.String(length=20), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False,
                  comment='Lifecycle status: active, completed, cancelled'),
        sa.Column('start_time', sa.DateTime(), nullable=False),
        sa.Column('end_time', sa.DateTime(), nullable=False),
        sa.Column('manager_id', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['manager_id'], ['users.user_id']),
        sa.PrimaryKeyConstraint('change_request_id'),
        sa.UniqueConstraint('change_id')
    )
    op.create_index('ix_change_requests_start_time', 'change_requests', ['start_time'])
    op.create_index('ix_change_requests_manager_id', 'change_requests', ['manager_id'])

    op.create_table(
        'change_request_applications',
        sa.Column('record_id', sa.Integer(), nullable=False),
        sa.Column('change_request_id', sa.Integer(), nullable=False),
        sa.Column('application_id', sa.Integer(), nullable=False),
        sa.Column('pre_status', sa.String(length=20), nullable=False),
        sa.Column('post_status', sa.String(length=20), nullable=False),
        sa.Column('pre_comments', sa.Text(), nullable=True),
        sa.Column('post_comments', sa.Text(), nullable=True),
        sa.Column('pre_attachments', sa.JSON(), nullable=False),
        sa.Column('post_attachments', sa.JSON(), nullable=False),
        sa.Column('pre_updated_at', sa.DateTime(), nullable=True),
        sa.Column('post_updated_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['change_request_id'], ['change_requests.change_request_id'],
                                ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['application_id'], ['applications.application_id']),
        sa.PrimaryKeyConstraint('record_id'),
        sa.UniqueConstraint('change_request_id', 'application_id',
                            name='uq_change_request_application')
    )
    op.create_index('ix_change_request_applications_change_request_id',
                    'change_request_applications', ['change_request_id'])
    op.create_index('ix_change_request_applications_application_id',
                    'change_request_applications', ['application_id'])

    op.create_table(
        'audit_logs',
        sa.Column('log_id', sa.Integer(), nullable=False),
        sa.Column('entity_type', sa.String(length=50), nullable=False),
        sa.Column('entity_id', sa.Integer(), nullable=False),
        sa.Column('action', sa.String(length=50), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('changes', sa.JSON(), nullable=True),
        sa.Column('timestamp', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.user_id']),
        sa.PrimaryKeyConstraint('log_id')
    )
    op.create_index('ix_audit_logs_log_id', 'audit_logs', ['log_id'])


def downgrade() -> None:
    op.drop_index('ix_audit_logs_log_id', table_name='audit_logs')
    op.drop_table('audit_logs')
    op.drop_index('ix_change_request_applications_application_id',
                  table_name='change_request_applications')
    op.drop_index('ix_change_request_applications_change_request_id',
                  table_name='change_request_applications')
    op.drop_table('change_request_applications')
    op.drop_index('ix_change_requests_manager_id', table_name='change_requests')
    op.drop_index('ix_change_requests_start_time', table_name='change_requests')
    op.drop_table('change_requests')
    op.drop_index('ix_applications_owner_id', table_name='applications')
    op.drop_table('applications')
    op.drop_table('users')
