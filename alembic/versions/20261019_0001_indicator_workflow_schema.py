"""Initial schema - indicator verification workflow

Revision ID: 0001
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '0001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def _role_assignment(table_name, scope_column, scope_table):
    op.create_table(
        table_name,
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column(scope_column, sa.Uuid(), sa.ForeignKey(f'{scope_table}.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('role_id', sa.Uuid(), sa.ForeignKey('roles.id', ondelete='CASCADE'), nullable=False),
        *_timestamps(),
    )


def _indicator_columns():
    return [
        sa.Column('title', sa.String(500), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('response_format', sa.String(20), nullable=False, default='numeric'),
        sa.Column('acceptance_value', sa.String(255), nullable=True),
        sa.Column('verifier_1_role_id', sa.Uuid(), sa.ForeignKey('roles.id', ondelete='SET NULL'), nullable=True),
        sa.Column('verifier_2_role_id', sa.Uuid(), sa.ForeignKey('roles.id', ondelete='SET NULL'), nullable=True),
        sa.Column('responsible_role_id', sa.Uuid(), sa.ForeignKey('roles.id', ondelete='SET NULL'), nullable=True),
    ]


def upgrade() -> None:
    # Organisational topology
    op.create_table(
        'tenant_clusters',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        *_timestamps(),
    )

    op.create_table(
        'tenants',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('cluster_id', sa.Uuid(), sa.ForeignKey('tenant_clusters.id', ondelete='SET NULL'), nullable=True, index=True),
        *_timestamps(),
    )

    op.create_table(
        'delivery_locations',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        *_timestamps(),
    )

    op.create_table(
        'roles',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('slug', sa.String(255), unique=True, nullable=False, index=True),
        *_timestamps(),
    )

    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('email', sa.String(255), unique=True, nullable=False, index=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('permissions', sa.JSON(), nullable=False),
        sa.Column('primary_tenant_id', sa.Uuid(), sa.ForeignKey('tenants.id', ondelete='SET NULL'), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        'organisations',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('delivery_location_id', sa.Uuid(), sa.ForeignKey('delivery_locations.id', ondelete='SET NULL'), nullable=True),
        sa.Column('primary_tenant_id', sa.Uuid(), sa.ForeignKey('tenants.id', ondelete='SET NULL'), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        'programmes',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('title', sa.String(500), nullable=False),
        sa.Column('duration', sa.Integer(), nullable=False, default=12),
        *_timestamps(),
    )

    op.create_table(
        'organisation_guides',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('organisation_id', sa.Uuid(), sa.ForeignKey('organisations.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        *_timestamps(),
    )

    _role_assignment('delivery_location_user_roles', 'delivery_location_id', 'delivery_locations')
    op.create_index(
        'ix_delivery_location_user_roles_location_role',
        'delivery_location_user_roles',
        ['delivery_location_id', 'role_id'],
    )
    _role_assignment('tenant_cluster_user_roles', 'tenant_cluster_id', 'tenant_clusters')
    op.create_index(
        'ix_tenant_cluster_user_roles_cluster_role',
        'tenant_cluster_user_roles',
        ['tenant_cluster_id', 'role_id'],
    )
    _role_assignment('programme_user_roles', 'programme_id', 'programmes')
    op.create_index('ix_programme_user_roles_programme_role', 'programme_user_roles', ['programme_id', 'role_id'])

    # Indicators
    op.create_table(
        'indicator_successes',
        sa.Column('id', sa.Uuid(), primary_key=True),
        *_indicator_columns(),
        *_timestamps(),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        'indicator_compliances',
        sa.Column('id', sa.Uuid(), primary_key=True),
        *_indicator_columns(),
        sa.Column('type', sa.String(50), nullable=False, default='other'),
        *_timestamps(),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        'indicator_success_programmes',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('indicator_success_id', sa.Uuid(), sa.ForeignKey('indicator_successes.id', ondelete='CASCADE'), nullable=False),
        sa.Column('programme_id', sa.Uuid(), sa.ForeignKey('programmes.id', ondelete='CASCADE'), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, default='pending'),
        *_timestamps(),
        sa.UniqueConstraint('indicator_success_id', 'programme_id', name='uq_indicator_success_programme'),
    )

    op.create_table(
        'indicator_compliance_programmes',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('indicator_compliance_id', sa.Uuid(), sa.ForeignKey('indicator_compliances.id', ondelete='CASCADE'), nullable=False),
        sa.Column('programme_id', sa.Uuid(), sa.ForeignKey('programmes.id', ondelete='CASCADE'), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, default='pending'),
        *_timestamps(),
        sa.UniqueConstraint('indicator_compliance_id', 'programme_id', name='uq_indicator_compliance_programme'),
    )

    op.create_table(
        'indicator_success_programme_months',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column(
            'indicator_success_programme_id',
            sa.Uuid(),
            sa.ForeignKey('indicator_success_programmes.id', ondelete='CASCADE'),
            nullable=False,
            index=True,
        ),
        sa.Column('programme_month', sa.Integer(), nullable=False),
        sa.Column('target_value', sa.Float(), nullable=True),
        *_timestamps(),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        'indicator_compliance_programme_months',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column(
            'indicator_compliance_programme_id',
            sa.Uuid(),
            sa.ForeignKey('indicator_compliance_programmes.id', ondelete='CASCADE'),
            nullable=False,
            index=True,
        ),
        sa.Column('programme_month', sa.Integer(), nullable=False),
        sa.Column('target_value', sa.Float(), nullable=True),
        *_timestamps(),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
    )

    # Tasks
    op.create_table(
        'indicator_tasks',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('entrepreneur_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True, index=True),
        sa.Column('organisation_id', sa.Uuid(), sa.ForeignKey('organisations.id', ondelete='SET NULL'), nullable=True),
        sa.Column('programme_id', sa.Uuid(), sa.ForeignKey('programmes.id', ondelete='SET NULL'), nullable=True),
        sa.Column('indicatable_type', sa.String(50), nullable=False),
        sa.Column('indicatable_id', sa.Uuid(), nullable=False),
        sa.Column('indicatable_month_type', sa.String(50), nullable=False),
        sa.Column('indicatable_month_id', sa.Uuid(), nullable=False),
        sa.Column('responsible_type', sa.String(20), nullable=False, default='user'),
        sa.Column('responsible_role_id', sa.Uuid(), sa.ForeignKey('roles.id', ondelete='SET NULL'), nullable=True),
        sa.Column('responsible_user_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('due_date', sa.Date(), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, default='pending'),
        sa.Column('is_achieved', sa.Boolean(), nullable=True),
        *_timestamps(),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index(
        'ix_indicator_tasks_context',
        'indicator_tasks',
        ['entrepreneur_id', 'organisation_id', 'programme_id'],
    )
    op.create_index('ix_indicator_tasks_month', 'indicator_tasks', ['indicatable_month_type', 'indicatable_month_id'])

    # Submissions
    op.create_table(
        'indicator_submissions',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('indicator_task_id', sa.Uuid(), sa.ForeignKey('indicator_tasks.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('value', sa.String(255), nullable=True),
        sa.Column('comment', sa.Text(), nullable=True),
        sa.Column('is_achieved', sa.Boolean(), nullable=False, default=False),
        sa.Column('status', sa.String(50), nullable=False, default='pending_verification_1', index=True),
        sa.Column('submitter_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('submitted_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        'indicator_submission_attachments',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column(
            'indicator_submission_id',
            sa.Uuid(),
            sa.ForeignKey('indicator_submissions.id', ondelete='CASCADE'),
            nullable=False,
            index=True,
        ),
        sa.Column('title', sa.String(500), nullable=False),
        sa.Column('file_path', sa.String(1000), nullable=False),
        sa.Column('mime_type', sa.String(255), nullable=True),
        sa.Column('file_size', sa.Integer(), nullable=True),
        *_timestamps(),
    )

    # Reviews
    op.create_table(
        'indicator_review_tasks',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('indicator_submission_id', sa.Uuid(), sa.ForeignKey('indicator_submissions.id', ondelete='CASCADE'), nullable=False),
        sa.Column('indicator_task_id', sa.Uuid(), sa.ForeignKey('indicator_tasks.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('verifier_user_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True, index=True),
        sa.Column('verifier_role_id', sa.Uuid(), sa.ForeignKey('roles.id', ondelete='SET NULL'), nullable=True),
        sa.Column('verifier_level', sa.Integer(), nullable=False),
        sa.Column('due_date', sa.Date(), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint(
            'indicator_submission_id',
            'verifier_level',
            name='uq_indicator_review_tasks_submission_level',
        ),
    )

    op.create_table(
        'indicator_submission_reviews',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column(
            'indicator_review_task_id',
            sa.Uuid(),
            sa.ForeignKey('indicator_review_tasks.id', ondelete='CASCADE'),
            unique=True,
            nullable=False,
        ),
        sa.Column(
            'indicator_submission_id',
            sa.Uuid(),
            sa.ForeignKey('indicator_submissions.id', ondelete='SET NULL'),
            nullable=True,
            index=True,
        ),
        sa.Column('approved', sa.Boolean(), nullable=False),
        sa.Column('verifier_level', sa.Integer(), nullable=False),
        sa.Column('comment', sa.Text(), nullable=True),
        sa.Column('reviewer_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('reviewed_at', sa.DateTime(timezone=True), nullable=False),
        *_timestamps(),
    )

    # Activity log (append-only)
    op.create_table(
        'activity_logs',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('subject_type', sa.String(100), nullable=True),
        sa.Column('subject_id', sa.Uuid(), nullable=True),
        sa.Column('causer_id', sa.Uuid(), nullable=True, index=True),
        sa.Column('properties', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False, index=True),
    )
    op.create_index('ix_activity_logs_subject', 'activity_logs', ['subject_type', 'subject_id'])


def downgrade() -> None:
    op.drop_table('activity_logs')
    op.drop_table('indicator_submission_reviews')
    op.drop_table('indicator_review_tasks')
    op.drop_table('indicator_submission_attachments')
    op.drop_table('indicator_submissions')
    op.drop_table('indicator_tasks')
    op.drop_table('indicator_compliance_programme_months')
    op.drop_table('indicator_success_programme_months')
    op.drop_table('indicator_compliance_programmes')
    op.drop_table('indicator_success_programmes')
    op.drop_table('indicator_compliances')
    op.drop_table('indicator_successes')
    op.drop_table('programme_user_roles')
    op.drop_table('tenant_cluster_user_roles')
    op.drop_table('delivery_location_user_roles')
    op.drop_table('organisation_guides')
    op.drop_table('programmes')
    op.drop_table('organisations')
    op.drop_table('users')
    op.drop_table('roles')
    op.drop_table('delivery_locations')
    op.drop_table('tenants')
    op.drop_table('tenant_clusters')
