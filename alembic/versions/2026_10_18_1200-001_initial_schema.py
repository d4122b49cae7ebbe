"""Initial schema

Revision ID: 001
Revises:
Create Date: 2026-10-18 12:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None

JSON_TYPE = sa.JSON().with_variant(postgresql.JSONB(), 'postgresql')


def _created_at():
    return sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False)


def _updated_at():
    return sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False)


def _candidate_fk():
    return sa.Column(
        'candidate_id',
        sa.Uuid(),
        sa.ForeignKey('candidate_profiles.id', ondelete='CASCADE'),
        nullable=False
    )


def upgrade() -> None:
    # Create users table
    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('username', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('first_name', sa.String(length=255), nullable=True),
        sa.Column('last_name', sa.String(length=255), nullable=True),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('role', sa.Enum('candidate', 'company', 'admin', name='userrole'), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        _created_at(),
        _updated_at(),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_users_username'), 'users', ['username'], unique=True)
    op.create_index(op.f('ix_users_email'), 'users', ['email'], unique=True)
    op.create_index(op.f('ix_users_role'), 'users', ['role'], unique=False)

    # Create admin_permissions table
    op.create_table(
        'admin_permissions',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('permission', sa.String(length=100), nullable=False),
        sa.Column('granted_by', sa.Uuid(), sa.ForeignKey('users.id'), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'permission', name='uq_admin_permissions_user_permission')
    )
    op.create_index(op.f('ix_admin_permissions_user_id'), 'admin_permissions', ['user_id'], unique=False)

    # Create candidate_profiles table
    op.create_table(
        'candidate_profiles',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=True),
        sa.Column('summary', sa.Text(), nullable=True),
        sa.Column('experience', sa.String(length=50), nullable=True),
        sa.Column('location', sa.String(length=255), nullable=True),
        sa.Column('remote_preference', sa.String(length=50), nullable=True),
        sa.Column('availability', sa.String(length=50), nullable=True),
        sa.Column('salary_min', sa.DECIMAL(precision=12, scale=2), nullable=True),
        sa.Column('salary_max', sa.DECIMAL(precision=12, scale=2), nullable=True),
        sa.Column('salary_currency', sa.String(length=3), nullable=False),
        sa.Column('linkedin_url', sa.String(length=500), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('profile_completed', sa.Boolean(), nullable=False),
        sa.Column('is_anonymized', sa.Boolean(), nullable=False),
        sa.Column(
            'review_status',
            sa.Enum('draft', 'pending_review', 'approved', 'rejected', name='reviewstatus'),
            nullable=False
        ),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.Column('staging_metadata', JSON_TYPE, nullable=False),
        sa.Column(
            'processing_status',
            sa.Enum('not_started', 'in_progress', 'completed', name='processingstatus'),
            nullable=False
        ),
        sa.Column('completed_steps', JSON_TYPE, nullable=False),
        sa.Column('last_processed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('processed_by', sa.Uuid(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('anonymity_toggle_count', sa.Integer(), nullable=False),
        sa.Column('last_anonymity_toggle_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_self_edit_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_self_edit_fields', JSON_TYPE, nullable=True),
        _created_at(),
        _updated_at(),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_candidate_profiles_user_id'), 'candidate_profiles', ['user_id'], unique=True)
    op.create_index(op.f('ix_candidate_profiles_experience'), 'candidate_profiles', ['experience'], unique=False)
    op.create_index(op.f('ix_candidate_profiles_location'), 'candidate_profiles', ['location'], unique=False)
    op.create_index(op.f('ix_candidate_profiles_is_active'), 'candidate_profiles', ['is_active'], unique=False)
    op.create_index(op.f('ix_candidate_profiles_is_anonymized'), 'candidate_profiles', ['is_anonymized'], unique=False)
    op.create_index(op.f('ix_candidate_profiles_review_status'), 'candidate_profiles', ['review_status'], unique=False)

    # Create profile_audit_entries table
    op.create_table(
        'profile_audit_entries',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column(
            'profile_id',
            sa.Uuid(),
            sa.ForeignKey('candidate_profiles.id', ondelete='CASCADE'),
            nullable=False
        ),
        sa.Column('actor_id', sa.Uuid(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column(
            'action',
            sa.Enum(
                'edited', 'submitted', 'approved', 'rejected', 'migration_warning', 'anonymity_toggled',
                name='auditaction'
            ),
            nullable=False
        ),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('details', JSON_TYPE, nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_profile_audit_entries_profile_id'), 'profile_audit_entries', ['profile_id'], unique=False)

    # Create normalized profile tables
    op.create_table(
        'work_experiences',
        sa.Column('id', sa.Uuid(), nullable=False),
        _candidate_fk(),
        sa.Column('company_name', sa.String(length=255), nullable=False),
        sa.Column('position', sa.String(length=255), nullable=False),
        sa.Column('location', sa.String(length=255), nullable=True),
        sa.Column('start_date', sa.Date(), nullable=True),
        sa.Column('end_date', sa.Date(), nullable=True),
        sa.Column('is_current', sa.Boolean(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('is_board_position', sa.Boolean(), nullable=False),
        sa.Column('company_type', sa.String(length=100), nullable=True),
        sa.Column('order', sa.Integer(), nullable=False),
        _created_at(),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_work_experiences_candidate_id'), 'work_experiences', ['candidate_id'], unique=False)
    op.create_index(op.f('ix_work_experiences_company_name'), 'work_experiences', ['company_name'], unique=False)

    op.create_table(
        'education',
        sa.Column('id', sa.Uuid(), nullable=False),
        _candidate_fk(),
        sa.Column('institution', sa.String(length=255), nullable=False),
        sa.Column('degree', sa.String(length=255), nullable=False),
        sa.Column('field_of_study', sa.String(length=255), nullable=True),
        sa.Column('graduation_date', sa.Date(), nullable=True),
        sa.Column('order', sa.Integer(), nullable=False),
        _created_at(),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_education_candidate_id'), 'education', ['candidate_id'], unique=False)

    op.create_table(
        'deal_experiences',
        sa.Column('id', sa.Uuid(), nullable=False),
        _candidate_fk(),
        sa.Column('deal_type', sa.String(length=100), nullable=False),
        sa.Column('deal_value', sa.DECIMAL(precision=18, scale=2), nullable=True),
        sa.Column('deal_currency', sa.String(length=3), nullable=False),
        sa.Column('company_name', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=255), nullable=True),
        sa.Column('year', sa.Integer(), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('sector', sa.String(length=255), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_deal_experiences_candidate_id'), 'deal_experiences', ['candidate_id'], unique=False)

    op.create_table(
        'board_committees',
        sa.Column('id', sa.Uuid(), nullable=False),
        _candidate_fk(),
        sa.Column('committee_type', sa.String(length=100), nullable=False),
        _created_at(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('candidate_id', 'committee_type', name='uq_board_committees_candidate_type')
    )
    op.create_index(op.f('ix_board_committees_candidate_id'), 'board_committees', ['candidate_id'], unique=False)

    op.create_table(
        'board_experience_types',
        sa.Column('id', sa.Uuid(), nullable=False),
        _candidate_fk(),
        sa.Column('experience_type', sa.String(length=100), nullable=False),
        _created_at(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('candidate_id', 'experience_type', name='uq_board_experience_types_candidate_type')
    )
    op.create_index(
        op.f('ix_board_experience_types_candidate_id'), 'board_experience_types', ['candidate_id'], unique=False
    )

    # Create tag vocabulary tables
    op.create_table(
        'tags',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column(
            'category',
            sa.Enum('skill', 'expertise', 'industry', 'certification', 'language', 'other', name='tagcategory'),
            nullable=False
        ),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        _created_at(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name', 'category', name='uq_tags_name_category')
    )
    op.create_index(op.f('ix_tags_name'), 'tags', ['name'], unique=False)
    op.create_index(op.f('ix_tags_category'), 'tags', ['category'], unique=False)

    op.create_table(
        'candidate_tags',
        sa.Column('id', sa.Uuid(), nullable=False),
        _candidate_fk(),
        sa.Column('tag_id', sa.Uuid(), sa.ForeignKey('tags.id', ondelete='CASCADE'), nullable=False),
        _created_at(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('candidate_id', 'tag_id', name='uq_candidate_tags_candidate_tag')
    )
    op.create_index(op.f('ix_candidate_tags_candidate_id'), 'candidate_tags', ['candidate_id'], unique=False)
    op.create_index(op.f('ix_candidate_tags_tag_id'), 'candidate_tags', ['tag_id'], unique=False)

    # Create credit ledger tables
    op.create_table(
        'credit_accounts',
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('balance', sa.Integer(), nullable=False),
        sa.Column('total_granted', sa.Integer(), nullable=False),
        _created_at(),
        _updated_at(),
        sa.PrimaryKeyConstraint('user_id'),
        sa.CheckConstraint('balance >= 0', name='ck_credit_accounts_balance_non_negative')
    )

    op.create_table(
        'credit_transactions',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column(
            'user_id',
            sa.Uuid(),
            sa.ForeignKey('credit_accounts.user_id', ondelete='CASCADE'),
            nullable=False
        ),
        sa.Column('delta', sa.Integer(), nullable=False),
        sa.Column('resulting_balance', sa.Integer(), nullable=False),
        sa.Column(
            'reason',
            sa.Enum('profile_unlock', 'purchase', 'admin_grant', 'admin_deduction', name='creditreason'),
            nullable=False
        ),
        sa.Column('profile_id', sa.Uuid(), nullable=True),
        sa.Column('actor_id', sa.Uuid(), nullable=True),
        sa.Column('note', sa.String(length=500), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_credit_transactions_user_id'), 'credit_transactions', ['user_id'], unique=False)

    op.create_table(
        'profile_unlocks',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column(
            'user_id',
            sa.Uuid(),
            sa.ForeignKey('credit_accounts.user_id', ondelete='CASCADE'),
            nullable=False
        ),
        sa.Column('profile_id', sa.Uuid(), nullable=False),
        sa.Column('transaction_id', sa.Integer(), sa.ForeignKey('credit_transactions.id'), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'profile_id', name='uq_profile_unlocks_user_profile')
    )
    op.create_index(op.f('ix_profile_unlocks_user_id'), 'profile_unlocks', ['user_id'], unique=False)
    op.create_index(op.f('ix_profile_unlocks_profile_id'), 'profile_unlocks', ['profile_id'], unique=False)


def downgrade() -> None:
    op.drop_table('profile_unlocks')
    op.drop_table('credit_transactions')
    op.drop_table('credit_accounts')
    op.drop_table('candidate_tags')
    op.drop_table('tags')
    op.drop_table('board_experience_types')
    op.drop_table('board_committees')
    op.drop_table('deal_experiences')
    op.drop_table('education')
    op.drop_table('work_experiences')
    op.drop_table('profile_audit_entries')
    op.drop_table('candidate_profiles')
    op.drop_table('admin_permissions')
    op.drop_table('users')

    # Drop enum types (PostgreSQL only)
    bind = op.get_bind()
    for enum_name in ('creditreason', 'tagcategory', 'auditaction', 'processingstatus', 'reviewstatus', 'userrole'):
        sa.Enum(name=enum_name).drop(bind, checkfirst=True)
