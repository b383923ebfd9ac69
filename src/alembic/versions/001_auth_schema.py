"""Authentication schema.

Revision ID: 001_auth_schema
Revises:
Create Date: 2026-10-19

Creates:
- roles, users: staff accounts read through the user directory
- attempt_records: failed login counter and lockout per identity
- sessions: login sessions (soft-deactivated, never deleted)
- activity_logs: audit trail
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic
revision = '001_auth_schema'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'roles',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(50), nullable=False),
    )
    op.create_index('ix_roles_name', 'roles', ['name'], unique=True)

    op.create_table(
        'users',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('username', sa.String(100), nullable=False),
        sa.Column('full_name', sa.String(255), nullable=False, server_default=''),
        sa.Column('password_hash', sa.String(), nullable=False),
        sa.Column('role_id', sa.Integer(), sa.ForeignKey('roles.id'), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='active'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_login', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_users_username', 'users', ['username'], unique=True)

    # Lockout timestamps are epoch milliseconds, 0 = none
    op.create_table(
        'attempt_records',
        sa.Column('username', sa.String(120), primary_key=True),
        sa.Column('attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('lockout_level', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('lockout_until', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('last_attempt_at', sa.BigInteger(), nullable=False, server_default='0'),
    )
    op.create_index(
        'idx_attempt_records_locked',
        'attempt_records',
        ['lockout_until'],
        postgresql_where='lockout_until > 0'
    )

    op.create_table(
        'sessions',
        sa.Column('token', sa.String(64), primary_key=True),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('ip_address', sa.String(45), nullable=True),
        sa.Column('user_agent', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('last_activity', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
    )
    op.create_index('ix_sessions_user_id', 'sessions', ['user_id'])
    op.create_index('ix_sessions_is_active', 'sessions', ['is_active'])
    # Sweeper: active sessions by expiry
    op.create_index(
        'idx_sessions_active_expiry',
        'sessions',
        ['expires_at'],
        postgresql_where='is_active'
    )

    op.create_table(
        'activity_logs',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('user_id', sa.String(), nullable=True),
        sa.Column('action', sa.String(100), nullable=False),
        sa.Column('reference', sa.String(255), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('ip_address', sa.String(45), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_activity_logs_user_id', 'activity_logs', ['user_id'])


def downgrade() -> None:
    op.drop_table('activity_logs')
    op.drop_table('sessions')
    op.drop_table('attempt_records')
    op.drop_table('users')
    op.drop_table('roles')
