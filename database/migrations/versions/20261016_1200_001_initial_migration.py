"""initial migration

Revision ID: 001_initial_migration
Revises:
Create Date: 2026-10-16 12:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = '001_initial_migration'
down_revision = None
branch_labels = None
depends_on = None

JSONType = sa.JSON().with_variant(postgresql.JSONB(), 'postgresql')


def upgrade():
    op.create_table(
        'audit_projects',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('seed_url', sa.String(2048), nullable=False),
        sa.Column('status', sa.String(32), nullable=False, server_default='queued'),
        sa.Column('progress_step', sa.Integer, nullable=False, server_default='0'),
        sa.Column('progress_message', sa.Text, nullable=True),
        sa.Column('score', sa.Integer, nullable=True),
        sa.Column('score_breakdown', JSONType, nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('idx_audit_projects_status', 'audit_projects', ['status'])

    op.create_table(
        'audit_pages',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('project_id', sa.String(64), sa.ForeignKey('audit_projects.id', ondelete='CASCADE'), nullable=False),
        sa.Column('url', sa.String(2048), nullable=False),
        sa.Column('snapshot_url', sa.String(2048), nullable=False),
        sa.Column('crawl_order', sa.Integer, nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False),
    )
    op.create_index('idx_audit_pages_project_id', 'audit_pages', ['project_id'])

    op.create_table(
        'page_analyses',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('page_id', sa.String(64), sa.ForeignKey('audit_pages.id', ondelete='CASCADE'), nullable=False),
        sa.Column('revision', sa.Integer, nullable=False, server_default='0'),
        sa.Column('scores', JSONType, nullable=False),
        sa.Column('overall', sa.Integer, nullable=True),
        sa.Column('summary', sa.Text, nullable=False, server_default=''),
        sa.Column('positive_highlights', JSONType, nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False),
    )
    op.create_index('idx_page_analyses_page_id', 'page_analyses', ['page_id'])

    op.create_table(
        'ux_issues',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('page_id', sa.String(64), sa.ForeignKey('audit_pages.id', ondelete='CASCADE'), nullable=False),
        sa.Column('analysis_id', sa.String(64), sa.ForeignKey('page_analyses.id', ondelete='CASCADE'), nullable=False),
        sa.Column('position', sa.Integer, nullable=False, server_default='0'),
        sa.Column('title', sa.String(512), nullable=False),
        sa.Column('description', sa.Text, nullable=False, server_default=''),
        sa.Column('severity', sa.String(16), nullable=False),
        sa.Column('category', sa.String(32), nullable=False),
        sa.Column('suggestion', sa.Text, nullable=True),
    )
    op.create_index('idx_ux_issues_page_id', 'ux_issues', ['page_id'])
    op.create_index('idx_ux_issues_severity', 'ux_issues', ['severity'])


def downgrade():
    op.drop_index('idx_ux_issues_severity', table_name='ux_issues')
    op.drop_index('idx_ux_issues_page_id', table_name='ux_issues')
    op.drop_table('ux_issues')
    op.drop_index('idx_page_analyses_page_id', table_name='page_analyses')
    op.drop_table('page_analyses')
    op.drop_index('idx_audit_pages_project_id', table_name='audit_pages')
    op.drop_table('audit_pages')
    op.drop_index('idx_audit_projects_status', table_name='audit_projects')
    op.drop_table('audit_projects')
