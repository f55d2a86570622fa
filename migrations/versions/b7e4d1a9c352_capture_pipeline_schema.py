"""capture pipeline schema

Revision ID: b7e4d1a9c352
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = 'b7e4d1a9c352'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ENUMS = {
    'plantier': ('FREE', 'STARTER', 'ALPHA', 'PRO', 'ENTERPRISE'),
    'subscriptionstatus': ('ACTIVE', 'TRIALING', 'PAST_DUE', 'CANCELED'),
    'capturestatus': ('DRAFT', 'PROCESSING', 'REVIEW', 'COMPLETED', 'CANCELLED'),
    'evidencesourcetype': ('TEXT', 'EMAIL', 'PHOTO', 'DOCUMENT', 'RECORDING', 'OTHER'),
    'timelineeventtype': ('INCIDENT', 'POSITIVE', 'MEDICAL', 'SCHOOL', 'COMMUNICATION', 'LEGAL'),
    'participantrole': ('PRIMARY', 'WITNESS', 'PROFESSIONAL'),
    'actionitemstatus': ('OPEN', 'IN_PROGRESS', 'DONE', 'CANCELLED'),
}


def _enum(name: str) -> postgresql.ENUM:
    return postgresql.ENUM(*ENUMS[name], name=name, create_type=False)


def _audit_columns():
    return [
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    ]


def _owner_column():
    return sa.Column('user_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)


def upgrade() -> None:
    # Create the enum types using raw SQL to avoid conflicts with metadata
    for name, values in ENUMS.items():
        enum_values = ", ".join(f"'{v}'" for v in values)
        op.execute(f"DO $$ BEGIN IF NOT EXISTS (SELECT 1 FROM pg_type WHERE typname = '{name}') THEN CREATE TYPE {name} AS ENUM ({enum_values}); END IF; END $$;")

    op.create_table(
        'users',
        *_audit_columns(),
        sa.Column('email', sa.String(), nullable=False, unique=True, index=True),
        sa.Column('full_name', sa.String(), nullable=True),
        sa.Column('timezone', sa.String(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
    )

    op.create_table(
        'cases',
        *_audit_columns(),
        _owner_column(),
        sa.Column('title', sa.String(), nullable=True),
        sa.Column('case_number', sa.String(), nullable=True),
        sa.Column('jurisdiction_state', sa.String(), nullable=True),
        sa.Column('jurisdiction_county', sa.String(), nullable=True),
        sa.Column('court_name', sa.String(), nullable=True),
        sa.Column('case_type', sa.String(), nullable=True),
        sa.Column('stage', sa.String(), nullable=True),
        sa.Column('your_role', sa.String(), nullable=True),
        sa.Column('opposing_party_name', sa.String(), nullable=True),
        sa.Column('opposing_party_role', sa.String(), nullable=True),
        sa.Column('children_count', sa.Integer(), nullable=True),
        sa.Column('children_summary', sa.Text(), nullable=True),
        sa.Column('parenting_schedule', sa.Text(), nullable=True),
        sa.Column('goals_summary', sa.Text(), nullable=True),
        sa.Column('risk_flags', postgresql.JSONB(), nullable=True),
        sa.Column('next_court_date', sa.Date(), nullable=True),
    )

    op.create_table(
        'subscriptions',
        *_audit_columns(),
        _owner_column(),
        sa.Column('plan_tier', _enum('plantier'), nullable=False),
        sa.Column('status', _enum('subscriptionstatus'), nullable=False),
    )

    op.create_table(
        'usage_counters',
        sa.Column('user_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('captures_committed', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )

    op.create_table(
        'captures',
        *_audit_columns(),
        _owner_column(),
        sa.Column('status', _enum('capturestatus'), nullable=False, index=True),
        sa.Column('event_text', sa.Text(), nullable=True),
        sa.Column('reference_date', sa.Date(), nullable=True),
        sa.Column('reference_time_description', sa.String(), nullable=True),
        sa.Column('extraction_raw', postgresql.JSONB(), nullable=True),
        sa.Column('processing_error', sa.Text(), nullable=True),
        sa.Column('processed_at', sa.DateTime(), nullable=True),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
    )

    op.create_table(
        'evidence',
        *_audit_columns(),
        _owner_column(),
        sa.Column('source_type', _enum('evidencesourcetype'), nullable=False),
        sa.Column('original_filename', sa.String(), nullable=True),
        sa.Column('mime_type', sa.String(), nullable=True),
        sa.Column('file_hash', sa.String(64), nullable=True),
        sa.Column('storage_path', sa.String(), nullable=True),
        sa.Column('staged_content', sa.LargeBinary(), nullable=True),
        sa.Column('user_annotation', sa.Text(), nullable=True),
        sa.Column('summary', sa.Text(), nullable=True),
        sa.Column('extraction_raw', postgresql.JSONB(), nullable=True),
        sa.Column('tags', postgresql.JSONB(), nullable=True),
    )

    op.create_table(
        'capture_evidence',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('capture_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('captures.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('evidence_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('evidence.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('sort_order', sa.Integer(), nullable=False),
        sa.Column('is_processed', sa.Boolean(), nullable=False),
        sa.Column('processed_at', sa.DateTime(), nullable=True),
        sa.Column('processing_error', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('capture_id', 'evidence_id', name='uq_capture_evidence_pair'),
    )

    op.create_table(
        'events',
        *_audit_columns(),
        _owner_column(),
        sa.Column('capture_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('captures.id', ondelete='SET NULL'), nullable=True, index=True),
        sa.Column('type', _enum('timelineeventtype'), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('primary_timestamp', sa.DateTime(timezone=True), nullable=True),
        sa.Column('timestamp_precision', sa.String(), nullable=False),
        sa.Column('duration_minutes', sa.Integer(), nullable=True),
        sa.Column('location', sa.String(), nullable=True),
        sa.Column('child_involved', sa.Boolean(), nullable=False),
        sa.Column('agreement_violation', sa.Boolean(), nullable=True),
        sa.Column('safety_concern', sa.Boolean(), nullable=True),
        sa.Column('welfare_impact', sa.String(), nullable=False),
    )

    op.create_table(
        'event_participants',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('event_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('events.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('role', _enum('participantrole'), nullable=False),
        sa.Column('label', sa.String(), nullable=False),
    )

    op.create_table(
        'evidence_mentions',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('event_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('events.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('type', _enum('evidencesourcetype'), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('status', sa.String(), nullable=False),
    )

    op.create_table(
        'event_evidence',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('event_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('events.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('evidence_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('evidence.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('is_primary', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('event_id', 'evidence_id', name='uq_event_evidence_pair'),
    )

    op.create_table(
        'patterns',
        *_audit_columns(),
        _owner_column(),
        sa.Column('key', sa.String(), nullable=False),
        sa.Column('label', sa.String(), nullable=False),
        sa.UniqueConstraint('user_id', 'key', name='uq_patterns_user_key'),
    )

    op.create_table(
        'event_patterns',
        sa.Column('event_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('events.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('pattern_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('patterns.id', ondelete='CASCADE'), primary_key=True),
    )

    op.create_table(
        'action_items',
        *_audit_columns(),
        _owner_column(),
        sa.Column('event_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('events.id', ondelete='SET NULL'), nullable=True, index=True),
        sa.Column('priority', sa.String(), nullable=False),
        sa.Column('type', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('deadline', sa.DateTime(timezone=True), nullable=True),
        sa.Column('status', _enum('actionitemstatus'), nullable=False),
    )

    op.create_table(
        'capture_commits',
        sa.Column('capture_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('captures.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('event_ids', postgresql.JSONB(), nullable=False),
        sa.Column('action_item_ids', postgresql.JSONB(), nullable=False),
        sa.Column('linked_evidence_count', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )


def downgrade() -> None:
    for table in (
        'capture_commits', 'action_items', 'event_patterns', 'patterns', 'event_evidence',
        'evidence_mentions', 'event_participants', 'events', 'capture_evidence', 'evidence',
        'captures', 'usage_counters', 'subscriptions', 'cases', 'users',
    ):
        op.drop_table(table)
    for name in reversed(list(ENUMS)):
        op.execute(f"DROP TYPE IF EXISTS {name}")
