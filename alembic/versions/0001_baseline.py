"""Baseline migration - tenants, resources, bookings and conflict logs

Revision ID: 0001_baseline
Revises: 
Create Date: 2026-10-19

Creates the booking tables and, on PostgreSQL, the exclusion constraint
that stops two active bookings on one resource from overlapping.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0001_baseline'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create booking and conflict tables."""
    
    # ==========================================================================
    # Enable required extensions
    # ==========================================================================
    op.execute('CREATE EXTENSION IF NOT EXISTS pgcrypto')    # For gen_random_uuid()
    op.execute('CREATE EXTENSION IF NOT EXISTS btree_gist')  # For = inside EXCLUDE
    
    # ==========================================================================
    # Organizations
    # ==========================================================================
    op.execute('''
        CREATE TABLE organizations (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            name VARCHAR(255) NOT NULL,
            slug VARCHAR(100) UNIQUE NOT NULL,
            timezone VARCHAR(50) NOT NULL DEFAULT 'America/New_York',
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    ''')
    
    # ==========================================================================
    # Resources
    # ==========================================================================
    op.execute('''
        CREATE TABLE resources (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            organization_id UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
            type VARCHAR(20) NOT NULL DEFAULT 'space',
            title VARCHAR(255) NOT NULL,
            description TEXT,
            location VARCHAR(255),
            capacity INTEGER,
            is_active BOOLEAN NOT NULL DEFAULT true,
            is_bookable BOOLEAN NOT NULL DEFAULT true,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    ''')
    op.execute('CREATE INDEX idx_resources_org ON resources(organization_id, is_active)')
    
    # ==========================================================================
    # Bookings
    # ==========================================================================
    op.execute('''
        CREATE TABLE bookings (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            organization_id UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
            resource_id UUID NOT NULL REFERENCES resources(id) ON DELETE CASCADE,
            user_id VARCHAR(255),
            title VARCHAR(255) NOT NULL,
            description TEXT,
            start_time TIMESTAMPTZ NOT NULL,
            end_time TIMESTAMPTZ NOT NULL,
            status VARCHAR(20) NOT NULL DEFAULT 'pending',
            current_participants INTEGER NOT NULL DEFAULT 0,
            notes TEXT,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT ck_bookings_window CHECK (start_time < end_time),
            CONSTRAINT ck_bookings_participants CHECK (current_participants >= 0),
            CONSTRAINT excl_bookings_active_window EXCLUDE USING gist (
                resource_id WITH =,
                tstzrange(start_time, end_time, '[)') WITH &&
            ) WHERE (status IN ('pending', 'confirmed'))
        )
    ''')
    op.execute('CREATE INDEX idx_bookings_resource_window ON bookings(resource_id, start_time, end_time)')
    op.execute('CREATE INDEX idx_bookings_org_status ON bookings(organization_id, status)')
    
    # ==========================================================================
    # Conflict Logs
    # ==========================================================================
    op.execute('''
        CREATE TABLE conflict_logs (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            organization_id UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
            resource_id UUID REFERENCES resources(id) ON DELETE SET NULL,
            conflict_type VARCHAR(40) NOT NULL,
            conflict_data JSONB NOT NULL DEFAULT '{}'::jsonb,
            severity VARCHAR(20) NOT NULL,
            status VARCHAR(20) NOT NULL DEFAULT 'open',
            resolution TEXT,
            resolved_at TIMESTAMPTZ,
            resolved_by VARCHAR(255),
            resolution_notes TEXT,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT ck_conflict_logs_type CHECK (conflict_type IN (
                'double_booking', 'timezone_mismatch', 'resource_unavailable', 'capacity_exceeded'
            )),
            CONSTRAINT ck_conflict_logs_severity CHECK (severity IN ('low', 'medium', 'high', 'critical')),
            CONSTRAINT ck_conflict_logs_status CHECK (status IN ('open', 'investigating', 'resolved', 'ignored'))
        )
    ''')
    op.execute('CREATE INDEX idx_conflict_logs_org_status ON conflict_logs(organization_id, status)')
    op.execute('CREATE INDEX idx_conflict_logs_org_created ON conflict_logs(organization_id, created_at)')


def downgrade() -> None:
    """Drop booking and conflict tables."""
    op.execute('DROP TABLE IF EXISTS conflict_logs')
    op.execute('DROP TABLE IF EXISTS bookings')
    op.execute('DROP TABLE IF EXISTS resources')
    op.execute('DROP TABLE IF EXISTS organizations')
