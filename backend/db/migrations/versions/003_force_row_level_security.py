"""Force RLS on tenant-scoped tables so the owning role cannot bypass tenant isolation.

Revision ID: 003
Revises: 002
Create Date: 2026-10-19
"""

from collections.abc import Sequence

from alembic import op

revision: str = "003"
down_revision: str | None = "002"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

TENANT_TABLES = [
    "departments",
    "incidents",
    "sla_severity_configs",
    "kpi_targets",
    "corrective_actions",
    "alerts",
    "action_sla_configs",
]


def upgrade() -> None:
    for table in TENANT_TABLES:
        op.execute(f"ALTER TABLE {table} FORCE ROW LEVEL SECURITY")


def downgrade() -> None:
    for table in TENANT_TABLES:
        op.execute(f"ALTER TABLE {table} NO FORCE ROW LEVEL SECURITY")
