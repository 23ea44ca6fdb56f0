"""
Initial schema - tenants, incidents, SLA configs, KPI targets, actions, alerts

Revision ID: 001
Revises: None
Create Date: 2026-10-02
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import UUID

revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # 1. Tenants
    op.create_table(
        "tenants",
        sa.Column("tenant_id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("plan", sa.String(50), nullable=False, server_default="starter"),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("status IN ('active', 'trial', 'suspended', 'inactive')", name="ck_tenant_status"),
    )

    # 2. Departments
    op.create_table(
        "departments",
        sa.Column("department_id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("tenant_id", UUID(as_uuid=True), sa.ForeignKey("tenants.tenant_id"), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_departments_tenant", "departments", ["tenant_id"])

    # 3. Incidents
    op.create_table(
        "incidents",
        sa.Column("incident_id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("tenant_id", UUID(as_uuid=True), sa.ForeignKey("tenants.tenant_id"), nullable=False),
        sa.Column("reference_id", sa.String(50)),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("event_type", sa.String(30), nullable=False, server_default="incident"),
        sa.Column("severity_level", sa.String(20)),
        sa.Column("status", sa.String(50), nullable=False, server_default="submitted"),
        sa.Column("occurred_at", sa.DateTime),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column("screening_escalation_level", sa.Integer, nullable=False, server_default="0"),
        sa.Column("screening_sla_warning_sent_at", sa.DateTime),
        sa.Column("screening_escalated_at", sa.DateTime),
        sa.CheckConstraint("event_type IN ('incident', 'near_miss', 'observation')", name="ck_incident_event_type"),
        sa.CheckConstraint("screening_escalation_level BETWEEN 0 AND 2", name="ck_incident_escalation_level"),
    )
    op.create_index("ix_incidents_tenant_status", "incidents", ["tenant_id", "status"])
    op.create_index("ix_incidents_tenant_created", "incidents", ["tenant_id", "created_at"])

    # 4. SLA severity configs
    op.create_table(
        "sla_severity_configs",
        sa.Column("id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("tenant_id", UUID(as_uuid=True), sa.ForeignKey("tenants.tenant_id"), nullable=False),
        sa.Column("severity_level", sa.String(20), nullable=False),
        sa.Column("max_hours", sa.Float, nullable=False),
        sa.Column("warning_hours_before", sa.Float, nullable=False),
        sa.Column("escalation_hours", sa.Float, nullable=False),
        sa.Column("updated_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("tenant_id", "severity_level", name="uq_sla_config_tenant_level"),
        sa.CheckConstraint("max_hours > 0", name="ck_sla_max_hours_positive"),
        sa.CheckConstraint("warning_hours_before >= 0 AND escalation_hours >= 0", name="ck_sla_windows_non_negative"),
    )

    # 5. KPI targets
    op.create_table(
        "kpi_targets",
        sa.Column("id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("tenant_id", UUID(as_uuid=True), sa.ForeignKey("tenants.tenant_id"), nullable=False),
        sa.Column("kpi_code", sa.String(50), nullable=False),
        sa.Column("target_value", sa.Float, nullable=False),
        sa.Column("warning_threshold", sa.Float),
        sa.Column("critical_threshold", sa.Float),
        sa.Column("comparison_type", sa.String(20)),
        sa.Column("updated_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("tenant_id", "kpi_code", name="uq_kpi_target_tenant_code"),
        sa.CheckConstraint(
            "comparison_type IS NULL OR comparison_type IN ('less_than', 'greater_than')",
            name="ck_kpi_comparison_type",
        ),
    )

    # 6. Corrective actions
    op.create_table(
        "corrective_actions",
        sa.Column("action_id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("tenant_id", UUID(as_uuid=True), sa.ForeignKey("tenants.tenant_id"), nullable=False),
        sa.Column("incident_id", UUID(as_uuid=True), sa.ForeignKey("incidents.incident_id")),
        sa.Column("department_id", UUID(as_uuid=True), sa.ForeignKey("departments.department_id")),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("priority", sa.String(20)),
        sa.Column("status", sa.String(30), nullable=False, server_default="open"),
        sa.Column("due_date", sa.DateTime),
        sa.Column("escalation_level", sa.Integer, nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint(
            "priority IS NULL OR priority IN ('critical', 'high', 'medium', 'low')", name="ck_action_priority"
        ),
    )
    op.create_index("ix_actions_tenant_created", "corrective_actions", ["tenant_id", "created_at"])

    # 7. Alerts
    op.create_table(
        "alerts",
        sa.Column("alert_id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("tenant_id", UUID(as_uuid=True), sa.ForeignKey("tenants.tenant_id"), nullable=False),
        sa.Column("incident_id", UUID(as_uuid=True), sa.ForeignKey("incidents.incident_id")),
        sa.Column("alert_type", sa.String(50), nullable=False),
        sa.Column("severity", sa.String(20), nullable=False),
        sa.Column("message", sa.Text, nullable=False),
        sa.Column("metadata", sa.JSON, server_default="{}"),
        sa.Column("status", sa.String(20), nullable=False, server_default="open"),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column("acknowledged_at", sa.DateTime),
        sa.Column("resolved_at", sa.DateTime),
        sa.CheckConstraint("alert_type IN ('sla_warning', 'sla_escalated', 'kpi_breach')", name="ck_alert_type"),
        sa.CheckConstraint("severity IN ('low', 'medium', 'high', 'critical')", name="ck_alert_severity"),
        sa.CheckConstraint("status IN ('open', 'acknowledged', 'resolved', 'dismissed')", name="ck_alert_status"),
    )
    op.create_index("ix_alerts_tenant_status", "alerts", ["tenant_id", "status"])
    op.create_index("ix_alerts_incident", "alerts", ["incident_id"])

    # Row-level security on tenant-scoped tables
    for table in TENANT_TABLES:
        op.execute(f"ALTER TABLE {table} ENABLE ROW LEVEL SECURITY")
        op.execute(
            f"CREATE POLICY tenant_isolation ON {table} "
            f"USING (tenant_id::text = current_setting('app.current_tenant_id', true))"
        )


TENANT_TABLES = [
    "departments",
    "incidents",
    "sla_severity_configs",
    "kpi_targets",
    "corrective_actions",
    "alerts",
]


def downgrade() -> None:
    for table in TENANT_TABLES:
        op.execute(f"DROP POLICY IF EXISTS tenant_isolation ON {table}")
    for table in reversed(["tenants", *TENANT_TABLES]):
        op.drop_table(table)
