"""
Corrective-action SLA - per-priority configs, action SLA markers, action alerts

Revision ID: 002
Revises: 001
Create Date: 2026-10-19
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import UUID

revision: str = "002"
down_revision: str | None = "001"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

OLD_ALERT_TYPES = "('sla_warning', 'sla_escalated', 'kpi_breach')"
NEW_ALERT_TYPES = "('sla_warning', 'sla_escalated', 'action_sla_warning', 'action_sla_escalated', 'kpi_breach')"


def upgrade() -> None:
    op.create_table(
        "action_sla_configs",
        sa.Column("id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("tenant_id", UUID(as_uuid=True), sa.ForeignKey("tenants.tenant_id"), nullable=False),
        sa.Column("priority", sa.String(20), nullable=False),
        sa.Column("warning_days_before", sa.Integer, nullable=False),
        sa.Column("escalation_days_after", sa.Integer, nullable=False),
        sa.Column("second_escalation_days_after", sa.Integer),
        sa.Column("updated_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("tenant_id", "priority", name="uq_action_sla_tenant_priority"),
        sa.CheckConstraint("priority IN ('critical', 'high', 'medium', 'low')", name="ck_action_sla_priority"),
        sa.CheckConstraint(
            "second_escalation_days_after IS NULL OR second_escalation_days_after > escalation_days_after",
            name="ck_action_sla_second_after_first",
        ),
    )
    op.execute("ALTER TABLE action_sla_configs ENABLE ROW LEVEL SECURITY")
    op.execute(
        "CREATE POLICY tenant_isolation ON action_sla_configs "
        "USING (tenant_id::text = current_setting('app.current_tenant_id', true))"
    )

    op.add_column("corrective_actions", sa.Column("sla_warning_sent_at", sa.DateTime))
    op.add_column("corrective_actions", sa.Column("sla_escalation_sent_at", sa.DateTime))
    op.create_index("ix_actions_tenant_status", "corrective_actions", ["tenant_id", "status"])
    op.create_check_constraint("ck_action_escalation_level", "corrective_actions", "escalation_level BETWEEN 0 AND 2")

    op.add_column(
        "alerts",
        sa.Column("action_id", UUID(as_uuid=True), sa.ForeignKey("corrective_actions.action_id")),
    )
    op.create_index("ix_alerts_action", "alerts", ["action_id"])
    op.drop_constraint("ck_alert_type", "alerts", type_="check")
    op.create_check_constraint("ck_alert_type", "alerts", f"alert_type IN {NEW_ALERT_TYPES}")


def downgrade() -> None:
    op.execute("DELETE FROM alerts WHERE alert_type IN ('action_sla_warning', 'action_sla_escalated')")
    op.drop_constraint("ck_alert_type", "alerts", type_="check")
    op.create_check_constraint("ck_alert_type", "alerts", f"alert_type IN {OLD_ALERT_TYPES}")
    op.drop_index("ix_alerts_action", table_name="alerts")
    op.drop_column("alerts", "action_id")

    op.drop_constraint("ck_action_escalation_level", "corrective_actions", type_="check")
    op.drop_index("ix_actions_tenant_status", table_name="corrective_actions")
    op.drop_column("corrective_actions", "sla_escalation_sent_at")
    op.drop_column("corrective_actions", "sla_warning_sent_at")

    op.execute("DROP POLICY IF EXISTS tenant_isolation ON action_sla_configs")
    op.drop_table("action_sla_configs")
