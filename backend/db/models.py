"""
HSSEOps Database Models

Multi-tenant via tenant_id on all tables; Postgres RLS keys off
app.current_tenant_id (see db.session.set_tenant_context).

Tables:
  1. tenants               - Customer organizations
  2. departments           - Organisational units owning corrective actions
  3. incidents             - Incident / near-miss / observation reports
                             (+ screening SLA escalation markers)
  4. sla_severity_configs  - Per-tenant screening SLA timing by severity level
  5. kpi_targets           - Per-tenant KPI targets and thresholds
  6. corrective_actions    - Actions raised from incidents and findings
  7. alerts                - SLA warnings / escalations and KPI breaches
  8. action_sla_configs    - Per-tenant corrective-action SLA timing by priority
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    TypeDecorator,
    UniqueConstraint,
    types,
)
from sqlalchemy.dialects.postgresql import UUID as PG_UUID


class GUID(TypeDecorator):
    """Platform-independent UUID type.

    Uses PostgreSQL UUID when available, stores as CHAR(36) on SQLite.
    """

    impl = types.String(36)
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(PG_UUID(as_uuid=True))
        return dialect.type_descriptor(types.String(36))

    def process_bind_param(self, value, dialect):
        if value is None:
            return value
        if dialect.name == "postgresql":
            return value if isinstance(value, uuid.UUID) else uuid.UUID(str(value))
        return str(value) if isinstance(value, uuid.UUID) else value

    def process_result_value(self, value, dialect):
        if value is None:
            return value
        if isinstance(value, uuid.UUID):
            return value
        return uuid.UUID(str(value))


from sqlalchemy.orm import relationship

from db.session import Base

# ─── 1. Tenants ─────────────────────────────────────────────────────────────


class Tenant(Base):
    __tablename__ = "tenants"

    tenant_id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, unique=True)
    plan = Column(String(50), nullable=False, default="starter")
    status = Column(String(20), nullable=False, default="active")
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        CheckConstraint("status IN ('active', 'trial', 'suspended', 'inactive')", name="ck_tenant_status"),
    )

    incidents = relationship("Incident", back_populates="tenant")
    departments = relationship("Department", back_populates="tenant")


# ─── 2. Departments ─────────────────────────────────────────────────────────


class Department(Base):
    __tablename__ = "departments"

    department_id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(GUID(), ForeignKey("tenants.tenant_id"), nullable=False)
    name = Column(String(255), nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (Index("ix_departments_tenant", "tenant_id"),)

    tenant = relationship("Tenant", back_populates="departments")


# ─── 3. Incidents ───────────────────────────────────────────────────────────


class Incident(Base):
    __tablename__ = "incidents"

    incident_id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(GUID(), ForeignKey("tenants.tenant_id"), nullable=False)
    reference_id = Column(String(50))
    title = Column(String(255), nullable=False)
    event_type = Column(String(30), nullable=False, default="incident")
    severity_level = Column(String(20))
    status = Column(String(50), nullable=False, default="submitted")
    occurred_at = Column(DateTime)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Screening SLA markers (written by the escalation sweep)
    screening_escalation_level = Column(Integer, nullable=False, default=0)
    screening_sla_warning_sent_at = Column(DateTime)
    screening_escalated_at = Column(DateTime)

    __table_args__ = (
        Index("ix_incidents_tenant_status", "tenant_id", "status"),
        Index("ix_incidents_tenant_created", "tenant_id", "created_at"),
        CheckConstraint("event_type IN ('incident', 'near_miss', 'observation')", name="ck_incident_event_type"),
        CheckConstraint("screening_escalation_level BETWEEN 0 AND 2", name="ck_incident_escalation_level"),
    )

    tenant = relationship("Tenant", back_populates="incidents")
    actions = relationship("CorrectiveAction", back_populates="incident")


# ─── 4. SLA Severity Configs ────────────────────────────────────────────────


class SLASeverityConfig(Base):
    __tablename__ = "sla_severity_configs"

    id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(GUID(), ForeignKey("tenants.tenant_id"), nullable=False)
    severity_level = Column(String(20), nullable=False)
    max_hours = Column(Float, nullable=False)
    warning_hours_before = Column(Float, nullable=False)
    escalation_hours = Column(Float, nullable=False)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("tenant_id", "severity_level", name="uq_sla_config_tenant_level"),
        CheckConstraint("max_hours > 0", name="ck_sla_max_hours_positive"),
        CheckConstraint("warning_hours_before >= 0 AND escalation_hours >= 0", name="ck_sla_windows_non_negative"),
    )


# ─── 5. KPI Targets ─────────────────────────────────────────────────────────


class KPITarget(Base):
    __tablename__ = "kpi_targets"

    id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(GUID(), ForeignKey("tenants.tenant_id"), nullable=False)
    kpi_code = Column(String(50), nullable=False)
    target_value = Column(Float, nullable=False)
    warning_threshold = Column(Float)
    critical_threshold = Column(Float)
    comparison_type = Column(String(20))
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("tenant_id", "kpi_code", name="uq_kpi_target_tenant_code"),
        CheckConstraint(
            "comparison_type IS NULL OR comparison_type IN ('less_than', 'greater_than')",
            name="ck_kpi_comparison_type",
        ),
    )


# ─── 6. Corrective Actions ──────────────────────────────────────────────────


class CorrectiveAction(Base):
    __tablename__ = "corrective_actions"

    action_id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(GUID(), ForeignKey("tenants.tenant_id"), nullable=False)
    incident_id = Column(GUID(), ForeignKey("incidents.incident_id"))
    department_id = Column(GUID(), ForeignKey("departments.department_id"))
    title = Column(String(255), nullable=False)
    priority = Column(String(20))
    status = Column(String(30), nullable=False, default="open")
    due_date = Column(DateTime)
    escalation_level = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Action SLA markers (written by the action SLA sweep)
    sla_warning_sent_at = Column(DateTime)
    sla_escalation_sent_at = Column(DateTime)

    __table_args__ = (
        Index("ix_actions_tenant_created", "tenant_id", "created_at"),
        Index("ix_actions_tenant_status", "tenant_id", "status"),
        CheckConstraint(
            "priority IS NULL OR priority IN ('critical', 'high', 'medium', 'low')", name="ck_action_priority"
        ),
        CheckConstraint("escalation_level BETWEEN 0 AND 2", name="ck_action_escalation_level"),
    )

    incident = relationship("Incident", back_populates="actions")


# ─── 7. Alerts ──────────────────────────────────────────────────────────────


class Alert(Base):
    __tablename__ = "alerts"

    alert_id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(GUID(), ForeignKey("tenants.tenant_id"), nullable=False)
    incident_id = Column(GUID(), ForeignKey("incidents.incident_id"))
    action_id = Column(GUID(), ForeignKey("corrective_actions.action_id"))
    alert_type = Column(String(50), nullable=False)
    severity = Column(String(20), nullable=False)
    message = Column(Text, nullable=False)
    alert_metadata = Column("metadata", JSON, default={})
    status = Column(String(20), nullable=False, default="open")
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    acknowledged_at = Column(DateTime)
    resolved_at = Column(DateTime)

    __table_args__ = (
        Index("ix_alerts_tenant_status", "tenant_id", "status"),
        Index("ix_alerts_incident", "incident_id"),
        Index("ix_alerts_action", "action_id"),
        CheckConstraint(
            "alert_type IN ('sla_warning', 'sla_escalated', 'action_sla_warning', "
            "'action_sla_escalated', 'kpi_breach')",
            name="ck_alert_type",
        ),
        CheckConstraint("severity IN ('low', 'medium', 'high', 'critical')", name="ck_alert_severity"),
        CheckConstraint("status IN ('open', 'acknowledged', 'resolved', 'dismissed')", name="ck_alert_status"),
    )


# ─── 8. Action SLA Configs ──────────────────────────────────────────────────


class ActionSLAConfig(Base):
    __tablename__ = "action_sla_configs"

    id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(GUID(), ForeignKey("tenants.tenant_id"), nullable=False)
    priority = Column(String(20), nullable=False)
    warning_days_before = Column(Integer, nullable=False)
    escalation_days_after = Column(Integer, nullable=False)
    second_escalation_days_after = Column(Integer)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("tenant_id", "priority", name="uq_action_sla_tenant_priority"),
        CheckConstraint("priority IN ('critical', 'high', 'medium', 'low')", name="ck_action_sla_priority"),
        CheckConstraint(
            "second_escalation_days_after IS NULL OR second_escalation_days_after > escalation_days_after",
            name="ck_action_sla_second_after_first",
        ),
    )
