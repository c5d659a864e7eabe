from __future__ import annotations
"""server/alert_engine/migrations/versions/0001_initial.py
~~~~~~~~~~~~~~~~~~~~~~~~
Schéma initial.
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def _uuid() -> postgresql.UUID:
    return postgresql.UUID(as_uuid=True)


def _tstz() -> sa.TIMESTAMP:
    return sa.TIMESTAMP(timezone=True)


def upgrade() -> None:
    op.create_table(
        "hazard_events",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("kind", sa.String(16), nullable=False),
        sa.Column("source", sa.String(32), server_default="manual", nullable=False),
        sa.Column("external_id", sa.String(128), nullable=True),
        sa.Column("latitude", sa.Float(), nullable=False),
        sa.Column("longitude", sa.Float(), nullable=False),
        sa.Column("magnitude", sa.Float(), nullable=True),
        sa.Column("depth_km", sa.Float(), nullable=True),
        sa.Column("severity_level", sa.Integer(), nullable=True),
        sa.Column("wave_height_meters", sa.Float(), nullable=True),
        sa.Column("location_label", sa.String(255), nullable=True),
        sa.Column("occurred_at", _tstz(), nullable=False),
        sa.Column("active", sa.Boolean(), server_default=sa.text("TRUE"), nullable=False),
        sa.Column("created_at", _tstz(), server_default=sa.text("NOW()"), nullable=False),
        sa.CheckConstraint("kind IN ('earthquake', 'tsunami')", name="ck_hazard_events_kind"),
        sa.UniqueConstraint("source", "external_id", name="uq_hazard_events_source_external"),
    )
    op.create_index("ix_hazard_events_active_occurred", "hazard_events", ["active", "occurred_at"])

    op.create_table(
        "vessels",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("mmsi", sa.String(16), nullable=False, unique=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("active", sa.Boolean(), server_default=sa.text("TRUE"), nullable=False),
        sa.Column("latest_lat", sa.Float(), nullable=True),
        sa.Column("latest_lon", sa.Float(), nullable=True),
        sa.Column("position_observed_at", _tstz(), nullable=True),
        sa.Column("created_at", _tstz(), server_default=sa.text("NOW()"), nullable=False),
    )
    op.create_index("ix_vessels_position_observed_at", "vessels", ["position_observed_at"])

    op.create_table(
        "contacts",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(32), nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("whatsapp", sa.String(32), nullable=True),
        sa.Column("active", sa.Boolean(), server_default=sa.text("TRUE"), nullable=False),
        sa.Column("created_at", _tstz(), server_default=sa.text("NOW()"), nullable=False),
    )

    op.create_table(
        "vessel_contacts",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("vessel_id", _uuid(), nullable=False),
        sa.Column("contact_id", _uuid(), nullable=False),
        sa.Column("role", sa.String(64), nullable=False),
        sa.Column("priority", sa.Integer(), server_default="1", nullable=False),
        sa.Column("notify_on", postgresql.JSONB(), server_default=sa.text("'[]'::jsonb"), nullable=False),
        sa.ForeignKeyConstraint(["vessel_id"], ["vessels.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["contact_id"], ["contacts.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("vessel_id", "contact_id", name="uq_vessel_contacts_vessel_contact"),
    )
    op.create_index("ix_vessel_contacts_vessel_id", "vessel_contacts", ["vessel_id"])

    op.create_table(
        "escalation_policies",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("event_kinds", postgresql.JSONB(), server_default=sa.text("'[]'::jsonb"), nullable=False),
        sa.Column("severity_levels", postgresql.JSONB(), server_default=sa.text("'[]'::jsonb"), nullable=False),
        sa.Column("steps", postgresql.JSONB(), server_default=sa.text("'[]'::jsonb"), nullable=False),
        sa.Column("active", sa.Boolean(), server_default=sa.text("TRUE"), nullable=False),
        sa.Column("created_at", _tstz(), server_default=sa.text("NOW()"), nullable=False),
    )

    op.create_table(
        "alerts",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("vessel_id", _uuid(), nullable=False),
        sa.Column("event_id", _uuid(), nullable=False),
        sa.Column("event_kind", sa.String(16), nullable=False),
        sa.Column("severity", sa.String(16), nullable=False),
        sa.Column("distance_km", sa.Float(), nullable=False),
        sa.Column("coordinates", postgresql.JSONB(), nullable=False),
        sa.Column("message", sa.Text(), server_default="", nullable=False),
        sa.Column("recommendation", sa.Text(), nullable=True),
        sa.Column("actions", postgresql.JSONB(), server_default=sa.text("'[]'::jsonb"), nullable=False),
        sa.Column("tsunami_eta_minutes", sa.Integer(), nullable=True),
        sa.Column("wave_height_meters", sa.Float(), nullable=True),
        sa.Column("status", sa.String(16), server_default="pending", nullable=False),
        sa.Column("warnings", postgresql.JSONB(), server_default=sa.text("'[]'::jsonb"), nullable=False),
        sa.Column("escalation_policy_id", _uuid(), nullable=True),
        sa.Column("created_at", _tstz(), server_default=sa.text("NOW()"), nullable=False),
        sa.Column("expires_at", _tstz(), nullable=False),
        sa.Column("sent_at", _tstz(), nullable=True),
        sa.Column("acknowledged_at", _tstz(), nullable=True),
        sa.Column("acknowledged_by", sa.String(255), nullable=True),
        sa.ForeignKeyConstraint(["vessel_id"], ["vessels.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["event_id"], ["hazard_events.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["escalation_policy_id"], ["escalation_policies.id"], ondelete="SET NULL"),
        sa.CheckConstraint(
            "status IN ('pending', 'sent', 'acknowledged', 'expired')", name="ck_alerts_status"
        ),
        sa.CheckConstraint(
            "severity IN ('low', 'moderate', 'high', 'critical')", name="ck_alerts_severity"
        ),
    )
    op.create_index("ix_alerts_vessel_event_created", "alerts", ["vessel_id", "event_id", "created_at"])
    op.create_index("ix_alerts_status_expires", "alerts", ["status", "expires_at"])

    # Verrou d'anti-doublon : un seul claim par (vessel, event)
    op.create_table(
        "alert_claims",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("vessel_id", _uuid(), nullable=False),
        sa.Column("event_id", _uuid(), nullable=False),
        sa.Column("alert_id", _uuid(), nullable=False),
        sa.Column("claimed_at", _tstz(), nullable=False),
        sa.UniqueConstraint("vessel_id", "event_id", name="uq_alert_claims_vessel_event"),
    )

    op.create_table(
        "delivery_logs",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("alert_id", _uuid(), nullable=False),
        sa.Column("contact_id", _uuid(), nullable=False),
        sa.Column("channel", sa.String(16), nullable=False),
        sa.Column("destination", sa.String(255), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("subject", sa.String(255), nullable=True),
        sa.Column("escalation_step", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(16), server_default="pending", nullable=False),
        sa.Column("attempts", sa.Integer(), server_default="0", nullable=False),
        sa.Column("last_attempt_at", _tstz(), nullable=True),
        sa.Column("provider_message_id", sa.String(128), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("delivered_at", _tstz(), nullable=True),
        sa.Column("created_at", _tstz(), server_default=sa.text("NOW()"), nullable=False),
        sa.Column("updated_at", _tstz(), server_default=sa.text("NOW()"), nullable=False),
        sa.ForeignKeyConstraint(["alert_id"], ["alerts.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["contact_id"], ["contacts.id"], ondelete="CASCADE"),
        sa.CheckConstraint("channel IN ('sms', 'email', 'whatsapp', 'voice')", name="ck_delivery_logs_channel"),
        sa.CheckConstraint(
            "status IN ('pending', 'sent', 'delivered', 'failed')", name="ck_delivery_logs_status"
        ),
        sa.CheckConstraint("attempts >= 0", name="ck_delivery_logs_attempts"),
    )
    op.create_index("ix_delivery_logs_alert_id", "delivery_logs", ["alert_id"])
    op.create_index("ix_delivery_logs_provider_message_id", "delivery_logs", ["provider_message_id"])
    op.create_index("ix_delivery_logs_status_updated", "delivery_logs", ["status", "updated_at"])

    op.create_table(
        "escalation_runs",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("alert_id", _uuid(), nullable=False, unique=True),
        sa.Column("policy_id", _uuid(), nullable=False),
        sa.Column("current_step", sa.Integer(), server_default="0", nullable=False),
        sa.Column("next_fire_at", _tstz(), nullable=True),
        sa.Column("claimed_until", _tstz(), nullable=True),
        sa.Column("ack_deadline_at", _tstz(), nullable=True),
        sa.Column("last_fired_at", _tstz(), nullable=True),
        sa.Column("halted_at", _tstz(), nullable=True),
        sa.Column("halt_reason", sa.String(32), nullable=True),
        sa.Column("created_at", _tstz(), server_default=sa.text("NOW()"), nullable=False),
        sa.ForeignKeyConstraint(["alert_id"], ["alerts.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["policy_id"], ["escalation_policies.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_escalation_runs_due", "escalation_runs", ["halted_at", "next_fire_at"])


def downgrade() -> None:
    op.drop_index("ix_escalation_runs_due", table_name="escalation_runs")
    op.drop_table("escalation_runs")
    op.drop_table("delivery_logs")
    op.drop_table("alert_claims")
    op.drop_table("alerts")
    op.drop_table("escalation_policies")
    op.drop_table("vessel_contacts")
    op.drop_table("contacts")
    op.drop_table("vessels")
    op.drop_table("hazard_events")
