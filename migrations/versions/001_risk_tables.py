"""
001 — Initial schema: risk_assessment + risk_config tables

Revision ID: 001
Create Date: 2026-10-18
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSON

revision = "001"
down_revision = None
branch_labels = None
depends_on = None

SCHEMA = "crm_risk"


def upgrade() -> None:
    op.execute(f"CREATE SCHEMA IF NOT EXISTS {SCHEMA}")

    # ── Assessment history (insert-only) ──
    op.create_table(
        "risk_assessment",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("client_id", sa.String(36), nullable=False),
        sa.Column("organization_id", sa.String(36), nullable=False),

        sa.Column("overall_score", sa.Integer, nullable=False),
        sa.Column("risk_level", sa.String(20), nullable=False),  # low | medium | high | critical
        sa.Column("summary", sa.Text, nullable=False),

        sa.Column("factors_json", JSON, nullable=False),
        sa.Column("recommendations_json", JSON, nullable=False),
        sa.Column("factor_categories", sa.String(200), nullable=False, server_default=""),

        sa.Column("assessed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("valid_until", sa.DateTime(timezone=True), nullable=False),
        sa.Column("triggered_by", sa.String(10), nullable=False),  # manual | auto | bulk
        sa.Column("created_by", sa.String(100), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),

        schema=SCHEMA,
    )

    op.create_index("ix_risk_assessment_client_id", "risk_assessment", ["client_id"], schema=SCHEMA)
    op.create_index("ix_risk_assessment_organization_id", "risk_assessment", ["organization_id"], schema=SCHEMA)
    op.create_index("ix_risk_assessment_risk_level", "risk_assessment", ["risk_level"], schema=SCHEMA)
    op.create_index("ix_risk_assessment_assessed_at", "risk_assessment", ["assessed_at"], schema=SCHEMA)
    op.create_index(
        "ix_risk_assessment_client_assessed",
        "risk_assessment", ["client_id", "assessed_at"],
        schema=SCHEMA,
    )

    # ── Per-organization config (absent row → defaults) ──
    op.create_table(
        "risk_config",
        sa.Column("organization_id", sa.String(36), primary_key=True),
        sa.Column("factor_weights_json", JSON, nullable=False),
        sa.Column("thresholds_json", JSON, nullable=False),
        sa.Column("auto_assess_interval", sa.Integer, nullable=False, server_default="30"),
        sa.Column("enable_auto_assess", sa.Boolean, nullable=False, server_default="true"),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_by", sa.String(100), nullable=False),
        schema=SCHEMA,
    )


def downgrade() -> None:
    op.drop_table("risk_config", schema=SCHEMA)
    op.drop_table("risk_assessment", schema=SCHEMA)
