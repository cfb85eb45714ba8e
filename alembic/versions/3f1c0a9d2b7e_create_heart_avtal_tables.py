"""create heart avtal tables

Revision ID: 3f1c0a9d2b7e
Revises:
Create Date: 2026-10-17 09:12:41.208113

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '3f1c0a9d2b7e'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade():
    op.create_table(
        "heart_contracts",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(length=256), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("contract_type", sa.String(length=32), nullable=False),
        sa.Column("status", sa.String(length=40), nullable=False, server_default="draft"),
        sa.Column("amount", sa.Numeric(20, 2), nullable=True),
        sa.Column("currency", sa.String(length=3), nullable=False, server_default="SEK"),
        sa.Column("payment_terms", sa.Text(), nullable=False, server_default=""),
        sa.Column("created_by", sa.String(length=128), nullable=False),
        sa.Column("listing_id", sa.String(length=128), nullable=True),
        sa.Column("auto_created", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("due_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "legal_compliance_json",
            postgresql.JSONB,
            server_default=sa.text("'{}'::jsonb"),
            nullable=False,
        ),
        sa.Column(
            "documents_json",
            postgresql.JSONB,
            server_default=sa.text("'[]'::jsonb"),
            nullable=False,
        ),
        sa.Column(
            "metadata_json",
            postgresql.JSONB,
            server_default=sa.text("'{}'::jsonb"),
            nullable=False,
        ),
    )
    op.create_index("ix_heart_contracts_created_by", "heart_contracts", ["created_by"])
    op.create_index("ix_heart_contracts_status", "heart_contracts", ["status"])

    op.create_table(
        "heart_contract_parties",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column(
            "contract_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("heart_contracts.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.String(length=128), nullable=True),
        sa.Column("name", sa.String(length=256), nullable=False, server_default=""),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("phone", sa.String(length=32), nullable=True),
        sa.Column("organization", sa.String(length=256), nullable=True),
        sa.Column("organization_number", sa.String(length=32), nullable=True),
        sa.Column("role", sa.String(length=16), nullable=False),
        sa.Column("signed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("signed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("signature_ip", sa.String(length=64), nullable=True),
        sa.Column("signature_user_agent", sa.String(length=512), nullable=True),
        sa.Column("signature_content_hash", sa.String(length=128), nullable=True),
        sa.Column("signature_hash", sa.String(length=128), nullable=True),
        sa.Column("signature_method", sa.String(length=16), nullable=True),
        sa.Column("signature_certificate_id", sa.String(length=128), nullable=True),
        sa.Column("id_verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("email_verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("phone_verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("bank_account_verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("kyc_status", sa.String(length=16), nullable=False, server_default="pending"),
        sa.Column("verification_level", sa.String(length=16), nullable=False, server_default="basic"),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "verification_documents_json",
            postgresql.JSONB,
            server_default=sa.text("'[]'::jsonb"),
            nullable=False,
        ),
        sa.Column(
            "notifications_json",
            postgresql.JSONB,
            server_default=sa.text("'{\"email\": true, \"sms\": true, \"push\": true}'::jsonb"),
            nullable=False,
        ),
        sa.UniqueConstraint("contract_id", "position", name="uq_heart_party_position"),
        sa.CheckConstraint(
            "NOT signed OR (signed_at IS NOT NULL AND signature_hash IS NOT NULL)",
            name="ck_heart_party_signed_has_signature",
        ),
    )
    op.create_index("ix_heart_party_user", "heart_contract_parties", ["user_id"])
    op.create_index("ix_heart_party_contract", "heart_contract_parties", ["contract_id"])

    op.create_table(
        "heart_contract_escrows",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column(
            "contract_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("heart_contracts.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="none"),
        sa.Column("amount", sa.Numeric(20, 2), nullable=False, server_default="0"),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column("account_id", sa.String(length=128), nullable=True),
        sa.Column("secured_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "release_conditions_json",
            postgresql.JSONB,
            server_default=sa.text("'[]'::jsonb"),
            nullable=False,
        ),
        sa.Column(
            "release_approvals_json",
            postgresql.JSONB,
            server_default=sa.text("'{}'::jsonb"),
            nullable=False,
        ),
        sa.Column("platform_fee_rate", sa.Numeric(8, 5), nullable=True),
        sa.Column("escrow_fee_rate", sa.Numeric(8, 5), nullable=True),
        sa.Column("payment_processing_fee_rate", sa.Numeric(8, 5), nullable=True),
        sa.Column("platform_fee", sa.Numeric(20, 2), nullable=True),
        sa.Column("escrow_fee", sa.Numeric(20, 2), nullable=True),
        sa.Column("payment_processing_fee", sa.Numeric(20, 2), nullable=True),
        sa.Column("net_amount", sa.Numeric(20, 2), nullable=True),
        sa.Column("transaction_id", sa.String(length=128), nullable=True),
        sa.Column("released_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("refund_id", sa.String(length=128), nullable=True),
        sa.Column("refunded_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("refund_reason", sa.Text(), nullable=True),
    )

    op.create_table(
        "heart_contract_approvals",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column(
            "contract_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("heart_contracts.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column("required", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="pending"),
        sa.Column("reviewed_by", sa.String(length=128), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("approved_by", sa.String(length=128), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("comments", sa.Text(), nullable=True),
        sa.Column(
            "conditions_json",
            postgresql.JSONB,
            server_default=sa.text("'[]'::jsonb"),
            nullable=False,
        ),
        sa.Column("escalation_reason", sa.Text(), nullable=True),
        sa.Column("risk_assessment_json", postgresql.JSONB, nullable=True),
    )

    op.create_table(
        "heart_contract_audit_entries",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column(
            "contract_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("heart_contracts.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("seq", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("action", sa.String(length=64), nullable=False),
        sa.Column("user_id", sa.String(length=128), nullable=False),
        sa.Column("details", sa.Text(), nullable=False, server_default=""),
        sa.Column("ip_address", sa.String(length=64), nullable=False, server_default="unknown"),
        sa.Column("request_id", sa.String(length=128), nullable=True),
        sa.Column("prev_hash", sa.String(length=128), nullable=False),
        sa.Column("entry_hash", sa.String(length=128), nullable=False),
        sa.Column(
            "payload_json",
            postgresql.JSONB,
            server_default=sa.text("'{}'::jsonb"),
            nullable=False,
        ),
        sa.UniqueConstraint("contract_id", "seq", name="uq_heart_audit_seq"),
    )
    op.create_index("ix_heart_audit_contract", "heart_contract_audit_entries", ["contract_id"])
    op.create_index("ix_heart_audit_action", "heart_contract_audit_entries", ["action"])


def downgrade():
    op.drop_index("ix_heart_audit_action", table_name="heart_contract_audit_entries")
    op.drop_index("ix_heart_audit_contract", table_name="heart_contract_audit_entries")
    op.drop_table("heart_contract_audit_entries")
    op.drop_table("heart_contract_approvals")
    op.drop_table("heart_contract_escrows")
    op.drop_index("ix_heart_party_contract", table_name="heart_contract_parties")
    op.drop_index("ix_heart_party_user", table_name="heart_contract_parties")
    op.drop_table("heart_contract_parties")
    op.drop_index("ix_heart_contracts_status", table_name="heart_contracts")
    op.drop_index("ix_heart_contracts_created_by", table_name="heart_contracts")
    op.drop_table("heart_contracts")
