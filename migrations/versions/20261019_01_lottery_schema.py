"""Lottery schema: elections, tickets, draws, winners, audit chain and wallets."""
from __future__ import annotations

from collections.abc import Iterable

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision = "20261019_01"
down_revision = None
branch_labels = None
depends_on: Iterable[str] | None = None


def _enum(*values: str, name: str) -> postgresql.ENUM:
    # Types are created up front; columns must not try to create them again.
    return postgresql.ENUM(*values, name=name, create_type=False)


def _drop_enum(name: str) -> None:
    bind = op.get_bind()
    if bind.dialect.name == "postgresql":
        op.execute(sa.text(f"DROP TYPE IF EXISTS {name}"))


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:  # noqa: D401
    """Create lottery tables and constraints."""

    election_status = _enum("draft", "published", "completed", name="election_status")
    reward_type = _enum("monetary", "non_monetary", name="reward_type")
    draw_status = _enum("completed", name="draw_status")
    disbursement_status = _enum(
        "pending_claim",
        "pending_approval",
        "pending_senior_approval",
        "disbursed",
        "rejected",
        name="disbursement_status",
    )
    wallet_transaction_type = _enum("prize_won", "prize_reversed", name="wallet_transaction_type")
    wallet_transaction_status = _enum("success", "failed", name="wallet_transaction_status")

    for enum_type in (
        election_status,
        reward_type,
        draw_status,
        disbursement_status,
        wallet_transaction_type,
        wallet_transaction_status,
    ):
        enum_type.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "elections",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("status", election_status, nullable=False, server_default="published"),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("end_time", sa.Time()),
        sa.Column("lottery_enabled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("lottery_winner_count", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("lottery_reward_type", reward_type, nullable=False, server_default="monetary"),
        sa.Column("lottery_total_prize_pool", sa.Numeric(18, 2), nullable=False, server_default="0"),
        sa.Column("lottery_prize_distribution", sa.JSON()),
        sa.Column("lottery_prize_description", sa.String(length=512)),
        *_timestamps(),
    )

    op.create_table(
        "lottery_tickets",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "election_id",
            sa.Integer(),
            sa.ForeignKey("elections.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("ticket_number", sa.Integer(), nullable=False),
        sa.Column("ball_number", sa.Integer(), nullable=False),
        sa.Column("voting_id", sa.String(length=64)),
        *_timestamps(),
        sa.UniqueConstraint("election_id", "user_id", name="uq_lottery_tickets_election_user"),
        sa.UniqueConstraint("election_id", "ticket_number", name="uq_lottery_tickets_election_number"),
    )
    op.create_index("ix_lottery_tickets_election_id", "lottery_tickets", ["election_id"])

    op.create_table(
        "lottery_draws",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "election_id",
            sa.Integer(),
            sa.ForeignKey("elections.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("total_participants", sa.Integer(), nullable=False),
        sa.Column("winner_count", sa.Integer(), nullable=False),
        sa.Column("random_seed", sa.String(length=128), nullable=False),
        sa.Column("status", draw_status, nullable=False, server_default="completed"),
        sa.Column("metadata", sa.JSON()),
        sa.Column("drawn_by", sa.String(length=64)),
        sa.Column("auto_drawn", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("drawn_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("election_id", name="uq_lottery_draws_election_id"),
    )

    op.create_table(
        "lottery_winners",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "election_id",
            sa.Integer(),
            sa.ForeignKey("elections.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "draw_id",
            sa.String(length=36),
            sa.ForeignKey("lottery_draws.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column(
            "ticket_id",
            sa.String(length=36),
            sa.ForeignKey("lottery_tickets.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("rank", sa.Integer(), nullable=False),
        sa.Column("prize_amount", sa.Numeric(18, 2), nullable=False, server_default="0"),
        sa.Column("prize_percentage", sa.Numeric(9, 4), nullable=False, server_default="0"),
        sa.Column("prize_description", sa.String(length=512)),
        sa.Column("prize_type", reward_type, nullable=False),
        sa.Column("claimed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("claimed_at", sa.DateTime(timezone=True)),
        sa.Column(
            "disbursement_status",
            disbursement_status,
            nullable=False,
            server_default="pending_claim",
        ),
        sa.Column("disbursed_at", sa.DateTime(timezone=True)),
        sa.Column("approved_by", sa.String(length=64)),
        sa.Column("approved_at", sa.DateTime(timezone=True)),
        sa.Column("admin_notes", sa.String(length=1024)),
        sa.Column("rejection_reason", sa.String(length=1024)),
        *_timestamps(),
        sa.UniqueConstraint("election_id", "rank", name="uq_lottery_winners_election_rank"),
        sa.UniqueConstraint("election_id", "ticket_id", name="uq_lottery_winners_election_ticket"),
    )
    op.create_index("ix_lottery_winners_user_id", "lottery_winners", ["user_id"])

    op.create_table(
        "audit_events",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("sequence", sa.Integer(), nullable=False),
        sa.Column("event_type", sa.String(length=64), nullable=False),
        sa.Column("actor_id", sa.String(length=64)),
        sa.Column("actor_role", sa.String(length=64)),
        sa.Column("election_id", sa.Integer()),
        sa.Column("event_data", sa.JSON()),
        sa.Column("ip_address", sa.String(length=64)),
        sa.Column("user_agent", sa.String(length=512)),
        sa.Column("hash", sa.String(length=64), nullable=False),
        sa.Column("previous_hash", sa.String(length=64)),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("sequence", name="uq_audit_events_sequence"),
    )
    op.create_index("ix_audit_events_election_id", "audit_events", ["election_id"])
    op.create_index("ix_audit_events_actor_id", "audit_events", ["actor_id"])
    op.create_index("ix_audit_events_occurred_at", "audit_events", ["occurred_at"])

    op.create_table(
        "user_wallets",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("balance", sa.Numeric(18, 2), nullable=False, server_default="0"),
        sa.Column("currency", sa.String(length=3), nullable=False, server_default="USD"),
        *_timestamps(),
        sa.UniqueConstraint("user_id", name="uq_user_wallets_user_id"),
    )

    op.create_table(
        "wallet_transactions",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("transaction_type", wallet_transaction_type, nullable=False),
        sa.Column("amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("election_id", sa.Integer()),
        sa.Column("status", wallet_transaction_status, nullable=False, server_default="success"),
        sa.Column("description", sa.String(length=512)),
        sa.Column("details", sa.JSON()),
        *_timestamps(),
    )
    op.create_index("ix_wallet_transactions_user_id", "wallet_transactions", ["user_id"])


def downgrade() -> None:  # noqa: D401
    """Drop all lottery tables."""

    op.drop_index("ix_wallet_transactions_user_id", table_name="wallet_transactions")
    op.drop_table("wallet_transactions")

    op.drop_table("user_wallets")

    op.drop_index("ix_audit_events_occurred_at", table_name="audit_events")
    op.drop_index("ix_audit_events_actor_id", table_name="audit_events")
    op.drop_index("ix_audit_events_election_id", table_name="audit_events")
    op.drop_table("audit_events")

    op.drop_index("ix_lottery_winners_user_id", table_name="lottery_winners")
    op.drop_table("lottery_winners")

    op.drop_table("lottery_draws")

    op.drop_index("ix_lottery_tickets_election_id", table_name="lottery_tickets")
    op.drop_table("lottery_tickets")

    op.drop_table("elections")

    for enum_name in [
        "wallet_transaction_status",
        "wallet_transaction_type",
        "disbursement_status",
        "draw_status",
        "reward_type",
        "election_status",
    ]:
        _drop_enum(enum_name)
