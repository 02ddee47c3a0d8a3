"""Initial Highlander schema.

Revision ID: 20251001_000001
Revises:
Create Date: 2025-10-01 00:00:01
"""

from alembic import op  # type: ignore[attr-defined]
import sqlalchemy as sa
import sqlmodel
from sqlalchemy.dialects import postgresql

revision = "20251001_000001"
down_revision = None
branch_labels = None
depends_on = None


# Store the enum names, as used by SAEnum(<Enum>) defaults.
ENUMS = {
    "gamestatus": ("registration", "active", "completed"),
    "roundstatus": ("selection_open", "selection_locked", "calculated"),
    "endreason": ("all_eliminated", "single_survivor", "max_rounds", "season_end"),
    "matchresult": ("home_win", "away_win", "draw"),
    "auditaction": ("deadline_set", "deadline_cleared", "auto_lock"),
}


def _enum(name: str) -> postgresql.ENUM:
    return postgresql.ENUM(*ENUMS[name], name=name, create_type=False)


def upgrade() -> None:
    bind = op.get_bind()
    for name in ENUMS:
        _enum(name).create(bind, checkfirst=True)

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("username", sqlmodel.AutoString(), nullable=False),
        sa.Column("email", sqlmodel.AutoString(), nullable=False),
        sa.Column("first_name", sqlmodel.AutoString(), nullable=False),
        sa.Column("last_name", sqlmodel.AutoString(), nullable=False),
        sa.Column("is_admin", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("email"),
    )
    op.create_index("ix_users_username", "users", ["username"], unique=True)

    op.create_table(
        "teams",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("name", sqlmodel.AutoString(), nullable=False),
        sa.Column("code", sqlmodel.AutoString(length=3), nullable=False),
        sa.UniqueConstraint("name"),
        sa.UniqueConstraint("code"),
    )

    op.create_table(
        "matches",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("round", sa.Integer(), nullable=False),
        sa.Column("home_team_id", sa.Integer(), sa.ForeignKey("teams.id"), nullable=False),
        sa.Column("away_team_id", sa.Integer(), sa.ForeignKey("teams.id"), nullable=False),
        sa.Column("home_score", sa.Integer(), nullable=True),
        sa.Column("away_score", sa.Integer(), nullable=True),
        sa.Column("result", _enum("matchresult"), nullable=True),
        sa.Column("match_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_completed", sa.Boolean(), nullable=False),
        sa.UniqueConstraint("round", "home_team_id", name="uq_matches_round_home"),
        sa.UniqueConstraint("round", "away_team_id", name="uq_matches_round_away"),
    )
    op.create_index("ix_matches_round", "matches", ["round"], unique=False)
    op.create_index("ix_matches_is_completed", "matches", ["is_completed"], unique=False)

    op.create_table(
        "games",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("name", sqlmodel.AutoString(), nullable=False),
        sa.Column("description", sqlmodel.AutoString(), nullable=True),
        sa.Column("start_round", sa.Integer(), nullable=False),
        sa.Column("current_round", sa.Integer(), nullable=False),
        sa.Column("status", _enum("gamestatus"), nullable=False),
        sa.Column("round_status", _enum("roundstatus"), nullable=False),
        sa.Column("selection_deadline", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_by", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_reason", _enum("endreason"), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_games_status", "games", ["status"], unique=False)
    op.create_index("ix_games_selection_deadline", "games", ["selection_deadline"], unique=False)
    op.create_index("ix_games_created_by", "games", ["created_by"], unique=False)

    op.create_table(
        "game_participants",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column(
            "game_id", sa.Integer(), sa.ForeignKey("games.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("joined_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("is_winner", sa.Boolean(), nullable=False),
        sa.UniqueConstraint("game_id", "user_id", name="uq_game_participants_game_user"),
    )
    op.create_index("ix_game_participants_game_id", "game_participants", ["game_id"], unique=False)
    op.create_index("ix_game_participants_user_id", "game_participants", ["user_id"], unique=False)

    op.create_table(
        "tickets",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column(
            "game_id", sa.Integer(), sa.ForeignKey("games.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("eliminated_in_round", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_tickets_game_id", "tickets", ["game_id"], unique=False)
    op.create_index("ix_tickets_user_id", "tickets", ["user_id"], unique=False)
    op.create_index("ix_tickets_is_active", "tickets", ["is_active"], unique=False)

    op.create_table(
        "team_selections",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column(
            "ticket_id", sa.Integer(), sa.ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column(
            "game_id", sa.Integer(), sa.ForeignKey("games.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("team_id", sa.Integer(), sa.ForeignKey("teams.id"), nullable=False),
        sa.Column("round", sa.Integer(), nullable=False),
        sa.Column("is_auto_assigned", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("ticket_id", "round", name="uq_team_selections_ticket_round"),
        sa.UniqueConstraint("ticket_id", "team_id", name="uq_team_selections_ticket_team"),
    )
    op.create_index("ix_team_selections_ticket_id", "team_selections", ["ticket_id"], unique=False)
    op.create_index("ix_team_selections_game_id", "team_selections", ["game_id"], unique=False)
    op.create_index("ix_team_selections_round", "team_selections", ["round"], unique=False)

    op.create_table(
        "deadline_audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column(
            "game_id", sa.Integer(), sa.ForeignKey("games.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("action", _enum("auditaction"), nullable=False),
        sa.Column("round_number", sa.Integer(), nullable=False),
        sa.Column("deadline", sa.DateTime(timezone=True), nullable=True),
        sa.Column("auto_assigned_count", sa.Integer(), nullable=True),
        sa.Column("manual_selection_count", sa.Integer(), nullable=True),
        sa.Column("total_active_tickets", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_deadline_audit_logs_game_id", "deadline_audit_logs", ["game_id"], unique=False
    )


def downgrade() -> None:
    op.drop_table("deadline_audit_logs")
    op.drop_table("team_selections")
    op.drop_table("tickets")
    op.drop_table("game_participants")
    op.drop_table("games")
    op.drop_table("matches")
    op.drop_table("teams")
    op.drop_table("users")
    bind = op.get_bind()
    for name in reversed(list(ENUMS)):
        _enum(name).drop(bind, checkfirst=True)
