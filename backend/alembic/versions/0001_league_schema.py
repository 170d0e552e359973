"""league schema: games, teams, rosters, drafts, trades

Revision ID: 0001_league_schema
Revises:
Create Date: 2026-10-18

"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op


revision = "0001_league_schema"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "players",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("nickname", sa.String(length=80), nullable=False),
        sa.Column("region", sa.String(length=10), nullable=False),
        sa.Column("season", sa.Integer(), nullable=False),
        sa.Column("locked", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("rank", sa.Integer(), nullable=True),
        sa.Column("tranche", sa.String(length=20), nullable=True),
        sa.UniqueConstraint("nickname", "season", name="uq_players_nickname_season"),
    )
    op.create_index("ix_players_nickname", "players", ["nickname"])
    op.create_index("ix_players_region", "players", ["region"])
    op.create_index("ix_players_season", "players", ["season"])
    op.create_index("ix_players_rank", "players", ["rank"])

    op.create_table(
        "games",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("creator_id", sa.Uuid(), nullable=False),
        sa.Column("season", sa.Integer(), nullable=False),
        sa.Column("trading_enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("trade_deadline", sa.DateTime(timezone=True), nullable=True),
        sa.Column("max_trades_per_team", sa.Integer(), nullable=False, server_default="5"),
        sa.Column("draft_rounds", sa.Integer(), nullable=True),
        sa.Column("pick_time_limit_seconds", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_games_name", "games", ["name"])
    op.create_index("ix_games_creator_id", "games", ["creator_id"])
    op.create_index("ix_games_season", "games", ["season"])

    op.create_table(
        "region_quotas",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("game_id", sa.Integer(), sa.ForeignKey("games.id"), nullable=False),
        sa.Column("region", sa.String(length=10), nullable=False),
        sa.Column("max_players", sa.Integer(), nullable=False),
        sa.UniqueConstraint("game_id", "region", name="uq_region_quotas_game_region"),
    )
    op.create_index("ix_region_quotas_game_id", "region_quotas", ["game_id"])

    op.create_table(
        "teams",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("owner_id", sa.Uuid(), nullable=False),
        sa.Column("game_id", sa.Integer(), sa.ForeignKey("games.id"), nullable=False),
        sa.Column("season", sa.Integer(), nullable=False),
        sa.Column("joined_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("completed_trades", sa.Integer(), nullable=False, server_default="0"),
        sa.UniqueConstraint("game_id", "owner_id", name="uq_teams_game_owner"),
    )
    op.create_index("ix_teams_name", "teams", ["name"])
    op.create_index("ix_teams_owner_id", "teams", ["owner_id"])
    op.create_index("ix_teams_game_id", "teams", ["game_id"])
    op.create_index("ix_teams_joined_at", "teams", ["joined_at"])

    op.create_table(
        "roster_slots",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("team_id", sa.Integer(), sa.ForeignKey("teams.id"), nullable=False),
        sa.Column("player_id", sa.Integer(), sa.ForeignKey("players.id"), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("added_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("removed_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_roster_slots_team_id", "roster_slots", ["team_id"])
    op.create_index("ix_roster_slots_player_id", "roster_slots", ["player_id"])
    op.create_index("ix_roster_slots_player_active", "roster_slots", ["player_id", "removed_at"])

    op.create_table(
        "drafts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("game_id", sa.Integer(), sa.ForeignKey("games.id"), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="NOT_STARTED"),
        sa.Column("total_rounds", sa.Integer(), nullable=False),
        sa.Column("current_pick", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("finished_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("paused_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("turn_started_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("game_id", name="uq_drafts_game"),
    )
    op.create_index("ix_drafts_game_id", "drafts", ["game_id"])
    op.create_index("ix_drafts_status", "drafts", ["status"])

    op.create_table(
        "draft_participants",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("draft_id", sa.Integer(), sa.ForeignKey("drafts.id"), nullable=False),
        sa.Column("team_id", sa.Integer(), sa.ForeignKey("teams.id"), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("draft_order", sa.Integer(), nullable=False),
        sa.UniqueConstraint("draft_id", "draft_order", name="uq_draft_participants_order"),
        sa.UniqueConstraint("draft_id", "team_id", name="uq_draft_participants_team"),
    )
    op.create_index("ix_draft_participants_draft_id", "draft_participants", ["draft_id"])
    op.create_index("ix_draft_participants_team_id", "draft_participants", ["team_id"])
    op.create_index("ix_draft_participants_user_id", "draft_participants", ["user_id"])

    op.create_table(
        "draft_picks",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("draft_id", sa.Integer(), sa.ForeignKey("drafts.id"), nullable=False),
        sa.Column("participant_id", sa.Integer(), sa.ForeignKey("draft_participants.id"), nullable=False),
        sa.Column("team_id", sa.Integer(), sa.ForeignKey("teams.id"), nullable=False),
        sa.Column("player_id", sa.Integer(), sa.ForeignKey("players.id"), nullable=False),
        sa.Column("round", sa.Integer(), nullable=False),
        sa.Column("pick_number", sa.Integer(), nullable=False),
        sa.Column("auto", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("picked_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("draft_id", "player_id", name="uq_draft_picks_draft_player"),
        sa.UniqueConstraint("draft_id", "pick_number", name="uq_draft_picks_draft_number"),
    )
    op.create_index("ix_draft_picks_draft_id", "draft_picks", ["draft_id"])
    op.create_index("ix_draft_picks_participant_id", "draft_picks", ["participant_id"])
    op.create_index("ix_draft_picks_team_id", "draft_picks", ["team_id"])
    op.create_index("ix_draft_picks_player_id", "draft_picks", ["player_id"])
    op.create_index("ix_draft_picks_pick_number", "draft_picks", ["pick_number"])

    op.create_table(
        "trades",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("game_id", sa.Integer(), sa.ForeignKey("games.id"), nullable=False),
        sa.Column("from_team_id", sa.Integer(), sa.ForeignKey("teams.id"), nullable=False),
        sa.Column("to_team_id", sa.Integer(), sa.ForeignKey("teams.id"), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="PENDING"),
        sa.Column("original_trade_id", sa.Integer(), sa.ForeignKey("trades.id"), nullable=True),
        sa.Column("proposed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("accepted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejected_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("countered_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_trades_game_id", "trades", ["game_id"])
    op.create_index("ix_trades_from_team_id", "trades", ["from_team_id"])
    op.create_index("ix_trades_to_team_id", "trades", ["to_team_id"])
    op.create_index("ix_trades_status", "trades", ["status"])
    op.create_index("ix_trades_original_trade_id", "trades", ["original_trade_id"])
    op.create_index("ix_trades_proposed_at", "trades", ["proposed_at"])

    op.create_table(
        "trade_players",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("trade_id", sa.Integer(), sa.ForeignKey("trades.id"), nullable=False),
        sa.Column("player_id", sa.Integer(), sa.ForeignKey("players.id"), nullable=False),
        sa.Column("side", sa.String(length=10), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
    )
    op.create_index("ix_trade_players_trade_id", "trade_players", ["trade_id"])
    op.create_index("ix_trade_players_player_id", "trade_players", ["player_id"])


def downgrade() -> None:
    for table in (
        "trade_players",
        "trades",
        "draft_picks",
        "draft_participants",
        "drafts",
        "roster_slots",
        "teams",
        "region_quotas",
        "games",
        "players",
    ):
        op.drop_table(table)
