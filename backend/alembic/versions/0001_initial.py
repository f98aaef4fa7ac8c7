"""initial schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-17 00:00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "0001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _created_at() -> sa.Column:
    return sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now())


def upgrade() -> None:
    op.create_table(
        "sources",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("slug", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("base_url", sa.String(length=500), nullable=False),
        sa.Column("fetch_method", sa.String(length=16), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("last_fetched_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
    )
    op.create_index("ix_sources_slug", "sources", ["slug"], unique=True)

    op.create_table(
        "teams",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("abbreviation", sa.String(length=120), nullable=False),
        sa.Column("sport", sa.String(length=32), nullable=False),
        _created_at(),
        sa.UniqueConstraint("abbreviation", "sport", name="uq_teams_abbreviation_sport"),
    )
    op.create_index("ix_teams_sport", "teams", ["sport"])

    op.create_table(
        "team_aliases",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("team_id", sa.Integer(), sa.ForeignKey("teams.id", ondelete="CASCADE"), nullable=False),
        sa.Column("alias", sa.String(length=160), nullable=False),
        sa.UniqueConstraint("alias", "team_id", name="uq_team_aliases_alias_team"),
    )
    op.create_index("ix_team_aliases_team_id", "team_aliases", ["team_id"])
    op.create_index("ix_team_aliases_alias", "team_aliases", ["alias"])

    op.create_table(
        "matches",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("sport", sa.String(length=32), nullable=False),
        sa.Column("home_team_id", sa.Integer(), sa.ForeignKey("teams.id"), nullable=False),
        sa.Column("away_team_id", sa.Integer(), sa.ForeignKey("teams.id"), nullable=False),
        sa.Column("game_date", sa.Date(), nullable=False),
        sa.Column("game_time", sa.String(length=16), nullable=True),
        sa.Column("external_id", sa.String(length=128), nullable=True),
        _created_at(),
        sa.UniqueConstraint(
            "sport", "home_team_id", "away_team_id", "game_date", name="uq_matches_sport_teams_date"
        ),
    )
    op.create_index("ix_matches_sport", "matches", ["sport"])
    op.create_index("ix_matches_game_date", "matches", ["game_date"])

    op.create_table(
        "predictions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("source_id", sa.Integer(), sa.ForeignKey("sources.id"), nullable=False),
        sa.Column("match_id", sa.Integer(), sa.ForeignKey("matches.id"), nullable=False),
        sa.Column("sport", sa.String(length=32), nullable=False),
        sa.Column("home_team_id", sa.Integer(), sa.ForeignKey("teams.id"), nullable=False),
        sa.Column("away_team_id", sa.Integer(), sa.ForeignKey("teams.id"), nullable=False),
        sa.Column("pick_type", sa.String(length=16), nullable=False),
        sa.Column("side", sa.String(length=16), nullable=False),
        sa.Column("value", sa.Float(), nullable=True),
        sa.Column("picker_name", sa.String(length=160), nullable=False),
        sa.Column("confidence", sa.String(length=16), nullable=True),
        sa.Column("reasoning", sa.Text(), nullable=True),
        sa.Column("dedup_key", sa.String(length=32), nullable=False),
        sa.Column("fetched_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("grade", sa.String(length=8), nullable=True),
        sa.Column("graded_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        sa.UniqueConstraint("dedup_key", name="uq_predictions_dedup_key"),
    )
    op.create_index("ix_predictions_source_id", "predictions", ["source_id"])
    op.create_index("ix_predictions_match_id", "predictions", ["match_id"])
    op.create_index("ix_predictions_sport", "predictions", ["sport"])
    op.create_index("ix_predictions_grade", "predictions", ["grade"])

    op.create_table(
        "match_results",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("match_id", sa.Integer(), sa.ForeignKey("matches.id"), nullable=False),
        sa.Column("home_score", sa.Integer(), nullable=False),
        sa.Column("away_score", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("result_source", sa.String(length=32), nullable=False),
        sa.Column("settled_at", sa.DateTime(timezone=True), nullable=False),
        _created_at(),
        sa.UniqueConstraint("match_id", name="uq_match_results_match_id"),
    )

    op.create_table(
        "snapshots",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("source_slug", sa.String(length=64), nullable=False),
        sa.Column("sport", sa.String(length=32), nullable=False),
        sa.Column("url", sa.String(length=1000), nullable=False),
        sa.Column("fetch_method", sa.String(length=16), nullable=False),
        sa.Column("http_status", sa.Integer(), nullable=True),
        sa.Column("duration_ms", sa.Integer(), nullable=False),
        sa.Column("size_bytes", sa.Integer(), nullable=False),
        sa.Column("html_path", sa.String(length=1000), nullable=False),
        sa.Column("fetched_at", sa.DateTime(timezone=True), nullable=False),
        _created_at(),
    )
    op.create_index("ix_snapshots_source_slug", "snapshots", ["source_slug"])
    op.create_index("ix_snapshots_fetched_at", "snapshots", ["fetched_at"])


def downgrade() -> None:
    op.drop_index("ix_snapshots_fetched_at", table_name="snapshots")
    op.drop_index("ix_snapshots_source_slug", table_name="snapshots")
    op.drop_table("snapshots")
    op.drop_table("match_results")
    op.drop_index("ix_predictions_grade", table_name="predictions")
    op.drop_index("ix_predictions_sport", table_name="predictions")
    op.drop_index("ix_predictions_match_id", table_name="predictions")
    op.drop_index("ix_predictions_source_id", table_name="predictions")
    op.drop_table("predictions")
    op.drop_index("ix_matches_game_date", table_name="matches")
    op.drop_index("ix_matches_sport", table_name="matches")
    op.drop_table("matches")
    op.drop_index("ix_team_aliases_alias", table_name="team_aliases")
    op.drop_index("ix_team_aliases_team_id", table_name="team_aliases")
    op.drop_table("team_aliases")
    op.drop_index("ix_teams_sport", table_name="teams")
    op.drop_table("teams")
    op.drop_index("ix_sources_slug", table_name="sources")
    op.drop_table("sources")
