"""Create season ledger tables

Revision ID: 5e1a0c3d9b27
Revises:
Create Date: 2026-10-19 12:00:00.000000+00:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# Revision identifiers, used by Alembic.
revision: str = "5e1a0c3d9b27"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "seasons",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("next_order_index", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
    )

    op.create_table(
        "players",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("display_name", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "matches",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("season_id", sa.Integer(), nullable=False),
        sa.Column("side_a_player1", sa.String(length=64), nullable=False),
        sa.Column("side_a_player2", sa.String(length=64), nullable=True),
        sa.Column("side_b_player1", sa.String(length=64), nullable=False),
        sa.Column("side_b_player2", sa.String(length=64), nullable=True),
        sa.Column("result", sa.String(length=10), nullable=False),
        sa.Column("score_diff", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("order_index", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["season_id"], ["seasons.id"]),
        sa.ForeignKeyConstraint(["side_a_player1"], ["players.id"]),
        sa.ForeignKeyConstraint(["side_a_player2"], ["players.id"]),
        sa.ForeignKeyConstraint(["side_b_player1"], ["players.id"]),
        sa.ForeignKeyConstraint(["side_b_player2"], ["players.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("season_id", "order_index", name="uq_matches_season_order"),
        sa.CheckConstraint("score_diff >= 0", name="ck_matches_score_diff_non_negative"),
        sa.CheckConstraint("result IN ('side_a', 'side_b', 'draw')", name="ck_matches_result"),
    )
    op.create_index("idx_matches_season_created_at", "matches", ["season_id", "created_at"])

    op.create_table(
        "season_ratings",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("season_id", sa.Integer(), nullable=False),
        sa.Column("player_id", sa.String(length=64), nullable=False),
        sa.Column("rating", sa.Float(), nullable=False),
        sa.Column("match_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_order_index", sa.Integer(), nullable=True),
        sa.Column("peak_rating", sa.Float(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["season_id"], ["seasons.id"]),
        sa.ForeignKeyConstraint(["player_id"], ["players.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("season_id", "player_id", name="uq_season_ratings_player"),
    )
    op.create_index("idx_season_ratings_rating", "season_ratings", ["season_id", "rating"])

    op.create_table(
        "rating_checkpoints",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("season_id", sa.Integer(), nullable=False),
        sa.Column("order_index", sa.Integer(), nullable=False),
        sa.Column("match_id", sa.Integer(), nullable=False),
        sa.Column("player_id", sa.String(length=64), nullable=False),
        sa.Column("rating_before", sa.Float(), nullable=False),
        sa.Column("rating_after", sa.Float(), nullable=False),
        sa.ForeignKeyConstraint(["season_id"], ["seasons.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "season_id", "order_index", "player_id", name="uq_rating_checkpoints_slot"
        ),
    )
    op.create_index(
        "idx_rating_checkpoints_player",
        "rating_checkpoints",
        ["season_id", "player_id", "order_index"],
    )


def downgrade() -> None:
    op.drop_index("idx_rating_checkpoints_player", table_name="rating_checkpoints")
    op.drop_table("rating_checkpoints")
    op.drop_index("idx_season_ratings_rating", table_name="season_ratings")
    op.drop_table("season_ratings")
    op.drop_index("idx_matches_season_created_at", table_name="matches")
    op.drop_table("matches")
    op.drop_table("players")
    op.drop_table("seasons")
