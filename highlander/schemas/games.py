"""Game and participant tables."""

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, UniqueConstraint
from sqlmodel import Field, SQLModel

from highlander.models.fields import EndReason, GameStatus, RoundStatus
from highlander.utils.clock import utcnow


class Game(SQLModel, table=True):  # type: ignore[call-arg]
    """A survivor game played over consecutive Serie A rounds.

    ``current_round`` and ``start_round`` are season rounds; the game's own
    round number is derived from them (see ``calculate_game_round``).
    """

    __tablename__ = "games"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    description: Optional[str] = Field(default=None)
    start_round: int
    current_round: int
    status: GameStatus = Field(default=GameStatus.registration, index=True)
    round_status: RoundStatus = Field(default=RoundStatus.selection_open)
    selection_deadline: Optional[datetime] = Field(
        default=None, index=True, sa_type=DateTime(timezone=True)
    )
    created_by: int = Field(foreign_key="users.id", index=True)
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))

    # Set once when the game ends
    end_reason: Optional[EndReason] = Field(default=None)
    completed_at: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))


class GameParticipant(SQLModel, table=True):  # type: ignore[call-arg]
    __tablename__ = "game_participants"
    __table_args__ = (
        UniqueConstraint("game_id", "user_id", name="uq_game_participants_game_user"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    game_id: int = Field(foreign_key="games.id", ondelete="CASCADE", index=True)
    user_id: int = Field(foreign_key="users.id", index=True)
    joined_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
    is_winner: bool = Field(default=False)
