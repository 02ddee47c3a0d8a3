"""Serie A fixtures and their results."""

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, UniqueConstraint
from sqlmodel import Field, SQLModel

from highlander.models.fields import MatchResult


class Match(SQLModel, table=True):  # type: ignore[call-arg]
    """One fixture of a season round.

    Created per round and never deleted; an admin fills in the score, which
    derives ``result`` and flips ``is_completed``. A team plays at most once
    per round.
    """

    __tablename__ = "matches"
    __table_args__ = (
        UniqueConstraint("round", "home_team_id", name="uq_matches_round_home"),
        UniqueConstraint("round", "away_team_id", name="uq_matches_round_away"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    round: int = Field(index=True, description="Season round, 1..38")
    home_team_id: int = Field(foreign_key="teams.id")
    away_team_id: int = Field(foreign_key="teams.id")
    home_score: Optional[int] = Field(default=None)
    away_score: Optional[int] = Field(default=None)
    result: Optional[MatchResult] = Field(default=None)
    match_date: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))
    is_completed: bool = Field(default=False, index=True)

    def involves(self, team_id: int) -> bool:
        return team_id in (self.home_team_id, self.away_team_id)
