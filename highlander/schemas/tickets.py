"""Tickets and the team each ticket backs per round."""

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, UniqueConstraint
from sqlmodel import Field, SQLModel

from highlander.utils.clock import utcnow


class Ticket(SQLModel, table=True):  # type: ignore[call-arg]
    """One life in a game. Goes inactive once, never comes back."""

    __tablename__ = "tickets"

    id: Optional[int] = Field(default=None, primary_key=True)
    game_id: int = Field(foreign_key="games.id", ondelete="CASCADE", index=True)
    user_id: int = Field(foreign_key="users.id", index=True)
    is_active: bool = Field(default=True, index=True)
    eliminated_in_round: Optional[int] = Field(default=None)
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))


class TeamSelection(SQLModel, table=True):  # type: ignore[call-arg]
    __tablename__ = "team_selections"
    __table_args__ = (
        # at most one pick per round, and a team is used once per ticket
        UniqueConstraint("ticket_id", "round", name="uq_team_selections_ticket_round"),
        UniqueConstraint("ticket_id", "team_id", name="uq_team_selections_ticket_team"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    ticket_id: int = Field(foreign_key="tickets.id", ondelete="CASCADE", index=True)
    game_id: int = Field(foreign_key="games.id", ondelete="CASCADE", index=True)
    team_id: int = Field(foreign_key="teams.id")
    round: int = Field(index=True)
    is_auto_assigned: bool = Field(default=False)
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
