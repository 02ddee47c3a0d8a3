"""Request and response models for the game API."""

from datetime import datetime
from typing import Any, Iterable, Optional

from pydantic import computed_field, field_validator
from sqlmodel import Field, SQLModel

from highlander.models.fields import (
    SCORE,
    SEASON_ROUND,
    AuditAction,
    EndReason,
    GameStatus,
    MatchResult,
    RoundStatus,
)
from highlander.services.game_logic import (
    GameEndVerdict,
    SurvivorStanding,
    calculate_game_round,
    calculate_max_rounds,
)


class MessageResponse(SQLModel):
    message: str


# --- games -----------------------------------------------------------------


class GameCreate(SQLModel):
    name: str = Field(min_length=1, max_length=120)
    description: Optional[str] = None
    start_round: SEASON_ROUND

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name cannot be blank")
        return v


class GameRead(SQLModel):
    id: int
    name: str
    description: Optional[str] = None
    start_round: int
    current_round: int
    status: GameStatus
    round_status: RoundStatus
    selection_deadline: Optional[datetime] = None
    created_by: int
    created_at: datetime
    end_reason: Optional[EndReason] = None
    completed_at: Optional[datetime] = None

    @computed_field  # type: ignore[misc]
    @property
    def game_round(self) -> int:
        return calculate_game_round(self.start_round, self.current_round)

    @computed_field  # type: ignore[misc]
    @property
    def max_rounds(self) -> int:
        return calculate_max_rounds(self.start_round)


class DeadlineSet(SQLModel):
    deadline: datetime


# --- tickets & selections --------------------------------------------------


class TicketAssign(SQLModel):
    user_id: int
    count: int = 1


class TicketRead(SQLModel):
    id: int
    game_id: int
    user_id: int
    is_active: bool
    eliminated_in_round: Optional[int] = None
    created_at: datetime


class SelectionSubmit(SQLModel):
    ticket_id: int
    team_id: int


class SelectionRead(SQLModel):
    id: int
    ticket_id: int
    game_id: int
    team_id: int
    round: int
    is_auto_assigned: bool
    created_at: datetime
    updated_at: datetime


class TicketSelectionsRead(SQLModel):
    """A ticket together with every team it has backed so far."""

    ticket: TicketRead
    selections: list[SelectionRead]
    # holder, only on admin overviews
    username: Optional[str] = None

    @classmethod
    def from_rows(
        cls, ticket: Any, selections: Iterable[Any], username: Optional[str] = None
    ) -> "TicketSelectionsRead":
        return cls(
            ticket=TicketRead.model_validate(ticket),
            selections=[SelectionRead.model_validate(s) for s in selections],
            username=username,
        )


class GameSelectionsRead(SQLModel):
    """One game with the tickets, and their picks, the reader may see."""

    game: GameRead
    tickets: list[TicketSelectionsRead]


class TicketOverviewRead(TicketRead):
    """Flat ticket row across all of an admin's games."""

    game_name: str
    game_status: GameStatus
    username: str


# --- teams & matches -------------------------------------------------------


class TeamRead(SQLModel):
    id: int
    name: str
    code: str


class MatchCreate(SQLModel):
    round: SEASON_ROUND
    home_team_id: int
    away_team_id: int
    match_date: Optional[datetime] = None


class MatchResultUpdate(SQLModel):
    home_score: SCORE
    away_score: SCORE


class MatchRead(SQLModel):
    id: int
    round: int
    home_team_id: int
    away_team_id: int
    home_score: Optional[int] = None
    away_score: Optional[int] = None
    result: Optional[MatchResult] = None
    match_date: Optional[datetime] = None
    is_completed: bool


# --- round outcomes --------------------------------------------------------


class StandingRead(SQLModel):
    user_id: int
    tickets_remaining: int
    joined_at: datetime


class VerdictRead(SQLModel):
    ended: bool
    reason: Optional[EndReason] = None
    winners: list[StandingRead] = []
    survivors: list[StandingRead] = []

    @classmethod
    def from_verdict(cls, verdict: GameEndVerdict) -> "VerdictRead":
        def standing(s: SurvivorStanding) -> StandingRead:
            return StandingRead(
                user_id=s.user_id,
                tickets_remaining=s.tickets_remaining,
                joined_at=s.joined_at,
            )

        return cls(
            ended=verdict.ended,
            reason=verdict.reason,
            winners=[standing(s) for s in verdict.winners],
            survivors=[standing(s) for s in verdict.survivors],
        )


class GameStandingsRead(SQLModel):
    game: GameRead
    verdict: VerdictRead


class RoundResolutionRead(SQLModel):
    game_id: int
    round: int
    eliminated_ticket_ids: list[int]
    remaining_active_tickets: int
    game_status: GameStatus
    verdict: VerdictRead


class DeadlineCheckRead(SQLModel):
    game_id: int
    action: str
    round_number: Optional[int] = None
    auto_assigned_count: int = 0
    manual_selection_count: int = 0
    skipped_ticket_ids: list[int] = []
    detail: Optional[str] = None


class AuditLogRead(SQLModel):
    id: int
    game_id: int
    action: AuditAction
    round_number: int
    deadline: Optional[datetime] = None
    auto_assigned_count: Optional[int] = None
    manual_selection_count: Optional[int] = None
    total_active_tickets: Optional[int] = None
    created_at: datetime
