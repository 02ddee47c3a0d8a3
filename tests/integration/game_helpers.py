"""Seeding helpers for integration tests.

Every helper owns its ``db.begin()`` block so services called afterwards can
open their own transaction on the same session. Seeded rows come back detached:
a service that fails rolls the session back and expires whatever is still
attached, and reading an expired attribute outside the greenlet raises
``MissingGreenlet``.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional, Type, TypeVar

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import SQLModel

from highlander.models.fields import GameStatus, RoundStatus
from highlander.schemas.games import Game, GameParticipant
from highlander.schemas.matches import Match
from highlander.schemas.teams import Team
from highlander.schemas.tickets import TeamSelection, Ticket
from highlander.schemas.users import User
from highlander.services.game_logic import derive_match_result
from highlander.services.team_data import SERIE_A_TEAMS
from highlander.services.user_service import UserIdentity

M = TypeVar("M", bound=SQLModel)


def _detach(db: AsyncSession, *rows: SQLModel) -> None:
    for row in rows:
        db.expunge(row)


def identity(user: User) -> UserIdentity:
    assert user.id is not None
    return UserIdentity(id=user.id, username=user.username, is_admin=user.is_admin)


async def make_user(db: AsyncSession, username: str, *, is_admin: bool = False) -> User:
    async with db.begin():
        user = User(
            username=username,
            email=f"{username}@example.com",
            first_name=username.title(),
            last_name="Test",
            is_admin=is_admin,
        )
        db.add(user)
    _detach(db, user)
    return user


async def make_teams(db: AsyncSession, count: int = 20) -> list[Team]:
    async with db.begin():
        teams = [Team(name=name, code=code) for name, code in SERIE_A_TEAMS[:count]]
        db.add_all(teams)
    _detach(db, *teams)
    return teams


async def make_match(
    db: AsyncSession,
    round_number: int,
    home: Team,
    away: Team,
    score: Optional[tuple[int, int]] = None,
) -> Match:
    async with db.begin():
        match = Match(round=round_number, home_team_id=home.id, away_team_id=away.id)
        if score is not None:
            match.home_score, match.away_score = score
            match.result = derive_match_result(*score)
            match.is_completed = True
        db.add(match)
    _detach(db, match)
    return match


async def make_active_game(
    db: AsyncSession,
    admin: User,
    *,
    start_round: int = 1,
    current_round: Optional[int] = None,
    round_status: RoundStatus = RoundStatus.selection_open,
    deadline: Optional[datetime] = None,
) -> Game:
    """A game already past registration, for tests that skip the setup flow."""
    async with db.begin():
        game = Game(
            name="Serie A survivor",
            start_round=start_round,
            current_round=current_round or start_round,
            status=GameStatus.active,
            round_status=round_status,
            selection_deadline=deadline,
            created_by=admin.id,
        )
        db.add(game)
    _detach(db, game)
    return game


async def give_tickets(db: AsyncSession, game: Game, user: User, count: int = 1) -> list[Ticket]:
    async with db.begin():
        tickets = [Ticket(game_id=game.id, user_id=user.id) for _ in range(count)]
        db.add_all(tickets)
        participant = GameParticipant(game_id=game.id, user_id=user.id)
        db.add(participant)
    _detach(db, participant, *tickets)
    return tickets


async def make_selection(
    db: AsyncSession, ticket: Ticket, team: Team, round_number: int
) -> TeamSelection:
    async with db.begin():
        selection = TeamSelection(
            ticket_id=ticket.id,
            game_id=ticket.game_id,
            team_id=team.id,
            round=round_number,
        )
        db.add(selection)
    _detach(db, selection)
    return selection


async def reload(db: AsyncSession, model: Type[M], row_id: Any) -> M:
    """Fresh copy of a row, bypassing the session's identity map."""
    async with db.begin():
        result = await db.execute(
            select(model)
            .where(model.id == row_id)  # type: ignore[attr-defined]
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()


async def count_rows(db: AsyncSession, model: Type[SQLModel], *where: Any) -> int:
    async with db.begin():
        stmt = select(func.count()).select_from(model)
        if where:
            stmt = stmt.where(*where)
        return (await db.execute(stmt)).scalar_one()


async def selections_for(db: AsyncSession, ticket: Ticket) -> list[TeamSelection]:
    async with db.begin():
        result = await db.execute(
            select(TeamSelection)
            .where(TeamSelection.ticket_id == ticket.id)  # type: ignore[arg-type]
            .order_by(TeamSelection.round)  # type: ignore[arg-type]
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())
