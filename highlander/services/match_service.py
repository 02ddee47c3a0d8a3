"""Teams and fixtures: reference data the rounds are resolved against."""

from __future__ import annotations

import logging

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from highlander.exceptions import InvalidFixtureError, MatchNotFoundError, TeamNotFoundError
from highlander.models.games import MatchCreate, MatchResultUpdate
from highlander.schemas.matches import Match
from highlander.schemas.teams import Team
from highlander.services.game_logic import derive_match_result
from highlander.services.team_data import SERIE_A_TEAMS
from highlander.utils.clock import to_utc
from highlander.utils.retry import with_db_retry

logger = logging.getLogger(__name__)


@with_db_retry()
async def list_teams(db: AsyncSession) -> list[Team]:
    async with db.begin():
        result = await db.execute(select(Team).order_by(Team.name))  # type: ignore[arg-type]
        return list(result.scalars().all())


@with_db_retry()
async def list_matches(db: AsyncSession, round_number: int) -> list[Match]:
    async with db.begin():
        result = await db.execute(
            select(Match)
            .where(Match.round == round_number)  # type: ignore[arg-type]
            .order_by(Match.match_date, Match.id)  # type: ignore[arg-type]
        )
        return list(result.scalars().all())


@with_db_retry()
async def create_match(db: AsyncSession, data: MatchCreate) -> Match:
    if data.home_team_id == data.away_team_id:
        raise InvalidFixtureError()
    async with db.begin():
        for team_id in (data.home_team_id, data.away_team_id):
            if await db.get(Team, team_id) is None:
                raise TeamNotFoundError(f"Team {team_id} not found.")
        teams = (data.home_team_id, data.away_team_id)
        clash = await db.execute(
            select(Match.id)  # type: ignore[call-overload]
            .where(
                Match.round == data.round,
                or_(Match.home_team_id.in_(teams), Match.away_team_id.in_(teams)),  # type: ignore[attr-defined]
            )
            .limit(1)
        )
        if clash.scalar_one_or_none() is not None:
            raise InvalidFixtureError(
                f"A team in this fixture already plays in round {data.round}."
            )
        match = Match(
            round=data.round,
            home_team_id=data.home_team_id,
            away_team_id=data.away_team_id,
            match_date=to_utc(data.match_date) if data.match_date else None,
        )
        db.add(match)
        await db.flush()
    logger.info(
        "Fixture %s created: round %s, team %s vs team %s",
        match.id,
        match.round,
        match.home_team_id,
        match.away_team_id,
    )
    return match


@with_db_retry()
async def record_result(
    db: AsyncSession, match_id: int, data: MatchResultUpdate
) -> Match:
    """Store a final score; a later call overwrites it."""
    async with db.begin():
        match = await db.get(Match, match_id, with_for_update=True)
        if match is None:
            raise MatchNotFoundError()
        match.home_score = data.home_score
        match.away_score = data.away_score
        match.result = derive_match_result(data.home_score, data.away_score)
        match.is_completed = True
    logger.info(
        "Match %s result %s-%s (%s)",
        match_id,
        data.home_score,
        data.away_score,
        match.result.label,
    )
    return match


@with_db_retry()
async def seed_teams(db: AsyncSession) -> int:
    """Insert the Serie A clubs that are missing; returns how many were added."""
    async with db.begin():
        existing = await db.execute(select(Team.code))  # type: ignore[call-overload]
        known = set(existing.scalars().all())
        missing = [(name, code) for name, code in SERIE_A_TEAMS if code not in known]
        db.add_all(Team(name=name, code=code) for name, code in missing)
    if missing:
        logger.info("Seeded %d team(s): %s", len(missing), ", ".join(c for _, c in missing))
    return len(missing)
