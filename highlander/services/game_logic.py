"""Pure game rules: round math, elimination, auto-assignment and game end.

Nothing here touches the database. The transactional services load rows,
call these functions and persist what they decide, which keeps every rule
testable with plain objects.
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Optional, Sequence

from highlander.models.fields import (
    MAX_GAME_ROUNDS,
    SEASON_FINAL_ROUND,
    EndReason,
    MatchResult,
)
from highlander.schemas.matches import Match
from highlander.schemas.tickets import TeamSelection


def calculate_game_round(start_round: int, season_round: int) -> int:
    """Game round (1-based) for a season round, given the game's start round."""
    return max(1, season_round - start_round + 1)


def calculate_max_rounds(start_round: int) -> int:
    """Rounds a game can last: 20, or fewer when it starts late in the season."""
    remaining = SEASON_FINAL_ROUND - start_round + 1
    return min(MAX_GAME_ROUNDS, remaining)


def derive_match_result(home_score: int, away_score: int) -> MatchResult:
    if home_score > away_score:
        return MatchResult.home_win
    if away_score > home_score:
        return MatchResult.away_win
    return MatchResult.draw


# ---------------------------------------------------------------------------
# Round resolution
# ---------------------------------------------------------------------------


def team_won(match: Match, team_id: int) -> bool:
    """True only when ``team_id`` won ``match``; a draw is not a win."""
    if match.result is None:
        return False
    if match.home_team_id == team_id:
        return match.result == MatchResult.home_win
    if match.away_team_id == team_id:
        return match.result == MatchResult.away_win
    return False


def find_match_for_team(matches: Iterable[Match], team_id: int) -> Optional[Match]:
    for match in matches:
        if match.involves(team_id):
            return match
    return None


def incomplete_matches(matches: Sequence[Match]) -> list[Match]:
    return [m for m in matches if not m.is_completed or m.result is None]


def find_eliminated_tickets(
    selections: Iterable[TeamSelection],
    matches: Sequence[Match],
) -> list[int]:
    """Ticket ids whose selected team lost or drew.

    Callers must check that every match is completed first. A selection whose
    team has no match in ``matches`` leaves its ticket untouched, as does a
    ticket with no selection at all.
    """
    eliminated: list[int] = []
    for selection in selections:
        match = find_match_for_team(matches, selection.team_id)
        if match is None:
            continue
        if not team_won(match, selection.team_id):
            eliminated.append(selection.ticket_id)
    return eliminated


# ---------------------------------------------------------------------------
# Auto-assignment
# ---------------------------------------------------------------------------


def choose_auto_assignment(
    candidate_team_ids: Sequence[int],
    used_by_ticket: set[int],
    taken_in_round: set[int],
    rng: random.Random | None = None,
) -> Optional[int]:
    """Pick a team for a ticket that missed the deadline.

    Teams the ticket already used are never eligible. Among the rest, teams
    nobody picked this round are preferred; if none are left any unused team
    will do. Returns None when the ticket has used every candidate.
    """
    rng = rng or random.Random()
    unused = [t for t in candidate_team_ids if t not in used_by_ticket]
    if not unused:
        return None

    preferred = [t for t in unused if t not in taken_in_round]
    pool = preferred or unused
    return rng.choice(pool)


# ---------------------------------------------------------------------------
# Game end
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SurvivorStanding:
    """A player who still holds at least one active ticket."""

    user_id: int
    tickets_remaining: int
    joined_at: datetime


@dataclass(frozen=True)
class GameEndVerdict:
    ended: bool
    reason: Optional[EndReason] = None
    winners: tuple[SurvivorStanding, ...] = ()
    survivors: tuple[SurvivorStanding, ...] = field(default_factory=tuple)

    @property
    def winner(self) -> Optional[SurvivorStanding]:
        return self.winners[0] if self.winners else None


def rank_survivors(survivors: Iterable[SurvivorStanding]) -> list[SurvivorStanding]:
    """Most tickets first, then earliest join, then lowest user id."""
    return sorted(
        survivors,
        key=lambda s: (-s.tickets_remaining, s.joined_at, s.user_id),
    )


def _leaders(ranked: Sequence[SurvivorStanding]) -> tuple[SurvivorStanding, ...]:
    if not ranked:
        return ()
    top = ranked[0]
    return tuple(
        s
        for s in ranked
        if s.tickets_remaining == top.tickets_remaining and s.joined_at == top.joined_at
    )


def evaluate_game_end(
    survivors: Iterable[SurvivorStanding],
    start_round: int,
    current_round: int,
) -> GameEndVerdict:
    """Decide whether a game is over and who won.

    ``current_round`` is the season round just played. Rules apply in order:
    nobody left, one player left, 20-round cap, final season round. At the
    cap or season end the leaders are the players with the most tickets and
    the earliest join time; exact ties on both are all listed in ``winners``,
    ordered by user id.
    """
    ranked = rank_survivors(s for s in survivors if s.tickets_remaining > 0)

    if not ranked:
        return GameEndVerdict(ended=True, reason=EndReason.all_eliminated)

    if len(ranked) == 1:
        return GameEndVerdict(
            ended=True,
            reason=EndReason.single_survivor,
            winners=(ranked[0],),
            survivors=tuple(ranked),
        )

    if calculate_game_round(start_round, current_round) >= MAX_GAME_ROUNDS:
        return GameEndVerdict(
            ended=True,
            reason=EndReason.max_rounds,
            winners=_leaders(ranked),
            survivors=tuple(ranked),
        )

    if current_round >= SEASON_FINAL_ROUND:
        return GameEndVerdict(
            ended=True,
            reason=EndReason.season_end,
            winners=_leaders(ranked),
            survivors=tuple(ranked),
        )

    return GameEndVerdict(ended=False, survivors=tuple(ranked))
