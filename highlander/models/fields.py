"""
Enums and constants shared by table models, services and API models.
"""
from enum import Enum
from typing import Annotated

from pydantic import Field as PydField

# Serie A has 38 rounds; a game lasts at most 20 of them.
SEASON_FINAL_ROUND = 38
MAX_GAME_ROUNDS = 20


class GameStatus(str, Enum):
    registration = "registration"
    active = "active"
    completed = "completed"


class RoundStatus(str, Enum):
    selection_open = "selection_open"
    selection_locked = "selection_locked"
    calculated = "calculated"


class MatchResult(str, Enum):
    home_win = "H"
    away_win = "A"
    draw = "D"

    @property
    def label(self) -> str:
        return {
            "H": "home win",
            "A": "away win",
            "D": "draw",
        }[self.value]


class EndReason(str, Enum):
    all_eliminated = "all_eliminated"
    single_survivor = "single_survivor"
    max_rounds = "max_rounds"
    season_end = "season_end"


class AuditAction(str, Enum):
    deadline_set = "deadline_set"
    deadline_cleared = "deadline_cleared"
    auto_lock = "auto_lock"


SEASON_ROUND = Annotated[int, PydField(..., ge=1, le=SEASON_FINAL_ROUND)]
SCORE = Annotated[int, PydField(..., ge=0, le=99)]
