"""Admin API routes.

Game administration lives under ``/api/games`` next to the player routes;
the rest is grouped under ``/api/admin``:
- matches: fixtures and results
- users: user listing and creation
- overview: tickets and picks across all of an admin's games
"""

from fastapi import APIRouter

from highlander.routes.admin.games import router as games_router
from highlander.routes.admin.matches import router as matches_router
from highlander.routes.admin.overview import router as overview_router
from highlander.routes.admin.users import router as users_router

router = APIRouter(prefix="/api/admin", tags=["admin"])

router.include_router(matches_router)
router.include_router(users_router)
router.include_router(overview_router)

__all__ = ["router", "games_router"]
