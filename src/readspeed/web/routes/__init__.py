"""Route handlers for the ReadSpeed API."""

from readspeed.web.routes.admin import router as admin_router
from readspeed.web.routes.assessments import router as assessments_router
from readspeed.web.routes.auth import router as auth_router
from readspeed.web.routes.books import router as books_router
from readspeed.web.routes.dashboard import router as dashboard_router
from readspeed.web.routes.exercises import router as exercises_router
from readspeed.web.routes.health import router as health_router
from readspeed.web.routes.leaderboard import router as leaderboard_router
from readspeed.web.routes.profile import router as profile_router
from readspeed.web.routes.storage import router as storage_router
from readspeed.web.routes.submissions import router as submissions_router

__all__ = [
    "admin_router",
    "assessments_router",
    "auth_router",
    "books_router",
    "dashboard_router",
    "exercises_router",
    "health_router",
    "leaderboard_router",
    "profile_router",
    "storage_router",
    "submissions_router",
]
