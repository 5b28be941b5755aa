"""
API routes - combined router from all domain modules.

Shared infrastructure (limiter) lives here; every sub-router imports what it
needs from this package.
"""

import os

from fastapi import APIRouter
from slowapi import Limiter
from slowapi.util import get_remote_address

# ---------------------------------------------------------------------------
# Shared rate limiter
# ---------------------------------------------------------------------------
IS_TEST_ENV = os.getenv("ENV", "").lower() == "test"
limiter = Limiter(key_func=get_remote_address, enabled=not IS_TEST_ENV)

# ---------------------------------------------------------------------------
# Import sub-routers and combine
# ---------------------------------------------------------------------------
from academy_backend.api.routes.auth import router as auth_router  # noqa: E402
from academy_backend.api.routes.academies import router as academies_router  # noqa: E402
from academy_backend.api.routes.matches import router as matches_router  # noqa: E402
from academy_backend.api.routes.player_requests import router as player_requests_router  # noqa: E402
from academy_backend.api.routes.admin import router as admin_router  # noqa: E402

router = APIRouter()
router.include_router(auth_router)
router.include_router(academies_router)
router.include_router(matches_router)
router.include_router(player_requests_router)
router.include_router(admin_router)
