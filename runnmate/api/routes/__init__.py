from fastapi import APIRouter, Depends

from runnmate.api.deps import require_service_available
from runnmate.api.routes.auth import callback_router
from runnmate.api.routes.auth import router as auth_router
from runnmate.api.routes.marketplace import router as marketplace_router
from runnmate.api.routes.strava import router as strava_router

api_router = APIRouter(dependencies=[Depends(require_service_available)])
api_router.include_router(auth_router, prefix="/api/auth", tags=["auth"])
api_router.include_router(callback_router, prefix="/auth", tags=["auth"])
api_router.include_router(strava_router, prefix="/api/strava", tags=["strava"])
api_router.include_router(marketplace_router, prefix="/api", tags=["marketplace"])
