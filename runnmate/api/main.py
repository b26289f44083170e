from __future__ import annotations

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from runnmate.api.errors import register_exception_handlers
from runnmate.api.middleware.request_context import RequestContextMiddleware
from runnmate.api.routes import api_router
from runnmate.config import get_settings
from runnmate.db.connection import check_db_health
from runnmate.ops.events import configure_logging

settings = get_settings()
configure_logging(settings.log_level)

app = FastAPI(title="Runnmate", version="0.1.0")
register_exception_handlers(app)
app.add_middleware(RequestContextMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allow_origin_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(api_router)


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/health/db")
async def health_db() -> dict[str, str]:
    if await check_db_health():
        return {"status": "ok"}
    raise HTTPException(status_code=503, detail="database unavailable")
