"""
Courtster Club Core - FastAPI server

Clubs, memberships, invitations and subscription feature access
"""
from fastapi import FastAPI

from app.club.router import router as club_router
from app.config import get_core_settings
from app.logging_setup import configure_logging
from app.subscription.router import router as subscription_router

configure_logging(get_core_settings().log_level)

# FastAPI app
app = FastAPI(
    title="Courtster Club Core",
    description="Club lifecycle, membership and subscription policy API",
    version="1.0.0"
)

app.include_router(club_router, prefix="/api")
app.include_router(subscription_router, prefix="/api")


@app.get("/health")
async def health():
    return {"status": "ok"}


# ==================== Run ====================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.server:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info"
    )
