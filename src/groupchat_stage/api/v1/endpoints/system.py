# src/groupchat_stage/api/v1/endpoints/system.py
"""Health and database status endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import func, text
from sqlalchemy.exc import SQLAlchemyError

from groupchat_stage.core.settings import settings
from groupchat_stage.db.time import utcnow
from groupchat_stage.models import Group, Message, User

from ..dependencies import SessionDep

logger = logging.getLogger(__name__)

router = APIRouter(tags=["system"])


@router.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {
        "status": "ok",
        "version": settings.app_version,
        "timestamp": utcnow().isoformat(),
    }


@router.get("/db-status")
async def db_status(db: SessionDep) -> JSONResponse:
    """Report database connectivity and row counts."""
    try:
        db.execute(text("SELECT 1"))
        counts = {
            "users": db.query(func.count(User.id)).scalar() or 0,
            "groups": db.query(func.count(Group.id)).scalar() or 0,
            "messages": db.query(func.count(Message.id)).scalar() or 0,
        }
    except SQLAlchemyError as exc:
        logger.error("Database status check failed: %s", exc)
        return JSONResponse(
            status_code=503,
            content={"success": False, "message": "Database unavailable", "status": "Disconnected"},
        )
    return JSONResponse(content={"success": True, "status": "Connected", "counts": counts})
