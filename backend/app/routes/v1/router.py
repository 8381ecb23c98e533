"""API v1 router - aggregates all route modules."""

from fastapi import APIRouter

from app.routes.v1 import notes, settings, trash, ws

api_router = APIRouter()

# Include REST API route modules
api_router.include_router(notes.router, prefix="/notes", tags=["notes"])
api_router.include_router(trash.router, prefix="/trash", tags=["trash"])
api_router.include_router(settings.router, prefix="/settings", tags=["settings"])
api_router.include_router(ws.router, prefix="/ws", tags=["websocket"])
