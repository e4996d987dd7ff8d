"""
tcgsync/api/dependencies.py

Shared FastAPI dependencies resolving the application root.
"""

from __future__ import annotations

from fastapi import Depends, HTTPException, Request, status

from tcgsync.bootstrap import Application
from tcgsync.scheduler.service import AutoUpdateService


def get_application(request: Request) -> Application:
    """
    Return the application root attached to the FastAPI app at start-up.
    """

    application = getattr(request.app.state, "tcgsync", None)
    if application is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Update service is not initialized.",
        )
    return application


def get_auto_update_service(application: Application = Depends(get_application)) -> AutoUpdateService:
    return application.service
