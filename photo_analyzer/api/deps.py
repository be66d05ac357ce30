"""Dependency injection utilities for API endpoints.

The collaborators are built once in the application lifespan and
kept on ``app.state``; these dependencies hand them to routes.
Tests hand a pre-built analyzer to ``create_application`` instead.
"""

from typing import Annotated

from fastapi import Depends, Request

from photo_analyzer.core.config import Settings
from photo_analyzer.services.photo_analysis import PhotoAnalyzer


def get_analyzer(request: Request) -> PhotoAnalyzer:
    """Return the analyzer wired up at startup."""
    return request.app.state.analyzer


def get_app_settings(request: Request) -> Settings:
    """Return the settings the application was created with."""
    return request.app.state.settings


# Type aliases for route signatures
Analyzer = Annotated[PhotoAnalyzer, Depends(get_analyzer)]
AppSettings = Annotated[Settings, Depends(get_app_settings)]
