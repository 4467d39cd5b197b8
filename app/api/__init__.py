"""Racker API routes."""

from app.api.attribution import router as attribution_router
from app.api.tracking import router as tracking_router
from app.api.tracking_links import router as tracking_links_router

__all__ = [
    "attribution_router",
    "tracking_router",
    "tracking_links_router",
]
