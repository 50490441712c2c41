"""
RDC Portal API Routers
FastAPI router modules for the research administration portal.
"""
from backend.api import (
    arps,
    auth,
    cron,
    documents,
    emr,
    health,
    incentives,
    notifications,
    projects,
    recruitment,
    settings,
    upload,
    users,
)

__all__ = [
    "arps",
    "auth",
    "cron",
    "documents",
    "emr",
    "health",
    "incentives",
    "notifications",
    "projects",
    "recruitment",
    "settings",
    "upload",
    "users",
]
