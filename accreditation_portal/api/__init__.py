"""
API package for the accreditation portal.

This package aggregates all API routers to be included in the FastAPI
application. The API is versioned under ``/api/v1``.
"""

from fastapi import APIRouter, Depends
from .v1.health import router as health_router
from .v1.projects import router as projects_router
from .v1.records import router as records_router
from .v1.imports import router as imports_router
from .v1.verify import router as verify_router
from .v1.scans import router as scans_router
from ..core.auth import get_current_user
from ..core.rate_limit import rate_limit_dependency

api_router = APIRouter()
protected = [Depends(get_current_user), Depends(rate_limit_dependency)]
api_router.include_router(health_router)
api_router.include_router(projects_router, dependencies=protected)
api_router.include_router(records_router, dependencies=protected)
api_router.include_router(imports_router, dependencies=protected)
api_router.include_router(verify_router, dependencies=protected)
api_router.include_router(scans_router, dependencies=protected)
