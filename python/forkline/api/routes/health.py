"""Health check endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from forkline.api.deps import get_db
from forkline.responses import success_response
from forkline.services.health import check_database

router = APIRouter()


@router.get("/health")
async def health_check() -> dict:
    """Liveness check endpoint.

    Returns 200 if the process is running.
    Does not check database or other dependencies.
    """
    return success_response({"status": "ok"})


@router.get("/health/ready")
def readiness_check(db: Annotated[Session, Depends(get_db)]) -> dict:
    """Readiness check endpoint.

    Returns 200 once the database answers a trivial query.

    Errors:
        E_STORE_ERROR (500): The database is unreachable.
    """
    check_database(db)
    return success_response({"status": "ready"})
