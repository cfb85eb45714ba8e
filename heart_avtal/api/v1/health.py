import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from heart_avtal.db.session import get_db

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health")
def health(request: Request, db: Session = Depends(get_db)):
    """Liveness plus a round trip to the contract database."""
    rid = getattr(request.state, "request_id", None)
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.warning("health check: database unreachable", extra={"error": str(e)})
        return JSONResponse(
            status_code=503,
            content={"status": "degraded", "database": "unreachable", "request_id": rid},
        )
    return {"status": "ok", "database": "ok", "request_id": rid}
