"""Health и ready endpoints."""
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.orm import Session

from apps.backend.database import get_db

router = APIRouter()


@router.get("/health")
def health():
    return {"status": "ok", "service": "tendomarket"}


@router.get("/ready")
def ready(db: Session = Depends(get_db)):
    try:
        db.execute(text("SELECT 1"))
    except Exception as e:
        return JSONResponse({"status": "error", "detail": str(e)[:200]}, status_code=503)
    return {"status": "ok"}
