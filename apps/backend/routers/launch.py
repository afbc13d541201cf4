"""Статус запуска проекта (pre-launch)."""
from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from apps.backend.auth import require_roles
from apps.backend.database import get_db
from apps.backend.services.launch_state import (
    launch_status_payload,
    refresh_launch_state,
    update_launch_config,
)

router = APIRouter()


class LaunchStatusUpdate(BaseModel):
    # Any JSON values are accepted; only booleans change the flags.
    isLaunched: Any = None
    launchDate: datetime | str | None = None
    preLaunchEnabled: Any = None


@router.get("/status")
def get_launch_status(db: Session = Depends(get_db)):
    """Public: consumed by the storefront launch gate."""
    cfg = refresh_launch_state(db)
    return {"success": True, "data": launch_status_payload(cfg)}


@router.put("/status")
def put_launch_status(
    payload: LaunchStatusUpdate,
    db: Session = Depends(get_db),
    _admin: dict = Depends(require_roles("admin", "super_admin")),
):
    try:
        cfg = update_launch_config(
            db,
            is_launched=payload.isLaunched,
            launch_date=payload.launchDate,
            pre_launch_enabled=payload.preLaunchEnabled,
        )
    except ValueError:
        raise HTTPException(status_code=400, detail="Некорректная дата запуска")
    data = launch_status_payload(cfg)
    return {
        "success": True,
        "message": "Статус запуска обновлен",
        "data": {
            "isLaunched": data["isLaunched"],
            "launchDate": data["launchDate"],
            "preLaunchEnabled": data["preLaunchEnabled"],
        },
    }
