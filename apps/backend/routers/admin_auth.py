"""Админская авторизация."""
import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from sqlalchemy.orm import Session
from sqlalchemy import select

from apps.backend.database import get_db
from apps.backend.models.admin import ADMIN_ROLES, AdminUser
from apps.backend.auth import (
    create_access_token,
    verify_password,
    get_current_admin,
)

logger = logging.getLogger(__name__)

router = APIRouter()

_BAD_CREDENTIALS = "Неверные учетные данные администратора"


class LoginRequest(BaseModel):
    email: str
    password: str


def _user_json(user: AdminUser) -> dict:
    return {
        "id": user.id,
        "firstName": user.first_name,
        "lastName": user.last_name,
        "email": user.email,
        "role": user.role,
        "lastLogin": user.last_login_at.isoformat() if user.last_login_at else None,
    }


@router.post("/admin/login")
def login(data: LoginRequest, db: Session = Depends(get_db)):
    user = db.execute(select(AdminUser).where(AdminUser.email == data.email)).scalar_one_or_none()
    if not user or not verify_password(data.password, user.password_hash):
        logger.info("admin_login_failed email=%s", data.email)
        raise HTTPException(status_code=401, detail=_BAD_CREDENTIALS)
    if user.role not in ADMIN_ROLES:
        raise HTTPException(status_code=403, detail="Доступ запрещен: недостаточно прав")
    if not user.is_active:
        raise HTTPException(status_code=401, detail="Аккаунт заблокирован")

    user.last_login_at = datetime.utcnow()
    db.commit()
    token = create_access_token({"sub": str(user.id), "email": user.email, "role": user.role})
    logger.info("admin_login_ok email=%s role=%s", user.email, user.role)
    return {
        "success": True,
        "message": "Успешный вход администратора",
        "token": token,
        "user": _user_json(user),
    }


@router.get("/admin/verify")
def verify(payload: dict = Depends(get_current_admin)):
    return {
        "success": True,
        "user": {"id": payload.get("sub"), "email": payload.get("email"), "role": payload.get("role")},
    }
