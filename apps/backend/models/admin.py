"""Модель пользователя с административной ролью."""
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Boolean

from apps.backend.database import Base

ROLES = ("user", "seller", "admin", "super_admin", "moderator", "courier")
# Roles allowed into the admin dashboard.
ADMIN_ROLES = ("admin", "super_admin", "moderator")


class AdminUser(Base):
    __tablename__ = "admin_users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    role = Column(String(32), nullable=False, default="admin", index=True)
    is_active = Column(Boolean, default=True, nullable=False)
    is_email_verified = Column(Boolean, default=False, nullable=False)
    language = Column(String(8), default="ru", nullable=False)
    last_login_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
