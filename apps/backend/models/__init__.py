"""Модели SQLAlchemy."""
from apps.backend.models.admin import AdminUser
from apps.backend.models.app_setting import AppSetting

__all__ = [
    "AdminUser",
    "AppSetting",
]
