"""Launch state: is the storefront public or still behind the pre-launch page.

Defaults come from settings (IS_LAUNCHED, LAUNCH_DATE, PRE_LAUNCH_ENABLED);
admin updates are persisted in ``app_settings`` under the ``launch`` key and
take precedence over the environment.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from apps.backend.config import get_settings
from apps.backend.models.app_setting import AppSetting

logger = logging.getLogger(__name__)

KEY = "launch"

_MS_DAY = 1000 * 60 * 60 * 24
_MS_HOUR = 1000 * 60 * 60
_MS_MINUTE = 1000 * 60


@dataclass(frozen=True)
class LaunchConfig:
    is_launched: bool
    launch_date: datetime
    pre_launch_enabled: bool

    def to_json(self) -> dict[str, Any]:
        return {
            "is_launched": self.is_launched,
            "launch_date": self.launch_date.isoformat(),
            "pre_launch_enabled": self.pre_launch_enabled,
        }


def _utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_launch_date(value: Any) -> datetime:
    """ISO-8601 string (``Z`` suffix allowed) or datetime -> aware UTC datetime."""
    if isinstance(value, datetime):
        return _utc(value)
    if isinstance(value, str) and value.strip():
        raw = value.strip()
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        return _utc(datetime.fromisoformat(raw))
    raise ValueError(f"invalid launch date: {value!r}")


def default_launch_config() -> LaunchConfig:
    s = get_settings()
    return LaunchConfig(
        is_launched=bool(s.is_launched),
        launch_date=_utc(s.launch_date),
        pre_launch_enabled=bool(s.pre_launch_enabled),
    )


def _get_row(db: Session) -> AppSetting | None:
    return db.execute(select(AppSetting).where(AppSetting.key == KEY)).scalar_one_or_none()


def get_launch_config(db: Session) -> LaunchConfig:
    """Current launch config (persisted values merged over defaults)."""
    cfg = default_launch_config()
    row = _get_row(db)
    raw = row.value_json if row else None
    if not isinstance(raw, dict):
        return cfg
    if isinstance(raw.get("is_launched"), bool):
        cfg = replace(cfg, is_launched=raw["is_launched"])
    if isinstance(raw.get("pre_launch_enabled"), bool):
        cfg = replace(cfg, pre_launch_enabled=raw["pre_launch_enabled"])
    if raw.get("launch_date"):
        try:
            cfg = replace(cfg, launch_date=parse_launch_date(raw["launch_date"]))
        except ValueError:
            logger.warning("launch_state: ignoring stored launch_date=%r", raw.get("launch_date"))
    return cfg


def save_launch_config(db: Session, cfg: LaunchConfig) -> LaunchConfig:
    row = _get_row(db)
    if row:
        row.value_json = cfg.to_json()
        row.updated_at = datetime.utcnow()
    else:
        db.add(AppSetting(key=KEY, value_json=cfg.to_json(), updated_at=datetime.utcnow()))
    db.commit()
    return cfg


def refresh_launch_state(db: Session, now: datetime | None = None) -> LaunchConfig:
    """Switch pre-launch off once the launch date has been reached."""
    now = _utc(now or datetime.now(timezone.utc))
    cfg = get_launch_config(db)
    if now >= cfg.launch_date and cfg.pre_launch_enabled:
        cfg = replace(cfg, pre_launch_enabled=False, is_launched=True)
        save_launch_config(db, cfg)
        logger.info(
            "launch_state: launch date %s reached, pre-launch disabled",
            cfg.launch_date.isoformat(),
        )
    return cfg


def update_launch_config(
    db: Session,
    *,
    is_launched: Any = None,
    launch_date: Any = None,
    pre_launch_enabled: Any = None,
) -> LaunchConfig:
    """Apply admin changes. Non-boolean flags are ignored; a bad date raises ValueError."""
    cfg = get_launch_config(db)
    if isinstance(is_launched, bool):
        cfg = replace(cfg, is_launched=is_launched)
        logger.info("launch_state: is_launched=%s", is_launched)
    if launch_date:
        cfg = replace(cfg, launch_date=parse_launch_date(launch_date))
        logger.info("launch_state: launch_date=%s", cfg.launch_date.isoformat())
    if isinstance(pre_launch_enabled, bool):
        cfg = replace(cfg, pre_launch_enabled=pre_launch_enabled)
        logger.info("launch_state: pre_launch_enabled=%s", pre_launch_enabled)
    return save_launch_config(db, cfg)


def launch_status_payload(cfg: LaunchConfig, now: datetime | None = None) -> dict[str, Any]:
    now = _utc(now or datetime.now(timezone.utc))
    if cfg.is_launched:
        time_left = 0
    else:
        time_left = max(0, int((cfg.launch_date - now).total_seconds() * 1000))
    return {
        "isLaunched": cfg.is_launched,
        "launchDate": cfg.launch_date.isoformat().replace("+00:00", "Z"),
        "preLaunchEnabled": cfg.pre_launch_enabled,
        "timeLeft": time_left,
        "days": time_left // _MS_DAY,
        "hours": (time_left % _MS_DAY) // _MS_HOUR,
        "minutes": (time_left % _MS_HOUR) // _MS_MINUTE,
        "seconds": (time_left % _MS_MINUTE) // 1000,
    }
