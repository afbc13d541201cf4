"""Bootstrap of the administrative account.

One run: validate input -> hash -> upsert -> re-read -> verify -> result.
Two upsert strategies exist and a deployment sticks to one of them:

* ``find_or_create``: insert when the email is absent, otherwise leave the
  record untouched and report "already exists". Non-destructive; other admins
  under different emails survive.
* ``replace_all``: delete every ``role == "admin"`` record, then insert one
  fresh account. Leaves exactly one admin; destroys the others.

The strategy used by the first successful run is stored in ``app_settings``
(key ``admin_bootstrap``); a later run with the other strategy is refused
unless forced.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable

from sqlalchemy import delete, select
from sqlalchemy.exc import InterfaceError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from apps.backend.auth import MAX_PASSWORD_BYTES, hash_password, verify_password
from apps.backend.config import get_settings
from apps.backend.database import get_engine, get_session_factory
from apps.backend.models.admin import ADMIN_ROLES, AdminUser
from apps.backend.models.app_setting import AppSetting

logger = logging.getLogger(__name__)

STRATEGY_KEY = "admin_bootstrap"
MIN_PASSWORD_LEN = 6


class BootstrapStrategy(str, Enum):
    FIND_OR_CREATE = "find_or_create"
    REPLACE_ALL = "replace_all"


class BootstrapOutcome(str, Enum):
    CREATED = "created"
    REPLACED = "replaced"
    ALREADY_EXISTS = "already_exists"
    PASSWORD_RESET = "password_reset"
    FAILED = "failed"


class BootstrapError(Exception):
    code = "bootstrap_failed"
    exit_code = 1


class StoreUnavailableError(BootstrapError):
    code = "store_unavailable"
    exit_code = 2


class VerificationMismatchError(BootstrapError):
    """Stored hash did not verify against the plaintext it was made from."""

    code = "verification_mismatch"
    exit_code = 3


class StrategyMismatchError(BootstrapError):
    code = "strategy_mismatch"
    exit_code = 4


class InvalidAdminInputError(BootstrapError):
    code = "invalid_input"
    exit_code = 5


class AdminNotFoundError(BootstrapError):
    code = "admin_not_found"
    exit_code = 6


@dataclass(frozen=True)
class AdminProfile:
    first_name: str = "Admin"
    last_name: str = "Super"
    language: str = "ru"
    role: str = "admin"

    @classmethod
    def from_settings(cls) -> "AdminProfile":
        s = get_settings()
        return cls(
            first_name=s.admin_default_first_name,
            last_name=s.admin_default_last_name,
            language=s.admin_default_language,
        )


@dataclass(frozen=True)
class BootstrapResult:
    ok: bool
    outcome: BootstrapOutcome
    email: str
    message: str
    strategy: BootstrapStrategy | None = None
    admin_id: int | None = None
    verified: bool | None = None
    removed: int = 0
    error_code: str | None = None
    exit_code: int = 0
    details: dict[str, Any] = field(default_factory=dict)


def validate_admin_input(email: str, password: str) -> None:
    if not email or "@" not in email:
        raise InvalidAdminInputError("Введите корректный email адрес")
    if not password or len(password) < MIN_PASSWORD_LEN:
        raise InvalidAdminInputError(f"Пароль должен содержать минимум {MIN_PASSWORD_LEN} символов")
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise InvalidAdminInputError(f"Пароль длиннее {MAX_PASSWORD_BYTES} байт")


def _recorded_strategy(db: Session) -> BootstrapStrategy | None:
    row = db.execute(select(AppSetting).where(AppSetting.key == STRATEGY_KEY)).scalar_one_or_none()
    raw = row.value_json if row else None
    if not isinstance(raw, dict):
        return None
    try:
        return BootstrapStrategy(raw.get("strategy"))
    except ValueError:
        return None


def check_strategy(db: Session, strategy: BootstrapStrategy, force: bool = False) -> None:
    recorded = _recorded_strategy(db)
    if recorded is None or recorded == strategy or force:
        return
    raise StrategyMismatchError(
        f"deployment was bootstrapped with {recorded.value}, refusing {strategy.value} (use force to switch)"
    )


def record_strategy(db: Session, strategy: BootstrapStrategy) -> None:
    now = datetime.utcnow()
    value = {"strategy": strategy.value, "recorded_at": now.isoformat()}
    row = db.execute(select(AppSetting).where(AppSetting.key == STRATEGY_KEY)).scalar_one_or_none()
    if row:
        row.value_json = value
        row.updated_at = now
    else:
        db.add(AppSetting(key=STRATEGY_KEY, value_json=value, updated_at=now))


def upsert_admin(
    db: Session,
    email: str,
    password_hash: str,
    profile: AdminProfile,
    strategy: BootstrapStrategy,
) -> tuple[int, BootstrapOutcome, int]:
    """Returns ``(admin_id, outcome, removed_count)``. Flushes only; the caller commits."""
    existing = db.execute(select(AdminUser).where(AdminUser.email == email)).scalar_one_or_none()

    if strategy == BootstrapStrategy.FIND_OR_CREATE:
        if existing:
            if existing.role not in ADMIN_ROLES:
                raise InvalidAdminInputError(f"{email} belongs to a {existing.role} account, it cannot log in as admin")
            logger.info("admin_bootstrap: %s already exists (id=%s), left untouched", email, existing.id)
            return existing.id, BootstrapOutcome.ALREADY_EXISTS, 0
        admin = _new_admin(email, password_hash, profile)
        db.add(admin)
        db.flush()
        return admin.id, BootstrapOutcome.CREATED, 0

    if existing and existing.role != "admin":
        raise InvalidAdminInputError(f"{email} belongs to a {existing.role} account, not replacing it")
    removed = db.execute(delete(AdminUser).where(AdminUser.role == "admin")).rowcount or 0
    admin = _new_admin(email, password_hash, profile)
    db.add(admin)
    db.flush()
    logger.info("admin_bootstrap: removed %s admin account(s), inserted %s", removed, email)
    return admin.id, BootstrapOutcome.REPLACED, removed


def _new_admin(email: str, password_hash: str, profile: AdminProfile) -> AdminUser:
    return AdminUser(
        email=email,
        password_hash=password_hash,
        first_name=profile.first_name,
        last_name=profile.last_name,
        role=profile.role,
        language=profile.language,
        is_active=True,
        is_email_verified=True,
    )


def verify_stored_password(db: Session, admin_id: int, password: str) -> bool:
    """Re-read the committed record from the store and check the password against it."""
    db.expire_all()
    admin = db.execute(select(AdminUser).where(AdminUser.id == admin_id)).scalar_one_or_none()
    if admin is None:
        return False
    return verify_password(password, admin.password_hash)


def report_outcome(verified: bool, email: str) -> None:
    if not verified:
        raise VerificationMismatchError(
            f"stored hash for {email} does not verify; hashing or storage is broken"
        )


def _run_with_store(
    email: str,
    session_factory,
    body: Callable[[Session], BootstrapResult],
) -> BootstrapResult:
    engine = None
    if session_factory is None:
        engine = get_engine()
        session_factory = get_session_factory(engine)
    try:
        with session_factory() as db:
            try:
                return body(db)
            except (OperationalError, InterfaceError) as e:
                raise StoreUnavailableError(f"credential store unreachable: {str(e)[:200]}") from e
            except SQLAlchemyError as e:
                raise BootstrapError(f"credential store error: {str(e)[:200]}") from e
    except BootstrapError as e:
        logger.error("admin_bootstrap: %s email=%s: %s", e.code, email, e)
        return BootstrapResult(
            ok=False,
            outcome=BootstrapOutcome.FAILED,
            email=email,
            message=str(e),
            error_code=e.code,
            exit_code=e.exit_code,
        )
    finally:
        if engine is not None:
            engine.dispose()


def run_bootstrap(
    email: str,
    password: str,
    *,
    strategy: BootstrapStrategy | str | None = None,
    rounds: int | None = None,
    profile: AdminProfile | None = None,
    force_strategy: bool = False,
    session_factory=None,
) -> BootstrapResult:
    """Ensure ``email`` can log in with ``password``; never raises BootstrapError."""
    s = get_settings()
    strategy = BootstrapStrategy(strategy or s.admin_bootstrap_strategy)
    rounds = rounds if rounds is not None else s.password_hash_rounds
    profile = profile or AdminProfile.from_settings()

    def _body(db: Session) -> BootstrapResult:
        validate_admin_input(email, password)
        check_strategy(db, strategy, force=force_strategy)
        try:
            password_hash = hash_password(password, rounds)
        except ValueError as e:
            raise InvalidAdminInputError(str(e)) from e

        admin_id, outcome, removed = upsert_admin(db, email, password_hash, profile, strategy)
        # admin row and strategy pin land in one transaction
        record_strategy(db, strategy)
        db.commit()

        if outcome == BootstrapOutcome.ALREADY_EXISTS:
            return BootstrapResult(
                ok=True,
                outcome=outcome,
                email=email,
                strategy=strategy,
                admin_id=admin_id,
                message=f"{strategy.value}: администратор {email} уже существует, запись не изменена",
            )

        verified = verify_stored_password(db, admin_id, password)
        report_outcome(verified, email)
        logger.info("admin_bootstrap: %s email=%s id=%s rounds=%s", outcome.value, email, admin_id, rounds)
        return BootstrapResult(
            ok=True,
            outcome=outcome,
            email=email,
            strategy=strategy,
            admin_id=admin_id,
            verified=True,
            removed=removed,
            message=f"{strategy.value}: администратор {email} создан (id={admin_id}), проверка пароля пройдена",
            details={"rounds": rounds},
        )

    return _run_with_store(email, session_factory, _body)


def reset_admin_password(
    password: str,
    *,
    email: str | None = None,
    rounds: int | None = None,
    session_factory=None,
) -> BootstrapResult:
    """Set a new password on an existing admin-family account, re-activate it, verify."""
    rounds = rounds if rounds is not None else get_settings().password_hash_rounds

    def _body(db: Session) -> BootstrapResult:
        q = select(AdminUser).where(AdminUser.role.in_(ADMIN_ROLES))
        if email:
            q = q.where(AdminUser.email == email)
        admin = db.execute(q.order_by(AdminUser.id.asc()).limit(1)).scalar_one_or_none()
        if admin is None:
            raise AdminNotFoundError("Админ не найден в базе данных")
        validate_admin_input(admin.email, password)
        try:
            admin.password_hash = hash_password(password, rounds)
        except ValueError as e:
            raise InvalidAdminInputError(str(e)) from e
        admin.is_active = True
        admin.is_email_verified = True
        db.commit()
        admin_id, admin_email = admin.id, admin.email

        report_outcome(verify_stored_password(db, admin_id, password), admin_email)
        logger.info("admin_bootstrap: password reset email=%s id=%s", admin_email, admin_id)
        return BootstrapResult(
            ok=True,
            outcome=BootstrapOutcome.PASSWORD_RESET,
            email=admin_email,
            admin_id=admin_id,
            verified=True,
            message=f"пароль администратора {admin_email} сброшен, проверка пароля пройдена",
            details={"rounds": rounds},
        )

    return _run_with_store(email or "", session_factory, _body)


def list_admins(session_factory=None) -> list[dict[str, Any]]:
    """Admin-family accounts for inspection. Raises StoreUnavailableError."""
    engine = None
    if session_factory is None:
        engine = get_engine()
        session_factory = get_session_factory(engine)
    try:
        with session_factory() as db:
            rows = db.execute(
                select(AdminUser).where(AdminUser.role.in_(ADMIN_ROLES)).order_by(AdminUser.id.asc())
            ).scalars().all()
            return [
                {
                    "id": a.id,
                    "email": a.email,
                    "first_name": a.first_name,
                    "last_name": a.last_name,
                    "role": a.role,
                    "is_active": bool(a.is_active),
                    "has_password": bool(a.password_hash),
                }
                for a in rows
            ]
    except (OperationalError, InterfaceError) as e:
        raise StoreUnavailableError(f"credential store unreachable: {str(e)[:200]}") from e
    finally:
        if engine is not None:
            engine.dispose()
