"""Хеширование паролей и админский JWT."""
from datetime import datetime, timedelta
from typing import Optional

import bcrypt
from jose import JWTError, jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from apps.backend.config import get_settings
from apps.backend.models.admin import ADMIN_ROLES

security = HTTPBearer(auto_error=False)

# bcrypt only reads the first 72 bytes of the secret
MAX_PASSWORD_BYTES = 72
MIN_ROUNDS = 4
MAX_ROUNDS = 31


class PasswordTooLongError(ValueError):
    pass


def _to_bytes(s: str) -> bytes:
    b = s.encode("utf-8")
    if len(b) > MAX_PASSWORD_BYTES:
        raise PasswordTooLongError(f"password exceeds {MAX_PASSWORD_BYTES} bytes")
    return b


def hash_password(password: str, rounds: int | None = None) -> str:
    """Salted bcrypt hash. ``rounds`` defaults to ``password_hash_rounds`` from settings."""
    if rounds is None:
        rounds = get_settings().password_hash_rounds
    if not MIN_ROUNDS <= int(rounds) <= MAX_ROUNDS:
        raise ValueError(f"bcrypt rounds must be in {MIN_ROUNDS}..{MAX_ROUNDS}, got {rounds}")
    return bcrypt.hashpw(_to_bytes(password), bcrypt.gensalt(rounds=int(rounds))).decode()


def verify_password(plain: str, hashed: str | bytes | None) -> bool:
    """bcrypt check; any malformed input is a mismatch, never a match."""
    if not plain or not hashed:
        return False
    try:
        return bcrypt.checkpw(_to_bytes(plain), hashed.encode() if isinstance(hashed, str) else hashed)
    except (ValueError, TypeError):
        return False


def hash_rounds(hashed: str) -> int | None:
    """Cost factor encoded in a ``$2b$NN$...`` hash."""
    parts = (hashed or "").split("$")
    if len(parts) < 4:
        return None
    try:
        return int(parts[2])
    except ValueError:
        return None


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    s = get_settings()
    to_encode = data.copy()
    exp = expires_delta or timedelta(minutes=s.jwt_expire_minutes)
    to_encode.update({"exp": datetime.utcnow() + exp})
    return jwt.encode(to_encode, s.jwt_secret, algorithm=s.jwt_algorithm)


def decode_token(token: str) -> Optional[dict]:
    s = get_settings()
    try:
        return jwt.decode(token, s.jwt_secret, algorithms=[s.jwt_algorithm])
    except JWTError:
        return None


async def get_current_admin(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> dict:
    if not credentials:
        raise HTTPException(status_code=401, detail="Требуется авторизация")
    payload = decode_token(credentials.credentials)
    if not payload or "sub" not in payload:
        raise HTTPException(status_code=401, detail="Недействительный токен")
    if payload.get("role") not in ADMIN_ROLES:
        raise HTTPException(status_code=403, detail="Недостаточно прав")
    return payload


def require_roles(*roles: str):
    """Dependency factory: admin token whose role is one of ``roles``."""

    async def _dep(payload: dict = Depends(get_current_admin)) -> dict:
        if payload.get("role") not in roles:
            raise HTTPException(status_code=403, detail="Недостаточно прав для выполнения действия")
        return payload

    return _dep
