from datetime import datetime, timedelta, timezone
from typing import Literal, Optional

from fastapi import Depends, HTTPException, Request, status
from jose import JWTError, jwt

from portal_guard.core.settings import get_settings

Role = Literal["admin", "employee"]
ROLES = ("admin", "employee")
ACCESS_TOKEN_EXPIRE_MINUTES = 30


class User:
    def __init__(self, email: str, role: Role):
        self.email = email
        self.role = role


def _jwt_config() -> tuple[str, str]:
    settings = get_settings()
    return settings.jwt_secret, settings.jwt_algorithm or "HS256"


def create_access_token(email: str, role: Role, expires_delta: Optional[timedelta] = None) -> str:
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    secret, algorithm = _jwt_config()
    return jwt.encode({"sub": email, "role": role, "iat": now, "exp": expire}, secret, algorithm=algorithm)


def _parse_token(token: str) -> tuple[Optional[str], Optional[Role]]:
    secret, algorithm = _jwt_config()
    try:
        payload = jwt.decode(token, secret, algorithms=[algorithm])
    except JWTError:
        return (None, None)

    email = payload.get("sub")
    role = payload.get("role")
    if isinstance(email, str) and role in ROLES:
        return (email, role)  # type: ignore[return-value]
    return (None, None)


def get_current_user(request: Request) -> User:
    auth = request.headers.get("authorization", "")
    parts = auth.split()
    if len(parts) == 2 and parts[0].lower() == "bearer":
        email, role = _parse_token(parts[1])
        if role and email:
            return User(email=email, role=role)
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="unauthenticated")


def require_role(need: Role):
    def _dep(user: User = Depends(get_current_user)) -> User:
        if user.role != need:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="forbidden")
        return user

    return _dep
