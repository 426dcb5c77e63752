import os
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from passlib.context import CryptContext

from fishing_api import repository
from fishing_api.config import required_env
from fishing_api.errors import ForbiddenError


_pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=int(os.getenv("BCRYPT_ROUNDS", "10")),
)
_bearer = HTTPBearer(auto_error=False)


def _jwt_secret() -> str:
    # Required for security; do not default.
    return required_env("JWT_SECRET")


def _jwt_algorithm() -> str:
    return os.getenv("JWT_ALGORITHM", "HS256")


def _jwt_exp_minutes() -> int:
    return int(os.getenv("JWT_EXPIRES_MINUTES", "10080"))  # default: 7 days


# PUBLIC_INTERFACE
def hash_password(password: str) -> str:
    """Hash a plaintext password."""
    return _pwd_context.hash(password)


# PUBLIC_INTERFACE
def verify_password(password: str, password_hash: str) -> bool:
    """Verify a plaintext password against a stored hash."""
    try:
        return _pwd_context.verify(password, password_hash)
    except ValueError:
        # Stored value is not a hash passlib recognises.
        return False


def _create_access_token(payload: Dict[str, Any], expires_delta: timedelta) -> str:
    to_encode = payload.copy()
    expire = datetime.now(timezone.utc) + expires_delta
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, _jwt_secret(), algorithm=_jwt_algorithm())


# PUBLIC_INTERFACE
def create_user_access_token(user_id: int, username: str) -> str:
    """Create a JWT access token bound to a player's id."""
    return _create_access_token(
        {"sub": str(user_id), "username": username},
        expires_delta=timedelta(minutes=_jwt_exp_minutes()),
    )


def _unauthorized(detail: str = "Not authenticated") -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


# PUBLIC_INTERFACE
def get_current_user(credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer)) -> Dict[str, Any]:
    """Dependency that returns the authenticated player's user row (id, username)."""
    if credentials is None:
        raise _unauthorized()

    token = credentials.credentials
    try:
        payload = jwt.decode(token, _jwt_secret(), algorithms=[_jwt_algorithm()])
        sub = payload.get("sub")
        if not sub:
            raise _unauthorized("Invalid token payload")
        user_id = int(sub)
    except (JWTError, ValueError):
        raise _unauthorized("Invalid token")

    user = repository.find_user_by_id(user_id)
    if not user:
        raise _unauthorized("User not found")
    return user


# PUBLIC_INTERFACE
def ensure_owner(user_id: int, user: Dict[str, Any]) -> None:
    """Reject requests that name a player other than the token's owner."""
    if int(user["id"]) != user_id:
        raise ForbiddenError("Not allowed to modify another player's data")
