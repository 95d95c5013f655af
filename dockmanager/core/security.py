from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import jwt

from dockmanager.core.config import settings

SECRET_KEY = settings.SECRET_KEY
ALGORITHM = settings.ALGORITHM


def create_access_token(
    data: Dict[str, Any],
    token_version: int = 1,
    expires_delta: Optional[timedelta] = None
) -> str:
    """
    Issue a signed JWT.

    `sub` carries the user id, `tv` the user's token_version so bumping the
    version invalidates every token issued before.
    """
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode.update({"exp": expire, "tv": token_version})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_access_token(token: str) -> Dict[str, Any]:
    """Raises jose.JWTError on a bad signature or an expired token."""
    return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
