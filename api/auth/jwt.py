"""Bearer tokens identifying a crosspost user.

Tokens are HS256 JWTs whose ``sub`` claim is the user's UUID. Only
``access`` tokens are accepted by the API.
"""

import os
from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import UUID, uuid4

from jose import JWTError, jwt

JWT_SECRET = os.getenv("JWT_SECRET")
if not JWT_SECRET:
    raise RuntimeError(
        "JWT_SECRET environment variable is required. "
        "Set it to a secure random string (e.g., openssl rand -hex 32)"
    )
JWT_ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "30"))

ACCESS_TOKEN_TYPE = "access"


def create_access_token(user_id: UUID, expires_delta: Optional[timedelta] = None) -> str:
    """Issue an access token for user_id."""
    issued = datetime.now(timezone.utc)
    claims = {
        "sub": str(user_id),
        "iat": issued,
        "exp": issued + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)),
        "type": ACCESS_TOKEN_TYPE,
        "jti": str(uuid4()),
    }
    return jwt.encode(claims, JWT_SECRET, algorithm=JWT_ALGORITHM)


def decode_user_id(token: str) -> Optional[UUID]:
    """Return the user id carried by a valid access token.

    None when the signature or expiry is bad, the token is not an access
    token, or ``sub`` is not a UUID.
    """
    try:
        claims = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except JWTError:
        return None

    if claims.get("type", ACCESS_TOKEN_TYPE) != ACCESS_TOKEN_TYPE:
        return None
    try:
        return UUID(str(claims.get("sub")))
    except ValueError:
        return None
