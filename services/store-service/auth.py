"""Authentication utilities."""
from datetime import datetime, timedelta, timezone
from typing import Optional
from fastapi import Depends, Header
from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import BaseModel
import logging

from config import SECRET_KEY, ALGORITHM, ACCESS_TOKEN_EXPIRE_MINUTES
from errors import ForbiddenError, UnauthorizedError
from monitoring import auth_failures_counter, auth_attempts_counter

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


class Session(BaseModel):
    """Caller identity derived from a session token."""
    user_id: str
    name: str
    email: str
    role: str
    expires_at: datetime


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(
    user_id: str,
    name: str,
    email: str,
    role: str,
    expires_delta: Optional[timedelta] = None
) -> str:
    """
    Issue a signed session token.

    Args:
        user_id: User identifier
        name: Display name
        email: Account email
        role: "user" or "admin"
        expires_delta: Token lifetime, defaults to ACCESS_TOKEN_EXPIRE_MINUTES

    Returns:
        Encoded JWT
    """
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    claims = {
        "sub": user_id,
        "name": name,
        "email": email,
        "role": role,
        "exp": expire,
    }
    return jwt.encode(claims, SECRET_KEY, algorithm=ALGORITHM)


def decode_session(token: str) -> Session:
    """
    Decode and validate a session token.

    Raises:
        UnauthorizedError: If the token is malformed, forged or expired
    """
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        auth_failures_counter.add(1, {"reason": "invalid_token"})
        logger.warning("Authentication failed: Invalid token", extra={
            "token_prefix": token[:8] + "..." if len(token) > 8 else token
        })
        raise UnauthorizedError("Invalid or expired session")

    user_id = payload.get("sub")
    if not user_id:
        auth_failures_counter.add(1, {"reason": "missing_subject"})
        raise UnauthorizedError("Invalid or expired session")

    return Session(
        user_id=user_id,
        name=payload.get("name") or "Anonymous",
        email=payload.get("email", ""),
        role=payload.get("role", "user"),
        expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc)
    )


def _extract_bearer(authorization: str) -> str:
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        auth_failures_counter.add(1, {"reason": "invalid_format"})
        logger.warning("Authentication failed: Invalid authorization header format", extra={
            "auth_header": authorization[:20] + "..." if len(authorization) > 20 else authorization
        })
        raise UnauthorizedError("Invalid authorization header format")
    return parts[1]


def verify_token(authorization: Optional[str] = Header(None)) -> Session:
    """
    Resolve the caller's session from the Authorization header.

    Args:
        authorization: Authorization header value

    Returns:
        Session of the authenticated caller

    Raises:
        UnauthorizedError: If the header is missing or the token is invalid
    """
    auth_attempts_counter.add(1, {"type": "bearer_token"})

    if authorization is None:
        auth_failures_counter.add(1, {"reason": "missing_header"})
        logger.warning("Authentication failed: Missing authorization header")
        raise UnauthorizedError("Missing authorization header")

    session = decode_session(_extract_bearer(authorization))
    logger.debug("Authentication successful", extra={"user_id": session.user_id})
    return session


def optional_session(authorization: Optional[str] = Header(None)) -> Optional[Session]:
    """Session when a valid token is supplied, None for anonymous callers."""
    if authorization is None:
        return None
    try:
        return decode_session(_extract_bearer(authorization))
    except UnauthorizedError:
        return None


def is_admin(session: Optional[Session]) -> bool:
    """Single authorization predicate for every admin-gated operation."""
    return session is not None and session.role == "admin"


def require_admin(session: Session = Depends(verify_token)) -> Session:
    """Dependency allowing only administrators through."""
    if not is_admin(session):
        auth_failures_counter.add(1, {"reason": "not_admin"})
        logger.warning("Authorization failed: Admin access required", extra={
            "user_id": session.user_id
        })
        raise ForbiddenError("Admin access required")
    return session
