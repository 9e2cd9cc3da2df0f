import hashlib
import hmac
import logging
import os
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from sqlmodel import Session, select
from jose.exceptions import ExpiredSignatureError, JWTError

from ..database import get_session
from ..models.user import User
from .jwt import decode_access_token


logger = logging.getLogger(__name__)

ALGORITHM = "pbkdf2_sha256"
ITERATIONS = 100_000
SALT_BYTES = 16

ACCESS_TOKEN_COOKIE = "access_token"


def _pbkdf2_hash(password: str, salt: bytes) -> bytes:
    return hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, ITERATIONS)


def hash_password(password: str) -> str:
    salt = os.urandom(SALT_BYTES)
    digest = _pbkdf2_hash(password, salt)
    return f"{ALGORITHM}${salt.hex()}${digest.hex()}"


def verify_password(password: str, stored: str) -> bool:
    try:
        algorithm, salt_hex, hash_hex = stored.strip().split("$")
        salt = bytes.fromhex(salt_hex)
        expected = bytes.fromhex(hash_hex)
    except ValueError:
        return False
    if algorithm != ALGORITHM:
        return False
    return hmac.compare_digest(_pbkdf2_hash(password, salt), expected)


# auto_error=False: browser calls carry the token in a cookie instead
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token", auto_error=False)


def get_current_user_id(
    request: Request,
    bearer: Optional[str] = Depends(oauth2_scheme),
    session: Session = Depends(get_session),
) -> Optional[int]:
    """
    Resolve the caller's user id, or None when the request is anonymous.

    - Token comes from the access_token cookie, falling back to the bearer header.
    - Expired or forged tokens and unknown users count as anonymous.
    """
    token = request.cookies.get(ACCESS_TOKEN_COOKIE) or bearer
    if not token:
        return None

    try:
        payload = decode_access_token(token)
    except ExpiredSignatureError:
        logger.info("Rejected expired access token")
        return None
    except JWTError:
        logger.warning("Rejected invalid access token")
        return None

    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        logger.warning("Rejected access token with bad subject")
        return None

    user = session.exec(select(User).where(User.id == user_id)).first()
    if user is None:
        return None
    return user.id


def get_current_user(
    user_id: Optional[int] = Depends(get_current_user_id),
    session: Session = Depends(get_session),
) -> User:
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return session.get(User, user_id)
