# kidpoints/auth.py
import base64
import hashlib
import logging
import os
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from cryptography.fernet import Fernet, InvalidToken
from jose import JWTError, jwt
from passlib.context import CryptContext
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from kidpoints.database import get_session
from kidpoints.models import Role, User

logger = logging.getLogger(__name__)

SECRET_KEY = os.getenv("SECRET_KEY", "super-secret-key")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "30"))

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/token")
optional_oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/token", auto_error=False)

# Kid passwords are kept recoverable for the owning parent.  They are
# encrypted with a Fernet key derived from SECRET_KEY, never stored as-is.
_fernet = Fernet(base64.urlsafe_b64encode(hashlib.sha256(SECRET_KEY.encode("utf-8")).digest()))


@dataclass(frozen=True)
class Caller:
    """Authenticated account performing an operation."""

    id: int
    role: Role
    name: str = ""


def verify_password(plain_password, hashed_password):
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password):
    return pwd_context.hash(password)


def encrypt_secret(secret: str) -> str:
    return _fernet.encrypt(secret.encode("utf-8")).decode("utf-8")


def decrypt_secret(token: str | None) -> str | None:
    """Return the plain secret, or ``None`` if it cannot be decrypted."""
    if not token:
        return None
    try:
        return _fernet.decrypt(token.encode("utf-8")).decode("utf-8")
    except InvalidToken:
        logger.warning("Stored kid secret could not be decrypted; was SECRET_KEY rotated?")
        return None


def create_access_token(data: dict, expires_delta: timedelta | None = None):
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def create_token_for_user(user: User) -> str:
    return create_access_token(data={"sub": f"user:{user.id}", "role": user.role.value})


async def get_user_by_id(db: AsyncSession, user_id: int) -> User | None:
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def _caller_from_token(db: AsyncSession, token: str) -> Caller:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        sub: str = payload.get("sub")
        if not sub or not sub.startswith("user:"):
            raise credentials_exception
        user_id = int(sub.split(":", 1)[1])
    except (JWTError, ValueError):
        raise credentials_exception
    # The account may have been deleted since the token was issued.
    user = await get_user_by_id(db, user_id)
    if user is None:
        raise credentials_exception
    return Caller(id=user.id, role=user.role, name=user.name)


async def get_current_caller(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_session),
) -> Caller:
    return await _caller_from_token(db, token)


async def get_optional_caller(
    token: str | None = Depends(optional_oauth2_scheme),
    db: AsyncSession = Depends(get_session),
) -> Caller | None:
    """Like ``get_current_caller`` but anonymous requests yield ``None``."""
    if not token:
        return None
    return await _caller_from_token(db, token)
