"""
Authentication Module for Audiopub.

Provides:
- Password hashing (bcrypt via passlib)
- JWT token creation and verification (python-jose)

Tokens carry the user id in ``sub`` and the account's credential version in
``ver``. Changing email or password bumps the version, which invalidates
every token issued before the change.
"""

from datetime import datetime, timedelta
from passlib.context import CryptContext
from jose import JWTError, jwt

from .config import settings
from .constants import JWT_ALGORITHM

# Password hashing configuration (bcrypt)
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# =============================================================================
# Password Hashing
# =============================================================================

def hash_password(password: str) -> str:
    """
    Hash password using bcrypt with automatic per-user salt generation.

    Args:
        password: Plain text password

    Returns:
        Bcrypt hash string
    """
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    return pwd_context.verify(plain_password, hashed_password)

# =============================================================================
# JWT Token Management
# =============================================================================

def create_access_token(data: dict) -> str:
    """
    Create a JWT access token.

    Args:
        data: Claims, e.g. {"sub": user.id, "ver": user.version}

    Returns:
        JWT token string
    """
    to_encode = data.copy()
    expire = datetime.utcnow() + timedelta(minutes=settings.token_expire_minutes)
    to_encode.update({"exp": expire})

    return jwt.encode(to_encode, settings.secret_key, algorithm=JWT_ALGORITHM)


def create_user_token(user) -> str:
    """Token for a DBUser, bound to its current credential version."""
    return create_access_token({"sub": user.id, "ver": user.version})


def decode_access_token(token: str) -> dict:
    """
    Decode and verify JWT token.

    Raises:
        ValueError: If token is invalid or expired
    """
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[JWT_ALGORITHM])
    except JWTError:
        raise ValueError('Invalid token')
