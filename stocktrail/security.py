"""
Password hashing and access tokens.
"""

from datetime import datetime, timedelta
from typing import Optional

import bcrypt
from jose import JWTError, jwt

from stocktrail.errors import ValidationError

ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = 60 * 8

# bcrypt only reads the first 72 bytes and newer releases reject longer input
MAX_PASSWORD_BYTES = 72

# Token scopes
SCOPE_ACCESS = "access"
SCOPE_FIRST_LOGIN = "first-login"


def get_password_hash(password: str) -> str:
    """Hash a plaintext password with a fresh salt."""
    encoded = password.encode("utf-8")
    if len(encoded) > MAX_PASSWORD_BYTES:
        raise ValidationError(
            "Password is too long",
            detail=f"Passwords are limited to {MAX_PASSWORD_BYTES} bytes",
        )
    return bcrypt.hashpw(encoded, bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Check a plaintext password against a stored hash."""
    if not plain_password or not hashed_password:
        return False
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError:
        # Malformed stored hash or input longer than bcrypt accepts
        return False


def create_access_token(
    data: dict,
    secret_key: str,
    expires_delta: Optional[timedelta] = None,
    scope: str = SCOPE_ACCESS,
) -> str:
    """
    Create a signed JWT.

    Args:
        data: Claims to embed (``sub`` should hold the user id)
        secret_key: Signing key
        expires_delta: Lifetime of the token
        scope: Token scope claim

    Returns:
        Encoded token string
    """
    to_encode = data.copy()
    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire, "scope": scope})
    return jwt.encode(to_encode, secret_key, algorithm=ALGORITHM)


def decode_access_token(token: str, secret_key: str, scope: str = SCOPE_ACCESS) -> Optional[int]:
    """
    Decode a token and return its user id, or None if invalid, expired or out of scope.
    """
    try:
        payload = jwt.decode(token, secret_key, algorithms=[ALGORITHM])
    except JWTError:
        return None

    if payload.get("scope") != scope:
        return None

    subject = payload.get("sub")
    if subject is None:
        return None
    try:
        return int(subject)
    except (TypeError, ValueError):
        return None
