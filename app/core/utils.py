"""
Utility functions for the application.

- Secure password hashing using bcrypt
- Password verification against hashed values
- JWT token creation and decoding
- Invitation token generation and HMAC hashing for queryable secure storage
"""

from datetime import datetime, timedelta, timezone
import hashlib
import hmac
import json
import secrets
from typing import Any
import uuid

import aiofiles
import bcrypt
from fastapi import FastAPI
import jwt

from app.core.config import settings, utils_logger


def hash_password(password: str | None) -> str:
    """
    Hash a password using bcrypt with a secure salt.

    Args:
        password: The plain text password to hash. Cannot be None.

    Returns:
        str: The bcrypt hashed password (60 characters).

    Raises:
        ValueError: If password is None.
    """
    if password is None:
        utils_logger.error("Attempted to hash None password")
        raise ValueError("Password cannot be None")

    password_bytes = password.encode("utf-8")

    # Bcrypt has a 72-byte limit
    if len(password_bytes) > 72:
        password_bytes = password_bytes[:72]

    hashed = bcrypt.hashpw(password_bytes, bcrypt.gensalt())
    utils_logger.info("Password hashed successfully")
    return hashed.decode("utf-8")


def create_jwt_token(
    data: dict[str, Any] | None, expires_delta: timedelta | None = None
) -> str:
    """
    Create a JWT token with the given data and expiration time.

    Args:
        data: Dictionary containing the data to encode in the token. Cannot be None.
        expires_delta: Optional timedelta for token expiration.
            If None, defaults to ACCESS_TOKEN_EXPIRE_MINUTES from settings.

    Returns:
        str: Encoded JWT token string.

    Raises:
        ValueError: If data is None.
    """
    if data is None:
        utils_logger.error("Attempted to create JWT token with None data")
        raise ValueError("Data cannot be None")

    to_encode = data.copy()

    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    now = datetime.now(timezone.utc)
    expire = now + expires_delta
    to_encode["exp"] = expire
    to_encode["iat"] = now
    to_encode["jti"] = str(uuid.uuid4())

    encoded_jwt = jwt.encode(
        to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM
    )

    utils_logger.info(
        f"JWT token created successfully with expiration: {expire.isoformat()}"
    )
    return encoded_jwt


def decode_jwt_token(token: str | None) -> dict[str, Any] | None:
    """
    Decode and validate a JWT token.

    Returns None for any invalid, expired, or tampered tokens.
    """
    if not token:
        utils_logger.warning("JWT token decoding attempted with empty token")
        return None

    try:
        return jwt.decode(
            token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM]
        )
    except jwt.ExpiredSignatureError:
        utils_logger.warning("JWT token decoding failed: token has expired")
        return None
    except jwt.InvalidTokenError as e:
        utils_logger.warning(
            f"JWT token decoding failed: invalid token - {type(e).__name__}"
        )
        return None


def generate_invitation_token() -> str:
    """Generate an unguessable, URL-safe invitation token (43 characters)."""
    return secrets.token_urlsafe(32)


def hmac_hash_token(token: str | None, secret: str | None = None) -> str:
    """
    Hash a token using HMAC-SHA256 for secure, queryable storage.

    HMAC output is deterministic, so the hash can be used as a unique lookup
    key while the raw token never touches the database.

    Args:
        token: The raw token to hash. Cannot be None or empty.
        secret: The HMAC key. Defaults to INVITATION_TOKEN_SECRET.

    Returns:
        str: The HMAC-SHA256 hash as a 64-character hexadecimal string.

    Raises:
        ValueError: If token or secret is None or empty.

    Examples:
        >>> hashed = hmac_hash_token("abc", "my_secret_key")
        >>> len(hashed)
        64
    """
    secret = secret if secret is not None else settings.INVITATION_TOKEN_SECRET

    if not token:
        utils_logger.error("Attempted to hash None or empty token")
        raise ValueError("Token cannot be None or empty")

    if not secret:
        utils_logger.error("Attempted to hash token with None or empty secret")
        raise ValueError("Secret cannot be None or empty")

    return hmac.new(
        secret.encode("utf-8"), token.encode("utf-8"), hashlib.sha256
    ).hexdigest()


def generate_openapi_json(app: FastAPI) -> str:
    """
    Generate OpenAPI JSON schema for the given FastAPI application.

    Args:
        app: The FastAPI application instance.

    Returns:
        A pretty-printed JSON string of the OpenAPI schema.
    """
    openapi_schema = app.openapi()

    openapi_json = json.dumps(openapi_schema, indent=4)
    utils_logger.info("OpenAPI JSON schema generated successfully")
    return openapi_json


async def write_to_file_async(file_path: str, data: str) -> None:
    """
    Asynchronously write data to a file.

    Args:
        file_path: Path to the file where data should be written.
        data: The string data to write to the file.
    """
    try:
        async with aiofiles.open(file_path, mode="w", encoding="utf-8") as file:
            await file.write(data)
        utils_logger.info(f"Data written to file {file_path} successfully.")
    except Exception as e:
        utils_logger.error(
            f"Failed to write data to file {file_path}: {type(e).__name__} - {str(e)}"
        )
        raise
