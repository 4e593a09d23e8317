"""
Password hashing, access tokens and phone number encryption
"""
from datetime import datetime, timedelta, timezone
from typing import Iterable

from jose import JWTError, jwt
from passlib.context import CryptContext

from app.core.config import get_settings
from app.core.privacy import DataClassification, get_privacy_protocol

pwd_context = CryptContext(schemes=["sha256_crypt"], deprecated="auto")

TOKEN_TYPE = "access"


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, password_hash: str) -> bool:
    return pwd_context.verify(plain_password, password_hash)


def create_access_token(subject: str, roles: Iterable[str] = (), expires_minutes: int | None = None) -> str:
    """
    Sign a bearer token for a user id

    roles is informational for clients; authorization always re-reads the user row.
    """
    settings = get_settings()
    now = datetime.now(timezone.utc)
    lifetime = expires_minutes if expires_minutes is not None else settings.access_token_expire_minutes
    claims = {
        "sub": subject,
        "type": TOKEN_TYPE,
        "roles": list(roles),
        "iat": now,
        "exp": now + timedelta(minutes=lifetime),
    }
    return jwt.encode(claims, settings.secret_key, algorithm=settings.algorithm)


def decode_access_token(token: str) -> str | None:
    """User id from a valid access token, None for anything else"""
    settings = get_settings()
    try:
        claims = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError:
        return None
    if claims.get("type", TOKEN_TYPE) != TOKEN_TYPE:
        return None
    return claims.get("sub")


def encrypt_phone(phone: str) -> str:
    return get_privacy_protocol().encrypt_sensitive_data(phone, DataClassification.CONFIDENTIAL)


def decrypt_phone(encrypted_phone: str) -> str:
    return get_privacy_protocol().decrypt_sensitive_data(encrypted_phone)
