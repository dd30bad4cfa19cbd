import re
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt
import structlog
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from passlib.context import CryptContext
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from schooldata.config import settings
from schooldata.exceptions import AuthenticationError
from schooldata.models.profile_model import AuditLogModel, ProfileModel, UserRoleModel

logger = structlog.get_logger()

# Security scheme for JWT Bearer token
security = HTTPBearer(auto_error=False)

# Password hashing, keep it here to avoid recreating the context per request
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=12)

DEFAULT_ROLE = "student"


def normalize_login(identifier: str) -> str:
    """Map a learner reference number (no '@') to its account email."""
    identifier = identifier.strip()
    if "@" in identifier:
        return identifier.lower()
    cleaned = re.sub(r"[^a-zA-Z0-9]", "", identifier)
    return f"{cleaned}@{settings.LEARNER_EMAIL_DOMAIN}".lower()


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: Optional[str]) -> bool:
    if not password_hash:
        return False
    return pwd_context.verify(password, password_hash)


def create_access_token(user: Dict[str, Any]) -> str:
    """
    Create a JWT access token.

    Args:
        user: Dict with id, email, role and full_name

    Returns:
        Encoded JWT token string

    Raises:
        AuthenticationError: If no signing secret is configured
    """
    if not settings.SECRET_KEY:
        raise AuthenticationError("Token signing is not configured")

    expire = datetime.now(timezone.utc) + timedelta(
        days=settings.ACCESS_TOKEN_EXPIRE_DAYS
    )
    to_encode = {
        "sub": str(user["id"]),
        "email": user["email"],
        "role": user.get("role") or DEFAULT_ROLE,
        "full_name": user.get("full_name"),
        "exp": expire,
        "type": "access",
    }
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> Dict[str, Any]:
    """
    Decode and validate a JWT token.

    Raises:
        AuthenticationError: If the token is invalid or expired
    """
    if not settings.SECRET_KEY:
        raise AuthenticationError("Token signing is not configured")
    try:
        payload = jwt.decode(
            token, settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM]
        )
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Token has expired")
    except jwt.InvalidTokenError:
        raise AuthenticationError("Invalid or expired token")

    if payload.get("type") != "access" or not payload.get("sub"):
        raise AuthenticationError("Invalid token payload")
    return payload


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Dict[str, Any]:
    """Decoded token claims of the caller; used as a dependency on protected routes."""
    if credentials is None:
        raise AuthenticationError("No token provided")
    payload = decode_token(credentials.credentials)
    return {
        "id": payload["sub"],
        "email": payload.get("email"),
        "role": payload.get("role") or DEFAULT_ROLE,
        "full_name": payload.get("full_name"),
    }


async def get_profile(db: AsyncSession, user_id: str) -> Optional[Dict[str, Any]]:
    result = await db.execute(
        select(ProfileModel, UserRoleModel.role)
        .outerjoin(UserRoleModel, UserRoleModel.user_id == ProfileModel.id)
        .filter(ProfileModel.id == user_id)
    )
    row = result.first()
    if row is None:
        return None
    profile, role = row
    return {
        "id": str(profile.id),
        "email": profile.email,
        "full_name": profile.full_name,
        "role": role or DEFAULT_ROLE,
    }


async def authenticate_user(
    db: AsyncSession,
    identifier: str,
    password: str,
    user_agent: Optional[str] = None,
    ip_address: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Check credentials and record the login in the audit log.

    Args:
        db: Database session
        identifier: Email or learner reference number
        password: Plain-text password
        user_agent: Caller's user agent, for the audit log
        ip_address: Caller's address, for the audit log

    Returns:
        Dict with the user's id, email, full_name and role

    Raises:
        AuthenticationError: If the account is unknown, not set up, or the password is wrong
    """
    email = normalize_login(identifier)
    result = await db.execute(
        select(ProfileModel, UserRoleModel.role)
        .outerjoin(UserRoleModel, UserRoleModel.user_id == ProfileModel.id)
        .filter(ProfileModel.email == email)
    )
    row = result.first()
    if row is None:
        logger.info("Login rejected: unknown account", email=email)
        raise AuthenticationError("Invalid credentials")

    profile, role = row
    if not profile.password_hash:
        raise AuthenticationError("Account requires setup")
    if not verify_password(password, profile.password_hash):
        logger.info("Login rejected: wrong password", user_id=str(profile.id))
        raise AuthenticationError("Invalid credentials")

    db.add(
        AuditLogModel(
            user_id=profile.id,
            action="login",
            status="success",
            user_agent=user_agent,
            ip_address=ip_address,
        )
    )
    await db.commit()

    return {
        "id": str(profile.id),
        "email": profile.email,
        "full_name": profile.full_name,
        "role": role or DEFAULT_ROLE,
    }
