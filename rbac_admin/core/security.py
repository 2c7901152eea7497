"""
Security utilities for JWT authentication and password hashing
"""

from datetime import datetime, timedelta, timezone
from typing import Optional, Union, Any
from joserfc import jwt as jose_jwt
from joserfc.jwk import OctKey
from pwdlib import PasswordHash
from pwdlib.hashers.bcrypt import BcryptHasher
import structlog

from rbac_admin.core.config import settings
from rbac_admin.core.token_validator import (
    IssuerAwareTokenValidator,
    LocalJWTValidationStrategy,
    TokenValidationResult,
)

logger = structlog.get_logger()

# Password hashing context
pwd_context = PasswordHash((BcryptHasher(),))

# JWT Configuration
ALGORITHM = settings.JWT_ALGORITHM
SECRET_KEY = settings.JWT_SECRET_KEY
ACCESS_TOKEN_EXPIRE_MINUTES = settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES
REFRESH_TOKEN_EXPIRE_DAYS = settings.JWT_REFRESH_TOKEN_EXPIRE_DAYS

_jwt_key = OctKey.import_key(SECRET_KEY)

_token_validator = IssuerAwareTokenValidator(
    active_issuer=settings.AUTH_ACTIVE_ISSUER,
    trusted_issuers=settings.AUTH_TRUSTED_ISSUERS,
    local_strategy=LocalJWTValidationStrategy(
        secret_key=SECRET_KEY,
        algorithm=ALGORITHM,
        issuer=settings.AUTH_LOCAL_ISSUER,
    ),
)


def _encode(claims: dict) -> str:
    return jose_jwt.encode({"alg": ALGORITHM}, claims, _jwt_key)


def _build_claims(subject: Any, session_id: Any, token_type: str, expire: datetime, **extra: Any) -> dict:
    now = datetime.now(timezone.utc)
    claims = {
        "exp": int(expire.timestamp()),
        "iat": int(now.timestamp()),
        "sub": str(subject),
        "sid": str(session_id),
        "iss": settings.AUTH_LOCAL_ISSUER,
        "type": token_type,
    }
    claims.update(extra)
    return claims


def create_access_token(
    subject: Union[str, Any],
    session_id: Union[str, Any],
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Create JWT access token

    Args:
        subject: User id
        session_id: Server-side session the token belongs to
        expires_delta: Custom expiration time

    Returns:
        Encoded JWT token
    """
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    token = _encode(_build_claims(subject, session_id, "access", expire))
    logger.debug("Access token created", subject=str(subject), expires=expire.isoformat())
    return token


def create_refresh_token(
    subject: Union[str, Any],
    session_id: Union[str, Any],
    expires_delta: Optional[timedelta] = None,
    generation: int = 0,
) -> str:
    """Create JWT refresh token bound to the same session and its refresh generation"""
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(days=REFRESH_TOKEN_EXPIRE_DAYS))
    token = _encode(_build_claims(subject, session_id, "refresh", expire, gen=generation))
    logger.debug("Refresh token created", subject=str(subject), expires=expire.isoformat())
    return token


def verify_token(token: str, token_type: str = "access") -> TokenValidationResult:
    """
    Verify a JWT and return its subject and session id

    Raises:
        AuthenticationError: If the token is invalid, expired or of the wrong type
    """
    return _token_validator.validate(token, token_type=token_type)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a password against its hash

    Returns:
        True if password matches, False otherwise
    """
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except Exception as e:
        logger.error("Password verification error", error=str(e))
        return False


def get_password_hash(password: str) -> str:
    """Hash a password with bcrypt"""
    # Bcrypt has a 72 byte limit
    password_bytes = password.encode('utf-8')
    if len(password_bytes) > 72:
        password = password_bytes[:72].decode('utf-8', errors='ignore')
        logger.warning("Password truncated to 72 bytes for bcrypt")

    return pwd_context.hash(password)
