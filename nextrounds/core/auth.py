"""
Authentication Utility - Supabase access tokens.

Provides:
- Local JWT verification with the project's JWT secret (python-jose)
- Remote verification through Supabase auth when no secret is configured
- FastAPI dependency for protected routes
"""

from typing import Optional
from jose import JWTError, jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from nextrounds.core.config import get_settings
from nextrounds.core.logging_config import get_logger
from nextrounds.db.supabase import get_supabase_client

settings = get_settings()
logger = get_logger(__name__)

# Supabase signs session tokens with HS256 for the "authenticated" audience
JWT_ALGORITHM = "HS256"
JWT_AUDIENCE = "authenticated"

# Bearer token extractor; missing headers are reported by get_current_user
bearer_scheme = HTTPBearer(auto_error=False)


def decode_supabase_token(token: str, secret: str) -> Optional[dict]:
    """Decode and verify a Supabase JWT. Returns None if invalid."""
    try:
        return jwt.decode(token, secret, algorithms=[JWT_ALGORITHM], audience=JWT_AUDIENCE)
    except JWTError:
        return None


def verify_token_with_supabase(token: str) -> Optional[dict]:
    """Ask Supabase auth who owns the token. Returns None if rejected."""
    try:
        response = get_supabase_client().auth.get_user(token)
    except Exception as e:
        logger.info(f"Supabase rejected token: {e}")
        return None

    user = getattr(response, "user", None)
    if user is None:
        return None
    return {"id": str(user.id), "email": user.email}


def resolve_user(token: str) -> Optional[dict]:
    """Map a bearer token to {"id", "email"}."""
    if settings.supabase_jwt_secret:
        payload = decode_supabase_token(token, settings.supabase_jwt_secret)
        if not payload or not payload.get("sub"):
            return None
        return {"id": payload["sub"], "email": payload.get("email")}
    return verify_token_with_supabase(token)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)
) -> dict:
    """
    FastAPI dependency - Get current authenticated user.

    Usage:
        @router.get("/usage")
        async def route(user: dict = Depends(get_current_user)):
            return user
    """
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = resolve_user(credentials.credentials)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user
