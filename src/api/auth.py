"""Request identity

Users are authenticated by Supabase Auth; requests carry its access token as
a bearer token, verified against the project's JWKS.
"""

from functools import lru_cache
from typing import Any, Dict, Optional
import jwt
from fastapi import Header, Request, status
from config import ApplicationConfig
from libs.result import Error
from src.api.error import ClientError


def _unauthenticated(reason: str) -> ClientError:
    return ClientError(
        Error(code="UNAUTHENTICATED", message="Authentication required", reason=reason),
        status_code=status.HTTP_401_UNAUTHORIZED,
    )


@lru_cache(maxsize=4)
def _jwks_client(jwks_url: str) -> jwt.PyJWKClient:
    return jwt.PyJWKClient(jwks_url)


def decode_supabase_jwt(token: str) -> Dict[str, Any]:
    supabase_url = (ApplicationConfig.SUPABASE_URL or "").rstrip("/")
    if not supabase_url:
        raise _unauthenticated("SUPABASE_URL is not configured")

    issuer = ApplicationConfig.SUPABASE_JWT_ISSUER or f"{supabase_url}/auth/v1"
    try:
        signing_key = _jwks_client(f"{supabase_url}/auth/v1/.well-known/jwks.json").get_signing_key_from_jwt(token).key
        payload = jwt.decode(
            token,
            signing_key,
            algorithms=["ES256", "RS256"],
            audience=ApplicationConfig.SUPABASE_JWT_AUDIENCE,
            issuer=issuer,
            options={"require": ["exp", "sub"]},
        )
    except jwt.PyJWTError as e:
        raise _unauthenticated(f"Invalid bearer token: {e}")
    return dict(payload)


def _bearer_token(request: Request) -> Optional[str]:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def get_current_user_id(request: Request) -> str:
    """
    Resolve the calling user

    With AUTH_DISABLED (local development and tests) the X-User-Id header is
    trusted as is.
    """
    if ApplicationConfig.AUTH_DISABLED:
        user_id = (request.headers.get("X-User-Id") or "").strip()
        if not user_id:
            raise _unauthenticated("X-User-Id header missing")
        return user_id

    token = _bearer_token(request)
    if not token:
        raise _unauthenticated("Bearer token missing")

    user_id = str(decode_supabase_jwt(token).get("sub") or "").strip()
    if not user_id:
        raise _unauthenticated("Token has no subject")
    return user_id


def require_admin(x_admin_token: Optional[str] = Header(default=None)) -> None:
    expected = ApplicationConfig.ADMIN_API_TOKEN
    if not expected or x_admin_token != expected:
        raise ClientError(
            Error(code="FORBIDDEN", message="Admin token required"),
            status_code=status.HTTP_403_FORBIDDEN,
        )
