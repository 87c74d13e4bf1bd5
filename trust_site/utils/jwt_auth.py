"""
Admin session tokens and the dependency guarding every mutating route.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional
from jose import JWTError, jwt
from fastapi import HTTPException, status, Header, Request
from trust_site.config import settings
from trust_site.utils.auth import verify_admin_password

ALGORITHM = "HS256"
COOKIE_NAME = "cms_token"


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a signed access token.

    Args:
        data: Claims to include in the token
        expires_delta: Optional custom lifetime (defaults to JWT_EXPIRE_MINUTES)
    """
    now = datetime.now(timezone.utc)
    to_encode = data.copy()
    to_encode.update({
        "exp": now + (expires_delta or timedelta(minutes=settings.JWT_EXPIRE_MINUTES)),
        "iat": now,
        "type": "access"
    })
    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=ALGORITHM)


def verify_token(token: str) -> dict:
    """
    Decode a token, rejecting expired, tampered or non-access tokens.

    Raises:
        HTTPException: 401 if the token is not valid
    """
    try:
        payload = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"error": "Invalid token", "message": "Authentication token is invalid or expired"}
        )

    if payload.get("type") != "access":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"error": "Invalid token type", "message": "Token is not an access token"}
        )
    return payload


def authenticate_admin(password: str) -> dict:
    """
    Check the admin password and return the claims for a new token.

    Raises:
        HTTPException: 401 if the password is wrong, 500 if no hash is configured
    """
    try:
        valid = verify_admin_password(password)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "Authentication not configured", "message": str(e)}
        )

    if not valid:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"error": "Invalid credentials", "message": "Incorrect password"}
        )
    return {"role": "admin", "sub": "cms_admin"}


def require_cms_auth(
    request: Request,
    authorization: Optional[str] = Header(None, description="Bearer token (fallback to cookie)"),
    x_cms_password: Optional[str] = Header(None, alias="X-CMS-Password", description="CMS admin password"),
) -> dict:
    """
    FastAPI dependency for admin-only routes.

    Accepts, in order: the httpOnly ``cms_token`` cookie, an
    ``Authorization: Bearer`` header, or the password itself in
    ``X-CMS-Password``.

    Raises:
        HTTPException: 401 if no valid credential is present
    """
    token = request.cookies.get(COOKIE_NAME)

    if not token and authorization:
        parts = authorization.split()
        if len(parts) == 2 and parts[0].lower() == "bearer":
            token = parts[1]

    if token:
        return verify_token(token)

    if x_cms_password:
        return authenticate_admin(x_cms_password)

    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"error": "Missing token", "message": "Authentication required"},
        headers={"WWW-Authenticate": "Bearer"}
    )
