"""
Admin dashboard session routes and direct-upload credentials.
"""
from fastapi import APIRouter, Depends, Request, Response
import logging

from trust_site.config import settings
from trust_site.exceptions import UpstreamUnavailable
from trust_site.schemas import LoginRequest, TokenResponse, UploadSignatureResponse
from trust_site.services.cloudinary_service import generate_upload_signature
from trust_site.utils.jwt_auth import COOKIE_NAME, authenticate_admin, create_access_token, require_cms_auth
from trust_site.utils.rate_limit import limiter, RATE_LIMITS

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/cms/login", response_model=TokenResponse)
@limiter.limit(RATE_LIMITS["login"])
async def login(request: Request, response: Response, body: LoginRequest):
    """
    Exchange the admin password for a session token.

    The token is returned in the body and set as an httpOnly cookie.

    Raises:
        HTTPException: 401 if the password is wrong
    """
    claims = authenticate_admin(body.password)
    token = create_access_token(claims)
    max_age = settings.JWT_EXPIRE_MINUTES * 60

    response.set_cookie(
        COOKIE_NAME,
        token,
        max_age=max_age,
        httponly=True,
        secure=request.url.scheme == "https",
        samesite="lax",
    )
    logger.info("Admin logged in")
    return TokenResponse(access_token=token, expires_in=max_age)


@router.post("/cms/logout")
async def logout(response: Response):
    """Clear the session cookie."""
    response.delete_cookie(COOKIE_NAME)
    return {"ok": True}


@router.get("/cms/session")
async def session(admin: dict = Depends(require_cms_auth)):
    """Report whether the caller holds a valid admin session."""
    return {"authenticated": True, "role": admin.get("role", "admin")}


@router.get("/upload-signature", response_model=UploadSignatureResponse)
async def upload_signature(folder: str = "", admin: dict = Depends(require_cms_auth)):
    """
    Sign a direct browser upload to the given Cloudinary folder.
    Requires admin authentication.

    Raises:
        UpstreamUnavailable: 502 if Cloudinary is not configured
    """
    try:
        return UploadSignatureResponse(**generate_upload_signature(folder))
    except ValueError as e:
        logger.error(f"Cannot sign upload for folder '{folder}': {str(e)}")
        raise UpstreamUnavailable(str(e))
