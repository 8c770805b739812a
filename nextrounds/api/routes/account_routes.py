"""
Account Routes

POST /check-user-exists - Is an email (or a variant of it) already registered?
POST /auth/password-reset - Set a new password from a recovery token
"""

from fastapi import APIRouter, Depends, HTTPException
from supabase import Client

from nextrounds.core.logging_config import get_logger
from nextrounds.db.supabase import create_recovery_client, get_supabase_admin
from nextrounds.schemas.schemas import (
    CheckUserExistsRequest, CheckUserExistsResponse, PasswordResetRequest, MessageResponse
)
from nextrounds.utils.email_validation import normalize_email

logger = get_logger(__name__)

router = APIRouter(tags=["Account"])

USERS_PAGE_SIZE = 1000
MIN_PASSWORD_LENGTH = 6


def iter_auth_users(admin: Client):
    """All Supabase auth users, page by page."""
    page = 1
    while True:
        users = admin.auth.admin.list_users(page=page, per_page=USERS_PAGE_SIZE)
        yield from users
        if len(users) < USERS_PAGE_SIZE:
            return
        page += 1


@router.post("/check-user-exists", response_model=CheckUserExistsResponse)
def check_user_exists(
    data: CheckUserExistsRequest,
    admin: Client = Depends(get_supabase_admin)
):
    """
    Match against both the normalised and the raw address so
    `j.doe+x@gmail.com` finds an account registered as `jdoe@gmail.com`.
    """
    candidates = {data.email.strip().lower(), normalize_email(data.email)}
    if data.original_email:
        candidates.add(data.original_email.strip().lower())

    try:
        for auth_user in iter_auth_users(admin):
            if not auth_user.email:
                continue
            if normalize_email(auth_user.email) in candidates or auth_user.email.lower() in candidates:
                return {"exists": True}
    except Exception as e:
        logger.error(f"Error listing users: {e}")
        raise HTTPException(status_code=500, detail="Unable to check user existence")

    return {"exists": False}


@router.post("/auth/password-reset", response_model=MessageResponse)
def password_reset(
    data: PasswordResetRequest,
    admin: Client = Depends(get_supabase_admin),
    recovery: Client = Depends(create_recovery_client)
):
    """
    Verify the recovery token hash from the reset email, then set the password.

    The token is verified on a throwaway client; the shared admin client
    only makes admin calls.
    """
    if len(data.password) < MIN_PASSWORD_LENGTH:
        raise HTTPException(
            status_code=400,
            detail=f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
        )

    try:
        verified = recovery.auth.verify_otp({"token_hash": data.token, "type": "recovery"})
    except Exception as e:
        logger.info(f"Recovery token rejected: {e}")
        raise HTTPException(status_code=400, detail="Invalid or expired reset token")

    auth_user = getattr(verified, "user", None)
    if auth_user is None:
        raise HTTPException(status_code=400, detail="Invalid or expired reset token")

    try:
        admin.auth.admin.update_user_by_id(auth_user.id, {"password": data.password})
    except Exception as e:
        logger.error(f"Password update failed for {auth_user.id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to update password")

    logger.info(f"Password reset for {auth_user.id}")
    return {"success": True, "message": "Password updated successfully"}
