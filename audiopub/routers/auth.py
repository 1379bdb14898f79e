"""
Authentication Router for Audiopub.

Endpoints:
- POST /users - Register new user
- POST /token - Login and get JWT token
- GET /me - Current account
- PATCH /me - Update email, display name, password or bio
- POST /verify - Verify email address with the mailed token
- POST /verify/resend - Issue the verification token again
- POST /forgot_password - Start a password reset
- POST /reset_password/{token} - Finish a password reset
"""

import os
import logging
import uuid
from fastapi import APIRouter, Depends, HTTPException, Request, status
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy.orm import Session

from ..auth import hash_password, verify_password, create_user_token
from ..constants import MAX_BIO_LENGTH, MAX_VERIFICATION_ATTEMPTS
from ..database import get_db
from ..db_models import DBUser
from ..dependencies import get_current_user
from ..exceptions import InvalidCredentialsError, InvalidTokenError
from ..models import (
    ForgotPasswordRequest,
    ProfileUpdate,
    ProfileUpdateResponse,
    ResetPasswordRequest,
    Token,
    UserCreate,
    UserLogin,
    UserPrivate,
    VerifyRequest,
)
from ..sanitization import sanitize_optional_text, sanitize_username

logger = logging.getLogger(__name__)

limiter = Limiter(key_func=get_remote_address)

TESTING = os.environ.get('TESTING') == 'true'
REGISTER_RATE_LIMIT = "1000/minute" if TESTING else "3/minute"
LOGIN_RATE_LIMIT = "1000/minute" if TESTING else "5/minute"
RESET_RATE_LIMIT = "1000/minute" if TESTING else "3/minute"

router = APIRouter(
    prefix="",
    tags=["authentication"],
    responses={401: {"description": "Unauthorized"}},
)

# =============================================================================
# Account Mail
# =============================================================================

def deliver_account_mail(user: DBUser, subject: str, body: str) -> None:
    """Mail is not sent from this service; the message is logged for the operator."""
    logger.info(f"Account mail for {user.email} ({user.id}): {subject} | {body}")


def send_verification(user: DBUser, db: Session) -> bool:
    """
    Deliver the verification token if the account is unverified.

    Returns:
        False when the account is verified or has used up its attempts
    """
    if user.is_verified:
        return False
    if user.verification_attempts >= MAX_VERIFICATION_ATTEMPTS:
        logger.warning(f"User {user.id} exceeded verification attempts")
        return False
    deliver_account_mail(
        user,
        "Verify your email",
        f"Your verification token is: {user.verification_token}",
    )
    user.verification_attempts += 1
    db.commit()
    return True

# =============================================================================
# Registration Endpoint
# =============================================================================

@router.post("/users", response_model=Token, status_code=status.HTTP_201_CREATED)
@limiter.limit(REGISTER_RATE_LIMIT)
async def create_user(
    request: Request,
    user_create: UserCreate,
    db: Session = Depends(get_db),
) -> Token:
    """
    Register new user and log them in.

    New accounts are untrusted and unverified.

    Raises:
        HTTPException 400: If the email or username is taken or invalid
    """
    name = sanitize_username(user_create.username)

    if db.query(DBUser).filter(DBUser.email == user_create.email).first():
        raise HTTPException(status_code=400, detail="Email address is already in use.")
    if db.query(DBUser).filter(DBUser.name == name).first():
        raise HTTPException(status_code=400, detail="Username is already in use.")

    user = DBUser(
        name=name,
        display_name=user_create.username,
        email=user_create.email,
        hashed_password=hash_password(user_create.password),
        is_trusted=False,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info(f"Created user: {user.name} ({user.id})")

    send_verification(user, db)
    return Token(access_token=create_user_token(user))

# =============================================================================
# Login Endpoint
# =============================================================================

@router.post("/token", response_model=Token)
@limiter.limit(LOGIN_RATE_LIMIT)
async def login(
    request: Request,
    user_login: UserLogin,
    db: Session = Depends(get_db),
) -> Token:
    """
    Login with email and password.

    Raises:
        InvalidCredentialsError: If credentials are invalid
    """
    user = db.query(DBUser).filter(DBUser.email == user_login.email).first()
    if not user or not verify_password(user_login.password, user.hashed_password):
        logger.warning(f"Failed login for {user_login.email}")
        raise InvalidCredentialsError()

    send_verification(user, db)
    return Token(access_token=create_user_token(user))

# =============================================================================
# Account Endpoints
# =============================================================================

@router.get("/me", response_model=UserPrivate)
async def read_me(current_user: DBUser = Depends(get_current_user)):
    return UserPrivate.model_validate(current_user)


@router.patch("/me", response_model=ProfileUpdateResponse)
async def update_me(
    update: ProfileUpdate,
    current_user: DBUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Update the current account.

    A new email must be verified again. Changing email or password
    invalidates existing tokens, so a fresh token is returned.
    """
    credentials_changed = False

    if update.email is not None and update.email != current_user.email:
        taken = db.query(DBUser).filter(DBUser.email == update.email, DBUser.id != current_user.id).first()
        if taken:
            raise HTTPException(status_code=400, detail="Email already in use")
        current_user.email = update.email
        current_user.verification_token = str(uuid.uuid4())
        current_user.verification_attempts = 0
        credentials_changed = True

    if update.display_name is not None:
        current_user.display_name = update.display_name

    if update.password is not None:
        current_user.hashed_password = hash_password(update.password)
        credentials_changed = True

    if update.bio is not None:
        current_user.bio = sanitize_optional_text(update.bio, MAX_BIO_LENGTH)

    if credentials_changed:
        current_user.version += 1
    db.commit()
    db.refresh(current_user)

    if update.email is not None:
        send_verification(current_user, db)

    logger.info(f"User {current_user.id} updated profile (credentials_changed={credentials_changed})")
    return ProfileUpdateResponse(
        user=UserPrivate.model_validate(current_user),
        access_token=create_user_token(current_user),
    )

# =============================================================================
# Verification Endpoints
# =============================================================================

@router.post("/verify", response_model=UserPrivate)
async def verify_email(
    body: VerifyRequest,
    current_user: DBUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Mark the current account verified when the token matches."""
    if not body.token:
        raise HTTPException(status_code=400, detail="Token is required")
    if current_user.is_verified:
        return UserPrivate.model_validate(current_user)
    if body.token != current_user.verification_token:
        raise InvalidTokenError("verification token")

    current_user.verification_token = None
    current_user.verification_attempts = 0
    db.commit()
    db.refresh(current_user)
    logger.info(f"User {current_user.id} verified their email")
    return UserPrivate.model_validate(current_user)


@router.post("/verify/resend")
async def resend_verification(
    current_user: DBUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if current_user.is_verified:
        raise HTTPException(status_code=400, detail="Email already verified")
    if not send_verification(current_user, db):
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many verification attempts",
        )
    return {"message": "Verification email sent"}

# =============================================================================
# Password Reset Endpoints
# =============================================================================

@router.post("/forgot_password")
@limiter.limit(RESET_RATE_LIMIT)
async def forgot_password(
    request: Request,
    body: ForgotPasswordRequest,
    db: Session = Depends(get_db),
):
    """Issue a reset token. The response is the same whether or not the email exists."""
    user = db.query(DBUser).filter(DBUser.email == body.email).first()
    if user is not None:
        user.reset_password_token = str(uuid.uuid4())
        db.commit()
        deliver_account_mail(
            user,
            "Reset your password",
            f"Reset path: /reset_password/{user.reset_password_token}",
        )
    else:
        logger.info(f"Password reset requested for unknown email {body.email}")
    return {"message": "Reset password email sent"}


@router.post("/reset_password/{token}", response_model=Token)
@limiter.limit(RESET_RATE_LIMIT)
async def reset_password(
    request: Request,
    token: str,
    body: ResetPasswordRequest,
    db: Session = Depends(get_db),
) -> Token:
    """Set a new password using a reset token. Older login tokens stop working."""
    user = db.query(DBUser).filter(DBUser.reset_password_token == token).first()
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invalid token")

    user.hashed_password = hash_password(body.password)
    user.reset_password_token = None
    user.version += 1
    db.commit()
    db.refresh(user)
    logger.info(f"User {user.id} reset their password")
    return Token(access_token=create_user_token(user))
