import logging
from datetime import datetime, timedelta

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from portal.auth import jwt_handler
from portal.auth.dependencies import get_current_user
from portal.auth.passwords import generate_otp, hash_password, verify_password
from portal.core import config
from portal.database import database_unavailable, get_db
from portal.mailer import Mailer, get_mailer, otp_email
from portal.models.user import Role, User
from portal.rate_limit import limiter
from portal.schemas import (
    ForgotPasswordRequest,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    ProfileUpdateRequest,
    ResetPasswordRequest,
    UserResponse,
    VerifyOtpRequest,
)

router = APIRouter(tags=['auth'])

logger = logging.getLogger(__name__)

DASHBOARDS = {
    Role.STUDENT.value: '/student/dashboard',
    Role.PROFESSOR.value: '/professor/dashboard',
    # No HOD screens exist yet; the profile endpoint is their landing page.
    Role.HOD.value: '/auth/me',
    Role.ADMIN.value: '/admin/dashboard',
}

INVALID_CREDENTIALS = 'Invalid email or password'
INVALID_OTP = 'Invalid or expired OTP. Please request a new one.'


def redirect_for_role(role: str | None) -> str:
    return DASHBOARDS.get((role or '').strip().lower(), '/')


def find_user_by_email(db: Session, email: str) -> User | None:
    return db.query(User).filter(User.email == email.strip().lower()).first()


def check_otp(user: User | None, otp: str, now: datetime | None = None) -> bool:
    if user is None or not user.reset_otp_hash or user.reset_otp_expires_at is None:
        return False
    if (now or datetime.utcnow()) > user.reset_otp_expires_at:
        return False
    return verify_password(otp.strip(), user.reset_otp_hash)


@router.post('/login', response_model=LoginResponse)
@limiter.limit(config.LOGIN_RATE_LIMIT)
def login(request: Request, data: LoginRequest, db: Session = Depends(get_db)):
    try:
        user = find_user_by_email(db, data.email)
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc

    if user is None or not verify_password(data.password, user.hashed_password):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=INVALID_CREDENTIALS)

    token = jwt_handler.create_access_token(subject=str(user.id), role=user.role)
    body = LoginResponse(access_token=token, role=user.role, redirect=redirect_for_role(user.role))
    response = JSONResponse(content=body.model_dump())
    response.set_cookie(
        key=config.SESSION_COOKIE_NAME,
        value=token,
        httponly=True,
        secure=config.SESSION_COOKIE_SECURE,
        samesite='lax',
        max_age=config.JWT_EXPIRES_MINUTES * 60,
    )
    logger.info('User %s logged in', user.id)
    return response


@router.post('/logout', response_model=MessageResponse)
def logout():
    response = JSONResponse(content={'message': 'Logged out'})
    response.delete_cookie(config.SESSION_COOKIE_NAME)
    return response


@router.get('/me', response_model=UserResponse)
def me(current_user: User = Depends(get_current_user)):
    return UserResponse.from_user(current_user)


@router.post('/profile', response_model=UserResponse)
def update_profile(
    data: ProfileUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        if data.phone is not None:
            current_user.phone = data.phone.strip() or None
        if data.new_password and data.new_password.strip():
            current_user.hashed_password = hash_password(data.new_password)
        db.commit()
        db.refresh(current_user)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc

    return UserResponse.from_user(current_user)


@router.post('/forgot-password', response_model=MessageResponse)
@limiter.limit(config.PASSWORD_RESET_RATE_LIMIT)
def forgot_password(
    request: Request,
    data: ForgotPasswordRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    try:
        user = find_user_by_email(db, data.email)
        if user is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail='No account found with this email.',
            )

        otp = generate_otp()
        user.reset_otp_hash = hash_password(otp)
        user.reset_otp_expires_at = datetime.utcnow() + timedelta(seconds=config.OTP_EXPIRES_SECONDS)
        user.reset_otp_attempts = 0
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc

    subject, html = otp_email(otp, config.OTP_EXPIRES_SECONDS)
    background_tasks.add_task(mailer.send, user.email, subject, html)
    return MessageResponse(message='An OTP has been sent to your email.')


def clear_otp(user: User) -> None:
    user.reset_otp_hash = None
    user.reset_otp_expires_at = None
    user.reset_otp_attempts = 0


def reject_otp(db: Session, user: User | None) -> HTTPException:
    """Count a failed check; the code is burned after OTP_MAX_ATTEMPTS failures."""
    if user is not None and user.reset_otp_hash:
        user.reset_otp_attempts = (user.reset_otp_attempts or 0) + 1
        if user.reset_otp_attempts >= config.OTP_MAX_ATTEMPTS:
            clear_otp(user)
            logger.warning('Reset OTP for user %s discarded after repeated failures', user.id)
        db.commit()
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=INVALID_OTP)


@router.post('/verify-otp', response_model=MessageResponse)
@limiter.limit(config.PASSWORD_RESET_RATE_LIMIT)
def verify_otp(request: Request, data: VerifyOtpRequest, db: Session = Depends(get_db)):
    try:
        user = find_user_by_email(db, data.email)
        if not check_otp(user, data.otp):
            raise reject_otp(db, user)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc

    return MessageResponse(message='OTP verified. You can now reset your password.')


@router.post('/reset-password', response_model=MessageResponse)
@limiter.limit(config.PASSWORD_RESET_RATE_LIMIT)
def reset_password(request: Request, data: ResetPasswordRequest, db: Session = Depends(get_db)):
    try:
        user = find_user_by_email(db, data.email)
        if not check_otp(user, data.otp):
            raise reject_otp(db, user)

        user.hashed_password = hash_password(data.password)
        clear_otp(user)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc

    logger.info('Password reset for user %s', user.id)
    return MessageResponse(message='Your password has been changed successfully.')
