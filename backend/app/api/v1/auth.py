# app/api/v1/auth.py
"""
Auth endpoints for QuizArena:
- register, login, logout, me
- forgot-password / reset-password (emailed OTP, throttled per hour)
- create_access_token and the get_current_user dependency
"""

from typing import Optional
from datetime import timedelta
import logging

from fastapi import APIRouter, Depends, BackgroundTasks, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

import jwt  # PyJWT

from app import crud
from app.core.config import settings
from app.core.security import password_problems, verify_password
from app.db.session import get_db
from app.models import User, utcnow
from app.schemas import ForgotPasswordRequest, LoginRequest, RegisterRequest, ResetPasswordRequest, UserOut
from app.utils.email_sender import send_password_reset_otp

logger = logging.getLogger("quizarena.auth")

router = APIRouter(prefix="/auth", tags=["auth"])

# Security scheme for extraction
bearer_scheme = HTTPBearer(auto_error=False)


# --- Helpers ---
def create_access_token(subject, expires_minutes: Optional[int] = None) -> str:
    """Signed HS256 token whose ``sub`` is the user id."""
    expires_minutes = expires_minutes or settings.ACCESS_TOKEN_EXPIRE_MINUTES
    payload = {"sub": str(subject), "exp": utcnow() + timedelta(minutes=expires_minutes)}
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def token_response(user: User) -> dict:
    return {
        "success": True,
        "token": create_access_token(user.id),
        "data": {"id": user.id, "name": user.name, "email": user.email, "role": user.role},
    }


def check_password_strength(password: str) -> None:
    problems = password_problems(password)
    if problems:
        raise HTTPException(status_code=400, detail=", ".join(problems))


# --- JWT dependency / user loader ---
def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> User:
    """
    Resolve the user from ``Authorization: Bearer <token>``.
    Raises 401 on a missing/invalid/expired token or an unknown user.
    """
    if credentials is None or not credentials.credentials:
        raise HTTPException(status_code=401, detail="Not authorized to access this route")

    try:
        payload = jwt.decode(credentials.credentials, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid token")

    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid token payload")

    user = crud.get_user(db, user_id)
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    return user


# --- Endpoints ---
@router.post("/register", status_code=status.HTTP_201_CREATED)
def register_user(req: RegisterRequest, db: Session = Depends(get_db)):
    check_password_strength(req.password)

    if crud.get_user_by_email(db, req.email):
        raise HTTPException(status_code=400, detail=crud.DUPLICATE_EMAIL)

    user = crud.create_user(db, req)
    logger.info("registered user %s", user.id)
    return token_response(user)


@router.post("/login", status_code=status.HTTP_200_OK)
def login(req: LoginRequest, db: Session = Depends(get_db)):
    user = crud.get_user_by_email(db, req.email)
    if not user or not verify_password(req.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid email or password")
    return token_response(user)


@router.post("/logout", status_code=status.HTTP_200_OK)
def logout():
    # Tokens are not revoked server side; the client drops its copy.
    return {"success": True, "message": "Logged out"}


@router.get("/me", status_code=status.HTTP_200_OK)
def me_endpoint(current_user: User = Depends(get_current_user)):
    return {"success": True, "data": UserOut.model_validate(current_user).model_dump()}


@router.post("/forgot-password", status_code=status.HTTP_200_OK)
def forgot_password(req: ForgotPasswordRequest, background_tasks: BackgroundTasks, db: Session = Depends(get_db)):
    if crud.otp_throttle_exceeded(db, req.email):
        raise HTTPException(status_code=429, detail="Too many OTP requests. Try again later.")

    message = "If that email is registered, a reset code has been sent"
    user = crud.get_user_by_email(db, req.email)
    if not user:
        return {"success": True, "message": message}

    _, otp_plain = crud.create_reset_otp(db, req.email, user_id=user.id)
    background_tasks.add_task(send_password_reset_otp, req.email, otp_plain)

    if settings.DEV_SHOW_OTP:
        logger.info("[DEV] password reset OTP for %s = %s", req.email, otp_plain)
        return {"success": True, "message": message, "otp": otp_plain}
    return {"success": True, "message": message}


@router.post("/reset-password", status_code=status.HTTP_200_OK)
def reset_password(req: ResetPasswordRequest, db: Session = Depends(get_db)):
    otp = crud.get_valid_otp(db, req.email, req.otp)
    if not otp:
        raise HTTPException(status_code=400, detail="Invalid or expired OTP")

    check_password_strength(req.password)

    user = crud.get_user_by_email(db, req.email)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    crud.mark_otp_used(db, otp)
    crud.set_password(db, user, req.password)
    return token_response(user)
