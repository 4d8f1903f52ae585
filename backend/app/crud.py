# backend/app/crud.py
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from app import models, schemas
from app.core import security
from app.core.config import settings
from app.core.errors import ApiError
from datetime import timedelta
import hashlib
import secrets
from typing import Optional, Tuple


DUPLICATE_EMAIL = "User already exists with this email"


# --- Users ---
def get_user(db: Session, user_id: int) -> Optional[models.User]:
    return db.get(models.User, user_id)


def get_user_by_email(db: Session, email: str) -> Optional[models.User]:
    return db.query(models.User).filter(models.User.email == email.lower()).first()


def create_user(db: Session, user: schemas.RegisterRequest, role: str = models.RoleEnum.user.value) -> models.User:
    db_user = models.User(
        name=user.name,
        email=user.email.lower(),
        password_hash=security.hash_password(user.password),
        role=role,
        points=0,
    )
    db.add(db_user)
    commit_unique_email(db)
    db.refresh(db_user)
    return db_user


def commit_unique_email(db: Session) -> None:
    """Commit, turning a lost race on the unique email index into the duplicate-email 400."""
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ApiError(DUPLICATE_EMAIL)


def set_password(db: Session, user: models.User, new_password: str) -> models.User:
    user.password_hash = security.hash_password(new_password)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def add_points(db: Session, user_id: int, amount: int) -> None:
    """Queue an atomic ``points = points + amount`` update; the caller commits."""
    db.execute(
        update(models.User)
        .where(models.User.id == user_id)
        .values(points=models.User.points + amount)
        .execution_options(synchronize_session=False)
    )


# --- Password reset OTP helpers ---
def _hash_with_salt(code: str, salt: str) -> str:
    h = hashlib.sha256()
    h.update(f"{code}{salt}{settings.OTP_HASH_SECRET}".encode("utf-8"))
    return h.hexdigest()


def generate_otp(length: Optional[int] = None) -> str:
    length = length or settings.OTP_LENGTH
    return f"{secrets.randbelow(10 ** length):0{length}d}"


def otp_throttle_exceeded(db: Session, email: str) -> bool:
    hour_ago = models.utcnow() - timedelta(hours=1)
    recent = db.query(models.PasswordResetOTP).filter(
        models.PasswordResetOTP.email == email,
        models.PasswordResetOTP.created_at >= hour_ago,
    ).count()
    return recent >= settings.OTP_MAX_SENDS_PER_HOUR


def create_reset_otp(db: Session, email: str, user_id: Optional[int] = None) -> Tuple[models.PasswordResetOTP, str]:
    """Store a salted hash of a fresh OTP; returns the row and the plain code."""
    code = generate_otp()
    salt = secrets.token_hex(8)
    otp = models.PasswordResetOTP(
        user_id=user_id,
        email=email,
        code=f"{_hash_with_salt(code, salt)}|{salt}",
        expires_at=models.utcnow() + timedelta(seconds=settings.OTP_TTL_SECONDS),
        used=False,
        attempts=0,
    )
    db.add(otp)
    db.commit()
    db.refresh(otp)
    return otp, code


def get_valid_otp(db: Session, email: str, code: str) -> Optional[models.PasswordResetOTP]:
    now = models.utcnow()
    otp = (
        db.query(models.PasswordResetOTP)
        .filter(
            models.PasswordResetOTP.email == email,
            models.PasswordResetOTP.used == False,  # noqa: E712
            models.PasswordResetOTP.expires_at >= now,
        )
        .order_by(models.PasswordResetOTP.created_at.desc(), models.PasswordResetOTP.id.desc())
        .first()
    )
    if not otp or "|" not in (otp.code or ""):
        return None
    stored_hash, salt = otp.code.split("|", 1)
    if not secrets.compare_digest(_hash_with_salt(code, salt), stored_hash):
        _record_failed_attempt(db, otp)
        return None
    return otp


def _record_failed_attempt(db: Session, otp: models.PasswordResetOTP) -> None:
    # burn the code once too many wrong guesses were made against it
    otp.attempts = (otp.attempts or 0) + 1
    if otp.attempts >= settings.OTP_MAX_ATTEMPTS:
        otp.used = True
    db.add(otp)
    db.commit()


def mark_otp_used(db: Session, otp: models.PasswordResetOTP) -> models.PasswordResetOTP:
    otp.used = True
    db.add(otp)
    db.commit()
    db.refresh(otp)
    return otp
