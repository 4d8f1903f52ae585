# app/api/v1/users.py
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app import crud
from app.api.v1.auth import check_password_strength, get_current_user, token_response
from app.core.security import verify_password
from app.db.session import get_db
from app.models import User
from app.schemas import UpdatePasswordRequest, UpdateProfileRequest, UserOut
from app.services.leaderboard import build_leaderboard

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me")
def get_profile(current_user: User = Depends(get_current_user)):
    return {"success": True, "data": UserOut.model_validate(current_user).model_dump()}


@router.put("/me")
def update_profile(req: UpdateProfileRequest, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    if req.email and req.email.lower() != current_user.email:
        existing = crud.get_user_by_email(db, req.email)
        if existing and existing.id != current_user.id:
            raise HTTPException(status_code=400, detail=crud.DUPLICATE_EMAIL)
        current_user.email = req.email.lower()
    if req.name:
        current_user.name = req.name

    db.add(current_user)
    crud.commit_unique_email(db)
    db.refresh(current_user)
    return {"success": True, "data": UserOut.model_validate(current_user).model_dump()}


@router.put("/update-password")
def update_password(req: UpdatePasswordRequest, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    if not verify_password(req.current_password, current_user.password_hash):
        raise HTTPException(status_code=401, detail="Password is incorrect")
    check_password_strength(req.new_password)

    user = crud.set_password(db, current_user, req.new_password)
    return token_response(user)


@router.get("/leaderboard")
def get_leaderboard(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return {"success": True, "data": build_leaderboard(db, current_user.id)}
