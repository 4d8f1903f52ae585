# app/api/v1/quizzes.py
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.api.v1.auth import get_current_user
from app.db.session import get_db
from app.models import User
from app.schemas import StartQuizRequest, SubmitAnswers
from app.services import quiz_session

router = APIRouter(prefix="/quizzes", tags=["quizzes"])


@router.post("/start", status_code=status.HTTP_201_CREATED)
def start_quiz(req: StartQuizRequest, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """
    Start a timed session: samples questions, stores the snapshot and returns
    the questions with shuffled options and no answer key.
    Endpoint: POST /api/v1/quizzes/start
    """
    data = quiz_session.start_quiz(
        db,
        current_user,
        category_id=req.category_id,
        type_id=req.type_id,
        quiz_type=req.quiz_type,
        difficulty=req.difficulty,
        amount=req.amount,
    )
    return {"success": True, "data": data}


@router.post("/{quiz_id}/submit")
def submit_quiz(quiz_id: int, req: SubmitAnswers, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    data = quiz_session.submit_quiz(db, quiz_id, current_user, req.answers)
    return {"success": True, "data": data}


@router.get("/history")
def get_history(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    data = quiz_session.list_history(db, current_user)
    return {"success": True, "count": len(data), "data": data}


@router.get("/result/{quiz_id}")
def get_result(quiz_id: int, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return {"success": True, "data": quiz_session.get_quiz(db, quiz_id, current_user)}
