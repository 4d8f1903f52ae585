# app/api/v1/questions.py
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.services import question_bank

router = APIRouter(prefix="/questions", tags=["questions"])


@router.get("/types")
def get_types(db: Session = Depends(get_db)):
    data = question_bank.list_types(db)
    return {"success": True, "count": len(data), "data": data}


@router.get("/categories")
def get_categories(
    type_id: Optional[int] = Query(None, alias="typeId"),
    type_name: Optional[str] = Query(None, alias="type"),
    db: Session = Depends(get_db),
):
    data = question_bank.list_categories(db, type_id=type_id, type_name=type_name)
    return {"success": True, "count": len(data), "data": data}


@router.get("/count/{category_id}")
def get_question_count(category_id: int, db: Session = Depends(get_db)):
    question_bank.get_category(db, category_id)
    return {"success": True, "data": question_bank.count_by_difficulty(db, category_id)}


@router.get("")
def get_questions(
    category_id: Optional[int] = Query(None, alias="categoryId"),
    difficulty: Optional[str] = Query(None),
    quiz_type: Optional[str] = Query(None, alias="quizType"),
    amount: int = Query(10),
    db: Session = Depends(get_db),
):
    """Random practice questions, answers included."""
    questions = question_bank.sample_questions(
        db, amount, category_id=category_id, difficulty=difficulty, quiz_type=quiz_type
    )
    data = [question_bank.question_to_dict(q) for q in questions]
    return {"success": True, "count": len(data), "data": data}
