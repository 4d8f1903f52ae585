# app/services/question_bank.py
"""
Read side of the question bank: listings, per-difficulty counts and random sampling.
"""
import random
from typing import Dict, List, Optional, Sequence

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.errors import ApiError, NotFoundError
from app.models import Category, DifficultyEnum, Question, QuestionType

DIFFICULTIES = tuple(d.value for d in DifficultyEnum)
ANY = "any"
MAX_SAMPLE_SIZE = 50


def normalize_difficulty(difficulty: Optional[str]) -> Optional[str]:
    """Return a concrete difficulty, or None for "no filter" (None, "" or "any")."""
    if difficulty is None or difficulty == "" or difficulty == ANY:
        return None
    if difficulty not in DIFFICULTIES:
        raise ApiError(f"Invalid difficulty '{difficulty}'. Use one of: easy, medium, hard, any")
    return difficulty


def _random_order(db: Session):
    if db.get_bind().dialect.name in ("mysql", "mariadb"):
        return func.rand()
    return func.random()


def _question_filters(category_id: Optional[int], difficulty: Optional[str], quiz_type: Optional[str]) -> list:
    filters = []
    if category_id is not None:
        filters.append(Question.category_id == category_id)
    if difficulty:
        filters.append(Question.difficulty == difficulty)
    if quiz_type and quiz_type != ANY:
        filters.append(Question.quiz_type == quiz_type)
    return filters


def list_types(db: Session) -> List[Dict]:
    counts = dict(db.query(Question.type_id, func.count(Question.id)).group_by(Question.type_id).all())
    types = db.query(QuestionType).order_by(QuestionType.name.asc()).all()
    return [{"id": t.id, "name": t.name, "question_count": counts.get(t.id, 0)} for t in types]


def list_categories(db: Session, type_id: Optional[int] = None, type_name: Optional[str] = None) -> List[Dict]:
    counts = dict(db.query(Question.category_id, func.count(Question.id)).group_by(Question.category_id).all())
    query = db.query(Category)
    if type_id is not None:
        query = query.filter(Category.type_id == type_id)
    if type_name:
        query = query.filter(Category.type == type_name)
    categories = query.order_by(Category.name.asc(), Category.id.asc()).all()
    return [
        {
            "id": c.id,
            "name": c.name,
            "type": c.type,
            "typeId": c.type_id,
            "question_count": counts.get(c.id, 0),
        }
        for c in categories
    ]


def get_category(db: Session, category_id: int) -> Category:
    category = db.get(Category, category_id)
    if not category:
        raise NotFoundError("Category not found")
    return category


def count_by_difficulty(db: Session, category_id: int) -> Dict[str, int]:
    rows = (
        db.query(Question.difficulty, func.count(Question.id))
        .filter(Question.category_id == category_id)
        .group_by(Question.difficulty)
        .all()
    )
    by_level = dict(rows)
    easy = by_level.get("easy", 0)
    medium = by_level.get("medium", 0)
    hard = by_level.get("hard", 0)
    return {
        "total_question_count": easy + medium + hard,
        "total_easy_question_count": easy,
        "total_medium_question_count": medium,
        "total_hard_question_count": hard,
    }


def sample_questions(
    db: Session,
    amount: int,
    category_id: Optional[int] = None,
    difficulty: Optional[str] = None,
    quiz_type: Optional[str] = None,
) -> List[Question]:
    """Return ``amount`` distinct random questions matching the filter.

    Raises NotFoundError when fewer than ``amount`` questions qualify; a short
    sample is never returned.
    """
    if amount < 1 or amount > MAX_SAMPLE_SIZE:
        raise ApiError(f"Amount must be between 1 and {MAX_SAMPLE_SIZE}")

    filters = _question_filters(category_id, normalize_difficulty(difficulty), quiz_type)
    available = db.query(func.count(Question.id)).filter(*filters).scalar() or 0
    if available < amount:
        raise NotFoundError("No questions found for the specified criteria")

    return db.query(Question).filter(*filters).order_by(_random_order(db)).limit(amount).all()


def shuffle_answers(correct_answer: str, incorrect_answers: Sequence[str], rng: Optional[random.Random] = None) -> List[str]:
    """Uniformly random permutation of the incorrect answers plus the correct one."""
    options = list(incorrect_answers or []) + [correct_answer]
    (rng or random).shuffle(options)
    return options


def question_to_dict(q: Question) -> Dict:
    return {
        "id": q.id,
        "question": q.question,
        "categoryId": q.category_id,
        "category": q.category,
        "quizType": q.quiz_type,
        "type": q.type,
        "difficulty": q.difficulty,
        "correct_answer": q.correct_answer,
        "incorrect_answers": list(q.incorrect_answers or []),
        "explanation": q.explanation,
    }
