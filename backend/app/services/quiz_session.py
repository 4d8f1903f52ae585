# app/services/quiz_session.py
"""
Quiz session lifecycle: start -> (timed answering on the client) -> submit -> graded.

A session is a Quiz row holding a frozen snapshot of the sampled questions
(QuizQuestion rows). Correct answers never leave the server until the session
is completed. A session accepts exactly one submission; expiry is checked
lazily when that submission arrives.
"""
import logging
import math
import random
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from app import crud
from app.core.config import settings
from app.core.errors import ApiError, NotAuthorizedError, NotFoundError
from app.models import Quiz, QuizQuestion, QuizStatusEnum, User, utcnow
from app.services import question_bank

logger = logging.getLogger("quizarena.quiz")

DIFFICULTY_MULTIPLIERS = {"easy": 1, "medium": 1.5, "hard": 2}
POINTS_PER_CORRECT = 10


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _iso(dt: Optional[datetime]) -> Optional[str]:
    return dt.isoformat() + "Z" if dt else None


def difficulty_multiplier(difficulty: Optional[str]) -> float:
    return DIFFICULTY_MULTIPLIERS.get(difficulty, 1)


def points_for(score: int, difficulty: Optional[str]) -> int:
    """round(score * 10 * multiplier); easy x1, medium x1.5, hard x2."""
    return _round_half_up(score * POINTS_PER_CORRECT * difficulty_multiplier(difficulty))


def percentage_for(score: int, total: int) -> int:
    if total <= 0:
        return 0
    return _round_half_up(score / total * 100)


# -----------------------
# Start
# -----------------------
def start_quiz(
    db: Session,
    user: User,
    category_id: Optional[int],
    type_id: Optional[int] = None,
    quiz_type: Optional[str] = None,
    difficulty: Optional[str] = "medium",
    amount: Optional[int] = None,
    now: Optional[datetime] = None,
    rng: Optional[random.Random] = None,
) -> Dict:
    if category_id is None:
        raise ApiError("categoryId is required")

    category = question_bank.get_category(db, category_id)

    if quiz_type and quiz_type != category.type:
        raise ApiError("Category does not belong to the selected type")
    if type_id is not None and type_id != category.type_id:
        raise ApiError("Category does not belong to the selected type")

    difficulty = difficulty or "medium"
    question_bank.normalize_difficulty(difficulty)
    amount = amount or settings.QUIZ_QUESTION_COUNT

    sampled = question_bank.sample_questions(db, amount, category_id=category.id, difficulty=difficulty)

    started_at = now or utcnow()
    duration = settings.QUIZ_DURATION_SECONDS
    quiz = Quiz(
        user_id=user.id,
        total_questions=len(sampled),
        duration_seconds=duration,
        started_at=started_at,
        expires_at=started_at + timedelta(seconds=duration),
        completed=False,
        status=QuizStatusEnum.started,
        category_id=category.id,
        category=category.name,
        type_id=category.type_id,
        quiz_type=category.type,
        difficulty=difficulty,
    )
    quiz.questions = [
        QuizQuestion(
            position=index,
            question_id=q.id,
            question=q.question,
            category=q.category,
            type=q.type,
            difficulty=q.difficulty,
            correct_answer=q.correct_answer,
            incorrect_answers=list(q.incorrect_answers or []),
        )
        for index, q in enumerate(sampled)
    ]
    db.add(quiz)
    db.commit()
    db.refresh(quiz)

    logger.info("quiz %s started by user %s (category=%s difficulty=%s questions=%s)",
                quiz.id, user.id, category.id, difficulty, quiz.total_questions)

    return {
        "quizId": quiz.id,
        "startedAt": _iso(quiz.started_at),
        "expiresAt": _iso(quiz.expires_at),
        "durationSeconds": quiz.duration_seconds,
        "serverTime": _iso(utcnow()),
        "category": quiz.category,
        "categoryId": quiz.category_id,
        "quizType": quiz.quiz_type,
        "difficulty": quiz.difficulty,
        "totalQuestions": quiz.total_questions,
        "questions": [present_question(qq, rng=rng) for qq in quiz.questions],
    }


def present_question(qq: QuizQuestion, rng: Optional[random.Random] = None) -> Dict:
    """Client view of a snapshot question: shuffled options, no answer key."""
    return {
        "questionId": qq.question_id,
        "question": qq.question,
        "category": qq.category,
        "type": qq.type,
        "difficulty": qq.difficulty,
        "answers": question_bank.shuffle_answers(qq.correct_answer, qq.incorrect_answers, rng=rng),
    }


# -----------------------
# Submit
# -----------------------
def _load_owned_quiz(db: Session, quiz_id: int, user: User) -> Quiz:
    quiz = db.get(Quiz, quiz_id)
    if not quiz:
        raise NotFoundError(f"Quiz not found with id of {quiz_id}")
    if quiz.user_id != user.id:
        raise NotAuthorizedError("Not authorized to access this quiz")
    return quiz


def complete_once(db: Session, quiz_id: int, **values) -> bool:
    """Mark the quiz completed only if nobody else has; False when the guard did not match.

    Nothing is committed here so the caller can put the point credit in the same transaction.
    """
    result = db.execute(
        update(Quiz)
        .where(Quiz.id == quiz_id, Quiz.completed == False)  # noqa: E712
        .values(completed=True, **values)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def _answer_map(answers: Iterable) -> Dict[int, Optional[str]]:
    by_question = {}
    for item in answers:
        by_question[int(item.question_id)] = item.answer
    return by_question


def submit_quiz(db: Session, quiz_id: int, user: User, answers: Iterable, now: Optional[datetime] = None) -> Dict:
    quiz = _load_owned_quiz(db, quiz_id, user)
    if quiz.completed:
        raise ApiError("This quiz has already been submitted")

    by_question = _answer_map(answers)
    now = now or utcnow()
    expired = quiz.expires_at is not None and now > quiz.expires_at

    score = 0
    incorrect = 0
    skipped = 0
    results: List[Dict] = []
    for qq in quiz.questions:
        user_answer = by_question.get(qq.question_id)
        if user_answer is None or user_answer == "":
            skipped += 1
            user_answer = None
            is_correct = None
        else:
            is_correct = user_answer == qq.correct_answer
            if is_correct:
                score += 1
            else:
                incorrect += 1

        qq.user_answer = user_answer
        qq.is_correct = is_correct
        results.append({
            "questionId": qq.question_id,
            "question": qq.question,
            "correctAnswer": qq.correct_answer,
            "userAnswer": user_answer,
            "isCorrect": bool(is_correct),
        })

    total = quiz.total_questions
    points = points_for(score, quiz.difficulty)
    status = QuizStatusEnum.expired if expired else QuizStatusEnum.completed

    if not complete_once(db, quiz.id, completed_at=now, status=status, score=score, points_earned=points):
        db.rollback()
        logger.warning("rejected duplicate submission for quiz %s by user %s", quiz_id, user.id)
        raise ApiError("This quiz has already been submitted")

    crud.add_points(db, user.id, points)
    db.commit()

    logger.info("quiz %s submitted by user %s: score=%s/%s points=%s status=%s",
                quiz_id, user.id, score, total, points, status.value)

    return {
        "quizId": quiz_id,
        "score": score,
        "total": total,
        "percentage": percentage_for(score, total),
        "correctAnswers": score,
        "incorrectAnswers": incorrect,
        "skipped": skipped,
        "status": status.value,
        "pointsEarned": points,
        "results": results,
    }


# -----------------------
# Read
# -----------------------
def _status_value(quiz: Quiz) -> str:
    return quiz.status.value if hasattr(quiz.status, "value") else str(quiz.status)


def _summary(quiz: Quiz) -> Dict:
    return {
        "id": quiz.id,
        "category": quiz.category,
        "categoryId": quiz.category_id,
        "quizType": quiz.quiz_type,
        "difficulty": quiz.difficulty,
        "status": _status_value(quiz),
        "completed": quiz.completed,
        "score": quiz.score,
        "totalQuestions": quiz.total_questions,
        "percentage": percentage_for(quiz.score or 0, quiz.total_questions) if quiz.completed else None,
        "pointsEarned": quiz.points_earned,
        "durationSeconds": quiz.duration_seconds,
        "startedAt": _iso(quiz.started_at),
        "expiresAt": _iso(quiz.expires_at),
        "completedAt": _iso(quiz.completed_at),
        "createdAt": _iso(quiz.created_at),
    }


def get_quiz(db: Session, quiz_id: int, user: User) -> Dict:
    quiz = _load_owned_quiz(db, quiz_id, user)
    detail = _summary(quiz)

    questions = []
    for qq in quiz.questions:
        item = {
            "questionId": qq.question_id,
            "question": qq.question,
            "category": qq.category,
            "type": qq.type,
            "difficulty": qq.difficulty,
            "user_answer": qq.user_answer,
            "is_correct": qq.is_correct,
        }
        # answer key only once the session is over
        if quiz.completed:
            item["correct_answer"] = qq.correct_answer
            item["incorrect_answers"] = list(qq.incorrect_answers or [])
        else:
            item["answers"] = question_bank.shuffle_answers(qq.correct_answer, qq.incorrect_answers)
        questions.append(item)
    detail["questions"] = questions
    return detail


def list_history(db: Session, user: User) -> List[Dict]:
    quizzes = (
        db.query(Quiz)
        .filter(Quiz.user_id == user.id)
        .order_by(Quiz.completed_at.desc(), Quiz.created_at.desc(), Quiz.id.desc())
        .all()
    )
    return [_summary(q) for q in quizzes]
