# app/seed.py
"""
Seed the question bank.

    python -m app.seed                  # types, categories and questions
    python -m app.seed --categories     # only the selected parts
    python -m app.seed --destroy        # wipe everything seeded (+ seed admin)
    python -m app.seed --questions --questions-file my_questions.json

The questions file is a JSON list of objects with keys: quizType, category,
question, type, difficulty, correct_answer, incorrect_answers, explanation.
"""
import argparse
import json
import logging
import re
import sys
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from app import crud
from app.core.config import settings
from app.core.security import hash_password
from app.db.session import Base, SessionLocal, engine
from app.models import Category, Question, QuestionType, RoleEnum, User

logger = logging.getLogger("quizarena.seed")

DEFAULT_QUESTIONS_FILE = Path(__file__).resolve().parent / "data" / "sample_questions.json"

TYPE_CATEGORY_MAP = [
    ("Academic", ["Mathematics", "Physics", "Chemistry", "Biology", "English", "Computer Science"]),
    ("Competitive Exam", ["Quantitative Aptitude", "Logical Reasoning", "Verbal Ability",
                          "General Awareness", "Current Affairs", "Data Interpretation"]),
    ("General Knowledge", ["History", "Geography", "Indian Polity", "Indian Economy",
                           "Science & Technology", "Static GK"]),
    ("Professional / Tech", ["Programming", "Web Development", "Databases", "Operating Systems",
                             "Networking", "Cyber Security"]),
    ("Fun & Lifestyle", ["Movies", "Music", "Sports", "Celebrities", "Food & Cuisine", "Travel"]),
    ("Brain & Logic", ["Puzzles", "IQ Test", "Pattern Recognition", "Critical Thinking", "Riddles"]),
]

CATEGORY_ALIASES = {"ScienceTech": "Science & Technology"}


class SeedError(RuntimeError):
    pass


def normalize_category_name(name: Optional[str]) -> Optional[str]:
    """'Static_GK_Questions' -> 'Static GK'; anything else is only trimmed."""
    if not name:
        return name
    trimmed = str(name).strip()
    if trimmed.endswith("_Questions"):
        return trimmed[: -len("_Questions")].replace("_", " ")
    return trimmed


def canonical(value: Optional[str]) -> str:
    return re.sub(r"[^a-z0-9]+", "", str(value or "").lower())


def category_key(type_name: str, category_name: str) -> str:
    category_name = CATEGORY_ALIASES.get(category_name, category_name)
    return f"{canonical(type_name)}::{canonical(category_name)}"


def load_questions_file(path: Path) -> List[Dict]:
    with open(path, encoding="utf-8") as fh:
        data = json.load(fh)
    if isinstance(data, dict):
        # {"<category>": [...], ...}
        flat = []
        for items in data.values():
            if isinstance(items, list):
                flat.extend(items)
        data = flat
    if not data:
        raise SeedError(f"No questions found in {path}")
    return data


def get_or_create_seed_admin(db: Session) -> User:
    user = crud.get_user_by_email(db, settings.SEED_ADMIN_EMAIL)
    if user:
        return user
    user = User(
        name="Seed Admin",
        email=settings.SEED_ADMIN_EMAIL.lower(),
        password_hash=hash_password(settings.SEED_ADMIN_PASSWORD),
        role=RoleEnum.admin.value,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def seed_types(db: Session) -> Dict[str, int]:
    # dependants point at the old type ids
    db.query(Question).delete()
    db.query(Category).delete()
    db.query(QuestionType).delete()
    types = [QuestionType(name=name) for name, _ in TYPE_CATEGORY_MAP]
    db.add_all(types)
    db.commit()
    logger.info("seeded %d question types", len(types))
    return {t.name: t.id for t in types}


def seed_categories(db: Session, type_ids: Optional[Dict[str, int]] = None) -> int:
    if not type_ids:
        type_ids = {t.name: t.id for t in db.query(QuestionType).all()}
    if not type_ids:
        raise SeedError("Cannot seed categories: no question types found. Seed types first.")

    db.query(Question).delete()
    db.query(Category).delete()
    count = 0
    for type_name, names in TYPE_CATEGORY_MAP:
        type_id = type_ids.get(type_name)
        if type_id is None:
            raise SeedError(f"Cannot seed categories: missing type {type_name}")
        for name in names:
            db.add(Category(type_id=type_id, type=type_name, name=name))
            count += 1
    db.commit()
    logger.info("seeded %d categories", count)
    return count


def seed_questions(db: Session, admin: User, items: Iterable[Dict]) -> int:
    categories = db.query(Category).all()
    if not categories:
        raise SeedError("Cannot seed questions: types/categories are missing. Seed types and categories first.")
    by_key = {category_key(c.type, c.name): c for c in categories}

    rows = []
    for item in items:
        quiz_type = item.get("quizType")
        category_name = normalize_category_name(item.get("category"))
        cat = by_key.get(category_key(quiz_type, category_name))
        if not cat:
            raise SeedError(f"Category not found for question. type={quiz_type}, category={category_name}")
        rows.append(Question(
            question=item["question"],
            category_id=cat.id,
            category=cat.name,
            type_id=cat.type_id,
            quiz_type=cat.type,
            type=item.get("type") or "multiple",
            difficulty=item["difficulty"],
            correct_answer=item["correct_answer"],
            incorrect_answers=list(item.get("incorrect_answers") or []),
            explanation=item.get("explanation"),
            created_by=admin.id,
        ))

    db.query(Question).delete()
    db.add_all(rows)
    db.commit()
    logger.info("seeded %d questions", len(rows))
    return len(rows)


def destroy(db: Session, types: bool = True, categories: bool = True, questions: bool = True) -> None:
    if questions:
        db.query(Question).delete()
    if categories:
        db.query(Category).delete()
    if types:
        db.query(QuestionType).delete()
    db.query(User).filter(User.email == settings.SEED_ADMIN_EMAIL.lower()).delete()
    db.commit()


def run(db: Session, types: bool, categories: bool, questions: bool, questions_file: Path = DEFAULT_QUESTIONS_FILE) -> None:
    admin = get_or_create_seed_admin(db)
    type_ids = seed_types(db) if types else None
    if categories:
        seed_categories(db, type_ids)
    if questions:
        seed_questions(db, admin, load_questions_file(questions_file))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="python -m app.seed", description="Seed the QuizArena question bank.")
    parser.add_argument("--types", action="store_true", help="seed question types")
    parser.add_argument("--categories", action="store_true", help="seed categories")
    parser.add_argument("--questions", action="store_true", help="seed questions")
    parser.add_argument("--destroy", action="store_true", help="delete the selected data instead of seeding")
    parser.add_argument("--questions-file", type=Path, default=DEFAULT_QUESTIONS_FILE)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    logging.basicConfig(level=settings.LOG_LEVEL, format="%(levelname)s %(name)s: %(message)s")
    args = build_parser().parse_args(argv)

    any_flag = args.types or args.categories or args.questions
    types = args.types or not any_flag
    categories = args.categories or not any_flag
    questions = args.questions or not any_flag

    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        if args.destroy:
            destroy(db, types=types, categories=categories, questions=questions)
        else:
            run(db, types, categories, questions, args.questions_file)
    except (SeedError, OSError, ValueError, KeyError) as e:
        logger.error("seeding failed: %s", e)
        return 1
    finally:
        db.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
