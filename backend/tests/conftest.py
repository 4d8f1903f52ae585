import os

# Point the app at an in-memory database before any app module reads the environment.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("JWT_SECRET", "test-secret-key-that-is-long-enough-for-hs256")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.api.v1.auth import create_access_token
from app.core.security import hash_password
from app.db.session import Base, get_db
from app.main import app as fastapi_app
from app.models import Category, Question, QuestionType, User

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
    future=True,
)
TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, future=True)

DEFAULT_PASSWORD = "Passw0rd!"


@pytest.fixture()
def db():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def client(db):
    def override_get_db():
        session = TestingSessionLocal()
        try:
            yield session
        finally:
            session.close()

    fastapi_app.dependency_overrides[get_db] = override_get_db
    with TestClient(fastapi_app) as c:
        yield c
    fastapi_app.dependency_overrides.clear()


def make_user(db, name="Alice", email=None, points=0, password=DEFAULT_PASSWORD):
    user = User(
        name=name,
        email=(email or f"{name.lower().replace(' ', '.')}@example.com"),
        password_hash=hash_password(password),
        points=points,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def make_category(db, type_name="Academic", name="Mathematics", easy=0, medium=0, hard=0):
    qtype = db.query(QuestionType).filter(QuestionType.name == type_name).first()
    if not qtype:
        qtype = QuestionType(name=type_name)
        db.add(qtype)
        db.commit()
        db.refresh(qtype)

    category = Category(type_id=qtype.id, type=type_name, name=name)
    db.add(category)
    db.commit()
    db.refresh(category)

    for difficulty, count in (("easy", easy), ("medium", medium), ("hard", hard)):
        for i in range(count):
            db.add(Question(
                question=f"{name} {difficulty} question {i}?",
                category_id=category.id,
                category=name,
                type_id=qtype.id,
                quiz_type=type_name,
                type="multiple",
                difficulty=difficulty,
                correct_answer=f"right-{difficulty}-{i}",
                incorrect_answers=[f"wrong-{difficulty}-{i}-{n}" for n in range(3)],
                explanation=f"Because {i}.",
            ))
    db.commit()
    return category


def auth_headers(user):
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


@pytest.fixture()
def user(db):
    return make_user(db)


@pytest.fixture()
def math_category(db):
    return make_category(db, easy=5, medium=15, hard=3)
