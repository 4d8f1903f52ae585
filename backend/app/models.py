# backend/app/models.py
from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, Enum, ForeignKey, JSON, UniqueConstraint
from sqlalchemy.orm import relationship, backref
from app.db.session import Base
import enum


def utcnow() -> datetime:
    """Naive UTC timestamp; every DateTime column in this schema is stored as naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class RoleEnum(str, enum.Enum):
    user = "user"
    admin = "admin"


class DifficultyEnum(str, enum.Enum):
    easy = "easy"
    medium = "medium"
    hard = "hard"


class QuestionKindEnum(str, enum.Enum):
    multiple = "multiple"
    boolean = "boolean"


class QuizStatusEnum(str, enum.Enum):
    started = "started"
    completed = "completed"
    expired = "expired"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(50), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(512), nullable=False)
    role = Column(String(20), default=RoleEnum.user.value, nullable=False)
    points = Column(Integer, default=0, server_default="0", nullable=False)
    created_at = Column(DateTime, default=utcnow)

    quizzes = relationship("Quiz", back_populates="user")

    def __repr__(self):
        return f"<User id={self.id} email={self.email} points={self.points}>"


class QuestionType(Base):
    __tablename__ = "question_types"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), unique=True, nullable=False)
    created_at = Column(DateTime, default=utcnow)

    categories = relationship("Category", back_populates="question_type", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<QuestionType id={self.id} name={self.name}>"


class Category(Base):
    __tablename__ = "categories"
    __table_args__ = (UniqueConstraint("type", "name", name="uq_category_type_name"),)

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    type_id = Column(Integer, ForeignKey("question_types.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String(100), nullable=False)
    name = Column(String(100), nullable=False)
    created_at = Column(DateTime, default=utcnow)

    question_type = relationship("QuestionType", back_populates="categories")
    questions = relationship("Question", back_populates="category_ref", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Category id={self.id} type={self.type} name={self.name}>"


class Question(Base):
    __tablename__ = "questions"

    id = Column(Integer, primary_key=True, index=True)
    question = Column(String(500), nullable=False)
    category_id = Column(Integer, ForeignKey("categories.id", ondelete="CASCADE"), nullable=False, index=True)
    category = Column(String(100), nullable=False)
    type_id = Column(Integer, ForeignKey("question_types.id", ondelete="CASCADE"), nullable=False)
    quiz_type = Column(String(100), nullable=False)
    type = Column(String(20), default=QuestionKindEnum.multiple.value, nullable=False)
    difficulty = Column(String(10), nullable=False, index=True)
    correct_answer = Column(Text, nullable=False)
    incorrect_answers = Column(JSON, nullable=False, default=list)
    explanation = Column(String(1000), nullable=True)
    created_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=utcnow)

    category_ref = relationship("Category", back_populates="questions")

    def __repr__(self):
        return f"<Question id={self.id} category_id={self.category_id} difficulty={self.difficulty}>"


class Quiz(Base):
    __tablename__ = "quizzes"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    total_questions = Column(Integer, nullable=False)
    duration_seconds = Column(Integer, nullable=False)
    started_at = Column(DateTime, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    completed = Column(Boolean, default=False, nullable=False)
    completed_at = Column(DateTime, nullable=True)
    status = Column(Enum(QuizStatusEnum), default=QuizStatusEnum.started, nullable=False)
    score = Column(Integer, default=0, nullable=False)
    points_earned = Column(Integer, default=0, nullable=False)
    category_id = Column(Integer, ForeignKey("categories.id", ondelete="SET NULL"), nullable=True)
    category = Column(String(100), nullable=False)
    type_id = Column(Integer, ForeignKey("question_types.id", ondelete="SET NULL"), nullable=True)
    quiz_type = Column(String(100), nullable=True)
    difficulty = Column(String(10), nullable=False)
    created_at = Column(DateTime, default=utcnow)

    user = relationship("User", back_populates="quizzes")
    questions = relationship(
        "QuizQuestion",
        back_populates="quiz",
        cascade="all, delete-orphan",
        order_by="QuizQuestion.position",
    )

    def __repr__(self):
        return f"<Quiz id={self.id} user_id={self.user_id} status={self.status}>"


class QuizQuestion(Base):
    """Frozen copy of a sampled Question, plus the user's answer once submitted."""

    __tablename__ = "quiz_questions"

    id = Column(Integer, primary_key=True, index=True)
    quiz_id = Column(Integer, ForeignKey("quizzes.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False)
    question_id = Column(Integer, ForeignKey("questions.id", ondelete="SET NULL"), nullable=True)
    question = Column(String(500), nullable=False)
    category = Column(String(100), nullable=False)
    type = Column(String(20), nullable=False)
    difficulty = Column(String(10), nullable=False)
    correct_answer = Column(Text, nullable=False)
    incorrect_answers = Column(JSON, nullable=False, default=list)
    user_answer = Column(Text, nullable=True)
    is_correct = Column(Boolean, nullable=True)

    quiz = relationship("Quiz", back_populates="questions")


class PasswordResetOTP(Base):
    __tablename__ = "password_reset_otps"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=True)
    email = Column(String(255), index=True, nullable=False)
    code = Column(String(512), nullable=False)  # "hash|salt"
    used = Column(Boolean, default=False)
    attempts = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=utcnow)
    expires_at = Column(DateTime, nullable=True)

    user = relationship("User", backref=backref("reset_otps", cascade="all, delete-orphan"))
