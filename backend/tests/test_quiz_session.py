from datetime import timedelta
from types import SimpleNamespace

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.core.errors import ApiError, NotAuthorizedError, NotFoundError
from app.db.session import Base
from app.models import Question, Quiz, QuizStatusEnum, User
from app.services import quiz_session

from conftest import make_category, make_user


def answer(question_id, value):
    return SimpleNamespace(question_id=question_id, answer=value)


def correct_answer_for(db, question_id):
    return db.get(Question, question_id).correct_answer


def points_of(db, user_id):
    db.expire_all()
    return db.get(User, user_id).points


@pytest.mark.parametrize("score, difficulty, expected", [
    (8, "hard", 160),
    (10, "medium", 150),
    (3, "easy", 30),
    (0, "hard", 0),
    (5, "any", 50),
])
def test_points_formula(score, difficulty, expected):
    assert quiz_session.points_for(score, difficulty) == expected


@pytest.mark.parametrize("score, total, expected", [
    (10, 15, 67),
    (1, 8, 13),
    (0, 15, 0),
    (15, 15, 100),
    (0, 0, 0),
])
def test_percentage(score, total, expected):
    assert quiz_session.percentage_for(score, total) == expected


# -----------------------
# start
# -----------------------
def test_start_returns_requested_questions_without_answer_key(db, user, math_category):
    data = quiz_session.start_quiz(db, user, math_category.id, difficulty="medium")

    assert len(data["questions"]) == 15
    assert data["durationSeconds"] == 1800
    for q in data["questions"]:
        assert "correct_answer" not in q
        assert "incorrect_answers" not in q
        stored = db.get(Question, q["questionId"])
        assert sorted(q["answers"]) == sorted(stored.incorrect_answers + [stored.correct_answer])
        assert q["difficulty"] == "medium"


def test_start_persists_snapshot_and_expiry(db, user, math_category):
    data = quiz_session.start_quiz(db, user, math_category.id, difficulty="easy", amount=5)

    quiz = db.get(Quiz, data["quizId"])
    assert quiz.user_id == user.id
    assert quiz.status == QuizStatusEnum.started
    assert quiz.completed is False
    assert quiz.total_questions == 5
    assert quiz.expires_at - quiz.started_at == timedelta(seconds=quiz.duration_seconds)
    assert quiz.category == "Mathematics"
    assert quiz.quiz_type == "Academic"
    assert [qq.position for qq in quiz.questions] == [0, 1, 2, 3, 4]
    assert all(qq.correct_answer.startswith("right-easy-") for qq in quiz.questions)


def test_start_requires_category(db, user):
    with pytest.raises(ApiError) as exc:
        quiz_session.start_quiz(db, user, None)
    assert exc.value.message == "categoryId is required"


def test_start_unknown_category(db, user):
    with pytest.raises(NotFoundError):
        quiz_session.start_quiz(db, user, 999)


def test_start_rejects_category_from_another_type(db, user, math_category):
    other = make_category(db, type_name="Brain & Logic", name="Puzzles")

    with pytest.raises(ApiError) as exc:
        quiz_session.start_quiz(db, user, math_category.id, type_id=other.type_id)
    assert exc.value.message == "Category does not belong to the selected type"

    with pytest.raises(ApiError):
        quiz_session.start_quiz(db, user, math_category.id, quiz_type="Brain & Logic")


def test_start_without_enough_questions(db, user, math_category):
    # only 3 hard questions exist
    with pytest.raises(NotFoundError):
        quiz_session.start_quiz(db, user, math_category.id, difficulty="hard")
    assert db.query(Quiz).count() == 0


# -----------------------
# submit
# -----------------------
def test_submit_scores_exact_matches_and_skips(db, user, math_category):
    data = quiz_session.start_quiz(db, user, math_category.id, difficulty="easy", amount=5)
    ids = [q["questionId"] for q in data["questions"]]

    answers = [
        answer(ids[0], correct_answer_for(db, ids[0])),
        answer(ids[1], correct_answer_for(db, ids[1])),
        answer(ids[2], correct_answer_for(db, ids[2]).upper()),  # case matters
        answer(ids[3], ""),
        # ids[4] missing entirely
    ]
    result = quiz_session.submit_quiz(db, data["quizId"], user, answers)

    assert result["score"] == 2
    assert result["correctAnswers"] == 2
    assert result["incorrectAnswers"] == 1
    assert result["skipped"] == 2
    assert result["total"] == 5
    assert result["percentage"] == 40
    assert result["pointsEarned"] == 20
    assert result["status"] == "completed"

    quiz = db.get(Quiz, data["quizId"])
    by_id = {qq.question_id: qq for qq in quiz.questions}
    assert by_id[ids[0]].is_correct is True
    assert by_id[ids[2]].is_correct is False
    assert by_id[ids[3]].is_correct is None and by_id[ids[3]].user_answer is None
    assert by_id[ids[4]].is_correct is None
    assert quiz.completed is True
    assert quiz.score == 2
    assert quiz.points_earned == 20
    assert points_of(db, user.id) == 20


def test_hard_quiz_points(db, user):
    category = make_category(db, name="Chemistry", hard=10)
    data = quiz_session.start_quiz(db, user, category.id, difficulty="hard", amount=10)
    ids = [q["questionId"] for q in data["questions"]]
    answers = [answer(i, correct_answer_for(db, i)) for i in ids[:8]] + [answer(i, "nope") for i in ids[8:]]

    result = quiz_session.submit_quiz(db, data["quizId"], user, answers)

    assert result["score"] == 8
    assert result["pointsEarned"] == 160


def test_second_submission_is_rejected_and_not_credited(db, user, math_category):
    data = quiz_session.start_quiz(db, user, math_category.id, difficulty="easy", amount=5)
    ids = [q["questionId"] for q in data["questions"]]
    answers = [answer(i, correct_answer_for(db, i)) for i in ids]

    first = quiz_session.submit_quiz(db, data["quizId"], user, answers)
    assert first["pointsEarned"] == 50

    for payload in (answers, [], [answer(ids[0], "x")]):
        with pytest.raises(ApiError) as exc:
            quiz_session.submit_quiz(db, data["quizId"], user, payload)
        assert exc.value.status_code == 400
        assert exc.value.message == "This quiz has already been submitted"

    assert points_of(db, user.id) == 50


def test_completion_guard_matches_once(db, user, math_category):
    data = quiz_session.start_quiz(db, user, math_category.id, difficulty="easy", amount=5)

    assert quiz_session.complete_once(db, data["quizId"], status=QuizStatusEnum.completed) is True
    assert quiz_session.complete_once(db, data["quizId"], status=QuizStatusEnum.completed) is False
    db.rollback()


def test_lost_race_rolls_back_without_credit(db, user, math_category, monkeypatch):
    data = quiz_session.start_quiz(db, user, math_category.id, difficulty="easy", amount=5)
    ids = [q["questionId"] for q in data["questions"]]

    # another request completed the quiz between our read and our write
    monkeypatch.setattr(quiz_session, "complete_once", lambda *args, **kwargs: False)

    with pytest.raises(ApiError):
        quiz_session.submit_quiz(db, data["quizId"], user, [answer(i, correct_answer_for(db, i)) for i in ids])

    assert points_of(db, user.id) == 0
    quiz = db.get(Quiz, data["quizId"])
    assert all(qq.user_answer is None for qq in quiz.questions)


def test_interleaved_submissions_credit_points_once(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'race.db'}", connect_args={"check_same_thread": False})
    Base.metadata.create_all(bind=engine)
    Sessions = sessionmaker(bind=engine, autocommit=False, autoflush=False)

    setup = Sessions()
    owner = make_user(setup)
    category = make_category(setup, easy=5)
    data = quiz_session.start_quiz(setup, owner, category.id, difficulty="easy", amount=5)
    answers = [answer(q["questionId"], correct_answer_for(setup, q["questionId"])) for q in data["questions"]]
    owner_id = owner.id
    setup.close()

    first, second = Sessions(), Sessions()
    try:
        # both requests load the session while it is still open
        first_user, second_user = first.get(User, owner_id), second.get(User, owner_id)
        assert first.get(Quiz, data["quizId"]).completed is False
        assert second.get(Quiz, data["quizId"]).completed is False

        result = quiz_session.submit_quiz(first, data["quizId"], first_user, answers)
        assert result["pointsEarned"] == 50

        with pytest.raises(ApiError) as exc:
            quiz_session.submit_quiz(second, data["quizId"], second_user, answers)
        assert exc.value.message == "This quiz has already been submitted"
    finally:
        first.close()
        second.close()

    check = Sessions()
    try:
        assert check.get(User, owner_id).points == 50
    finally:
        check.close()
        engine.dispose()


def test_late_submission_is_graded_but_marked_expired(db, user, math_category):
    data = quiz_session.start_quiz(db, user, math_category.id, difficulty="easy", amount=5)
    quiz = db.get(Quiz, data["quizId"])
    late = quiz.expires_at + timedelta(seconds=1)
    first_id = data["questions"][0]["questionId"]

    result = quiz_session.submit_quiz(db, data["quizId"], user, [answer(first_id, correct_answer_for(db, first_id))], now=late)

    assert result["status"] == "expired"
    assert result["score"] == 1
    assert result["pointsEarned"] == 10
    assert db.get(Quiz, data["quizId"]).status == QuizStatusEnum.expired


def test_submission_on_the_deadline_is_not_expired(db, user, math_category):
    data = quiz_session.start_quiz(db, user, math_category.id, difficulty="easy", amount=5)
    quiz = db.get(Quiz, data["quizId"])

    result = quiz_session.submit_quiz(db, data["quizId"], user, [], now=quiz.expires_at)

    assert result["status"] == "completed"
    assert result["skipped"] == 5


def test_submit_checks_existence_and_owner(db, user, math_category):
    intruder = make_user(db, name="Mallory")
    data = quiz_session.start_quiz(db, user, math_category.id, difficulty="easy", amount=5)

    with pytest.raises(NotFoundError):
        quiz_session.submit_quiz(db, 12345, user, [])
    with pytest.raises(NotAuthorizedError) as exc:
        quiz_session.submit_quiz(db, data["quizId"], intruder, [])
    assert exc.value.status_code == 401


# -----------------------
# read
# -----------------------
def test_get_quiz_hides_answers_until_completed(db, user, math_category):
    data = quiz_session.start_quiz(db, user, math_category.id, difficulty="easy", amount=5)

    pending = quiz_session.get_quiz(db, data["quizId"], user)
    assert pending["status"] == "started"
    for q in pending["questions"]:
        assert "correct_answer" not in q
        assert "incorrect_answers" not in q
        stored = db.get(Question, q["questionId"])
        assert sorted(q["answers"]) == sorted(stored.incorrect_answers + [stored.correct_answer])

    quiz_session.submit_quiz(db, data["quizId"], user, [])

    done = quiz_session.get_quiz(db, data["quizId"], user)
    assert done["status"] == "completed"
    assert all(q["correct_answer"].startswith("right-easy-") for q in done["questions"])
    assert done["totalQuestions"] == 5


def test_get_quiz_of_someone_else(db, user, math_category):
    data = quiz_session.start_quiz(db, user, math_category.id, difficulty="easy", amount=5)
    with pytest.raises(NotAuthorizedError):
        quiz_session.get_quiz(db, data["quizId"], make_user(db, name="Eve"))


def test_history_lists_own_sessions_newest_first(db, user, math_category):
    other = make_user(db, name="Bob")
    first = quiz_session.start_quiz(db, user, math_category.id, difficulty="easy", amount=5)
    second = quiz_session.start_quiz(db, user, math_category.id, difficulty="easy", amount=5)
    quiz_session.start_quiz(db, other, math_category.id, difficulty="easy", amount=5)
    quiz_session.submit_quiz(db, first["quizId"], user, [])

    history = quiz_session.list_history(db, user)

    assert [h["id"] for h in history] == [first["quizId"], second["quizId"]]
    assert all("questions" not in h for h in history)
    assert history[0]["completed"] is True and history[1]["completed"] is False
