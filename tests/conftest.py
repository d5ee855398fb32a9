import sys
import os
import tempfile
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite:///./test_exam_proctor.db")
os.environ.setdefault("LOG_DIR", os.path.join(tempfile.gettempdir(), "exam-proctor-test-logs"))
os.environ["TESTING"] = "true"
os.environ["CACHE_ENABLED"] = "false"
os.environ["EMAILS_ENABLED"] = "false"
os.environ["ADMIN_SECRET_CODE"] = "admin-code"
os.environ["PROCTOR_SECRET_CODE"] = "proctor-code"

import uuid
from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

import main
from app.core.config import settings
from app.core.constants import ExamStatusEnum, QuestionTypeEnum, RoleEnum
from app.core.database import Base
from app.core.security import get_password_hash
from app.crud.question import question as crud_question
from app.crud.user import user as crud_user
from app.models.exam import Exam, ExamEnrollment, ExamQuestion
from app.services.email import EmailService
from app.utils import deps as deps_utils


@pytest.fixture(scope="function")
def database_engine(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'test.db'}", connect_args={"check_same_thread": False})
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()

@pytest.fixture(scope="function")
def session_factory(database_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=database_engine)

@pytest.fixture(scope="function")
def db_session(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.rollback()
        db.close()

@pytest.fixture(scope="function")
def client(db_session):
    main.app.dependency_overrides[deps_utils.get_db] = lambda: db_session
    main.app.dependency_overrides[deps_utils.get_transactional_db] = lambda: db_session
    with TestClient(main.app) as test_client:
        yield test_client
    main.app.dependency_overrides.clear()


@pytest.fixture
def user_factory(db_session):
    def _user_factory(role=RoleEnum.STUDENT, email=None, password="testpass123", is_active=True, is_verified=True):
        role = RoleEnum(role)
        user_data = {
            "first_name": "Test",
            "last_name": role.value.title(),
            "email": email or f"{role.value}-{uuid.uuid4().hex[:8]}@examtest.com",
            "hashed_password": get_password_hash(password),
            "role": role,
            "is_active": is_active,
            "is_verified": is_verified,
        }
        return crud_user.create(db_session, obj_in=user_data)
    return _user_factory

@pytest.fixture
def auth_headers(client):
    def _auth_headers(user, password="testpass123"):
        response = client.post("/auth/login", json={"email": user.email, "password": password})
        body = response.json()
        token = body.get("data", {}).get("token", {}).get("access_token")
        assert token, f"Login failed or token missing: {body}"
        return {"Authorization": f"Bearer {token}"}
    return _auth_headers

@pytest.fixture
def token_for_role(user_factory, auth_headers):
    """Create a fresh user with the given role and return a bearer token for them."""
    def _create_token_for_role(role_name: str):
        user = user_factory(role=role_name)
        return auth_headers(user)["Authorization"].split(" ", 1)[1]
    return _create_token_for_role


@pytest.fixture
def question_factory(db_session):
    def _question_factory(
        question_type=QuestionTypeEnum.SINGLE_CHOICE,
        marks=1.0,
        negative_marks=0.0,
        options=("Option A", "Option B", "Option C"),
        correct_index=0,
        correct_answer=None,
        category="General",
        text=None,
    ):
        question_type = QuestionTypeEnum(question_type)
        obj_in = {
            "question_text": text or f"Question {uuid.uuid4().hex[:6]}?",
            "question_type": question_type,
            "category": category,
            "marks": marks,
            "negative_marks": negative_marks,
            "correct_answer": correct_answer,
            "options": [],
        }
        if question_type == QuestionTypeEnum.SINGLE_CHOICE:
            obj_in["options"] = [
                {"option_text": option_text, "is_correct": index == correct_index}
                for index, option_text in enumerate(options)
            ]
        elif question_type == QuestionTypeEnum.TRUE_FALSE:
            obj_in["correct_answer"] = correct_answer or "true"
        return crud_question.create_with_options(db_session, obj_in=obj_in, created_by_id=None)
    return _question_factory

@pytest.fixture
def exam_factory(db_session):
    def _exam_factory(questions, students=(), **overrides):
        exam_data = {
            "title": f"Exam {uuid.uuid4().hex[:6]}",
            "category": "General",
            "passing_marks": 1,
            "duration_minutes": 30,
            "scheduled_date": datetime.utcnow() + timedelta(days=1),
            "status": ExamStatusEnum.ACTIVE,
            "max_attempts": 1,
        }
        exam_data.update(overrides)
        exam = Exam(**exam_data)
        exam.exam_questions = [
            ExamQuestion(question=question, position=position) for position, question in enumerate(questions)
        ]
        exam.total_marks = float(sum(q.marks for q in questions))
        for student in students:
            exam.enrollments.append(ExamEnrollment(student_id=student.id, enrolled_at=datetime.utcnow()))
        db_session.add(exam)
        db_session.commit()
        db_session.refresh(exam)
        return exam
    return _exam_factory


def correct_option_id(question) -> str:
    return str(next(option.id for option in question.options if option.is_correct))

def wrong_option_id(question) -> str:
    return str(next(option.id for option in question.options if not option.is_correct))

@pytest.fixture
def option_ids():
    """Helpers to pick the correct or a wrong option id of a single choice question."""
    return correct_option_id, wrong_option_id

@pytest.fixture
def sent_emails(monkeypatch):
    """Enable emails and capture deliveries instead of calling SendGrid."""
    outbox = []

    def fake_deliver(to_email, subject, template_name, template_context):
        outbox.append({"to": to_email, "subject": subject, "template": template_name, "context": template_context})

    monkeypatch.setattr(settings, "EMAILS_ENABLED", True)
    monkeypatch.setattr(EmailService, "deliver", staticmethod(fake_deliver))
    return outbox
