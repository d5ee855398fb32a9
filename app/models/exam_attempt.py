from datetime import datetime
from sqlalchemy import (
    Column, Integer, String, Text, DateTime, ForeignKey, Float, Boolean, Enum, UniqueConstraint, Index, text
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.core.database import Base
from app.core.constants import ExamAttemptStatusEnum

class ExamAttempt(Base):
    __tablename__ = "exam_attempts"

    id = Column(Integer, primary_key=True, index=True)
    exam_id = Column(Integer, ForeignKey("exams.id"), nullable=False, index=True)
    student_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    attempt_number = Column(Integer, nullable=False)
    status = Column(Enum(ExamAttemptStatusEnum), nullable=False, default=ExamAttemptStatusEnum.IN_PROGRESS, index=True)

    total_marks = Column(Float, nullable=False, default=0)
    obtained_marks = Column(Float, nullable=False, default=0)
    percentage = Column(Float, nullable=False, default=0)
    is_passed = Column(Boolean, nullable=False, default=False)
    correct_answers = Column(Integer, nullable=False, default=0)
    wrong_answers = Column(Integer, nullable=False, default=0)
    unanswered = Column(Integer, nullable=False, default=0)
    time_taken = Column(Integer, nullable=False, default=0) # seconds

    started_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    submitted_at = Column(DateTime, nullable=True)
    last_activity_at = Column(DateTime, nullable=True)

    shuffle_seed = Column(Integer, nullable=False, default=0)
    shuffle_questions = Column(Boolean, nullable=False, default=False)
    shuffle_options = Column(Boolean, nullable=False, default=False)

    feedback = Column(Text, nullable=True)
    reviewed_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    reviewed_at = Column(DateTime, nullable=True)

    version = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("student_id", "exam_id", "attempt_number", name="uq_attempt_ordinal"),
        Index(
            "uq_attempt_in_progress",
            "student_id",
            "exam_id",
            unique=True,
            sqlite_where=text("status = 'IN_PROGRESS'"),
            postgresql_where=text("status = 'IN_PROGRESS'"),
        ),
    )
    __mapper_args__ = {"version_id_col": version}

    exam = relationship("Exam", back_populates="attempts")
    student = relationship("User", back_populates="attempts", foreign_keys=[student_id])
    reviewed_by = relationship("User", foreign_keys=[reviewed_by_id])
    answers = relationship(
        "AttemptAnswer",
        back_populates="attempt",
        order_by="AttemptAnswer.position",
        cascade="all, delete-orphan"
    )
    proctoring_flags = relationship(
        "AttemptProctoringFlag",
        back_populates="attempt",
        order_by="AttemptProctoringFlag.id",
        cascade="all, delete-orphan"
    )


class AttemptAnswer(Base):
    __tablename__ = "attempt_answers"
    __table_args__ = (UniqueConstraint("attempt_id", "question_id", name="uq_attempt_answer_question"),)

    id = Column(Integer, primary_key=True, index=True)
    attempt_id = Column(Integer, ForeignKey("exam_attempts.id", ondelete="CASCADE"), nullable=False, index=True)
    question_id = Column(Integer, ForeignKey("questions.id"), nullable=False)
    position = Column(Integer, nullable=False, default=0)
    selected_option = Column(Text, nullable=True)
    is_correct = Column(Boolean, nullable=False, default=False)
    marks_obtained = Column(Float, nullable=False, default=0)
    time_taken = Column(Integer, nullable=False, default=0) # seconds
    feedback = Column(Text, nullable=True)
    graded_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    graded_at = Column(DateTime, nullable=True)

    attempt = relationship("ExamAttempt", back_populates="answers")
    question = relationship("Question")


class AttemptProctoringFlag(Base):
    __tablename__ = "attempt_proctoring_flags"

    id = Column(Integer, primary_key=True, index=True)
    attempt_id = Column(Integer, ForeignKey("exam_attempts.id", ondelete="CASCADE"), nullable=False, index=True)
    flag_type = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    timestamp = Column(DateTime, nullable=False, default=datetime.utcnow)

    attempt = relationship("ExamAttempt", back_populates="proctoring_flags")
