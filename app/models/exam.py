from datetime import datetime
from sqlalchemy import (
    Column, Integer, String, Text, Boolean, DateTime, ForeignKey, Float, Enum, Table, UniqueConstraint
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.core.database import Base
from app.core.constants import ExamStatusEnum

exam_proctors = Table(
    "exam_proctors",
    Base.metadata,
    Column("exam_id", Integer, ForeignKey("exams.id", ondelete="CASCADE"), primary_key=True),
    Column("proctor_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)

class Exam(Base):
    __tablename__ = "exams"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, index=True, nullable=False)
    description = Column(Text, nullable=True)
    instructions = Column(Text, nullable=True)
    category = Column(String, index=True, nullable=False)
    total_marks = Column(Float, nullable=False, default=0)
    passing_marks = Column(Float, nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    per_question_time = Column(Integer, nullable=True)
    scheduled_date = Column(DateTime, nullable=False)
    start_time = Column(String, nullable=True)
    end_time = Column(String, nullable=True)

    is_proctored = Column(Boolean, default=False)
    video_monitoring = Column(Boolean, default=False)
    browser_lockdown = Column(Boolean, default=True)
    identity_verification = Column(Boolean, default=False)
    tab_switch_limit = Column(Integer, default=3)

    shuffle_questions = Column(Boolean, default=False)
    shuffle_options = Column(Boolean, default=False)
    show_result_immediately = Column(Boolean, default=True)
    allow_review = Column(Boolean, default=True)
    max_attempts = Column(Integer, nullable=False, default=1)
    status = Column(Enum(ExamStatusEnum), nullable=False, default=ExamStatusEnum.DRAFT, index=True)

    created_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    deleted_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    exam_questions = relationship(
        "ExamQuestion",
        back_populates="exam",
        order_by="ExamQuestion.position",
        cascade="all, delete-orphan"
    )
    enrollments = relationship("ExamEnrollment", back_populates="exam", cascade="all, delete-orphan")
    proctors = relationship("User", secondary=exam_proctors)
    attempts = relationship("ExamAttempt", back_populates="exam")
    created_by = relationship("User", foreign_keys=[created_by_id])

    @property
    def questions(self):
        return [eq.question for eq in self.exam_questions]

    @property
    def question_count(self) -> int:
        return len(self.exam_questions)


class ExamQuestion(Base):
    __tablename__ = "exam_questions"
    __table_args__ = (UniqueConstraint("exam_id", "question_id", name="uq_exam_question"),)

    id = Column(Integer, primary_key=True, index=True)
    exam_id = Column(Integer, ForeignKey("exams.id", ondelete="CASCADE"), nullable=False, index=True)
    question_id = Column(Integer, ForeignKey("questions.id"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)

    exam = relationship("Exam", back_populates="exam_questions")
    question = relationship("Question")


class ExamEnrollment(Base):
    __tablename__ = "exam_enrollments"
    __table_args__ = (UniqueConstraint("exam_id", "student_id", name="uq_exam_enrollment"),)

    id = Column(Integer, primary_key=True, index=True)
    exam_id = Column(Integer, ForeignKey("exams.id", ondelete="CASCADE"), nullable=False, index=True)
    student_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    enrolled_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    exam = relationship("Exam", back_populates="enrollments")
    student = relationship("User", back_populates="enrollments")
