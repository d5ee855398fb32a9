from datetime import datetime
from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey, Enum, JSON
from sqlalchemy.orm import relationship
from app.core.database import Base
from app.core.constants import ProctoringEventTypeEnum, SeverityEnum

class ProctoringLog(Base):
    __tablename__ = "proctoring_logs"

    id = Column(Integer, primary_key=True, index=True)
    exam_id = Column(Integer, ForeignKey("exams.id"), nullable=False, index=True)
    student_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    attempt_id = Column(Integer, ForeignKey("exam_attempts.id"), nullable=True, index=True)
    event_type = Column(Enum(ProctoringEventTypeEnum), nullable=False, index=True)
    description = Column(Text, nullable=True)
    severity = Column(Enum(SeverityEnum), nullable=False, default=SeverityEnum.LOW, index=True)
    screenshot = Column(String, nullable=True)
    event_metadata = Column("metadata", JSON, nullable=True)
    is_reviewed = Column(Boolean, nullable=False, default=False)
    reviewed_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    review_notes = Column(Text, nullable=True)
    timestamp = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)

    exam = relationship("Exam")
    student = relationship("User", foreign_keys=[student_id])
    attempt = relationship("ExamAttempt")
    reviewed_by = relationship("User", foreign_keys=[reviewed_by_id])
