from sqlalchemy import Boolean, Column, String, Integer, DateTime, Enum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.core.database import Base
from app.core.constants import RoleEnum

class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    first_name = Column(String, nullable=False)
    last_name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    role = Column(Enum(RoleEnum), nullable=False, default=RoleEnum.STUDENT)
    phone = Column(String, nullable=True)
    is_active = Column(Boolean(), default=True)
    is_verified = Column(Boolean(), nullable=False, default=False)
    last_login = Column(DateTime, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    enrollments = relationship("ExamEnrollment", back_populates="student", cascade="all, delete-orphan")
    attempts = relationship("ExamAttempt", back_populates="student", foreign_keys="ExamAttempt.student_id")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"
