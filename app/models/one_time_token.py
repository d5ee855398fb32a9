from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Enum
from sqlalchemy.orm import relationship
from app.core.database import Base
from app.core.constants import TokenTypeEnum

class OneTimeToken(Base):
    """Single-use secret mailed to a user for email verification or a password reset."""
    __tablename__ = "one_time_tokens"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    token = Column(String, unique=True, index=True, nullable=False)
    token_type = Column(Enum(TokenTypeEnum), nullable=False)
    expires_at = Column(DateTime, nullable=False)

    user = relationship("User")
