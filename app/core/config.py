from pydantic_settings import BaseSettings
from typing import Optional, List

class Settings(BaseSettings):
    PROJECT_NAME: str = "Exam Proctor API"
    VERSION: str = "1.0.0"
    API_V1_STR: str = "/api/v1"
    SECRET_KEY: str
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24  # 1 day

    # CORS
    ALLOWED_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://127.0.0.1:3000",
    ]

    # Database Configuration
    DATABASE_HOST: Optional[str] = None
    DATABASE_PORT: Optional[str] = None
    DATABASE_USER: Optional[str] = None
    DATABASE_PASSWORD: Optional[str] = None
    DATABASE_NAME: Optional[str] = None

    DATABASE_URL: str = ""

    def __init__(self, **data):
        super().__init__(**data)
        if not self.DATABASE_URL:
            if self.DATABASE_HOST:
                self.DATABASE_URL = (
                    f'postgresql://{self.DATABASE_USER}:{self.DATABASE_PASSWORD}'
                    f'@{self.DATABASE_HOST}:{self.DATABASE_PORT}/{self.DATABASE_NAME}'
                )
            else:
                self.DATABASE_URL = "sqlite:///./exam_proctor.db"

    # Registration codes for staff roles
    ADMIN_SECRET_CODE: Optional[str] = None
    PROCTOR_SECRET_CODE: Optional[str] = None

    # Email
    SENDGRID_API_KEY: Optional[str] = None
    EMAILS_FROM_EMAIL: str = "noreply@examproctor.app"
    EMAILS_FROM_NAME: str = "Exam Proctor"
    EMAILS_ENABLED: bool = True
    FRONTEND_URL: str = "http://localhost:5173"

    # Account verification and password reset
    EMAIL_VERIFICATION_REQUIRED: bool = True
    VERIFICATION_TOKEN_EXPIRE_MINUTES: int = 60 * 24
    PASSWORD_RESET_TOKEN_EXPIRE_MINUTES: int = 60

    # Cache
    CACHE_ENABLED: bool = True
    CACHE_TTL: int = 300
    REDIS_URL: Optional[str] = None

    # Server-side expiry of abandoned attempts
    ATTEMPT_EXPIRY_ENABLED: bool = True
    ATTEMPT_EXPIRY_GRACE_SECONDS: int = 60
    ATTEMPT_EXPIRY_INTERVAL_SECONDS: int = 60

    LOG_DIR: str = "logs"
    TESTING: bool = False

    class Config:
        env_file = ".env"
        extra = "ignore"

settings = Settings()
