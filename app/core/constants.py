from enum import Enum


class RoleEnum(str, Enum):
    STUDENT = "student"
    ADMIN = "admin"
    PROCTOR = "proctor"

STAFF_ROLES = (RoleEnum.ADMIN, RoleEnum.PROCTOR)

class TokenTypeEnum(str, Enum):
    ACCOUNT_VERIFICATION = "account_verification"
    PASSWORD_RESET = "password_reset"

class QuestionTypeEnum(str, Enum):
    SINGLE_CHOICE = "single_choice"
    TRUE_FALSE = "true_false"
    FREE_TEXT = "free_text"

class DifficultyLevelEnum(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"

class ExamStatusEnum(str, Enum):
    DRAFT = "draft"
    SCHEDULED = "scheduled"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

class ExamAttemptStatusEnum(str, Enum):
    IN_PROGRESS = "in_progress"
    SUBMITTED = "submitted"
    EVALUATED = "evaluated"
    FLAGGED = "flagged"

COMPLETED_ATTEMPT_STATUSES = (ExamAttemptStatusEnum.SUBMITTED, ExamAttemptStatusEnum.EVALUATED)

class ProctoringEventTypeEnum(str, Enum):
    TAB_SWITCH = "tab_switch"
    WINDOW_BLUR = "window_blur"
    COPY_PASTE = "copy_paste"
    RIGHT_CLICK = "right_click"
    FULLSCREEN_EXIT = "fullscreen_exit"
    FACE_NOT_DETECTED = "face_not_detected"
    MULTIPLE_FACES = "multiple_faces"
    SUSPICIOUS_MOVEMENT = "suspicious_movement"
    BROWSER_RESIZE = "browser_resize"
    DEVTOOLS_OPEN = "devtools_open"
    SCREENSHOT_ATTEMPT = "screenshot_attempt"
    IDENTITY_MISMATCH = "identity_mismatch"
    NETWORK_DISCONNECT = "network_disconnect"
    EXAM_STARTED = "exam_started"
    EXAM_SUBMITTED = "exam_submitted"
    EXAM_TERMINATED = "exam_terminated"

class SeverityEnum(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

SCORE_DISTRIBUTION_BUCKETS = (
    ("0-20", 0, 20),
    ("21-40", 21, 40),
    ("41-60", 41, 60),
    ("61-80", 61, 80),
    ("81-100", 81, 100),
)

ANALYTICS_CACHE_PREFIX = "analytics"
SAVE_ANSWER_MAX_RETRIES = 3
TAB_SWITCH_TERMINATION_REASON = "Tab switch limit exceeded"
