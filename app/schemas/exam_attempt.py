from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List
from datetime import datetime

from app.core.constants import ExamAttemptStatusEnum
from app.schemas.question import QuestionPublic


class AnswerSubmission(BaseModel):
    question_id: int
    selected_option: Optional[str] = None
    time_taken: Optional[int] = Field(None, ge=0)

class SubmitRequest(BaseModel):
    answers: List[AnswerSubmission] = []

class FeedbackRequest(BaseModel):
    feedback: str = Field(..., min_length=1)


class AttemptAnswer(BaseModel):
    id: int
    question_id: int
    selected_option: Optional[str] = None
    is_correct: Optional[bool] = None
    marks_obtained: Optional[float] = None
    time_taken: int
    feedback: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)

class ProctoringFlag(BaseModel):
    flag_type: str
    description: Optional[str] = None
    timestamp: datetime

    model_config = ConfigDict(from_attributes=True)

class ExamAttemptSummary(BaseModel):
    id: int
    exam_id: int
    student_id: int
    attempt_number: int
    status: ExamAttemptStatusEnum
    total_marks: float
    # None while results_hidden
    obtained_marks: Optional[float] = None
    percentage: Optional[float] = None
    is_passed: Optional[bool] = None
    correct_answers: Optional[int] = None
    wrong_answers: Optional[int] = None
    unanswered: int
    time_taken: int
    started_at: datetime
    submitted_at: Optional[datetime] = None
    results_hidden: bool = False

    model_config = ConfigDict(from_attributes=True)

class ExamAttempt(ExamAttemptSummary):
    answers: List[AttemptAnswer] = []
    proctoring_flags: List[ProctoringFlag] = []
    feedback: Optional[str] = None
    reviewed_by_id: Optional[int] = None
    reviewed_at: Optional[datetime] = None


class AttemptExamInfo(BaseModel):
    """The exam fields a timer and proctoring client need."""
    id: int
    title: str
    instructions: Optional[str] = None
    duration_minutes: int
    per_question_time: Optional[int] = None
    total_marks: float
    is_proctored: bool
    video_monitoring: bool
    browser_lockdown: bool
    identity_verification: bool
    tab_switch_limit: int
    allow_review: bool

    model_config = ConfigDict(from_attributes=True)

class AttemptQuestion(QuestionPublic):
    selected_option: Optional[str] = None
    time_taken: int = 0

class AttemptSession(BaseModel):
    attempt_id: int
    attempt_number: int
    status: ExamAttemptStatusEnum
    resumed: bool
    started_at: datetime
    expires_at: datetime
    exam: AttemptExamInfo
    questions: List[AttemptQuestion]

class SaveAnswerResult(BaseModel):
    attempt_id: int
    question_id: int
    saved: bool

class SubmissionResult(BaseModel):
    attempt_id: int
    status: ExamAttemptStatusEnum
    submitted_at: datetime
    show_result: bool
    result: Optional[ExamAttempt] = None
