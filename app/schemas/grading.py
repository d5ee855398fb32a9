from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime


class GradeAnswerRequest(BaseModel):
    marks_obtained: float
    is_correct: bool
    feedback: Optional[str] = None

class BulkGradeEntry(GradeAnswerRequest):
    answer_id: int

class BulkGradeRequest(BaseModel):
    grades: List[BulkGradeEntry] = Field(..., min_length=1)
    feedback: Optional[str] = None

class PendingAnswer(BaseModel):
    answer_id: int
    question_id: int
    question_text: str
    max_marks: float
    negative_marks: float
    selected_option: str

class PendingGradingItem(BaseModel):
    attempt_id: int
    exam_id: int
    exam_title: str
    student_id: int
    student_name: str
    submitted_at: Optional[datetime] = None
    pending_answers: List[PendingAnswer]
