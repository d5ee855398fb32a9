from pydantic import BaseModel
from typing import List, Dict

from app.schemas.exam_attempt import ExamAttemptSummary


class QuestionAnalytics(BaseModel):
    question_id: int
    question_text: str
    total_attempts: int
    correct_attempts: int
    accuracy: float
    average_time: float

class ExamAnalytics(BaseModel):
    exam_id: int
    exam_title: str
    total_attempts: int
    average_score: float
    highest_score: float
    lowest_score: float
    pass_count: int
    fail_count: int
    pass_percentage: float
    score_distribution: Dict[str, int]
    question_analytics: List[QuestionAnalytics]

class CategoryStats(BaseModel):
    category: str
    total: int
    passed: int
    average_percentage: float

class StudentAnalytics(BaseModel):
    student_id: int
    total_exams: int
    passed: int
    failed: int
    average_percentage: float
    average_time_minutes: float
    category_stats: List[CategoryStats]
    recent_results: List[ExamAttemptSummary]

class MonthlyTrend(BaseModel):
    month: str
    total: int
    passed: int
    average_percentage: float

class DashboardStats(BaseModel):
    total_exams: int
    total_questions: int
    total_students: int
    total_attempts: int
    passed: int
    failed: int
    average_percentage: float
    recent_results: List[ExamAttemptSummary]
    monthly_trend: List[MonthlyTrend]
