import io
import logging
from collections import defaultdict
from datetime import datetime
from typing import Dict, List, Optional

import pandas as pd
from sqlalchemy.orm import Session, selectinload

from app.core.constants import RoleEnum, SCORE_DISTRIBUTION_BUCKETS
from app.core.exceptions import NotFoundError
from app.crud.exam import exam as crud_exam
from app.crud.exam_attempt import exam_attempt as crud_exam_attempt
from app.crud.question import question as crud_question
from app.crud.user import user as crud_user
from app.models.exam_attempt import ExamAttempt, AttemptAnswer
from app.models.user import User
from app.schemas.analytics import (
    CategoryStats,
    DashboardStats,
    ExamAnalytics,
    MonthlyTrend,
    QuestionAnalytics,
    StudentAnalytics,
)
from app.schemas.exam_attempt import ExamAttemptSummary
from app.utils.permission import PermissionHelper as permission_helper

logger = logging.getLogger(__name__)

CSV_COLUMNS = [
    "student_name",
    "student_email",
    "attempt_number",
    "status",
    "obtained_marks",
    "total_marks",
    "percentage",
    "is_passed",
    "correct_answers",
    "wrong_answers",
    "unanswered",
    "time_taken_minutes",
    "submitted_at",
]


def _average(values) -> float:
    values = list(values)
    return round(sum(values) / len(values), 2) if values else 0.0


def score_bucket(percentage: float) -> str:
    for label, _lo, hi in SCORE_DISTRIBUTION_BUCKETS:
        if percentage < hi + 1:
            return label
    return SCORE_DISTRIBUTION_BUCKETS[-1][0]


def _month_key(moment: datetime) -> str:
    return moment.strftime("%Y-%m")


def _last_months(now: datetime, count: int) -> List[str]:
    months = []
    year, month = now.year, now.month
    for _ in range(count):
        months.append(f"{year:04d}-{month:02d}")
        month -= 1
        if month == 0:
            year, month = year - 1, 12
    return list(reversed(months))


class AnalyticsService:

    def get_exam_analytics(self, db: Session, *, exam_id: int, current_user: User) -> ExamAnalytics:
        permission_helper.require_staff(current_user, "Only staff can view exam analytics.")
        exam = crud_exam.get(db, id=exam_id)
        if not exam:
            raise NotFoundError("Exam not found.")

        attempts = (
            crud_exam_attempt.query_completed(db, exam_id=exam_id)
            .options(selectinload(ExamAttempt.answers).selectinload(AttemptAnswer.question))
            .all()
        )
        obtained = [a.obtained_marks for a in attempts]
        passed = sum(1 for a in attempts if a.is_passed)

        distribution = {label: 0 for label, _lo, _hi in SCORE_DISTRIBUTION_BUCKETS}
        for attempt in attempts:
            distribution[score_bucket(attempt.percentage)] += 1

        per_question: Dict[int, List[AttemptAnswer]] = defaultdict(list)
        for attempt in attempts:
            for answer in attempt.answers:
                per_question[answer.question_id].append(answer)

        question_analytics = []
        for exam_question in exam.exam_questions:
            answers = per_question.get(exam_question.question_id, [])
            correct = sum(1 for a in answers if a.is_correct)
            question_analytics.append(QuestionAnalytics(
                question_id=exam_question.question_id,
                question_text=exam_question.question.question_text,
                total_attempts=len(answers),
                correct_attempts=correct,
                accuracy=round(correct / len(answers) * 100, 2) if answers else 0.0,
                average_time=_average(a.time_taken for a in answers),
            ))

        return ExamAnalytics(
            exam_id=exam.id,
            exam_title=exam.title,
            total_attempts=len(attempts),
            average_score=_average(obtained),
            highest_score=max(obtained) if obtained else 0.0,
            lowest_score=min(obtained) if obtained else 0.0,
            pass_count=passed,
            fail_count=len(attempts) - passed,
            pass_percentage=round(passed / len(attempts) * 100, 2) if attempts else 0.0,
            score_distribution=distribution,
            question_analytics=question_analytics,
        )

    def get_student_analytics(self, db: Session, *, student_id: int, current_user: User) -> StudentAnalytics:
        permission_helper.require_student_access(current_user, student_id)
        student = crud_user.get(db, id=student_id)
        if not student or student.role != RoleEnum.STUDENT:
            raise NotFoundError("Student not found.")

        attempts = (
            crud_exam_attempt.query_completed(db, student_id=student_id)
            .options(selectinload(ExamAttempt.exam))
            .order_by(ExamAttempt.submitted_at.desc(), ExamAttempt.id.desc())
            .all()
        )
        attempts = [a for a in attempts if permission_helper.can_view_results(current_user, a)]
        passed = sum(1 for a in attempts if a.is_passed)

        by_category: Dict[str, List[ExamAttempt]] = defaultdict(list)
        for attempt in attempts:
            by_category[attempt.exam.category or "Uncategorized"].append(attempt)

        return StudentAnalytics(
            student_id=student_id,
            total_exams=len(attempts),
            passed=passed,
            failed=len(attempts) - passed,
            average_percentage=_average(a.percentage for a in attempts),
            average_time_minutes=round(_average(a.time_taken for a in attempts) / 60, 2),
            category_stats=[
                CategoryStats(
                    category=category,
                    total=len(items),
                    passed=sum(1 for a in items if a.is_passed),
                    average_percentage=_average(a.percentage for a in items),
                )
                for category, items in sorted(by_category.items())
            ],
            recent_results=[ExamAttemptSummary.model_validate(a) for a in attempts[:5]],
        )

    def get_dashboard(self, db: Session, *, current_user: User, now: Optional[datetime] = None) -> DashboardStats:
        permission_helper.require_staff(current_user, "Only staff can view the dashboard.")
        now = now or datetime.utcnow()

        attempts = (
            crud_exam_attempt.query_completed(db)
            .order_by(ExamAttempt.submitted_at.desc(), ExamAttempt.id.desc())
            .all()
        )
        passed = sum(1 for a in attempts if a.is_passed)

        months = _last_months(now, 6)
        per_month: Dict[str, List[ExamAttempt]] = {month: [] for month in months}
        for attempt in attempts:
            if attempt.submitted_at is None:
                continue
            key = _month_key(attempt.submitted_at)
            if key in per_month:
                per_month[key].append(attempt)

        return DashboardStats(
            total_exams=crud_exam.count_active(db),
            total_questions=crud_question.count_active(db),
            total_students=crud_user.count_by_role(db, role=RoleEnum.STUDENT),
            total_attempts=len(attempts),
            passed=passed,
            failed=len(attempts) - passed,
            average_percentage=_average(a.percentage for a in attempts),
            recent_results=[ExamAttemptSummary.model_validate(a) for a in attempts[:10]],
            monthly_trend=[
                MonthlyTrend(
                    month=month,
                    total=len(per_month[month]),
                    passed=sum(1 for a in per_month[month] if a.is_passed),
                    average_percentage=_average(a.percentage for a in per_month[month]),
                )
                for month in months
            ],
        )

    def export_exam_results_csv(self, db: Session, *, exam_id: int, current_user: User) -> str:
        permission_helper.require_staff(current_user, "Only staff can export exam results.")
        exam = crud_exam.get(db, id=exam_id)
        if not exam:
            raise NotFoundError("Exam not found.")

        rows = [
            {
                "student_name": attempt.student.full_name,
                "student_email": attempt.student.email,
                "attempt_number": attempt.attempt_number,
                "status": attempt.status.value,
                "obtained_marks": attempt.obtained_marks,
                "total_marks": attempt.total_marks,
                "percentage": attempt.percentage,
                "is_passed": attempt.is_passed,
                "correct_answers": attempt.correct_answers,
                "wrong_answers": attempt.wrong_answers,
                "unanswered": attempt.unanswered,
                "time_taken_minutes": round(attempt.time_taken / 60, 2),
                "submitted_at": attempt.submitted_at.isoformat() if attempt.submitted_at else "",
            }
            for attempt in crud_exam_attempt.get_results_by_exam(db, exam_id=exam_id)
        ]
        df = pd.DataFrame(rows, columns=CSV_COLUMNS)

        buffer = io.StringIO()
        df.to_csv(buffer, index=False)
        logger.info(f"Exported {len(df)} result rows for exam {exam_id}")
        return buffer.getvalue()


analytics_service = AnalyticsService()
