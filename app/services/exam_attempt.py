import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from app.core.config import settings
from app.core.constants import (
    ExamAttemptStatusEnum,
    ExamStatusEnum,
    ProctoringEventTypeEnum,
    SeverityEnum,
    SAVE_ANSWER_MAX_RETRIES,
)
from app.core.exceptions import (
    AlreadyCompletedError,
    ConflictError,
    ForbiddenError,
    InvalidStateError,
    LimitReachedError,
    NotFoundError,
)
from app.crud.enrollment import enrollment as crud_enrollment
from app.crud.exam import exam as crud_exam
from app.crud.exam_attempt import exam_attempt as crud_exam_attempt
from app.models.exam import Exam
from app.models.exam_attempt import ExamAttempt, AttemptAnswer
from app.models.proctoring_log import ProctoringLog
from app.models.user import User
from app.schemas.exam_attempt import (
    AnswerSubmission,
    AttemptExamInfo,
    AttemptQuestion,
    AttemptSession,
    ExamAttempt as ExamAttemptSchema,
    ExamAttemptSummary,
    SaveAnswerResult,
    SubmissionResult,
)
from app.schemas.question import QuestionOptionPublic
from app.schemas.response import PaginatedResponse
from app.services import scoring
from app.utils.permission import PermissionHelper as permission_helper
from app.utils.shuffle import new_seed, permute

logger = logging.getLogger(__name__)

HIDDEN_RESULT_FIELDS = {
    "obtained_marks": None,
    "percentage": None,
    "is_passed": None,
    "correct_answers": None,
    "wrong_answers": None,
    "results_hidden": True,
}


def commit_attempt_change(db: Session, attempt_id: int, expected: Sequence[ExamAttemptStatusEnum], action: str) -> None:
    """Commit a change to an attempt guarded by its version column.

    A lost race is reported as InvalidState when the attempt has left the
    expected statuses, otherwise as Conflict.
    """
    try:
        db.commit()
    except StaleDataError:
        db.rollback()
        current = crud_exam_attempt.get(db, id=attempt_id)
        if current is None:
            raise NotFoundError("Exam attempt not found.")
        if current.status not in expected:
            logger.info(f"Lost race to {action} attempt {attempt_id}: status is now {current.status.value}")
            raise InvalidStateError(f"Cannot {action} an exam attempt that is {current.status.value}.")
        raise ConflictError("The exam attempt was modified concurrently. Please retry.")


class ExamAttemptService:

    def _get_attempt(self, db: Session, attempt_id: int) -> ExamAttempt:
        attempt = crud_exam_attempt.get(db, id=attempt_id)
        if not attempt:
            raise NotFoundError("Exam attempt not found.")
        return attempt

    def _require_in_progress(self, attempt: ExamAttempt, action: str):
        if attempt.status != ExamAttemptStatusEnum.IN_PROGRESS:
            raise InvalidStateError(f"Cannot {action} an exam attempt that is {attempt.status.value}.")

    def _require_startable(self, db: Session, exam: Exam, current_user: User):
        permission_helper.require_student(current_user, "Only students can start exam attempts.")

        if not crud_enrollment.is_enrolled(db, exam_id=exam.id, student_id=current_user.id):
            raise ForbiddenError("You are not enrolled in this exam.")

        if exam.status == ExamStatusEnum.CANCELLED:
            raise InvalidStateError("This exam has been cancelled.")

        if exam.question_count == 0:
            raise InvalidStateError("This exam has no questions. Please contact the administrator.")

    def start_or_resume(self, db: Session, *, exam_id: int, current_user: User) -> AttemptSession:
        exam = crud_exam.get(db, id=exam_id)
        if not exam:
            raise NotFoundError("Exam not found.")

        self._require_startable(db, exam, current_user)

        try:
            attempt, resumed = self._resolve_attempt(db, exam, current_user.id)
        except IntegrityError:
            # another request claimed the same ordinal first
            db.rollback()
            logger.info(f"Concurrent start for exam {exam_id} by student {current_user.id}; re-resolving")
            exam = crud_exam.get(db, id=exam_id)
            attempt, resumed = self._resolve_attempt(db, exam, current_user.id)

        return self._build_session(attempt, exam, resumed)

    def _resolve_attempt(self, db: Session, exam: Exam, student_id: int) -> Tuple[ExamAttempt, bool]:
        existing = crud_exam_attempt.get_in_progress(db, student_id=student_id, exam_id=exam.id)
        if existing:
            logger.info(f"Resuming attempt {existing.id} for exam {exam.id} (student {student_id})")
            return existing, True

        attempts_used = crud_exam_attempt.count_by_student_and_exam(db, student_id=student_id, exam_id=exam.id)
        if attempts_used >= exam.max_attempts:
            completed = crud_exam_attempt.get_latest_completed(db, student_id=student_id, exam_id=exam.id)
            if completed:
                raise AlreadyCompletedError(completed.id)
            raise LimitReachedError("Maximum attempts reached for this exam.")

        now = datetime.utcnow()
        attempt = ExamAttempt(
            exam_id=exam.id,
            student_id=student_id,
            attempt_number=attempts_used + 1,
            status=ExamAttemptStatusEnum.IN_PROGRESS,
            total_marks=exam.total_marks,
            started_at=now,
            last_activity_at=now,
            shuffle_seed=new_seed(),
            shuffle_questions=bool(exam.shuffle_questions),
            shuffle_options=bool(exam.shuffle_options),
        )
        attempt.answers = [
            AttemptAnswer(question_id=question.id, position=position)
            for position, question in enumerate(exam.questions)
        ]
        db.add(attempt)
        if exam.is_proctored:
            db.add(ProctoringLog(
                exam_id=exam.id,
                student_id=student_id,
                attempt=attempt,
                event_type=ProctoringEventTypeEnum.EXAM_STARTED,
                severity=SeverityEnum.LOW,
                description="Exam started",
                timestamp=now,
            ))
        db.commit()
        logger.info(f"Started attempt {attempt.id} (#{attempt.attempt_number}) for exam {exam.id} by student {student_id}")
        return crud_exam_attempt.get(db, id=attempt.id), False

    def _build_session(self, attempt: ExamAttempt, exam: Exam, resumed: bool) -> AttemptSession:
        answers = list(attempt.answers)
        if attempt.shuffle_questions:
            answers = permute(answers, attempt.shuffle_seed, "questions")

        questions = []
        for answer in answers:
            question = answer.question
            options = list(question.options)
            if attempt.shuffle_options and options:
                options = permute(options, attempt.shuffle_seed, str(question.id))
            questions.append(AttemptQuestion(
                id=question.id,
                question_text=question.question_text,
                question_type=question.question_type,
                marks=question.marks,
                negative_marks=question.negative_marks,
                options=[QuestionOptionPublic.model_validate(option) for option in options],
                selected_option=answer.selected_option,
                time_taken=answer.time_taken or 0,
            ))

        exam_info = AttemptExamInfo.model_validate(exam).model_copy(update={"total_marks": attempt.total_marks})
        return AttemptSession(
            attempt_id=attempt.id,
            attempt_number=attempt.attempt_number,
            status=attempt.status,
            resumed=resumed,
            started_at=attempt.started_at,
            expires_at=attempt.started_at + timedelta(minutes=exam.duration_minutes),
            exam=exam_info,
            questions=questions,
        )

    def save_answer(self, db: Session, *, attempt_id: int, answer_in: AnswerSubmission, current_user: User) -> SaveAnswerResult:
        for _ in range(SAVE_ANSWER_MAX_RETRIES):
            attempt = self._get_attempt(db, attempt_id)
            permission_helper.require_attempt_owner(current_user, attempt)
            self._require_in_progress(attempt, "save answers for")

            answer = next((a for a in attempt.answers if a.question_id == answer_in.question_id), None)
            if answer is None:
                return SaveAnswerResult(attempt_id=attempt_id, question_id=answer_in.question_id, saved=False)

            answer.selected_option = answer_in.selected_option
            if answer_in.time_taken is not None:
                answer.time_taken = answer_in.time_taken
            attempt.last_activity_at = datetime.utcnow()

            try:
                db.commit()
                return SaveAnswerResult(attempt_id=attempt_id, question_id=answer_in.question_id, saved=True)
            except StaleDataError:
                db.rollback()
                logger.info(f"Concurrent update on attempt {attempt_id} while saving an answer; retrying")

        raise ConflictError("The exam attempt is being modified concurrently. Please retry.")

    def _merge_answers(self, attempt: ExamAttempt, submitted: Iterable[AnswerSubmission]):
        by_question = {answer.question_id: answer for answer in attempt.answers}
        for answer_in in submitted:
            answer = by_question.get(answer_in.question_id)
            if answer is None:
                continue
            answer.selected_option = answer_in.selected_option
            if answer_in.time_taken is not None:
                answer.time_taken = answer_in.time_taken

    def _finalize(self, db: Session, attempt: ExamAttempt, *, now: datetime) -> ExamAttempt:
        """Score every answer and move the attempt to submitted."""
        exam = attempt.exam
        for answer in attempt.answers:
            answer.is_correct, answer.marks_obtained = scoring.auto_grade(answer.question, answer.selected_option)

        totals = scoring.compute_totals(attempt.answers, attempt.total_marks, exam.passing_marks)
        scoring.apply_totals(attempt, totals)
        attempt.submitted_at = now
        attempt.last_activity_at = now
        attempt.time_taken = max(0, int((now - attempt.started_at).total_seconds()))
        attempt.status = ExamAttemptStatusEnum.SUBMITTED

        if exam.is_proctored:
            db.add(ProctoringLog(
                exam_id=exam.id,
                student_id=attempt.student_id,
                attempt_id=attempt.id,
                event_type=ProctoringEventTypeEnum.EXAM_SUBMITTED,
                severity=SeverityEnum.LOW,
                description="Exam submitted",
                timestamp=now,
            ))

        attempt_id = attempt.id
        commit_attempt_change(db, attempt_id, (ExamAttemptStatusEnum.IN_PROGRESS,), "submit")
        logger.info(
            f"Attempt {attempt_id} submitted: {totals.obtained_marks}/{attempt.total_marks} "
            f"({totals.percentage}%), passed={totals.is_passed}"
        )
        return crud_exam_attempt.get(db, id=attempt_id)

    def submit(self, db: Session, *, attempt_id: int, answers: List[AnswerSubmission], current_user: User) -> ExamAttempt:
        attempt = self._get_attempt(db, attempt_id)
        permission_helper.require_attempt_owner(current_user, attempt)
        self._require_in_progress(attempt, "submit")

        self._merge_answers(attempt, answers)
        return self._finalize(db, attempt, now=datetime.utcnow())

    def build_submission_result(self, attempt: ExamAttempt) -> SubmissionResult:
        show_result = bool(attempt.exam.show_result_immediately)
        return SubmissionResult(
            attempt_id=attempt.id,
            status=attempt.status,
            submitted_at=attempt.submitted_at,
            show_result=show_result,
            result=ExamAttemptSchema.model_validate(attempt) if show_result else None,
        )

    def build_result_notification(self, attempt: ExamAttempt) -> Dict[str, Any]:
        return {
            "attempt_id": attempt.id,
            "exam_id": attempt.exam_id,
            "exam_title": attempt.exam.title,
            "student_email": attempt.student.email,
            "student_name": attempt.student.full_name,
            "show_result": bool(attempt.exam.show_result_immediately),
            "obtained_marks": attempt.obtained_marks,
            "total_marks": attempt.total_marks,
            "percentage": attempt.percentage,
            "is_passed": attempt.is_passed,
            "correct_answers": attempt.correct_answers,
            "wrong_answers": attempt.wrong_answers,
            "unanswered": attempt.unanswered,
            "pending_review": any(scoring.is_pending_review(answer) for answer in attempt.answers),
            "submitted_at": attempt.submitted_at.isoformat() if attempt.submitted_at else None,
        }

    def expire_overdue_attempts(self, db: Session, now: Optional[datetime] = None) -> List[Dict[str, Any]]:
        """Auto-submit in-progress attempts whose time ran out.

        Returns the result notifications of the attempts that were closed.
        """
        now = now or datetime.utcnow()
        grace = timedelta(seconds=settings.ATTEMPT_EXPIRY_GRACE_SECONDS)

        overdue_ids = [
            attempt.id
            for attempt in crud_exam_attempt.get_all_in_progress(db)
            if attempt.started_at + timedelta(minutes=attempt.exam.duration_minutes) + grace <= now
        ]

        notifications = []
        for attempt_id in overdue_ids:
            attempt = crud_exam_attempt.get(db, id=attempt_id)
            if attempt is None or attempt.status != ExamAttemptStatusEnum.IN_PROGRESS:
                continue
            try:
                finalized = self._finalize(db, attempt, now=now)
            except (InvalidStateError, ConflictError) as e:
                logger.info(f"Skipping expiry of attempt {attempt_id}: {e.detail}")
                continue
            logger.info(f"Auto-submitted overdue attempt {attempt_id}")
            notifications.append(self.build_result_notification(finalized))

        return notifications

    def get_attempt(self, db: Session, *, attempt_id: int, current_user: User) -> ExamAttempt:
        attempt = self._get_attempt(db, attempt_id)
        permission_helper.require_attempt_view_permission(current_user, attempt)
        return attempt

    def present_summary(self, attempt: ExamAttempt, viewer: User) -> ExamAttemptSummary:
        summary = ExamAttemptSummary.model_validate(attempt)
        if permission_helper.can_view_results(viewer, attempt):
            return summary
        return summary.model_copy(update=HIDDEN_RESULT_FIELDS)

    def present_attempt(self, attempt: ExamAttempt, viewer: User) -> ExamAttemptSchema:
        """Full attempt view; scores and answer correctness withheld when the viewer may not see them yet."""
        detail = ExamAttemptSchema.model_validate(attempt)
        if permission_helper.can_view_results(viewer, attempt):
            return detail
        answers = [answer.model_copy(update={"is_correct": None, "marks_obtained": None}) for answer in detail.answers]
        return detail.model_copy(update={**HIDDEN_RESULT_FIELDS, "answers": answers})

    def get_my_attempts(
        self, db: Session, *, current_user: User, page: int = 1, size: int = 20
    ) -> PaginatedResponse[ExamAttemptSummary]:
        query = crud_exam_attempt.query_by_student(db, student_id=current_user.id)
        attempts, total = crud_exam_attempt.paginate(query, page=page, size=size)
        return PaginatedResponse[ExamAttemptSummary].build(
            [self.present_summary(a, current_user) for a in attempts], total, page, size
        )

    def get_exam_results(self, db: Session, *, exam_id: int, current_user: User) -> List[ExamAttempt]:
        permission_helper.require_staff(current_user, "Only staff can view exam results.")
        exam = crud_exam.get(db, id=exam_id)
        if not exam:
            raise NotFoundError("Exam not found.")
        return crud_exam_attempt.get_results_by_exam(db, exam_id=exam_id)

    def add_feedback(self, db: Session, *, attempt_id: int, feedback: str, current_user: User) -> ExamAttempt:
        permission_helper.require_staff(current_user, "Only staff can add feedback.")
        attempt = self._get_attempt(db, attempt_id)
        if attempt.status == ExamAttemptStatusEnum.IN_PROGRESS:
            raise InvalidStateError("Feedback can only be added once the attempt has ended.")

        attempt.feedback = feedback
        attempt.reviewed_by_id = current_user.id
        attempt.reviewed_at = datetime.utcnow()
        commit_attempt_change(
            db,
            attempt_id,
            (ExamAttemptStatusEnum.SUBMITTED, ExamAttemptStatusEnum.EVALUATED, ExamAttemptStatusEnum.FLAGGED),
            "add feedback to",
        )
        return crud_exam_attempt.get(db, id=attempt_id)


exam_attempt_service = ExamAttemptService()
