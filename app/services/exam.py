import logging
from datetime import datetime
from typing import List, Optional, Sequence

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.constants import ExamStatusEnum, RoleEnum, STAFF_ROLES
from app.core.exceptions import DomainValidationError, InvalidStateError, NotFoundError
from app.crud.enrollment import enrollment as crud_enrollment
from app.crud.exam import exam as crud_exam
from app.crud.exam_attempt import exam_attempt as crud_exam_attempt
from app.crud.question import question as crud_question
from app.crud.user import user as crud_user
from app.models.exam import Exam, ExamEnrollment
from app.models.question import Question
from app.models.user import User
from app.schemas.exam import (
    EnrolledExam,
    Exam as ExamSchema,
    ExamCreate,
    ExamStats,
    ExamUpdate,
    ReminderResult,
)
from app.schemas.response import PaginatedResponse
from app.services.exam_attempt import exam_attempt_service
from app.services.notification import notification_service
from app.utils.permission import PermissionHelper as permission_helper

logger = logging.getLogger(__name__)


class ExamService:

    def _get_exam(self, db: Session, exam_id: int) -> Exam:
        exam = crud_exam.get(db, id=exam_id)
        if not exam:
            raise NotFoundError("Exam not found.")
        return exam

    def _load_questions(self, db: Session, question_ids: Sequence[int]) -> List[Question]:
        """Active questions in the requested order; unknown or retired ids are rejected."""
        ordered_ids = list(dict.fromkeys(question_ids))
        found = {q.id: q for q in crud_question.get_by_ids(db, ids=ordered_ids)}
        missing = [qid for qid in ordered_ids if qid not in found]
        if missing:
            raise DomainValidationError(
                f"Unknown or retired question id(s): {missing}.",
                details={"question_ids": missing},
            )
        return [found[qid] for qid in ordered_ids]

    def recompute_total_marks(self, exam: Exam) -> float:
        exam.total_marks = float(sum(eq.question.marks for eq in exam.exam_questions))
        return exam.total_marks

    def create_exam(self, db: Session, *, exam_in: ExamCreate, current_user: User) -> Exam:
        permission_helper.require_staff(current_user, "Only staff can create exams.")
        questions = self._load_questions(db, exam_in.question_ids)

        exam = Exam(**exam_in.model_dump(exclude={"question_ids"}), created_by_id=current_user.id)
        db.add(exam)
        crud_exam.set_questions(db, db_obj=exam, questions=questions)
        self.recompute_total_marks(exam)
        db.commit()
        logger.info(f"Exam {exam.id} '{exam.title}' created by {current_user.id} with {len(questions)} questions")
        return self._get_exam(db, exam.id)

    def get_exams(
        self,
        db: Session,
        *,
        status: Optional[ExamStatusEnum] = None,
        category: Optional[str] = None,
        page: int = 1,
        size: int = 10,
        current_user: User,
    ) -> PaginatedResponse[ExamSchema]:
        permission_helper.require_staff(current_user, "Only staff can list all exams.")
        query = crud_exam.query_filtered(db, status=status, category=category)
        exams, total = crud_exam.paginate(query, page=page, size=size)
        return PaginatedResponse[ExamSchema].build([ExamSchema.model_validate(e) for e in exams], total, page, size)

    def get_exam(self, db: Session, *, exam_id: int, current_user: User) -> Exam:
        exam = self._get_exam(db, exam_id)
        if permission_helper.is_student(current_user) and not crud_enrollment.is_enrolled(
            db, exam_id=exam_id, student_id=current_user.id
        ) and exam.status not in (ExamStatusEnum.SCHEDULED, ExamStatusEnum.ACTIVE):
            raise NotFoundError("Exam not found.")
        return exam

    def update_exam(self, db: Session, *, exam_id: int, exam_in: ExamUpdate, current_user: User) -> Exam:
        permission_helper.require_staff(current_user, "Only staff can update exams.")
        exam = self._get_exam(db, exam_id)
        update_data = exam_in.model_dump(exclude_unset=True)
        question_ids = update_data.pop("question_ids", None)

        for field, value in update_data.items():
            setattr(exam, field, value)

        if question_ids is not None:
            crud_exam.set_questions(db, db_obj=exam, questions=self._load_questions(db, question_ids))
            self.recompute_total_marks(exam)

        db.commit()
        logger.info(f"Exam {exam_id} updated by {current_user.id}")
        return self._get_exam(db, exam_id)

    def delete_exam(self, db: Session, *, exam_id: int, current_user: User) -> Exam:
        permission_helper.require_staff(current_user, "Only staff can delete exams.")
        self._get_exam(db, exam_id)
        exam = crud_exam.delete(db, id=exam_id)
        logger.info(f"Exam {exam_id} deleted by {current_user.id}")
        return exam

    def add_questions(self, db: Session, *, exam_id: int, question_ids: List[int], current_user: User) -> Exam:
        permission_helper.require_staff(current_user, "Only staff can change exam questions.")
        exam = self._get_exam(db, exam_id)
        added = crud_exam.append_questions(db, db_obj=exam, questions=self._load_questions(db, question_ids))
        self.recompute_total_marks(exam)
        db.commit()
        logger.info(f"{added} question(s) added to exam {exam_id}")
        return self._get_exam(db, exam_id)

    def remove_question(self, db: Session, *, exam_id: int, question_id: int, current_user: User) -> Exam:
        permission_helper.require_staff(current_user, "Only staff can change exam questions.")
        exam = self._get_exam(db, exam_id)
        if not crud_exam.remove_question(db, db_obj=exam, question_id=question_id):
            raise NotFoundError("Question is not part of this exam.")
        self.recompute_total_marks(exam)
        db.commit()
        return self._get_exam(db, exam_id)

    def get_available_exams(self, db: Session, *, current_user: User) -> List[Exam]:
        permission_helper.require_student(current_user, "Only students can browse available exams.")
        today = datetime.utcnow().replace(hour=0, minute=0, second=0, microsecond=0)
        return crud_exam.get_available_for_student(db, student_id=current_user.id, from_date=today)

    def enroll(self, db: Session, *, exam_id: int, current_user: User) -> ExamEnrollment:
        permission_helper.require_student(current_user, "Only students can enroll in exams.")
        exam = self._get_exam(db, exam_id)
        if exam.status == ExamStatusEnum.CANCELLED:
            raise InvalidStateError("This exam has been cancelled.")
        if crud_enrollment.is_enrolled(db, exam_id=exam_id, student_id=current_user.id):
            raise InvalidStateError("You are already enrolled in this exam.")

        try:
            enrollment = crud_enrollment.create(
                db, obj_in={"exam_id": exam_id, "student_id": current_user.id, "enrolled_at": datetime.utcnow()}
            )
        except IntegrityError:
            # a concurrent request enrolled the same student first
            db.rollback()
            raise InvalidStateError("You are already enrolled in this exam.")
        logger.info(f"Student {current_user.id} enrolled in exam {exam_id}")
        return enrollment

    def get_enrolled_exams(self, db: Session, *, current_user: User) -> List[EnrolledExam]:
        permission_helper.require_student(current_user, "Only students have enrolled exams.")
        enrolled = []
        for enrollment in crud_enrollment.get_by_student(db, student_id=current_user.id):
            exam = crud_exam.get(db, id=enrollment.exam_id)
            if exam is None:
                continue
            attempts = crud_exam_attempt.get_by_student_and_exam(db, student_id=current_user.id, exam_id=exam.id)
            latest = crud_exam_attempt.get_latest_completed(db, student_id=current_user.id, exam_id=exam.id)
            enrolled.append(EnrolledExam(
                exam=ExamSchema.model_validate(exam),
                enrolled_at=enrollment.enrolled_at,
                attempts_used=len(attempts),
                is_completed=latest is not None,
                latest_result=exam_attempt_service.present_summary(latest, current_user) if latest else None,
            ))
        return enrolled

    def get_stats(self, db: Session, *, current_user: User) -> ExamStats:
        permission_helper.require_staff(current_user, "Only staff can view exam statistics.")
        return ExamStats(
            total=crud_exam.count_active(db),
            by_status=crud_exam.count_grouped(db, Exam.status),
            by_category=crud_exam.count_grouped(db, Exam.category),
        )

    def assign_proctors(self, db: Session, *, exam_id: int, proctor_ids: List[int], current_user: User) -> Exam:
        permission_helper.require_staff(current_user, "Only staff can assign proctors.")
        exam = self._get_exam(db, exam_id)
        proctors = crud_user.get_by_ids(db, ids=proctor_ids)
        valid = {p.id: p for p in proctors if p.role in STAFF_ROLES}
        invalid = [pid for pid in proctor_ids if pid not in valid]
        if invalid:
            raise DomainValidationError(
                f"User(s) {invalid} are not proctors or admins.",
                details={"proctor_ids": invalid},
            )

        current = {p.id for p in exam.proctors}
        for proctor_id in proctor_ids:
            if proctor_id not in current:
                exam.proctors.append(valid[proctor_id])
        db.commit()
        logger.info(f"Proctors {proctor_ids} assigned to exam {exam_id}")
        return self._get_exam(db, exam_id)

    def remove_proctor(self, db: Session, *, exam_id: int, proctor_id: int, current_user: User) -> Exam:
        permission_helper.require_staff(current_user, "Only staff can remove proctors.")
        exam = self._get_exam(db, exam_id)
        proctor = next((p for p in exam.proctors if p.id == proctor_id), None)
        if proctor is None:
            raise NotFoundError("Proctor is not assigned to this exam.")
        exam.proctors.remove(proctor)
        db.commit()
        return self._get_exam(db, exam_id)

    def get_proctor_exams(self, db: Session, *, current_user: User) -> List[Exam]:
        permission_helper.require_staff(current_user, "Only proctors have assigned exams.")
        return crud_exam.get_by_proctor(db, proctor_id=current_user.id)

    def get_available_proctors(self, db: Session, *, current_user: User) -> List[User]:
        permission_helper.require_staff(current_user, "Only staff can list proctors.")
        return crud_user.get_by_roles(db, roles=[RoleEnum.PROCTOR, RoleEnum.ADMIN])

    async def send_reminders(self, db: Session, *, exam_id: int, current_user: User) -> ReminderResult:
        permission_helper.require_staff(current_user, "Only staff can send reminders.")
        exam = self._get_exam(db, exam_id)
        enrollments = crud_enrollment.get_by_exam(db, exam_id=exam_id)

        sent = 0
        for enrollment in enrollments:
            student = enrollment.student
            delivered = await notification_service.send_reminder(student.email, {
                "exam_id": exam.id,
                "exam_title": exam.title,
                "student_name": student.full_name,
                "scheduled_date": exam.scheduled_date.strftime("%Y-%m-%d"),
                "start_time": exam.start_time,
                "duration_minutes": exam.duration_minutes,
                "is_proctored": exam.is_proctored,
            })
            if delivered:
                sent += 1

        logger.info(f"Sent {sent}/{len(enrollments)} reminders for exam {exam_id}")
        return ReminderResult(sent=sent, total=len(enrollments))


exam_service = ExamService()
