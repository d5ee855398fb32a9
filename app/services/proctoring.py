import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from app.core.constants import (
    ExamAttemptStatusEnum,
    ProctoringEventTypeEnum,
    SeverityEnum,
    TAB_SWITCH_TERMINATION_REASON,
)
from app.core.exceptions import DomainValidationError, InvalidStateError, NotFoundError
from app.crud.exam import exam as crud_exam
from app.crud.exam_attempt import exam_attempt as crud_exam_attempt
from app.crud.proctoring_log import proctoring_log as crud_proctoring_log
from app.models.exam_attempt import ExamAttempt, AttemptProctoringFlag
from app.models.proctoring_log import ProctoringLog
from app.models.user import User
from app.schemas.exam_attempt import ExamAttemptSummary, ProctoringFlag
from app.schemas.proctoring import (
    ActiveSession,
    FlaggedAttempt,
    ProctoringEventCreate,
    ProctoringLog as ProctoringLogSchema,
    ProctoringStats,
)
from app.schemas.response import PaginatedResponse
from app.schemas.user import UserSummary
from app.services.exam_attempt import commit_attempt_change
from app.utils.permission import PermissionHelper as permission_helper

logger = logging.getLogger(__name__)


class ProctoringService:

    def _get_attempt(self, db: Session, attempt_id: int) -> ExamAttempt:
        attempt = crud_exam_attempt.get(db, id=attempt_id)
        if not attempt:
            raise NotFoundError("Exam attempt not found.")
        return attempt

    def record_event(
        self, db: Session, *, event_in: ProctoringEventCreate, current_user: User
    ) -> Tuple[ProctoringLog, bool]:
        """Log a monitoring event; returns the log and whether the attempt got terminated."""
        attempt = None
        if event_in.attempt_id is not None:
            attempt = self._get_attempt(db, event_in.attempt_id)
            permission_helper.require_attempt_view_permission(current_user, attempt)
            if event_in.exam_id is not None and event_in.exam_id != attempt.exam_id:
                raise DomainValidationError("exam_id does not match the attempt's exam.")
            exam_id, student_id = attempt.exam_id, attempt.student_id
        else:
            if event_in.exam_id is None:
                raise DomainValidationError("Either attempt_id or exam_id is required.")
            if not crud_exam.get(db, id=event_in.exam_id):
                raise NotFoundError("Exam not found.")
            exam_id, student_id = event_in.exam_id, current_user.id

        now = datetime.utcnow()
        log = ProctoringLog(
            exam_id=exam_id,
            student_id=student_id,
            attempt_id=event_in.attempt_id,
            event_type=event_in.event_type,
            description=event_in.description,
            severity=event_in.severity,
            screenshot=event_in.screenshot,
            event_metadata=event_in.event_metadata,
            timestamp=now,
        )
        db.add(log)
        if attempt is not None:
            attempt.proctoring_flags.append(AttemptProctoringFlag(
                flag_type=event_in.event_type.value,
                description=event_in.description,
                timestamp=now,
            ))

        db.commit()
        db.refresh(log)
        logger.info(f"Proctoring event {event_in.event_type.value} ({event_in.severity.value}) for exam {exam_id}, student {student_id}")

        terminated = False
        if attempt is not None and event_in.event_type == ProctoringEventTypeEnum.TAB_SWITCH:
            terminated = self._enforce_tab_switch_limit(db, attempt.id)
        return log, terminated

    def _enforce_tab_switch_limit(self, db: Session, attempt_id: int) -> bool:
        attempt = self._get_attempt(db, attempt_id)
        exam = attempt.exam
        if not exam.is_proctored or attempt.status != ExamAttemptStatusEnum.IN_PROGRESS:
            return False

        switches = sum(
            1 for flag in attempt.proctoring_flags if flag.flag_type == ProctoringEventTypeEnum.TAB_SWITCH.value
        )
        if switches <= exam.tab_switch_limit:
            return False

        try:
            self._terminate(db, attempt, TAB_SWITCH_TERMINATION_REASON)
        except InvalidStateError:
            logger.info(f"Attempt {attempt_id} ended before the tab switch limit could be enforced")
            return False
        return True

    def _terminate(self, db: Session, attempt: ExamAttempt, reason: str) -> ExamAttempt:
        if attempt.status != ExamAttemptStatusEnum.IN_PROGRESS:
            raise InvalidStateError(f"Cannot terminate an exam attempt that is {attempt.status.value}.")

        now = datetime.utcnow()
        attempt.status = ExamAttemptStatusEnum.FLAGGED
        attempt.last_activity_at = now
        attempt.proctoring_flags.append(AttemptProctoringFlag(
            flag_type=ProctoringEventTypeEnum.EXAM_TERMINATED.value,
            description=reason,
            timestamp=now,
        ))
        db.add(ProctoringLog(
            exam_id=attempt.exam_id,
            student_id=attempt.student_id,
            attempt_id=attempt.id,
            event_type=ProctoringEventTypeEnum.EXAM_TERMINATED,
            description=reason,
            severity=SeverityEnum.CRITICAL,
            timestamp=now,
        ))

        attempt_id = attempt.id
        commit_attempt_change(db, attempt_id, (ExamAttemptStatusEnum.IN_PROGRESS,), "terminate")
        logger.warning(f"Attempt {attempt_id} terminated: {reason}")
        return crud_exam_attempt.get(db, id=attempt_id)

    def terminate(self, db: Session, *, attempt_id: int, reason: str, current_user: User) -> ExamAttempt:
        permission_helper.require_staff(current_user, "Only proctors and admins can terminate attempts.")
        attempt = self._get_attempt(db, attempt_id)
        return self._terminate(db, attempt, reason)

    def build_event_payload(self, log: ProctoringLog, terminated: bool) -> Dict[str, Any]:
        return {
            "exam_id": log.exam_id,
            "attempt_id": log.attempt_id,
            "log": ProctoringLogSchema.model_validate(log).model_dump(mode="json"),
            "attempt_terminated": terminated,
        }

    def build_termination_payload(self, attempt: ExamAttempt, reason: str) -> Dict[str, Any]:
        return {
            "exam_id": attempt.exam_id,
            "attempt_id": attempt.id,
            "student_id": attempt.student_id,
            "reason": reason,
        }

    def get_logs(
        self,
        db: Session,
        *,
        exam_id: Optional[int] = None,
        student_id: Optional[int] = None,
        event_type: Optional[ProctoringEventTypeEnum] = None,
        severity: Optional[SeverityEnum] = None,
        page: int = 1,
        size: int = 50,
    ) -> PaginatedResponse[ProctoringLogSchema]:
        query = crud_proctoring_log.query_filtered(
            db, exam_id=exam_id, student_id=student_id, event_type=event_type, severity=severity
        )
        logs, total = crud_proctoring_log.paginate(query, page=page, size=size)
        return PaginatedResponse[ProctoringLogSchema].build(
            [ProctoringLogSchema.model_validate(log) for log in logs], total, page, size
        )

    def get_student_logs(self, db: Session, *, exam_id: int, student_id: int) -> List[ProctoringLog]:
        return crud_proctoring_log.get_by_student_and_exam(db, student_id=student_id, exam_id=exam_id)

    def review_log(self, db: Session, *, log_id: int, review_notes: Optional[str], reviewer: User) -> ProctoringLog:
        log = crud_proctoring_log.get(db, id=log_id)
        if not log:
            raise NotFoundError("Proctoring log not found.")
        return crud_proctoring_log.update(
            db,
            db_obj=log,
            obj_in={"is_reviewed": True, "reviewed_by_id": reviewer.id, "review_notes": review_notes},
        )

    def get_flagged_attempts(
        self, db: Session, *, exam_id: Optional[int] = None, page: int = 1, size: int = 20
    ) -> PaginatedResponse[FlaggedAttempt]:
        query = crud_exam_attempt.query_flagged(db, exam_id=exam_id)
        attempts, total = crud_exam_attempt.paginate(query, page=page, size=size)
        items = [
            FlaggedAttempt(
                **ExamAttemptSummary.model_validate(attempt).model_dump(),
                flag_count=len(attempt.proctoring_flags),
                proctoring_flags=[ProctoringFlag.model_validate(flag) for flag in attempt.proctoring_flags],
            )
            for attempt in attempts
        ]
        return PaginatedResponse[FlaggedAttempt].build(items, total, page, size)

    def get_stats(self, db: Session, *, exam_id: Optional[int] = None) -> ProctoringStats:
        query = crud_proctoring_log.query_filtered(db, exam_id=exam_id)
        total = query.order_by(None).count()
        reviewed = query.order_by(None).filter(ProctoringLog.is_reviewed.is_(True)).count()
        return ProctoringStats(
            total_logs=total,
            reviewed=reviewed,
            pending_review=total - reviewed,
            by_severity=crud_proctoring_log.count_grouped(db, ProctoringLog.severity, exam_id=exam_id),
            by_event_type=crud_proctoring_log.count_grouped(db, ProctoringLog.event_type, exam_id=exam_id),
            recent_logs=[ProctoringLogSchema.model_validate(log) for log in query.limit(10).all()],
        )

    def get_active_sessions(self, db: Session, *, exam_id: Optional[int] = None) -> List[ActiveSession]:
        sessions = []
        for attempt in crud_exam_attempt.get_all_in_progress(db, exam_id=exam_id):
            recent = crud_proctoring_log.get_recent_by_attempt(db, attempt_id=attempt.id, limit=5)
            sessions.append(ActiveSession(
                attempt=ExamAttemptSummary.model_validate(attempt),
                student=UserSummary.model_validate(attempt.student),
                exam_title=attempt.exam.title,
                flag_count=len(attempt.proctoring_flags),
                recent_logs=[ProctoringLogSchema.model_validate(log) for log in recent],
            ))
        return sessions


proctoring_service = ProctoringService()
