from app.core.constants import ExamAttemptStatusEnum, RoleEnum, STAFF_ROLES
from app.core.exceptions import ForbiddenError
from app.models.user import User
from app.models.exam_attempt import ExamAttempt


class PermissionHelper:
    @staticmethod
    def is_admin(user: User) -> bool:
        return user.role == RoleEnum.ADMIN

    @staticmethod
    def is_proctor(user: User) -> bool:
        return user.role == RoleEnum.PROCTOR

    @staticmethod
    def is_student(user: User) -> bool:
        return user.role == RoleEnum.STUDENT

    @staticmethod
    def is_staff(user: User) -> bool:
        return user.role in STAFF_ROLES

    @staticmethod
    def owns_attempt(user: User, attempt: ExamAttempt) -> bool:
        return attempt.student_id == user.id

    @staticmethod
    def can_view_results(user: User, attempt: ExamAttempt) -> bool:
        """Students see the scores of an exam that hides results only once it is evaluated."""
        if not PermissionHelper.is_student(user):
            return True
        return bool(attempt.exam.show_result_immediately) or attempt.status == ExamAttemptStatusEnum.EVALUATED

    @staticmethod
    def require_student(user: User, error_message: str = "Only students can perform this action."):
        if not PermissionHelper.is_student(user):
            raise ForbiddenError(error_message)

    @staticmethod
    def require_staff(user: User, error_message: str = "Students cannot perform this action."):
        if not PermissionHelper.is_staff(user):
            raise ForbiddenError(error_message)

    @staticmethod
    def require_attempt_owner(user: User, attempt: ExamAttempt):
        if not PermissionHelper.owns_attempt(user, attempt):
            raise ForbiddenError("You can only work on your own exam attempts.")

    @staticmethod
    def require_attempt_view_permission(user: User, attempt: ExamAttempt):
        if PermissionHelper.owns_attempt(user, attempt) or PermissionHelper.is_staff(user):
            return
        raise ForbiddenError("You can only view your own exam attempts.")

    @staticmethod
    def require_student_access(user: User, student_id: int):
        if PermissionHelper.is_student(user) and user.id != student_id:
            raise ForbiddenError("You can only view your own data.")
