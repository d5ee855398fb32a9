import logging
from typing import Any, Dict

from app.services.email import EmailService
from app.utils.events import event_bus

logger = logging.getLogger(__name__)


class NotificationService:
    """Best-effort delivery of result, reminder and account emails.

    Every method swallows delivery errors after logging them so callers
    never fail because an email could not be sent.
    """

    async def send_result(self, email: str, summary: Dict[str, Any]) -> bool:
        subject = f"Your result for {summary.get('exam_title', 'your exam')}"
        try:
            return await EmailService.send_email(email, subject, "result.html", summary)
        except Exception as e:
            logger.error(f"Failed to send result email for attempt {summary.get('attempt_id')} to {email}: {e}")
            return False

    async def send_reminder(self, email: str, exam_summary: Dict[str, Any]) -> bool:
        subject = f"Reminder: {exam_summary.get('exam_title', 'upcoming exam')}"
        try:
            return await EmailService.send_email(email, subject, "exam_reminder.html", exam_summary)
        except Exception as e:
            logger.error(f"Failed to send reminder for exam {exam_summary.get('exam_id')} to {email}: {e}")
            return False

    async def send_verification(self, email: str, context: Dict[str, Any]) -> bool:
        try:
            return await EmailService.send_email(email, "Verify your email address", "verify_email.html", context)
        except Exception as e:
            logger.error(f"Failed to send verification email to {email}: {e}")
            return False

    async def send_password_reset(self, email: str, context: Dict[str, Any]) -> bool:
        try:
            return await EmailService.send_email(email, "Password reset request", "reset_password.html", context)
        except Exception as e:
            logger.error(f"Failed to send password reset email to {email}: {e}")
            return False

    async def handle_attempt_submitted(self, data: Dict[str, Any]):
        email = data.get("student_email")
        if not email:
            logger.warning(f"No email on record for attempt {data.get('attempt_id')}; skipping result email")
            return
        await self.send_result(email, data)


notification_service = NotificationService()
event_bus.subscribe("attempt_submitted", notification_service.handle_attempt_submitted)
