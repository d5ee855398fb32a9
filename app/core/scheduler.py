import logging
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from app.core.config import settings
from app.core.database import SessionLocal
from app.core.cache import cache
from app.services.exam_attempt import exam_attempt_service
from app.utils.events import event_bus

logger = logging.getLogger(__name__)

scheduler = AsyncIOScheduler()


async def expire_overdue_attempts():
    db = SessionLocal()
    try:
        notifications = exam_attempt_service.expire_overdue_attempts(db)
    except Exception as e:
        logger.error(f"Error expiring overdue attempts: {e}")
        return
    finally:
        db.close()

    if notifications:
        logger.info(f"Auto-submitted {len(notifications)} overdue attempt(s)")
        await cache.invalidate_analytics()
    for notification in notifications:
        await event_bus.publish("attempt_submitted", notification)


def start_scheduler():
    if settings.TESTING:
        logger.info("Scheduler disabled in test environment")
        return

    if not settings.ATTEMPT_EXPIRY_ENABLED:
        logger.info("Attempt expiry is disabled")
        return

    if not scheduler.running:
        scheduler.add_job(
            expire_overdue_attempts,
            'interval',
            seconds=settings.ATTEMPT_EXPIRY_INTERVAL_SECONDS,
            id='expire_overdue_attempts',
            name='Auto-submit Overdue Exam Attempts',
            replace_existing=True,
            max_instances=1,
        )
        scheduler.start()
        logger.info("Scheduler started with attempt expiry job")


def stop_scheduler():
    if scheduler.running:
        scheduler.shutdown()
        logger.info("Scheduler stopped")
