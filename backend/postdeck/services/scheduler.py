"""
Background scheduler for publishing scheduled carousels to LinkedIn.
"""

import logging
from datetime import datetime, timezone

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession

from postdeck.config import get_settings
from postdeck.database import get_session_maker
from postdeck.models import Carousel, ScheduledPost
from postdeck.services.carousel_publisher import LinkedInNotConnectedError, PublishError, publish_carousel
from postdeck.services.carousel_renderer import EmptyCarouselError

logger = logging.getLogger(__name__)
settings = get_settings()
scheduler = AsyncIOScheduler()


async def check_and_post_scheduled():
    """Publish every pending scheduled carousel that is due."""
    logger.info("[Scheduler] Checking at %s", datetime.now(timezone.utc))

    session_maker = get_session_maker()
    if not session_maker:
        logger.warning("[Scheduler] Database not available")
        return

    async with session_maker() as db:
        processed = await post_due_carousels(db)
        if processed:
            logger.info("[Scheduler] Processed %d scheduled carousels", processed)


async def post_due_carousels(db: AsyncSession, now: datetime = None) -> int:
    """Process due pending posts, oldest first. Returns how many were processed."""
    now = now or datetime.now(timezone.utc)
    result = await db.execute(
        select(ScheduledPost)
        .where(and_(
            ScheduledPost.status == "pending",
            ScheduledPost.content_type == "carousel",
            ScheduledPost.scheduled_for <= now
        ))
        .order_by(ScheduledPost.scheduled_for)
        .limit(settings.scheduler_batch_size)
    )
    due_posts = result.scalars().all()

    for scheduled in due_posts:
        await process_scheduled_post(db, scheduled)
    return len(due_posts)


async def process_scheduled_post(db: AsyncSession, scheduled: ScheduledPost):
    """Publish one scheduled carousel and record the outcome."""
    logger.info("[Scheduler] Processing scheduled post %s", scheduled.id)

    result = await db.execute(select(Carousel).where(Carousel.id == scheduled.carousel_id))
    carousel = result.scalar_one_or_none()
    if not carousel:
        await _mark_failed(db, scheduled, "Carousel no longer exists")
        return

    if carousel.status == "published":
        logger.info("[Scheduler] Carousel %s already published, settling scheduled post", carousel.id)
        _mark_posted(scheduled, carousel.linkedin_post_id)
        await db.commit()
        return

    try:
        post = await publish_carousel(db, carousel)
    except (LinkedInNotConnectedError, PublishError, EmptyCarouselError) as e:
        await _mark_failed(db, scheduled, str(e))
        return
    except Exception as e:
        logger.exception("[Scheduler] Error processing scheduled post %s", scheduled.id)
        await _mark_failed(db, scheduled, str(e) or type(e).__name__)
        return

    _mark_posted(scheduled, post.post_id)
    await db.commit()
    logger.info("[Scheduler] Posted carousel %s: %s", carousel.id, post.post_url)


def _mark_posted(scheduled: ScheduledPost, post_id: str):
    scheduled.status = "posted"
    scheduled.linkedin_post_id = post_id
    scheduled.posted_at = datetime.now(timezone.utc)
    scheduled.error_message = None


async def _mark_failed(db: AsyncSession, scheduled: ScheduledPost, message: str):
    scheduled.status = "failed"
    scheduled.error_message = message
    await db.commit()
    logger.error("[Scheduler] Scheduled post %s failed: %s", scheduled.id, message)


def start_scheduler():
    """Start the background scheduler."""
    if scheduler.running:
        logger.info("[Scheduler] Already running")
        return

    scheduler.add_job(
        check_and_post_scheduled,
        IntervalTrigger(minutes=settings.scheduler_interval_minutes),
        id="scheduled_carousel_checker",
        replace_existing=True,
        max_instances=1
    )
    scheduler.start()
    logger.info("[Scheduler] Started - checking every %d minutes", settings.scheduler_interval_minutes)


async def trigger_manual_check():
    """Manually trigger a scheduler check."""
    logger.info("[Scheduler] Manual check triggered")
    await check_and_post_scheduled()


def stop_scheduler():
    """Stop the scheduler."""
    if scheduler.running:
        scheduler.shutdown()
        logger.info("[Scheduler] Stopped")
