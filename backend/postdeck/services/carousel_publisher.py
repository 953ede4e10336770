"""
Render stored carousels and publish them to LinkedIn.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from postdeck.carousel_templates import Template, resolve_carousel_style
from postdeck.config import get_settings
from postdeck.models import Carousel, Workspace
from postdeck.services.carousel_renderer import EXPORT_PAGE, PUBLISH_PAGE, PageConfig, render_carousel_document
from postdeck.services.linkedin_poster import LinkedInPostResult, person_urn, post_carousel_to_linkedin

logger = logging.getLogger(__name__)


class LinkedInNotConnectedError(RuntimeError):
    """No LinkedIn credentials are configured."""


class PublishError(RuntimeError):
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    @property
    def is_auth_error(self) -> bool:
        return "401" in self.message or "403" in self.message


async def carousel_style(db: AsyncSession, carousel: Carousel) -> Template:
    """Effective style: template, workspace branding, then the carousel's own branding."""
    result = await db.execute(select(Workspace.branding).where(Workspace.id == carousel.workspace_id))
    workspace_branding = result.scalar_one_or_none()
    return resolve_carousel_style(carousel.template_type, workspace_branding, carousel.custom_branding)


async def build_carousel_pdf(
    db: AsyncSession,
    carousel: Carousel,
    page: PageConfig = EXPORT_PAGE,
    title: Optional[str] = None,
) -> bytes:
    style = await carousel_style(db, carousel)
    return render_carousel_document(carousel.slide_data or [], style, title or carousel.title, page)


async def publish_carousel(
    db: AsyncSession,
    carousel: Carousel,
    title: Optional[str] = None,
    caption: str = "",
) -> LinkedInPostResult:
    """
    Render a carousel for LinkedIn, post it and mark it published.

    Raises LinkedInNotConnectedError without credentials, PublishError when
    LinkedIn rejects the post, EmptyCarouselError for a carousel with no slides.
    """
    settings = get_settings()
    if not settings.linkedin_access_token or not settings.linkedin_profile_id:
        raise LinkedInNotConnectedError(
            "LinkedIn not connected. Set LINKEDIN_ACCESS_TOKEN and LINKEDIN_PROFILE_ID."
        )

    post_title = title or carousel.title or "My Carousel"
    document = await build_carousel_pdf(db, carousel, PUBLISH_PAGE, post_title)

    result = await post_carousel_to_linkedin(
        settings.linkedin_access_token,
        person_urn(settings.linkedin_profile_id),
        document,
        post_title,
        caption or "",
    )
    if not result.success:
        raise PublishError(result.error or "Failed to publish to LinkedIn")

    now = datetime.now(timezone.utc)
    carousel.status = "published"
    carousel.linkedin_post_id = result.post_id
    carousel.published_at = now
    await db.commit()

    logger.info("Published carousel %s as %s", carousel.id, result.post_id)
    return result
