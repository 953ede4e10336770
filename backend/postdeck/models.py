import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, String, Text, DateTime, JSON, ForeignKey
from sqlalchemy.sql import func
from postdeck.database import Base


# scheduled and published are only reached through the schedule and publish routes
EDITABLE_STATUSES = ("draft", "ready")


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Workspace(Base):
    __tablename__ = "workspaces"

    id = Column(String(36), primary_key=True, default=_new_id)
    name = Column(String(200), nullable=False)
    branding = Column(JSON, nullable=True)  # primary_color, font_family, ...
    logo_url = Column(String(500), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class Carousel(Base):
    __tablename__ = "carousels"

    id = Column(String(36), primary_key=True, default=_new_id)
    workspace_id = Column(String(36), ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(500), nullable=False, default="")
    template_type = Column(String(50), nullable=False, default="minimal")
    slide_data = Column(JSON, nullable=False, default=list)  # [{slide_number, title, body, key_point}]
    status = Column(String(20), nullable=False, default="draft")  # draft, ready, scheduled, published
    custom_branding = Column(JSON, nullable=True)

    pdf_generated_at = Column(DateTime(timezone=True), nullable=True)
    linkedin_post_id = Column(String(200), nullable=True)
    published_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)


class ScheduledPost(Base):
    """Carousels queued for publishing to LinkedIn."""
    __tablename__ = "scheduled_posts"

    id = Column(String(36), primary_key=True, default=_new_id)
    carousel_id = Column(String(36), ForeignKey("carousels.id", ondelete="CASCADE"), nullable=False, index=True)
    workspace_id = Column(String(36), ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False, index=True)
    scheduled_for = Column(DateTime(timezone=True), nullable=False)
    status = Column(String(20), nullable=False, default="pending")  # pending, posted, failed
    notification_method = Column(String(20), nullable=False, default="email")
    content_type = Column(String(20), nullable=False, default="carousel")

    # Result tracking
    linkedin_post_id = Column(String(200), nullable=True)
    error_message = Column(Text, nullable=True)
    posted_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
