"""
API routes for the LinkedIn carousel service.

Every carousel route works inside the caller's active workspace, sent as the
X-Workspace-Id header.
"""

import logging
import re
from datetime import datetime, timezone
from typing import Callable, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query
from fastapi.responses import Response
from pydantic import BaseModel, Field
from sqlalchemy import delete, desc, select
from sqlalchemy.ext.asyncio import AsyncSession

from postdeck.carousel_templates import BrandingOverride, TEMPLATE_IDS, is_valid_template, list_templates
from postdeck.database import get_db
from postdeck.models import EDITABLE_STATUSES, Carousel, ScheduledPost, Workspace
from postdeck.services.carousel_publisher import (
    LinkedInNotConnectedError, PublishError, build_carousel_pdf, publish_carousel
)
from postdeck.services.carousel_renderer import EmptyCarouselError
from postdeck.services.scheduler import trigger_manual_check
from postdeck.slides import (
    Slide, SlideEditError, add_slide, dump_slides, move_slide, parse_slides,
    remove_slide, renumber_slides, update_slide
)

logger = logging.getLogger(__name__)
router = APIRouter()


# Request/Response Models

class HealthResponse(BaseModel):
    status: str
    version: str


class WorkspaceCreate(BaseModel):
    name: str
    branding: Optional[BrandingOverride] = None
    logo_url: Optional[str] = None


class BrandingUpdate(BaseModel):
    workspace_id: str
    branding: BrandingOverride = Field(default_factory=BrandingOverride)
    logo_url: Optional[str] = None


class WorkspaceResponse(BaseModel):
    id: str
    name: str
    branding: Optional[dict]
    logo_url: Optional[str]


class CarouselCreate(BaseModel):
    title: str = ""
    template_type: str = "minimal"
    slide_data: list[Slide] = Field(default_factory=lambda: [Slide()])
    custom_branding: Optional[BrandingOverride] = None


class CarouselUpdate(BaseModel):
    title: Optional[str] = None
    template_type: Optional[str] = None
    slide_data: Optional[list[Slide]] = None
    custom_branding: Optional[BrandingOverride] = None
    status: Optional[str] = None


class CarouselResponse(BaseModel):
    id: str
    workspace_id: str
    title: str
    template_type: str
    slide_data: list[Slide]
    status: str
    custom_branding: Optional[dict]
    pdf_generated_at: Optional[str]
    linkedin_post_id: Optional[str]
    published_at: Optional[str]
    created_at: str
    updated_at: str


class SlideCreate(BaseModel):
    position: Optional[int] = None  # 0-based; default appends
    title: str = ""
    body: str = ""
    key_point: Optional[str] = None


class SlideUpdate(BaseModel):
    title: Optional[str] = None
    body: Optional[str] = None
    key_point: Optional[str] = None


class SlideReorder(BaseModel):
    from_index: int
    to_index: int


class PublishRequest(BaseModel):
    title: Optional[str] = None
    caption: str = ""


class PublishResponse(BaseModel):
    success: bool
    post_id: Optional[str]
    post_url: Optional[str]


class ScheduleRequest(BaseModel):
    scheduled_for: datetime
    notification_method: str = "email"


class ScheduledPostResponse(BaseModel):
    id: str
    carousel_id: str
    workspace_id: str
    scheduled_for: str
    status: str
    notification_method: str
    linkedin_post_id: Optional[str]
    error_message: Optional[str]
    posted_at: Optional[str]
    created_at: str


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _workspace_response(w: Workspace) -> WorkspaceResponse:
    return WorkspaceResponse(id=w.id, name=w.name, branding=w.branding, logo_url=w.logo_url)


def _carousel_response(c: Carousel) -> CarouselResponse:
    return CarouselResponse(
        id=c.id,
        workspace_id=c.workspace_id,
        title=c.title or "",
        template_type=c.template_type,
        slide_data=parse_slides(c.slide_data),
        status=c.status,
        custom_branding=c.custom_branding,
        pdf_generated_at=_iso(c.pdf_generated_at),
        linkedin_post_id=c.linkedin_post_id,
        published_at=_iso(c.published_at),
        created_at=_iso(c.created_at) or "",
        updated_at=_iso(c.updated_at) or "",
    )


def _scheduled_response(s: ScheduledPost) -> ScheduledPostResponse:
    return ScheduledPostResponse(
        id=s.id,
        carousel_id=s.carousel_id,
        workspace_id=s.workspace_id,
        scheduled_for=_iso(s.scheduled_for) or "",
        status=s.status,
        notification_method=s.notification_method,
        linkedin_post_id=s.linkedin_post_id,
        error_message=s.error_message,
        posted_at=_iso(s.posted_at),
        created_at=_iso(s.created_at) or "",
    )


# Dependencies and lookups

def get_workspace_id(x_workspace_id: Optional[str] = Header(default=None)) -> str:
    """The caller's active workspace."""
    if not x_workspace_id:
        raise HTTPException(status_code=400, detail="No workspace selected")
    return x_workspace_id


async def get_workspace(db: AsyncSession, workspace_id: str) -> Workspace:
    result = await db.execute(select(Workspace).where(Workspace.id == workspace_id))
    workspace = result.scalar_one_or_none()
    if not workspace:
        raise HTTPException(status_code=404, detail="Workspace not found")
    return workspace


async def get_workspace_carousel(db: AsyncSession, carousel_id: str, workspace_id: str) -> Carousel:
    result = await db.execute(select(Carousel).where(Carousel.id == carousel_id))
    carousel = result.scalar_one_or_none()
    if not carousel:
        raise HTTPException(status_code=404, detail="Carousel not found")
    if carousel.workspace_id != workspace_id:
        raise HTTPException(status_code=403, detail="Carousel does not belong to selected workspace")
    return carousel


def _check_template(template_type: str):
    if not is_valid_template(template_type):
        raise HTTPException(
            status_code=400,
            detail=f"Invalid template type. Choose one of: {', '.join(TEMPLATE_IDS)}"
        )


async def _edit_slides(db: AsyncSession, carousel: Carousel, edit: Callable[[list[Slide]], list[Slide]]) -> Carousel:
    """Apply a slide edit and save it."""
    if carousel.status == "published":
        raise HTTPException(status_code=409, detail="Published carousels cannot be edited")
    try:
        slides = edit(parse_slides(carousel.slide_data))
    except SlideEditError as e:
        raise HTTPException(status_code=400, detail=str(e))
    carousel.slide_data = dump_slides(slides)
    await db.commit()
    return carousel


def _safe_filename(title: Optional[str], carousel_id: str) -> str:
    safe_title = re.sub(r"[^a-zA-Z0-9]", "-", title or "carousel").lower()[:50]
    return f"{safe_title}-{carousel_id[:8]}.pdf"


# Routes

@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    return HealthResponse(status="healthy", version="1.0.0")


@router.get("/carousel-templates")
async def get_carousel_templates():
    """List the carousel templates."""
    return [t.to_dict() for t in list_templates()]


@router.post("/workspaces", response_model=WorkspaceResponse, status_code=201)
async def create_workspace(request: WorkspaceCreate, db: AsyncSession = Depends(get_db)):
    workspace = Workspace(
        name=request.name,
        branding=request.branding.model_dump(exclude_none=True) if request.branding else None,
        logo_url=request.logo_url,
    )
    db.add(workspace)
    await db.commit()
    await db.refresh(workspace)
    return _workspace_response(workspace)


@router.get("/workspaces/{workspace_id}/branding", response_model=WorkspaceResponse)
async def get_workspace_branding(workspace_id: str, db: AsyncSession = Depends(get_db)):
    return _workspace_response(await get_workspace(db, workspace_id))


@router.put("/workspaces/branding", response_model=WorkspaceResponse)
async def update_workspace_branding(request: BrandingUpdate, db: AsyncSession = Depends(get_db)):
    """Replace a workspace's carousel branding."""
    workspace = await get_workspace(db, request.workspace_id)
    workspace.branding = request.branding.model_dump(exclude_none=True)
    workspace.logo_url = request.logo_url
    await db.commit()
    return _workspace_response(workspace)


@router.get("/carousels", response_model=list[CarouselResponse])
async def list_carousels(
    status: Optional[str] = None,
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    workspace_id: str = Depends(get_workspace_id),
    db: AsyncSession = Depends(get_db)
):
    """List the workspace's carousels, newest first."""
    query = select(Carousel).where(Carousel.workspace_id == workspace_id)
    if status:
        query = query.where(Carousel.status == status)
    result = await db.execute(query.order_by(desc(Carousel.created_at)).limit(limit).offset(offset))
    return [_carousel_response(c) for c in result.scalars().all()]


@router.post("/carousels", response_model=CarouselResponse, status_code=201)
async def create_carousel(
    request: CarouselCreate,
    workspace_id: str = Depends(get_workspace_id),
    db: AsyncSession = Depends(get_db)
):
    await get_workspace(db, workspace_id)
    _check_template(request.template_type)
    if not request.slide_data:
        raise HTTPException(status_code=400, detail="Carousel must have at least one slide")

    carousel = Carousel(
        workspace_id=workspace_id,
        title=request.title,
        template_type=request.template_type,
        slide_data=dump_slides(renumber_slides(request.slide_data)),
        status="draft",
        custom_branding=request.custom_branding.model_dump(exclude_none=True) if request.custom_branding else None,
    )
    db.add(carousel)
    await db.commit()
    await db.refresh(carousel)
    logger.info("Created carousel %s in workspace %s", carousel.id, workspace_id)
    return _carousel_response(carousel)


@router.get("/carousels/{carousel_id}", response_model=CarouselResponse)
async def get_carousel(
    carousel_id: str,
    workspace_id: str = Depends(get_workspace_id),
    db: AsyncSession = Depends(get_db)
):
    return _carousel_response(await get_workspace_carousel(db, carousel_id, workspace_id))


@router.patch("/carousels/{carousel_id}", response_model=CarouselResponse)
async def update_carousel(
    carousel_id: str,
    request: CarouselUpdate,
    workspace_id: str = Depends(get_workspace_id),
    db: AsyncSession = Depends(get_db)
):
    """Update title, slides, template, branding or status."""
    carousel = await get_workspace_carousel(db, carousel_id, workspace_id)
    fields = request.model_fields_set
    if not fields:
        raise HTTPException(status_code=400, detail="No valid fields to update")

    if "slide_data" in fields:
        if not request.slide_data:
            raise HTTPException(status_code=400, detail="Carousel must have at least one slide")
        if carousel.status == "published":
            raise HTTPException(status_code=409, detail="Published carousels cannot be edited")
        carousel.slide_data = dump_slides(renumber_slides(request.slide_data))

    if "template_type" in fields:
        _check_template(request.template_type)
        carousel.template_type = request.template_type

    if "status" in fields:
        if request.status not in EDITABLE_STATUSES:
            raise HTTPException(
                status_code=400,
                detail=f"Status can only be set to: {', '.join(EDITABLE_STATUSES)}"
            )
        if carousel.status in ("scheduled", "published"):
            raise HTTPException(status_code=409, detail=f"Carousel is {carousel.status}")
        carousel.status = request.status

    if "title" in fields and request.title is not None:
        carousel.title = request.title

    if "custom_branding" in fields:
        branding = request.custom_branding
        carousel.custom_branding = branding.model_dump(exclude_none=True) if branding else None

    await db.commit()
    return _carousel_response(carousel)


@router.delete("/carousels/{carousel_id}")
async def delete_carousel(
    carousel_id: str,
    workspace_id: str = Depends(get_workspace_id),
    db: AsyncSession = Depends(get_db)
):
    carousel = await get_workspace_carousel(db, carousel_id, workspace_id)
    await db.execute(delete(ScheduledPost).where(ScheduledPost.carousel_id == carousel.id))
    await db.delete(carousel)
    await db.commit()
    return {"status": "deleted", "id": carousel_id}


@router.post("/carousels/{carousel_id}/slides", response_model=CarouselResponse)
async def create_slide(
    carousel_id: str,
    request: SlideCreate,
    workspace_id: str = Depends(get_workspace_id),
    db: AsyncSession = Depends(get_db)
):
    carousel = await get_workspace_carousel(db, carousel_id, workspace_id)
    slide = Slide(title=request.title, body=request.body, key_point=request.key_point)
    await _edit_slides(db, carousel, lambda slides: add_slide(slides, slide, request.position))
    return _carousel_response(carousel)


@router.patch("/carousels/{carousel_id}/slides/{index}", response_model=CarouselResponse)
async def edit_slide(
    carousel_id: str,
    index: int,
    request: SlideUpdate,
    workspace_id: str = Depends(get_workspace_id),
    db: AsyncSession = Depends(get_db)
):
    carousel = await get_workspace_carousel(db, carousel_id, workspace_id)
    changes = request.model_dump(exclude_unset=True)
    await _edit_slides(db, carousel, lambda slides: update_slide(slides, index, **changes))
    return _carousel_response(carousel)


@router.delete("/carousels/{carousel_id}/slides/{index}", response_model=CarouselResponse)
async def delete_slide(
    carousel_id: str,
    index: int,
    workspace_id: str = Depends(get_workspace_id),
    db: AsyncSession = Depends(get_db)
):
    carousel = await get_workspace_carousel(db, carousel_id, workspace_id)
    await _edit_slides(db, carousel, lambda slides: remove_slide(slides, index))
    return _carousel_response(carousel)


@router.post("/carousels/{carousel_id}/slides/reorder", response_model=CarouselResponse)
async def reorder_slides(
    carousel_id: str,
    request: SlideReorder,
    workspace_id: str = Depends(get_workspace_id),
    db: AsyncSession = Depends(get_db)
):
    carousel = await get_workspace_carousel(db, carousel_id, workspace_id)
    await _edit_slides(db, carousel, lambda slides: move_slide(slides, request.from_index, request.to_index))
    return _carousel_response(carousel)


@router.post("/carousels/{carousel_id}/export")
async def export_carousel(
    carousel_id: str,
    workspace_id: str = Depends(get_workspace_id),
    db: AsyncSession = Depends(get_db)
):
    """Render the carousel as a PDF download."""
    carousel = await get_workspace_carousel(db, carousel_id, workspace_id)
    try:
        document = await build_carousel_pdf(db, carousel)
    except EmptyCarouselError:
        raise HTTPException(status_code=400, detail="Carousel has no slides")

    carousel.pdf_generated_at = datetime.now(timezone.utc)
    if carousel.status == "draft":
        carousel.status = "ready"
    await db.commit()

    return Response(
        content=document,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{_safe_filename(carousel.title, carousel.id)}"'},
    )


@router.post("/carousels/{carousel_id}/publish", response_model=PublishResponse)
async def publish_carousel_route(
    carousel_id: str,
    request: PublishRequest,
    workspace_id: str = Depends(get_workspace_id),
    db: AsyncSession = Depends(get_db)
):
    """Publish the carousel to LinkedIn as a document post."""
    carousel = await get_workspace_carousel(db, carousel_id, workspace_id)
    try:
        result = await publish_carousel(db, carousel, title=request.title, caption=request.caption)
    except LinkedInNotConnectedError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except EmptyCarouselError:
        raise HTTPException(status_code=400, detail="Carousel has no slides")
    except PublishError as e:
        if e.is_auth_error:
            raise HTTPException(
                status_code=401,
                detail="LinkedIn authentication expired. Please reconnect your LinkedIn account."
            )
        raise HTTPException(status_code=502, detail=e.message)

    # A direct publish supersedes any pending schedule
    cancelled = await db.execute(
        delete(ScheduledPost).where(
            ScheduledPost.carousel_id == carousel.id,
            ScheduledPost.status == "pending",
        )
    )
    if cancelled.rowcount:
        await db.commit()
        logger.info("Cancelled %d pending schedules for published carousel %s", cancelled.rowcount, carousel.id)

    return PublishResponse(success=True, post_id=result.post_id, post_url=result.post_url)


@router.post("/carousels/{carousel_id}/schedule", response_model=ScheduledPostResponse, status_code=201)
async def schedule_carousel(
    carousel_id: str,
    request: ScheduleRequest,
    workspace_id: str = Depends(get_workspace_id),
    db: AsyncSession = Depends(get_db)
):
    """Schedule the carousel for automatic publishing."""
    scheduled_for = _as_utc(request.scheduled_for)
    if scheduled_for <= datetime.now(timezone.utc):
        raise HTTPException(status_code=400, detail="Scheduled time must be in the future")

    carousel = await get_workspace_carousel(db, carousel_id, workspace_id)
    if not carousel.slide_data:
        raise HTTPException(status_code=400, detail="Carousel has no slides")

    existing = await db.execute(
        select(ScheduledPost.id).where(
            ScheduledPost.carousel_id == carousel.id,
            ScheduledPost.workspace_id == workspace_id,
            ScheduledPost.status == "pending",
        )
    )
    if existing.first():
        raise HTTPException(
            status_code=400,
            detail="Carousel is already scheduled. Delete the existing schedule first."
        )

    scheduled_post = ScheduledPost(
        carousel_id=carousel.id,
        workspace_id=workspace_id,
        scheduled_for=scheduled_for,
        status="pending",
        notification_method=request.notification_method,
        content_type="carousel",
    )
    db.add(scheduled_post)
    carousel.status = "scheduled"
    await db.commit()
    await db.refresh(scheduled_post)
    return _scheduled_response(scheduled_post)


@router.get("/carousels/{carousel_id}/schedule", response_model=ScheduledPostResponse)
async def get_carousel_schedule(
    carousel_id: str,
    workspace_id: str = Depends(get_workspace_id),
    db: AsyncSession = Depends(get_db)
):
    carousel = await get_workspace_carousel(db, carousel_id, workspace_id)
    result = await db.execute(
        select(ScheduledPost)
        .where(ScheduledPost.carousel_id == carousel.id, ScheduledPost.workspace_id == workspace_id)
        .order_by(desc(ScheduledPost.scheduled_for))
        .limit(1)
    )
    scheduled = result.scalar_one_or_none()
    if not scheduled:
        raise HTTPException(status_code=404, detail="Carousel is not scheduled")
    return _scheduled_response(scheduled)


@router.delete("/carousels/{carousel_id}/schedule")
async def delete_carousel_schedule(
    carousel_id: str,
    workspace_id: str = Depends(get_workspace_id),
    db: AsyncSession = Depends(get_db)
):
    """Cancel a pending schedule."""
    carousel = await get_workspace_carousel(db, carousel_id, workspace_id)
    result = await db.execute(
        select(ScheduledPost).where(
            ScheduledPost.carousel_id == carousel.id,
            ScheduledPost.workspace_id == workspace_id,
            ScheduledPost.status == "pending",
        )
    )
    pending = result.scalars().all()
    if not pending:
        raise HTTPException(status_code=404, detail="Carousel is not scheduled")

    for scheduled in pending:
        await db.delete(scheduled)
    if carousel.status == "scheduled":
        carousel.status = "ready" if carousel.pdf_generated_at else "draft"
    await db.commit()
    return {"status": "deleted", "carousel_id": carousel_id}


@router.post("/scheduler/check")
async def trigger_scheduler_check():
    """Run one scheduler pass now."""
    await trigger_manual_check()
    return {"status": "ok"}
