"""
Announcements API Endpoints
"""

from datetime import datetime, timezone
from typing import List

from fastapi import APIRouter, Depends, Response, status

from rollcall.api.dependencies import get_store
from rollcall.core.exceptions import NotFoundError, ValidationError
from rollcall.core.logging_config import get_logger
from rollcall.core.security import get_current_session, require_admin
from rollcall.models.announcement import (
    Announcement,
    AnnouncementCreate,
    AnnouncementUpdate,
    FeedAnnouncement,
    PublishUpdate,
)
from rollcall.models.session import Session
from rollcall.services.store import Store
from rollcall.services.targeting import build_feed

logger = get_logger(__name__)
router = APIRouter()


@router.get("/feed", response_model=List[FeedAnnouncement])
async def announcement_feed(
    session: Session = Depends(get_current_session),
    store: Store = Depends(get_store),
):
    """Published announcements relevant to the current user; expired ones are labelled"""
    announcements = await store.query_announcements(published_only=True)
    return build_feed(session.profile, announcements)


@router.get("", response_model=List[Announcement])
async def list_announcements(
    session: Session = Depends(require_admin),
    store: Store = Depends(get_store),
):
    """All announcements including drafts (admin panel)"""
    return await store.query_announcements()


@router.post("", response_model=Announcement, status_code=status.HTTP_201_CREATED)
async def create_announcement(
    announcement_data: AnnouncementCreate,
    session: Session = Depends(require_admin),
    store: Store = Depends(get_store),
):
    """Create an announcement as a draft or already published"""
    record = announcement_data.model_dump(mode="json")
    record["created_by"] = session.profile.id
    record["published_at"] = (
        datetime.now(timezone.utc).isoformat() if announcement_data.is_published else None
    )
    announcement = await store.create_announcement(record)
    logger.info(f"Announcement created: {announcement.id} (published={announcement.is_published})")
    return announcement


@router.put("/{announcement_id}", response_model=Announcement)
async def update_announcement(
    announcement_id: str,
    announcement_data: AnnouncementUpdate,
    session: Session = Depends(require_admin),
    store: Store = Depends(get_store),
):
    """Update an announcement"""
    update_data = announcement_data.model_dump(mode="json", exclude_unset=True)
    if not update_data:
        raise ValidationError("No update data provided", error_code="EMPTY_UPDATE")

    announcement = await store.update_announcement(announcement_id, update_data)
    if announcement is None:
        raise NotFoundError("Announcement not found", error_code="ANNOUNCEMENT_NOT_FOUND")
    return announcement


@router.patch("/{announcement_id}/publish", response_model=Announcement)
async def set_published(
    announcement_id: str,
    publish_data: PublishUpdate,
    session: Session = Depends(require_admin),
    store: Store = Depends(get_store),
):
    """Publish or unpublish; publishing stamps ``published_at``"""
    published_at = datetime.now(timezone.utc).isoformat() if publish_data.is_published else None
    announcement = await store.update_announcement(
        announcement_id,
        {"is_published": publish_data.is_published, "published_at": published_at},
    )
    if announcement is None:
        raise NotFoundError("Announcement not found", error_code="ANNOUNCEMENT_NOT_FOUND")
    return announcement


@router.delete("/{announcement_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_announcement(
    announcement_id: str,
    session: Session = Depends(require_admin),
    store: Store = Depends(get_store),
):
    """Delete an announcement"""
    if not await store.delete_announcement(announcement_id):
        raise NotFoundError("Announcement not found", error_code="ANNOUNCEMENT_NOT_FOUND")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
