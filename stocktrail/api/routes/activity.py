"""
Activity API Routes

Audit history and notifications, filtered by the viewer's role:
Users see their own entries, Admins and Superadmins see everything.
"""

from fastapi import APIRouter, Depends

from stocktrail.activity import ActivityRecorder, NotificationView
from stocktrail.api.dependencies import (
    get_activity_recorder,
    get_current_user,
    get_identity_service,
)
from stocktrail.api.schemas import (
    ActionResponse,
    ErrorResponse,
    HistoryEntryResponse,
    MarkAllReadResponse,
    NotificationResponse,
)
from stocktrail.identity import IdentityService
from stocktrail.storage.models import User

history_router = APIRouter(prefix="/history", tags=["history"])
notifications_router = APIRouter(prefix="/notifications", tags=["notifications"])

VIEWER_ERRORS = {403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}}


def to_notification_response(n: NotificationView) -> NotificationResponse:
    return NotificationResponse(
        id=n.id,
        title=n.message,
        is_read=n.is_read,
        timestamp=n.created_at,
        item_id=n.item_id,
    )


# =============================================================================
# History
# =============================================================================

@history_router.get("/{user_id}", response_model=list[HistoryEntryResponse], responses=VIEWER_ERRORS)
async def get_history(
    user_id: int,
    current_user: User = Depends(get_current_user),
    identity: IdentityService = Depends(get_identity_service),
    recorder: ActivityRecorder = Depends(get_activity_recorder),
):
    """Full activity log visible to the viewer, newest first."""
    viewer = await identity.resolve_viewer(current_user, user_id)
    return [
        HistoryEntryResponse(
            id=entry.id,
            type=entry.action_type.value,
            details=entry.details,
            date=entry.action_date,
            user=entry.actor_name,
        )
        for entry in await recorder.history(viewer)
    ]


# =============================================================================
# Notifications
# =============================================================================

@notifications_router.get("/all/{user_id}", response_model=list[NotificationResponse], responses=VIEWER_ERRORS)
async def get_all_notifications(
    user_id: int,
    current_user: User = Depends(get_current_user),
    identity: IdentityService = Depends(get_identity_service),
    recorder: ActivityRecorder = Depends(get_activity_recorder),
):
    viewer = await identity.resolve_viewer(current_user, user_id)
    return [to_notification_response(n) for n in await recorder.all_notifications(viewer)]


@notifications_router.put(
    "/mark-all-read/{user_id}",
    response_model=MarkAllReadResponse,
    responses=VIEWER_ERRORS,
)
async def mark_all_read(
    user_id: int,
    current_user: User = Depends(get_current_user),
    identity: IdentityService = Depends(get_identity_service),
    recorder: ActivityRecorder = Depends(get_activity_recorder),
):
    viewer = await identity.resolve_viewer(current_user, user_id)
    affected = await recorder.mark_all_read(viewer)
    return MarkAllReadResponse(affected=affected)


@notifications_router.put(
    "/read/{notification_id}",
    response_model=ActionResponse,
    responses={404: {"model": ErrorResponse}},
)
async def mark_read(
    notification_id: int,
    current_user: User = Depends(get_current_user),
    recorder: ActivityRecorder = Depends(get_activity_recorder),
):
    await recorder.mark_read(current_user, notification_id)
    return ActionResponse()


@notifications_router.get("/{user_id}", response_model=list[NotificationResponse], responses=VIEWER_ERRORS)
async def get_notifications(
    user_id: int,
    current_user: User = Depends(get_current_user),
    identity: IdentityService = Depends(get_identity_service),
    recorder: ActivityRecorder = Depends(get_activity_recorder),
):
    """Ten most recent notifications visible to the viewer."""
    viewer = await identity.resolve_viewer(current_user, user_id)
    return [to_notification_response(n) for n in await recorder.notifications(viewer)]
