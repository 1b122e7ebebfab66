from uuid import UUID

from fastapi import APIRouter, Depends, status

from goalflow.dependencies import CurrentUserId, get_reminder_service, unwrap
from goalflow.models import ReminderCreate, ReminderRead
from goalflow.services.reminder_service import ReminderService

router = APIRouter(prefix="/reminders", tags=["reminders"])


@router.post("/", response_model=ReminderRead, status_code=status.HTTP_201_CREATED)
async def create_reminder(
    reminder_data: ReminderCreate,
    user_id: CurrentUserId,
    service: ReminderService = Depends(get_reminder_service),
):
    """Schedule a reminder for one of the caller's goals"""
    return unwrap(await service.create_reminder(user_id, reminder_data))


@router.post("/{reminder_id}/activate", response_model=ReminderRead)
async def activate_reminder(
    reminder_id: UUID,
    user_id: CurrentUserId,
    service: ReminderService = Depends(get_reminder_service),
):
    return unwrap(await service.set_active(user_id, reminder_id, True))


@router.post("/{reminder_id}/deactivate", response_model=ReminderRead)
async def deactivate_reminder(
    reminder_id: UUID,
    user_id: CurrentUserId,
    service: ReminderService = Depends(get_reminder_service),
):
    return unwrap(await service.set_active(user_id, reminder_id, False))
