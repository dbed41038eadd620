"""In-app notifications raised by appointment lifecycle events."""

from datetime import UTC, datetime
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import func, insert, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from dental_clinic.core.calendar import clinic_label, slot_display
from dental_clinic.core.exceptions import NotFoundException
from dental_clinic.models.notifications import notifications
from dental_clinic.schemas.appointments import AppointmentStatus
from dental_clinic.schemas.notifications import (
    NotificationListResponse,
    NotificationResponse,
    NotificationType,
)

logger = structlog.get_logger(__name__)

DEFAULT_LIMIT = 20
APPOINTMENTS_LINK = "/mis-citas"


def _describe(appointment: dict[str, Any]) -> str:
    when = appointment["date"].strftime("%d/%m/%Y")
    return (
        f"{when} at {slot_display(appointment['time'])}, "
        f"{clinic_label(appointment['clinic'])} clinic"
    )


class NotificationService:
    """Service for creating and reading in-app notifications."""

    def __init__(self, db: AsyncSession):
        """Initialize service with database session."""
        self.db = db

    async def create_notification(
        self,
        user_id: UUID,
        title: str,
        message: str,
        notification_type: NotificationType = NotificationType.INFO,
        link: str | None = None,
    ) -> UUID | None:
        """
        Store a notification for a user.

        Fire-and-forget: failures are logged and swallowed so that the
        triggering operation is never affected.

        Returns:
            The notification id, or None when it could not be stored
        """
        try:
            result = await self.db.execute(
                insert(notifications)
                .values(
                    user_id=user_id,
                    title=title,
                    message=message,
                    type=notification_type.value,
                    link=link,
                    read=False,
                    created_at=datetime.now(UTC),
                )
                .returning(notifications.c.id)
            )
            notification_id = result.scalar_one()
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.warning(
                "notification_create_failed",
                user_id=str(user_id),
                title=title,
                error=str(e),
            )
            return None

        logger.info("notification_created", user_id=str(user_id), notification_type=notification_type.value)
        return notification_id

    async def notify_appointment_event(
        self,
        event: str,
        appointment: dict[str, Any],
    ) -> UUID | None:
        """Notify the patient about a lifecycle event on their appointment."""
        template = _EVENT_TEMPLATES.get(event)
        if template is None:
            return None
        title, message, notification_type = template
        return await self.create_notification(
            user_id=appointment["patient_id"],
            title=title,
            message=message.format(details=_describe(appointment)),
            notification_type=notification_type,
            link=APPOINTMENTS_LINK,
        )

    async def list_notifications(
        self,
        user_id: UUID,
        limit: int = DEFAULT_LIMIT,
    ) -> NotificationListResponse:
        """
        Latest notifications for a user, newest first.

        Args:
            user_id: Owner of the notifications
            limit: Maximum number returned

        Returns:
            Notifications and the total unread count
        """
        result = await self.db.execute(
            select(notifications)
            .where(notifications.c.user_id == user_id)
            .order_by(notifications.c.created_at.desc())
            .limit(limit)
        )
        items = [NotificationResponse.model_validate(dict(row._mapping)) for row in result.fetchall()]

        return NotificationListResponse(
            items=items,
            unread_count=await self.unread_count(user_id),
        )

    async def unread_count(self, user_id: UUID) -> int:
        result = await self.db.execute(
            select(func.count())
            .select_from(notifications)
            .where(notifications.c.user_id == user_id, notifications.c.read.is_(False))
        )
        return result.scalar() or 0

    async def mark_as_read(self, notification_id: UUID, user_id: UUID) -> NotificationResponse:
        """
        Mark one notification as read.

        Raises:
            NotFoundException: If the notification does not belong to the user
        """
        result = await self.db.execute(
            update(notifications)
            .where(notifications.c.id == notification_id, notifications.c.user_id == user_id)
            .values(read=True)
            .returning(notifications)
        )
        row = result.fetchone()
        await self.db.commit()

        if not row:
            raise NotFoundException("Notification not found")
        return NotificationResponse.model_validate(dict(row._mapping))

    async def mark_all_as_read(self, user_id: UUID) -> int:
        """Mark every unread notification of a user as read; returns how many changed."""
        result = await self.db.execute(
            update(notifications)
            .where(notifications.c.user_id == user_id, notifications.c.read.is_(False))
            .values(read=True)
        )
        await self.db.commit()
        return result.rowcount or 0


_EVENT_TEMPLATES: dict[str, tuple[str, str, NotificationType]] = {
    "created": (
        "Appointment booked",
        "Your appointment on {details} has been booked.",
        NotificationType.SUCCESS,
    ),
    "rescheduled": (
        "Appointment updated",
        "Your appointment is now on {details}.",
        NotificationType.INFO,
    ),
    AppointmentStatus.CANCELLED.value: (
        "Appointment cancelled",
        "Your appointment on {details} has been cancelled.",
        NotificationType.WARNING,
    ),
    AppointmentStatus.COMPLETED.value: (
        "Appointment completed",
        "Thank you for visiting us on {details}.",
        NotificationType.SUCCESS,
    ),
    AppointmentStatus.MISSED.value: (
        "Appointment missed",
        "You did not attend your appointment on {details}. You can book a new one at any time.",
        NotificationType.ERROR,
    ),
}
