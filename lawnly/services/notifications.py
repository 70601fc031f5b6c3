import logging

from lawnly.schemas.supabase import Notification
from lawnly.services.resend import ResendService
from lawnly.services.supabase import SupabaseService
from lawnly.tasks import FireAndForget

logger = logging.getLogger(__name__)


class NotificationService:
    """In-app notifications and outbound email, always best-effort.

    ``notify`` and ``email`` hand the work to the dispatcher and return
    immediately; the ``send_*`` coroutines do the actual I/O and raise.
    """

    def __init__(
        self,
        supabase: SupabaseService,
        dispatcher: FireAndForget,
        resend: ResendService | None = None,
    ) -> None:
        self._supabase = supabase
        self._dispatcher = dispatcher
        self._resend = resend

    async def send_in_app(
        self,
        user_id: str,
        title: str,
        message: str,
        booking_id: str | None = None,
        type: str = "success",
    ) -> None:
        await self._supabase.insert_notification(
            Notification(
                user_id=user_id,
                title=title,
                message=message,
                type=type,
                booking_id=booking_id,
            )
        )
        logger.info("Notification '%s' sent to user %s", title, user_id)

    async def send_email(self, user_id: str, subject: str, html: str) -> None:
        if self._resend is None:
            logger.debug("Email disabled, skipping '%s' for user %s", subject, user_id)
            return
        email = await self._supabase.get_user_email(user_id)
        if not email:
            logger.warning("No email address for user %s, skipping '%s'", user_id, subject)
            return
        await self._resend.send_email(email, subject, html)

    def notify(
        self,
        user_id: str,
        title: str,
        message: str,
        booking_id: str | None = None,
        type: str = "success",
    ) -> None:
        self._dispatcher.spawn(
            self.send_in_app(user_id, title, message, booking_id=booking_id, type=type),
            f"notification to {user_id}",
        )

    def email(self, user_id: str, subject: str, html: str) -> None:
        self._dispatcher.spawn(self.send_email(user_id, subject, html), f"email to {user_id}")
