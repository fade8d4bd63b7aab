import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional, Protocol

from push_scheduler import timeutil
from push_scheduler.errors import DispatchFailed
from push_scheduler.push.models import HistoryEntry
from push_scheduler.store import HistoryLog

logger = logging.getLogger(__name__)


class PushTransport(Protocol):
    async def send(
        self, title: str, body: str, topic: str, image: Optional[str] = None
    ) -> str: ...


@dataclass
class DispatchResult:
    message_id: str
    sent_at: datetime


class Dispatcher:
    """Sends one notification now and records a "sent" history entry."""

    def __init__(
        self,
        transport: PushTransport,
        history_log: HistoryLog,
        display_offset_minutes: int = timeutil.IST_OFFSET_MINUTES,
        clock: Callable[[], datetime] = timeutil.now,
    ):
        self.transport = transport
        self.history_log = history_log
        self.display_offset_minutes = display_offset_minutes
        self.clock = clock

    async def dispatch(
        self,
        title: str,
        body: str,
        topic: str,
        image: Optional[str] = None,
    ) -> DispatchResult:
        try:
            message_id = await self.transport.send(title, body, topic, image)
        except Exception as e:
            logger.error("Error sending notification %r to topic %s: %s", title, topic, e)
            raise DispatchFailed(str(e)) from e

        sent_at = self.clock()
        entry = HistoryEntry(
            id=uuid.uuid4().hex,
            title=title,
            body=body,
            topic=topic,
            image=image,
            time_utc=timeutil.format_canonical(sent_at),
            time_local=timeutil.to_display(sent_at, self.display_offset_minutes),
            type="sent",
            message_id=message_id,
        )
        try:
            await self.history_log.append(entry)
        except Exception:
            # wiadomość już wysłana: błąd historii nie unieważnia wysyłki
            logger.exception("Notification %s sent but history entry was not written", message_id)

        return DispatchResult(message_id=message_id, sent_at=sent_at)
