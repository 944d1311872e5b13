"""Chat relay - ordered pass-through messages within a school.

No business logic beyond validation, per-school ordering and delivery.
Message text is never logged.
"""
import logging
from typing import Callable, Dict, List

from safespace.shared.errors import ValidationError
from safespace.shared.models import Message, Session, utcnow
from safespace.shared.utils import SchoolLocks

logger = logging.getLogger(__name__)


class ChatRelay:
    """In-memory per-school message log with monotonic sequences."""

    def __init__(self, max_message_length: int = 2000, clock: Callable = utcnow):
        self.max_message_length = max_message_length
        self._clock = clock
        self._locks = SchoolLocks()
        self._messages: Dict[str, List[Message]] = {}

    def post(self, session: Session, text: str) -> Message:
        """Append a message from the session holder.

        Raises:
            ValidationError: Blank or over-long text
        """
        text = text.strip() if isinstance(text, str) else ""
        if not text:
            raise ValidationError("Message text is required")
        if len(text) > self.max_message_length:
            raise ValidationError(
                f"Message exceeds {self.max_message_length} characters"
            )

        with self._locks.get(session.school_id):
            log = self._messages.setdefault(session.school_id, [])
            message = Message(
                school_id=session.school_id,
                sender_role=session.role,
                text=text,
                sequence=len(log) + 1,
                timestamp=self._clock(),
            )
            log.append(message)

        logger.debug(
            "CHAT_MESSAGE_RELAYED",
            extra={
                "school_id": session.school_id,
                "sender_role": session.role.value,
                "sequence": message.sequence,
                "length": len(text),
            }
        )
        return message

    def read_since(self, school_id: str, sequence: int = 0) -> List[Message]:
        """Messages with sequence greater than ``sequence``, ascending."""
        if sequence < 0:
            raise ValidationError("sequence must be >= 0")
        return list(self._messages.get(school_id, ()))[sequence:]
