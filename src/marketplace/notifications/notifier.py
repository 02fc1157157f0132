"""Notifier port, the in-memory adapter, and best-effort dispatch.

Delivery is a side channel: a notifier that raises or reports a failure is
logged and otherwise ignored, so it can never fail the write that triggered
it.
"""

from abc import ABC, abstractmethod
from uuid import uuid4

import structlog

logger = structlog.get_logger(__name__)


class Notifier(ABC):
    @abstractmethod
    def send(self, recipient_id: str, template: str, context: dict) -> dict:
        """Deliver a message.

        Returns:
            dict with keys: message_id, status ("sent" or "failed"), error (optional)
        """
        ...


class InMemoryNotifier(Notifier):
    """Records messages for inspection; can be told to fail."""

    def __init__(self):
        self.sent: list[dict] = []
        self.should_succeed = True
        self.failure_reason = "Delivery failed"

    def configure(self, should_succeed: bool = True, failure_reason: str = "Delivery failed"):
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def send(self, recipient_id, template, context):
        if not self.should_succeed:
            return {"message_id": None, "status": "failed", "error": self.failure_reason}

        message_id = f"msg-{uuid4().hex[:12]}"
        self.sent.append(
            {
                "message_id": message_id,
                "recipient_id": recipient_id,
                "template": template,
                "context": context,
            }
        )
        return {"message_id": message_id, "status": "sent"}


_current_notifier: Notifier | None = None


def get_notifier() -> Notifier:
    global _current_notifier
    if _current_notifier is None:
        _current_notifier = InMemoryNotifier()
    return _current_notifier


def set_notifier(notifier: Notifier) -> None:
    global _current_notifier
    _current_notifier = notifier


def reset_notifier() -> None:
    global _current_notifier
    _current_notifier = None


def dispatch(recipient_id, template, **context) -> dict | None:
    try:
        result = get_notifier().send(str(recipient_id), template, context)
    except Exception:
        # best effort: delivery problems never reach the caller
        logger.exception("Notification dispatch raised", recipient_id=str(recipient_id), template=template)
        return None

    if result.get("status") != "sent":
        logger.warning(
            "Notification not delivered",
            recipient_id=str(recipient_id),
            template=template,
            error=result.get("error"),
        )
    return result
