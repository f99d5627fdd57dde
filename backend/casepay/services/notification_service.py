"""
Notification Service — Fans payment state transitions out to subscribers.
Email delivery itself is an external collaborator; the default subscriber
only logs what it would send.
"""
from dataclasses import dataclass
from typing import Callable, Dict, Any, List, Optional

import structlog

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class TransitionEvent:
    case_id: str
    payment_id: str
    from_status: str
    to_status: str
    source: str = "gateway"         # gateway | admin
    actor: Optional[str] = None
    event: str = "stateTransition"

    def to_message(self) -> Dict[str, Any]:
        """Wire shape handed to subscribers."""
        return {
            "event": self.event,
            "caseId": self.case_id,
            "paymentId": self.payment_id,
            "fromStatus": self.from_status,
            "toStatus": self.to_status,
        }


Subscriber = Callable[[Dict[str, Any]], None]


def log_email_subscriber(message: Dict[str, Any]) -> None:
    """Stand-in for the email collaborator."""
    logger.info("payment_email_queued", **message)


class NotificationDispatcher:
    """Fire-and-forget delivery of transition events.

    Called after the transition is committed. A subscriber that raises is
    logged and skipped; it never reaches the caller.
    """

    def __init__(self, subscribers: Optional[List[Subscriber]] = None):
        self._subscribers: List[Subscriber] = list(subscribers) if subscribers is not None else [log_email_subscriber]

    def subscribe(self, subscriber: Subscriber) -> None:
        self._subscribers.append(subscriber)

    def dispatch(self, event: TransitionEvent) -> int:
        """Deliver to every subscriber. Returns how many succeeded."""
        message = event.to_message()
        delivered = 0
        for subscriber in self._subscribers:
            try:
                subscriber(message)
                delivered += 1
            except Exception:
                logger.exception(
                    "notification_subscriber_failed",
                    subscriber=getattr(subscriber, "__name__", repr(subscriber)),
                    payment_id=event.payment_id,
                )
        return delivered
