"""
In-process domain events

Events are published only after the transaction that produced them has
committed. Handlers are best-effort: an exception is logged and swallowed so
it can never undo the committed change.
"""
import logging
from datetime import date
from typing import Callable, Dict, List, Type

from pydantic import BaseModel
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


class DomainEvent(BaseModel):
    company_id: int


class LeaveApproved(DomainEvent):
    leave_request_id: int
    employee_id: int
    leave_type: str
    start_date: date
    end_date: date
    approved_by: int


Handler = Callable[[Session, DomainEvent], None]

_handlers: Dict[Type[DomainEvent], List[Handler]] = {}


def subscribe(event_type: Type[DomainEvent], handler: Handler) -> None:
    handlers = _handlers.setdefault(event_type, [])
    if handler not in handlers:
        handlers.append(handler)


def publish(db: Session, event: DomainEvent) -> None:
    """Deliver event to every handler subscribed to its type."""
    for handler in list(_handlers.get(type(event), [])):
        try:
            handler(db, event)
        except Exception:
            logger.error(
                "Domain event handler failed: event=%s handler=%s payload=%s",
                type(event).__name__, getattr(handler, "__name__", handler), event.model_dump(),
                exc_info=True,
            )


def register_default_handlers() -> None:
    from app.services.employee_status_service import handle_leave_approved

    subscribe(LeaveApproved, handle_leave_approved)
