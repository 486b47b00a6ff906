"""
Tickets Domain
==============

Closure workflow, chat session flags, ordering, access and moderation rules.

Pure Python: these rules operate on plain values so they can be applied
to ORM rows and tested without a database.
"""

import re
from dataclasses import dataclass, replace, fields
from datetime import datetime
from typing import Any, Iterable, Optional

from quixdesk.config import Role, TicketStatus
from quixdesk.core import InvalidTransitionException


class TicketAction(str):
    """Actions that move a ticket through its lifecycle."""
    ANSWER = "answer"
    REQUEST_CLOSURE = "request closure of"
    CONFIRM_CLOSURE = "confirm closure of"
    CLOSE = "close"


class TicketWorkflow:
    """
    Closure workflow: open -> answered/requested -> closed.

    - answer: an employee connected to the chat
    - request closure: support asks the owner to confirm the fix
    - confirm closure: the owner accepts the request
    - close: support closes directly
    """

    _ALLOWED_FROM = {
        TicketAction.ANSWER: {TicketStatus.OPEN, TicketStatus.ANSWERED, TicketStatus.REQUESTED},
        TicketAction.REQUEST_CLOSURE: {TicketStatus.OPEN, TicketStatus.ANSWERED},
        TicketAction.CONFIRM_CLOSURE: {TicketStatus.REQUESTED},
        TicketAction.CLOSE: {TicketStatus.OPEN, TicketStatus.ANSWERED, TicketStatus.REQUESTED},
    }
    _TARGET = {
        TicketAction.ANSWER: TicketStatus.ANSWERED,
        TicketAction.REQUEST_CLOSURE: TicketStatus.REQUESTED,
        TicketAction.CONFIRM_CLOSURE: TicketStatus.CLOSED,
        TicketAction.CLOSE: TicketStatus.CLOSED,
    }

    @classmethod
    def can(cls, action: str, current_status: str) -> bool:
        return current_status in cls._ALLOWED_FROM[action]

    @classmethod
    def transition(cls, action: str, current_status: str) -> str:
        """
        Target status for the action.

        Raises:
            InvalidTransitionException: action not allowed from current_status
        """
        if not cls.can(action, current_status):
            raise InvalidTransitionException(action, current_status)
        return cls._TARGET[action]


@dataclass(frozen=True)
class ChatSession:
    """
    Live-chat handshake flags stored on the ticket row.

    The owner raises `user_waiting`; an employee connects (the owner now
    sees `employee_waiting`); the owner joins; either side ends the chat.
    """
    user_waiting: bool = False
    employee_waiting: bool = False
    chat_initiated: bool = False
    employee_connected: bool = False
    user_connected: bool = False

    @classmethod
    def of(cls, ticket: Any) -> "ChatSession":
        return cls(**{f.name: bool(getattr(ticket, f.name)) for f in fields(cls)})

    def apply_to(self, ticket: Any) -> None:
        for f in fields(self):
            setattr(ticket, f.name, getattr(self, f.name))

    def request(self) -> "ChatSession":
        return replace(self, user_waiting=True)

    def cancel_request(self) -> "ChatSession":
        return replace(self, user_waiting=False)

    def connect_employee(self) -> "ChatSession":
        return replace(
            self,
            chat_initiated=True,
            user_waiting=False,
            employee_connected=True,
            employee_waiting=True,
        )

    def join(self) -> "ChatSession":
        return replace(self, employee_waiting=False, chat_initiated=True, user_connected=True)

    def end(self) -> "ChatSession":
        return replace(
            self,
            chat_initiated=False,
            user_waiting=False,
            employee_connected=False,
            user_connected=False,
        )


# Owner's list: answered first, closed last
_OWNER_STATUS_ORDER = {
    TicketStatus.ANSWERED: 0,
    TicketStatus.OPEN: 1,
    TicketStatus.REQUESTED: 2,
    TicketStatus.CLOSED: 3,
}


def owner_sort_key(ticket: Any) -> tuple:
    """Employee waiting first, then status order, then newest first."""
    created: datetime = ticket.created_at
    return (
        0 if ticket.employee_waiting else 1,
        _OWNER_STATUS_ORDER.get(ticket.status, len(_OWNER_STATUS_ORDER)),
        -created.timestamp(),
    )


def chat_request_sort_key(ticket: Any) -> tuple:
    """Waiting users first, then newest first."""
    return (0 if ticket.user_waiting else 1, -ticket.created_at.timestamp())


def is_participant(
    owner_id: str,
    assignee_ids: Iterable[str],
    actor_id: str,
    actor_role: str
) -> bool:
    """Owner, assigned employees and admins may see and act on a ticket."""
    if actor_role == Role.ADMIN:
        return True
    actor_id = str(actor_id)
    return actor_id == str(owner_id) or actor_id in {str(a) for a in assignee_ids}


def counterpart_id(
    owner_id: str,
    assignee_ids: Iterable[str],
    actor_id: str
) -> Optional[str]:
    """The other side of the conversation for the actor."""
    assignees = [str(a) for a in assignee_ids]
    if str(actor_id) in assignees:
        return str(owner_id)
    return assignees[0] if assignees else None


# Content moderation word list; multi-word entries match as phrases
FLAGGED_TERMS = ("test", "spam", "xxx", "fuck", "shit", "asshole", "bla bla", "asdf")
_FLAGGED_PATTERNS = [
    (term, re.compile(r"\b" + re.escape(term) + r"\b", re.IGNORECASE))
    for term in FLAGGED_TERMS
]


def moderation_flag(title: str, description: Optional[str] = None) -> Optional[str]:
    """
    Reason the ticket content should be flagged, or None when it is clean.

    Terms are matched as whole words so "latest" does not trip "test".
    The first listed term found wins.
    """
    content = f"{title or ''} {description or ''}"
    for term, pattern in _FLAGGED_PATTERNS:
        if pattern.search(content):
            return f'Contains inappropriate content: "{term}"'
    return None
