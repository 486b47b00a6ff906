"""
Tickets Domain Layer
====================

Status workflow, chat session flags, ordering and moderation rules.
"""

from quixdesk.tickets.domain.entities import (
    FLAGGED_TERMS,
    ChatSession,
    TicketAction,
    TicketWorkflow,
    chat_request_sort_key,
    counterpart_id,
    is_participant,
    moderation_flag,
    owner_sort_key,
)

__all__ = [
    "TicketAction",
    "TicketWorkflow",
    "ChatSession",
    "owner_sort_key",
    "chat_request_sort_key",
    "is_participant",
    "counterpart_id",
    "FLAGGED_TERMS",
    "moderation_flag",
]
