"""
Model Registry
==============

Imports every ORM model so `Base.metadata` knows all tables before
`create_all` runs.
"""

from quixdesk.accounts.infrastructure.models import UserModel
from quixdesk.chat.infrastructure.models import MessageModel
from quixdesk.ratings.infrastructure.models import RatingModel
from quixdesk.tickets.infrastructure.models import AssignmentModel, TicketModel

__all__ = [
    "UserModel",
    "TicketModel",
    "AssignmentModel",
    "MessageModel",
    "RatingModel",
]
