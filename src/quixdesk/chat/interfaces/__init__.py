"""
Chat Interfaces Layer
=====================

FastAPI route handlers for ticket messages.
"""

from quixdesk.chat.interfaces.controllers import chat_router

__all__ = ["chat_router"]
