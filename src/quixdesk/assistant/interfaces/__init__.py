"""
Assistant Interfaces Layer
==========================

FastAPI route handlers for the assistant.
"""

from quixdesk.assistant.interfaces.controllers import assistant_router

__all__ = ["assistant_router"]
