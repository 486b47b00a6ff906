"""
Tickets Interfaces Layer
========================

FastAPI route handlers for tickets.
"""

from quixdesk.tickets.interfaces.controllers import tickets_router

__all__ = ["tickets_router"]
