"""
Ratings Interfaces Layer
========================

FastAPI route handlers for ratings and feedback.
"""

from quixdesk.ratings.interfaces.controllers import ratings_router

__all__ = ["ratings_router"]
