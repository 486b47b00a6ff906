"""
Analytics Interfaces Layer
==========================

FastAPI route handlers for dashboards and reports.
"""

from quixdesk.analytics.interfaces.controllers import analytics_router

__all__ = ["analytics_router"]
