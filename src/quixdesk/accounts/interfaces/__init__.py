"""
Accounts Interfaces Layer
=========================

Auth, profile and employee routes plus the shared auth dependencies.
"""

from quixdesk.accounts.interfaces.controllers import accounts_router

__all__ = ["accounts_router"]
