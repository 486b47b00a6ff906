"""
Shared Kernel Module
====================

Generic infrastructure used across all bounded contexts (logging,
middleware, security helpers).

DO NOT add ticket, chat or account business logic here.
"""
