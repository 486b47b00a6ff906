"""
Tickets Infrastructure Layer
============================

Contains:
- Models: tickets and ticket_assignments tables
- Repositories: SQLAlchemy implementations
- Scheduler: APScheduler wrapper for the first-response watch
"""
