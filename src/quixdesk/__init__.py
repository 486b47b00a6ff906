"""
QuixDesk
========

Customer support ticketing service.

Bounded contexts:
- accounts: users, authentication, profiles
- tickets: submission, assignment, closure workflow, chat session flags
- chat: per-ticket messages, reads, reactions, typing
- ratings: employee feedback
- assistant: QuixkyBot and text to speech
- analytics: admin analytics and CSR dashboard
- realtime: WebSocket fan-out
"""

__version__ = "1.0.0"
