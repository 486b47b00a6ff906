"""
Tickets Module
==============

Bounded Context for the support ticket lifecycle.

Responsibilities:
- Submission with optional screenshot upload
- Admin assignment to employees
- Closure workflow (request, confirm, direct close)
- Live chat handshake flags
- First-response monitoring
"""
