"""
Tickets Application Layer
=========================

Contains:
- Services: TicketService, TicketGuard and repository interfaces
- Monitor: first-response watch pass
- DTOs: request and response models
"""
