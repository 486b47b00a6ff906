"""
Chat Application Layer
======================

Contains:
- Services: ChatService and the message repository interface
- Typing: per-ticket typing indicator timers
- DTOs: request and response models
"""
