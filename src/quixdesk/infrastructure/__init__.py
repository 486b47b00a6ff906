"""
Infrastructure Layer
=====================

Shared technical adapters:
- Database connection management
- LLM client
- Media hosting (Cloudinary)
- Email notifications
"""
